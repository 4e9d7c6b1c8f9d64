"""
Libro general de movimientos de caja (movimientos_caja).

Es el registro de referencia, independiente de los lotes: cada evento
monetario aparece aquí una sola vez; los lotes solo lo reflejan.
"""

from app.database.database import Base
from sqlalchemy import Column, Integer, String, Date, ForeignKey, Numeric, Text
from sqlalchemy.orm import relationship
from app.common.mixins import TimestampMixin
import enum


class MovementType(str, enum.Enum):
    INGRESO = "Ingreso"
    EGRESO = "Egreso"


class CashMovement(Base, TimestampMixin):
    __tablename__ = "movimientos_caja"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fk_id_cuenta = Column(Integer, ForeignKey("cuentas.id"), nullable=False, index=True)
    fecha = Column(Date, nullable=False, index=True)
    concepto_ingreso = Column(Text, nullable=True)
    apellido_nombres = Column(String(200), nullable=True)
    fk_id_proveedor = Column(Integer, ForeignKey("proveedores.id"), nullable=True)
    numero_comprobante = Column(String(100), nullable=True)
    nota = Column(Text, nullable=True)
    fk_id_concepto = Column(Integer, ForeignKey("conceptos_movimientos.id"), nullable=False)
    tipo = Column(String(10), nullable=False)  # Ingreso | Egreso
    ingresos = Column(Numeric(15, 2), nullable=False)  # Monto, siempre positivo
    observaciones = Column(Text, nullable=True)
    fk_id_usuario = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)

    # Relationships
    cuenta = relationship("Account")
    concepto = relationship("Concept")
    proveedor = relationship("Supplier")
    usuario = relationship("User")

    @property
    def detail_type(self) -> str:
        """Tipo en minúsculas tal como se usa en el detalle de lotes"""
        return (self.tipo or "").lower()
