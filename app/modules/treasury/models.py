"""
Modelos SQLAlchemy de referencia para tesorería

- Account: cuentas de tesorería (efectivo, banco, etc.)
- Concept: conceptos de ingreso/egreso
- Till: cajas físicas o lógicas donde se abren lotes
- Supplier: proveedores referenciados por egresos
"""

from app.database.database import Base
from sqlalchemy import Column, Integer, String, Numeric, Text, UniqueConstraint
from app.common.mixins import ActiveMixin, TimestampMixin
import enum


class ConceptType(str, enum.Enum):
    INGRESO = "Ingreso"
    EGRESO = "Egreso"


class Account(Base, ActiveMixin, TimestampMixin):
    """
    Cuenta de tesorería. El tipo es texto libre; "Efectivo" identifica
    las cuentas que se arquean físicamente al cerrar un lote.
    """
    __tablename__ = "cuentas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(150), nullable=False)
    descripcion = Column(Text, nullable=True)
    tipo = Column(String(50), nullable=False, default="Otro")
    numero_cuenta = Column(String(50), nullable=True)
    banco = Column(String(100), nullable=True)
    saldo_inicial = Column(Numeric(15, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("nombre", name="uq_cuentas_nombre"),
    )

    def is_cash(self, cash_type: str) -> bool:
        return (self.tipo or "").strip().lower() == cash_type.strip().lower()


class Concept(Base, ActiveMixin, TimestampMixin):
    __tablename__ = "conceptos_movimientos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(150), nullable=False)
    descripcion = Column(Text, nullable=True)
    categoria = Column(String(100), nullable=True)
    tipo = Column(String(10), nullable=False)  # Ingreso | Egreso


class Till(Base, ActiveMixin, TimestampMixin):
    __tablename__ = "cajas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(100), nullable=False)
    descripcion = Column(Text, nullable=True)


class Supplier(Base, TimestampMixin):
    __tablename__ = "proveedores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    razon_social = Column(String(200), nullable=False)
    nombre = Column(String(100), nullable=True)
    apellido = Column(String(100), nullable=True)
    email = Column(String(150), nullable=True)
    telefono = Column(String(50), nullable=True)
    estado = Column(String(10), nullable=False, default="Activo")
