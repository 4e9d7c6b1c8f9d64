"""
Modelos SQLAlchemy para socios y su cuenta corriente de cuotas

- Member: socio de la agrupación
- ChargeTemplate: cargo (cuota) que se genera en lote para varios socios
- MemberDuesEntry: cargo o pago en la cuenta corriente del socio
- Payment: pago de una cuota, identificado como PAG-XXXXXXXX-xxxx
"""

from app.database.database import Base
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Numeric, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.common.mixins import TimestampMixin
import enum


class EntryType(str, enum.Enum):
    CARGO = "Cargo"
    PAGO = "Pago"


class EntryStatus(str, enum.Enum):
    PENDIENTE = "Pendiente"
    VENCIDA = "Vencida"
    COBRADA = "Cobrada"


class Member(Base, TimestampMixin):
    __tablename__ = "socios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre_socio = Column(String(200), nullable=False)
    razon_social = Column(String(200), nullable=False)
    nombre_fantasia = Column(String(200), nullable=True)
    domicilio_comercial = Column(String(300), nullable=True)
    telefono_comercial = Column(String(50), nullable=True)
    celular = Column(String(50), nullable=True)
    mail = Column(String(150), nullable=False)
    documento = Column(String(20), nullable=False)
    cuit = Column(String(13), nullable=False)
    tipo_socio = Column(String(50), nullable=False, default="Activo")
    fecha_alta = Column(Date, nullable=False)
    fecha_baja = Column(Date, nullable=True)
    fk_id_usuario = Column(Integer, ForeignKey("usuarios.id"), nullable=True)

    # Relationships
    movimientos = relationship("MemberDuesEntry", back_populates="socio")

    __table_args__ = (
        UniqueConstraint("cuit", name="uq_socios_cuit"),
        UniqueConstraint("mail", name="uq_socios_mail"),
    )


class ChargeTemplate(Base, TimestampMixin):
    __tablename__ = "cargos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(150), nullable=False)
    descripcion = Column(Text, nullable=True)
    monto = Column(Numeric(15, 2), nullable=False)
    activo = Column(Boolean, default=True, nullable=False)


class MemberDuesEntry(Base, TimestampMixin):
    """
    Línea de la cuenta corriente del socio.

    saldo: lo que resta cobrar de esta línea (los pagos quedan en 0).
    saldo_acumulado: saldo del socio después de esta línea, recalculado
    en orden (fecha, id): +monto para cargos, -monto para pagos.
    """
    __tablename__ = "movimientos_socios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fk_id_socio = Column(Integer, ForeignKey("socios.id"), nullable=False, index=True)
    fecha = Column(Date, nullable=False, index=True)
    tipo = Column(String(10), nullable=False)  # Cargo | Pago
    concepto = Column(String(300), nullable=True)
    monto = Column(Numeric(15, 2), nullable=False)
    saldo = Column(Numeric(15, 2), nullable=False, default=0)
    saldo_acumulado = Column(Numeric(15, 2), nullable=False, default=0)
    estado = Column(String(20), nullable=False, default=EntryStatus.PENDIENTE.value, index=True)
    fecha_vencimiento = Column(Date, nullable=True)
    fk_id_cargo = Column(Integer, ForeignKey("cargos.id"), nullable=True)

    # Pago que originó esta línea (solo tipo Pago)
    fk_id_pago = Column(String(30), nullable=True, index=True)

    # Relationships
    socio = relationship("Member", back_populates="movimientos")
    cargo = relationship("ChargeTemplate")


class Payment(Base):
    __tablename__ = "pagos"

    id = Column(String(30), primary_key=True)
    fk_id_socio = Column(Integer, ForeignKey("socios.id"), nullable=False, index=True)
    fecha = Column(Date, nullable=False)
    monto = Column(Numeric(15, 2), nullable=False)
    fk_id_movimiento = Column(Integer, ForeignKey("movimientos_socios.id"), nullable=False, index=True)
    fk_id_cuenta_tesoreria = Column(Integer, ForeignKey("cuentas.id"), nullable=False)
    referencia = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    socio = relationship("Member")
    movimiento = relationship("MemberDuesEntry")
