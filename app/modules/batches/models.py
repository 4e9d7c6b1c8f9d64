"""
Modelos SQLAlchemy para lotes de operaciones de caja

- TillBatch: sesión de una caja (apertura → cierre) operada por un usuario
- TillBatchDetail: líneas de ingreso/egreso registradas mientras el lote está abierto

Solo puede existir un lote abierto por (usuario, caja); lo garantiza un
índice único parcial además de la verificación previa en el servicio.
"""

from app.database.database import Base
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Numeric, Text, Index, text
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum


class BatchKind(str, enum.Enum):
    APERTURA = "apertura"
    CIERRE = "cierre"


class DetailType(str, enum.Enum):
    INGRESO = "ingreso"
    EGRESO = "egreso"


def utc_now():
    return datetime.now(timezone.utc)


class TillBatch(Base):
    __tablename__ = "lotes_operaciones"

    id_lote = Column(Integer, primary_key=True, autoincrement=True)
    fk_id_usuario = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)
    fk_id_caja = Column(Integer, ForeignKey("cajas.id"), nullable=False, index=True)
    abierto = Column(Boolean, nullable=False, default=True, index=True)
    tipo_lote = Column(String(20), nullable=False, default=BatchKind.APERTURA.value)

    # Apertura / cierre
    fecha_apertura = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    hora_apertura = Column(String(5), nullable=True)
    fecha_cierre = Column(Date, nullable=True)
    hora_cierre = Column(String(5), nullable=True)

    # Saldos
    saldo_inicial = Column(Numeric(15, 2), nullable=False, default=0)
    saldo_final = Column(Numeric(15, 2), nullable=True)  # Solo se llena al cerrar

    observaciones = Column(Text, nullable=True)

    # Relationships
    caja = relationship("Till")
    usuario = relationship("User")
    detalles = relationship("TillBatchDetail", back_populates="lote")

    __table_args__ = (
        Index(
            "uq_lote_abierto_usuario_caja",
            "fk_id_usuario", "fk_id_caja",
            unique=True,
            postgresql_where=text("abierto"),
            sqlite_where=text("abierto"),
        ),
    )


class TillBatchDetail(Base):
    """
    Línea de un lote. Se escribe solo con el lote abierto y no se modifica después.
    """
    __tablename__ = "detalle_lotes_operaciones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fk_id_lote = Column(Integer, ForeignKey("lotes_operaciones.id_lote"), nullable=False, index=True)
    fk_id_cuenta_tesoreria = Column(Integer, ForeignKey("cuentas.id"), nullable=False, index=True)
    tipo = Column(String(10), nullable=False)  # ingreso | egreso
    monto = Column(Numeric(15, 2), nullable=False)
    concepto = Column(Text, nullable=True)
    observaciones = Column(Text, nullable=True)
    fecha_movimiento = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Movimiento de caja que esta línea refleja (si lo hay)
    fk_id_movimiento = Column(Integer, ForeignKey("movimientos_caja.id"), nullable=True, index=True)

    # Relationships
    lote = relationship("TillBatch", back_populates="detalles")
    cuenta = relationship("Account")
