"""
Escrituras secundarias del libro de caja.

Cada evento monetario se escribe primero en su tabla principal; después se
refleja en el detalle del lote abierto (y, para aperturas y cobros de cuotas,
en movimientos_caja). Estas escrituras secundarias son de mejor esfuerzo:
si fallan se revierte solo esa escritura, se registra el error y la
operación principal sigue siendo válida.
"""
from app.common.dates import local_today
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.modules.batches.models import TillBatch, TillBatchDetail
from app.modules.cash_movements.models import CashMovement

logger = logging.getLogger(__name__)


class LedgerMirror:

    def __init__(self, db: Session):
        self.db = db

    def find_open_batch(self, user_id: int) -> Optional[TillBatch]:
        """Lote abierto más reciente del usuario, en cualquier caja."""
        return self.db.query(TillBatch).filter(
            TillBatch.fk_id_usuario == user_id,
            TillBatch.abierto == True
        ).order_by(TillBatch.fecha_apertura.desc(), TillBatch.id_lote.desc()).first()

    def mirror_to_batch(self, batch_id: int, account_id: int, tipo: str, monto: Decimal,
                        concepto: Optional[str], observaciones: Optional[str],
                        movement_id: Optional[int] = None) -> Optional[TillBatchDetail]:
        """
        Registrar una línea en el detalle del lote. Devuelve None si falla.

        El lote se relee bloqueado: si se cerró después de la escritura
        principal, la línea no se registra para no alterar el cierre.
        """
        try:
            batch = self.db.query(TillBatch).filter(
                TillBatch.id_lote == batch_id,
                TillBatch.abierto == True
            ).with_for_update().first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"No se pudo leer el lote {batch_id} para registrar el movimiento: {e}")
            return None

        if not batch:
            self.db.rollback()
            logger.error(
                f"Lote {batch_id} cerrado antes de registrar el movimiento "
                f"{movement_id}; el detalle no se registra"
            )
            return None

        detail = TillBatchDetail(
            fk_id_lote=batch_id,
            fk_id_cuenta_tesoreria=account_id,
            tipo=tipo.lower(),
            monto=monto,
            concepto=concepto,
            observaciones=observaciones,
            fk_id_movimiento=movement_id
        )
        try:
            self.db.add(detail)
            self.db.commit()
            self.db.refresh(detail)
            logger.info(f"Movimiento registrado también en lote {batch_id}")
            return detail
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"No se pudo registrar el movimiento en el detalle del lote {batch_id}: {e}"
            )
            return None

    def post_cash_movement(self, **fields) -> Optional[CashMovement]:
        """Registrar un movimiento en movimientos_caja. Devuelve None si falla."""
        fields.setdefault("fecha", local_today())
        movement = CashMovement(**fields)
        try:
            self.db.add(movement)
            self.db.commit()
            self.db.refresh(movement)
            return movement
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"No se pudo registrar el movimiento en movimientos_caja: {e}")
            return None
