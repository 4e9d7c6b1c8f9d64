"""
Servicio de lotes de operaciones de caja

Implementa el ciclo de vida de un lote:
- Apertura: un solo lote abierto por (usuario, caja), con asiento de saldo inicial
- Cierre: arqueo de las cuentas de efectivo, irreversible
- Consulta de lotes y de su detalle con visibilidad por rol
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from decimal import Decimal
from typing import List, Optional, Dict, Tuple
import logging

from app.core.config import settings
from app.common.dates import local_today, local_time_label
from app.common.scoping import is_admin, scope_to_owner
from app.modules.auth.schemas import AuthContext
from app.modules.batches.models import TillBatch, TillBatchDetail, BatchKind, DetailType
from app.modules.batches.schemas import TillBatchOpen, TillBatchClose, TillBatchDetailCreate
from app.modules.cash_movements.mirror import LedgerMirror
from app.modules.cash_movements.models import MovementType
from app.modules.treasury.models import Account
from app.modules.treasury.service import TreasuryService

logger = logging.getLogger(__name__)

OPEN_BATCH_CONFLICT = "Ya tienes un lote abierto para esta caja. Debes cerrarlo antes de abrir uno nuevo."


class TillBatchService:
    """Servicio para apertura, cierre y consulta de lotes de caja"""

    def __init__(self, db: Session):
        self.db = db
        self.mirror = LedgerMirror(db)
        self.treasury = TreasuryService(db)

    def find_open_batch_for_till(self, user_id: int, till_id: int) -> Optional[TillBatch]:
        return self.db.query(TillBatch).filter(
            TillBatch.fk_id_usuario == user_id,
            TillBatch.fk_id_caja == till_id,
            TillBatch.abierto == True
        ).first()

    def open_batch(self, data: TillBatchOpen, auth_context: AuthContext) -> TillBatch:
        """
        Abrir un lote en una caja.

        Si el saldo inicial es positivo se registra también en el detalle del
        lote y en movimientos_caja; esas dos escrituras no invalidan la apertura
        si fallan.

        Raises:
            HTTPException 400: caja inexistente o lote ya abierto para (usuario, caja)
        """
        try:
            self.treasury.require_active_till(data.fk_id_caja)

            if self.find_open_batch_for_till(auth_context.user_id, data.fk_id_caja):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=OPEN_BATCH_CONFLICT
                )

            batch = TillBatch(
                fk_id_usuario=auth_context.user_id,
                fk_id_caja=data.fk_id_caja,
                abierto=True,
                tipo_lote=BatchKind.APERTURA.value,
                hora_apertura=local_time_label(),
                saldo_inicial=data.saldo_inicial,
                observaciones=data.observaciones
            )
            self.db.add(batch)
            self.db.commit()
            self.db.refresh(batch)

        except HTTPException:
            raise
        except IntegrityError:
            # Otra apertura concurrente ganó el índice único parcial
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=OPEN_BATCH_CONFLICT
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error abriendo lote en caja {data.fk_id_caja}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al abrir el lote"
            )

        logger.info(f"Lote {batch.id_lote} abierto por usuario {auth_context.user_id} en caja {batch.fk_id_caja}")

        if data.saldo_inicial > 0:
            self._post_opening_balance(batch, auth_context)

        return self.get_batch(batch.id_lote)

    def _post_opening_balance(self, batch: TillBatch, auth_context: AuthContext) -> None:
        movement = self.mirror.post_cash_movement(
            fk_id_cuenta=settings.DEFAULT_CASH_ACCOUNT_ID,
            concepto_ingreso="Apertura de caja",
            apellido_nombres=auth_context.nombre,
            nota=f"Saldo inicial de caja - Lote {batch.id_lote}",
            fk_id_concepto=settings.OPENING_BALANCE_CONCEPT_ID,
            tipo=MovementType.INGRESO.value,
            ingresos=batch.saldo_inicial,
            observaciones=batch.observaciones,
            fk_id_usuario=auth_context.user_id
        )

        cash_account = self.treasury.resolve_default_cash_account()
        if not cash_account:
            logger.warning(f"No hay cuentas para registrar el saldo inicial del lote {batch.id_lote}")
            return

        self.mirror.mirror_to_batch(
            batch_id=batch.id_lote,
            account_id=cash_account.id,
            tipo=DetailType.INGRESO.value,
            monto=batch.saldo_inicial,
            concepto="Saldo inicial de caja",
            observaciones="Apertura de caja - saldo inicial",
            movement_id=movement.id if movement else None
        )

    def get_batch(self, batch_id: int) -> TillBatch:
        batch = self.db.query(TillBatch).options(
            joinedload(TillBatch.caja),
            joinedload(TillBatch.usuario)
        ).filter(TillBatch.id_lote == batch_id).first()
        if not batch:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lote no encontrado"
            )
        return batch

    def close_batch(self, data: TillBatchClose, auth_context: AuthContext) -> Tuple[TillBatch, Dict[str, Decimal]]:
        """
        Cerrar un lote abierto y calcular su arqueo.

        saldo_final solo suma las líneas de cuentas de efectivo; el resumen
        informa además los totales de todas las cuentas.

        Raises:
            HTTPException 400: lote inexistente o ya cerrado
            HTTPException 403: el usuario no es el dueño ni administrador
        """
        try:
            batch = self.db.query(TillBatch).filter(
                TillBatch.id_lote == data.id_lote,
                TillBatch.abierto == True
            ).with_for_update().first()

            if not batch:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Lote no encontrado o ya está cerrado"
                )

            if batch.fk_id_usuario != auth_context.user_id and not is_admin(auth_context):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="No tienes permisos para cerrar este lote"
                )

            rows = self.db.query(TillBatchDetail.tipo, TillBatchDetail.monto, Account.tipo).join(
                Account, Account.id == TillBatchDetail.fk_id_cuenta_tesoreria
            ).filter(TillBatchDetail.fk_id_lote == batch.id_lote).all()

            summary = self._summarize(batch, rows)

            batch.abierto = False
            batch.tipo_lote = BatchKind.CIERRE.value
            batch.fecha_cierre = local_today()
            batch.hora_cierre = local_time_label()
            batch.saldo_final = summary["saldo_final"]
            if data.observaciones:
                batch.observaciones = data.observaciones

            self.db.commit()

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error cerrando lote {data.id_lote}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al cerrar el lote"
            )

        logger.info(f"Lote {batch.id_lote} cerrado con saldo final {summary['saldo_final']}")
        return self.get_batch(batch.id_lote), summary

    @staticmethod
    def _summarize(batch: TillBatch, rows) -> Dict[str, Decimal]:
        total_ingresos = Decimal("0")
        total_egresos = Decimal("0")
        cash_ingresos = Decimal("0")
        cash_egresos = Decimal("0")

        for tipo, monto, account_type in rows:
            monto = Decimal(monto or 0)
            is_cash = (account_type or "").strip().lower() == settings.CASH_ACCOUNT_TYPE.lower()
            if tipo == DetailType.INGRESO.value:
                total_ingresos += monto
                if is_cash:
                    cash_ingresos += monto
            elif tipo == DetailType.EGRESO.value:
                total_egresos += monto
                if is_cash:
                    cash_egresos += monto

        return {
            "saldo_inicial": Decimal(batch.saldo_inicial or 0),
            "total_ingresos": total_ingresos,
            "total_egresos": total_egresos,
            "saldo_final": cash_ingresos - cash_egresos,
        }

    def list_batches(
        self,
        auth_context: AuthContext,
        abierto: Optional[bool] = None,
        caja_id: Optional[int] = None,
        todos: bool = False,
        excluir_usuario: bool = False
    ) -> List[TillBatch]:
        """
        Listar lotes.

        - excluir_usuario: lotes de los demás usuarios (destinos de transferencia)
        - todos: el administrador ve todos, el resto solo los propios
        - por defecto: solo los propios
        """
        query = self.db.query(TillBatch).options(
            joinedload(TillBatch.caja),
            joinedload(TillBatch.usuario)
        )

        if excluir_usuario:
            query = query.filter(TillBatch.fk_id_usuario != auth_context.user_id)
        elif todos:
            query = scope_to_owner(query, TillBatch.fk_id_usuario, auth_context)
        else:
            query = query.filter(TillBatch.fk_id_usuario == auth_context.user_id)

        if abierto is not None:
            query = query.filter(TillBatch.abierto == abierto)
        if caja_id is not None:
            query = query.filter(TillBatch.fk_id_caja == caja_id)

        return query.order_by(TillBatch.fecha_apertura.desc(), TillBatch.id_lote.desc()).all()

    def get_details(
        self,
        auth_context: AuthContext,
        lote_id: Optional[int] = None,
        todos: bool = False
    ) -> List[TillBatchDetail]:
        query = self.db.query(TillBatchDetail).options(
            joinedload(TillBatchDetail.cuenta),
            joinedload(TillBatchDetail.lote).joinedload(TillBatch.caja),
            joinedload(TillBatchDetail.lote).joinedload(TillBatch.usuario)
        )

        if todos:
            query = scope_to_owner(
                query.join(TillBatch, TillBatch.id_lote == TillBatchDetail.fk_id_lote),
                TillBatch.fk_id_usuario,
                auth_context
            )
        else:
            if lote_id is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="lote_id es requerido"
                )
            self._require_own_batch(lote_id, auth_context)
            query = query.filter(TillBatchDetail.fk_id_lote == lote_id)

        return query.order_by(
            TillBatchDetail.fecha_movimiento.desc(),
            TillBatchDetail.id.desc()
        ).all()

    def add_detail(self, data: TillBatchDetailCreate, auth_context: AuthContext) -> TillBatchDetail:
        """Agregar una línea manual al detalle de un lote abierto propio."""
        batch = self._require_own_batch(data.fk_id_lote, auth_context)
        if not batch.abierto:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El lote está cerrado; no se pueden agregar movimientos"
            )
        self.treasury.require_active_account(data.fk_id_cuenta_tesoreria)

        detail = TillBatchDetail(
            fk_id_lote=batch.id_lote,
            fk_id_cuenta_tesoreria=data.fk_id_cuenta_tesoreria,
            tipo=data.tipo.value,
            monto=data.monto,
            concepto=data.concepto,
            observaciones=data.observaciones
        )
        try:
            self.db.add(detail)
            self.db.commit()
            self.db.refresh(detail)
            return detail
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error agregando detalle al lote {batch.id_lote}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al registrar el detalle del lote"
            )

    def _require_own_batch(self, batch_id: int, auth_context: AuthContext) -> TillBatch:
        batch = self.db.query(TillBatch).filter(
            TillBatch.id_lote == batch_id,
            TillBatch.fk_id_usuario == auth_context.user_id
        ).first()
        if not batch:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Lote no encontrado o no autorizado"
            )
        return batch
