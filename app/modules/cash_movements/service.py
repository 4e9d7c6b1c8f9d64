"""
Servicio de movimientos de caja

- Registro de movimientos manuales, reflejados en el lote abierto del usuario
- Transferencias entre cajas: egreso en origen e ingreso en el lote destino,
  con deshacer manual si el destino deja de estar disponible
- Consulta del libro de caja con visibilidad por rol
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List, Optional, Dict, Any
import logging

from app.core.config import settings
from app.common.dates import local_today
from app.common.scoping import scope_to_owner
from app.modules.auth.schemas import AuthContext
from app.modules.batches.models import TillBatch, TillBatchDetail, DetailType
from app.modules.cash_movements.mirror import LedgerMirror
from app.modules.cash_movements.models import CashMovement, MovementType
from app.modules.cash_movements.schemas import CashMovementCreate, TransferCreate
from app.modules.treasury.service import TreasuryService

logger = logging.getLogger(__name__)


class CashMovementService:
    """Servicio para el libro de movimientos de caja"""

    def __init__(self, db: Session):
        self.db = db
        self.mirror = LedgerMirror(db)
        self.treasury = TreasuryService(db)

    def _require_open_batch(self, auth_context: AuthContext, message: str) -> TillBatch:
        batch = self.mirror.find_open_batch(auth_context.user_id)
        if not batch:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
        return batch

    def _insert_movement(self, error_message: str, **fields) -> CashMovement:
        movement = CashMovement(**fields)
        try:
            self.db.add(movement)
            self.db.commit()
            self.db.refresh(movement)
            return movement
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"{error_message}: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Error de integridad en base de datos"
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"{error_message}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=error_message
            )

    def record_cash_movement(self, data: CashMovementCreate, auth_context: AuthContext) -> CashMovement:
        """
        Registrar un movimiento manual de caja.

        Requiere un lote abierto; el movimiento se refleja en ese lote.

        Raises:
            HTTPException 400: sin lote abierto, cuenta o concepto inválidos
        """
        batch = self._require_open_batch(auth_context, "Debe abrir una caja antes de registrar movimientos")
        self.treasury.require_active_account(data.fk_id_cuenta)
        self.treasury.require_active_concept(data.fk_id_concepto)

        movement = self._insert_movement(
            "Error guardando el movimiento",
            fk_id_cuenta=data.fk_id_cuenta,
            fecha=data.fecha or local_today(),
            concepto_ingreso=data.concepto_ingreso,
            apellido_nombres=data.apellido_nombres,
            fk_id_proveedor=data.fk_id_proveedor,
            numero_comprobante=data.numero_comprobante,
            nota=data.nota,
            fk_id_concepto=data.fk_id_concepto,
            tipo=data.tipo.value,
            ingresos=data.ingresos,
            observaciones=data.observaciones,
            fk_id_usuario=auth_context.user_id
        )

        notes = f"Movimiento desde módulo: {data.observaciones or 'Sin observaciones'}"
        if data.apellido_nombres:
            notes += f" - {data.apellido_nombres}"
        if data.numero_comprobante:
            notes += f" - Comprobante: {data.numero_comprobante}"

        self.mirror.mirror_to_batch(
            batch_id=batch.id_lote,
            account_id=data.fk_id_cuenta,
            tipo=movement.detail_type,
            monto=data.ingresos,
            concepto=data.concepto_ingreso,
            observaciones=notes,
            movement_id=movement.id
        )

        return self.get_movement(movement.id)

    def transfer_between_tills(self, data: TransferCreate, auth_context: AuthContext) -> Dict[str, Any]:
        """
        Transferir dinero desde la caja del usuario hacia otro lote abierto.

        Pasos:
        1. Egreso en movimientos_caja a nombre del usuario
        2. Reflejo del egreso en su lote abierto
        3. Verificación (con bloqueo) del lote destino; si no está abierto se deshace el egreso
        4. Ingreso a nombre del dueño del lote destino; si falla se deshace el egreso
        5. Reflejo del ingreso en el lote destino

        Los reflejos en lotes no deshacen la transferencia si fallan.
        """
        source_batch = self._require_open_batch(
            auth_context, "Debe abrir una caja antes de registrar transferencias"
        )
        self.treasury.require_active_account(data.fk_id_cuenta)
        concept_id = data.fk_id_concepto or settings.TRANSFER_OUT_CONCEPT_ID
        self.treasury.require_active_concept(concept_id)

        fecha = data.fecha or local_today()
        extra_notes = data.observaciones or ""

        # 1. Egreso
        egreso = self._insert_movement(
            "Error guardando el egreso",
            fk_id_cuenta=data.fk_id_cuenta,
            fecha=fecha,
            concepto_ingreso=f"Transferencia a otra caja - {data.concepto_ingreso}",
            apellido_nombres=data.apellido_nombres,
            fk_id_proveedor=data.fk_id_proveedor,
            numero_comprobante=data.numero_comprobante,
            nota=data.nota,
            fk_id_concepto=concept_id,
            tipo=MovementType.EGRESO.value,
            ingresos=data.ingresos,
            observaciones=f"Transferencia hacia caja destino ID: {data.caja_destino_id}. {extra_notes}".strip(),
            fk_id_usuario=auth_context.user_id
        )

        # 2. Reflejo en el lote de origen
        self.mirror.mirror_to_batch(
            batch_id=source_batch.id_lote,
            account_id=data.fk_id_cuenta,
            tipo=DetailType.EGRESO.value,
            monto=data.ingresos,
            concepto=f"Transferencia - {data.concepto_ingreso}",
            observaciones=f"Transferencia desde módulo hacia caja destino ID: {data.caja_destino_id}",
            movement_id=egreso.id
        )

        # 3. Lote destino, bloqueado hasta registrar el ingreso
        destination = self.db.query(TillBatch).filter(
            TillBatch.id_lote == data.caja_destino_id,
            TillBatch.abierto == True
        ).with_for_update().first()

        if not destination:
            self.db.rollback()
            self._compensate(egreso.id)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La caja destino no existe o no está abierta"
            )

        # 4. Ingreso en el lote destino
        try:
            ingreso = self._insert_movement(
                "Error guardando el ingreso",
                fk_id_cuenta=data.fk_id_cuenta,
                fecha=fecha,
                concepto_ingreso=f"Transferencia recibida - {data.concepto_ingreso}",
                apellido_nombres=data.apellido_nombres,
                fk_id_proveedor=data.fk_id_proveedor,
                numero_comprobante=data.numero_comprobante,
                nota=data.nota,
                fk_id_concepto=settings.TRANSFER_IN_CONCEPT_ID,
                tipo=MovementType.INGRESO.value,
                ingresos=data.ingresos,
                observaciones=f"Transferencia recibida desde usuario {auth_context.nombre}. {extra_notes}".strip(),
                fk_id_usuario=destination.fk_id_usuario
            )
        except HTTPException:
            self._compensate(egreso.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error guardando el ingreso - operación revertida"
            )

        # 5. Reflejo en el lote destino
        self.mirror.mirror_to_batch(
            batch_id=data.caja_destino_id,
            account_id=data.fk_id_cuenta,
            tipo=DetailType.INGRESO.value,
            monto=data.ingresos,
            concepto=f"Transferencia recibida - {data.concepto_ingreso}",
            observaciones=f"Transferencia recibida desde usuario {auth_context.nombre}",
            movement_id=ingreso.id
        )

        logger.info(
            f"Transferencia de {data.ingresos} del lote {source_batch.id_lote} "
            f"al lote {data.caja_destino_id} por usuario {auth_context.user_id}"
        )

        return {
            "egreso": self.get_movement(egreso.id),
            "ingreso": self.get_movement(ingreso.id),
            "detalles": {
                "usuario_origen": auth_context.nombre,
                "caja_destino_id": data.caja_destino_id,
                "monto": data.ingresos,
            },
        }

    def _compensate(self, movement_id: int) -> None:
        """Deshacer un egreso ya registrado junto con su reflejo en el lote."""
        try:
            self.db.query(TillBatchDetail).filter(
                TillBatchDetail.fk_id_movimiento == movement_id
            ).delete(synchronize_session=False)
            self.db.query(CashMovement).filter(
                CashMovement.id == movement_id
            ).delete(synchronize_session=False)
            self.db.commit()
            logger.warning(f"Egreso {movement_id} revertido")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.critical(
                f"No se pudo revertir el egreso {movement_id}; requiere corrección manual: {e}"
            )

    def get_movement(self, movement_id: int) -> CashMovement:
        movement = self._base_query().filter(CashMovement.id == movement_id).first()
        if not movement:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Movimiento no encontrado"
            )
        return movement

    def list_cash_movements(self, auth_context: AuthContext, cuenta_id: Optional[int] = None) -> List[CashMovement]:
        query = scope_to_owner(self._base_query(), CashMovement.fk_id_usuario, auth_context)
        if cuenta_id is not None:
            query = query.filter(CashMovement.fk_id_cuenta == cuenta_id)
        return query.order_by(CashMovement.fecha.desc(), CashMovement.id.desc()).all()

    def _base_query(self):
        return self.db.query(CashMovement).options(
            joinedload(CashMovement.cuenta),
            joinedload(CashMovement.concepto),
            joinedload(CashMovement.proveedor),
            joinedload(CashMovement.usuario)
        )
