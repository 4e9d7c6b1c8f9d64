from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.cash_movements.service import CashMovementService
from app.modules.cash_movements.schemas import (
    CashMovementCreate, CashMovementResponse, CashMovementList,
    TransferCreate, TransferResponse
)

cash_movements_router = APIRouter(prefix="/movimientos-caja", tags=["Movimientos de caja"])

ANY_ROLE = ["admin", "supervisor", "member"]


@cash_movements_router.post("", response_model=CashMovementResponse)
def record_cash_movement(
    data: CashMovementCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    """Registrar un ingreso o egreso de caja"""
    movimiento = CashMovementService(db).record_cash_movement(data, auth_context)
    return CashMovementResponse(movimiento=movimiento, message="Movimiento guardado exitosamente")


@cash_movements_router.post("/transferencia", response_model=TransferResponse)
def transfer_between_tills(
    data: TransferCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    """Transferir dinero a otro lote abierto"""
    result = CashMovementService(db).transfer_between_tills(data, auth_context)
    return TransferResponse(**result, message="Transferencia realizada exitosamente")


@cash_movements_router.get("", response_model=CashMovementList)
def list_cash_movements(
    cuenta_id: Optional[int] = Query(None, description="Filtrar por cuenta"),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    movimientos = CashMovementService(db).list_cash_movements(auth_context, cuenta_id=cuenta_id)
    return CashMovementList(movimientos=movimientos)
