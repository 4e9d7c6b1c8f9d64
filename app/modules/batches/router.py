from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.batches.service import TillBatchService
from app.modules.batches.schemas import (
    TillBatchOpen, TillBatchClose, TillBatchResponse, TillBatchCloseResponse,
    TillBatchList, FinancialSummary, TillBatchDetailCreate, TillBatchDetailList,
    TillBatchDetailResponse
)

batches_router = APIRouter(tags=["Lotes de caja"])

ANY_ROLE = ["admin", "supervisor", "member"]


@batches_router.post("/lotes-operaciones", response_model=TillBatchResponse, status_code=status.HTTP_201_CREATED)
def open_batch(
    data: TillBatchOpen,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    """Abrir un lote de caja para el usuario actual"""
    lote = TillBatchService(db).open_batch(data, auth_context)
    return TillBatchResponse(lote=lote, message="Lote abierto exitosamente")


@batches_router.post("/lotes-operaciones/cerrar", response_model=TillBatchCloseResponse)
def close_batch(
    data: TillBatchClose,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    """Cerrar un lote y devolver el arqueo"""
    lote, resumen = TillBatchService(db).close_batch(data, auth_context)
    return TillBatchCloseResponse(
        lote=lote,
        resumen=FinancialSummary(**resumen),
        message="Lote cerrado exitosamente"
    )


@batches_router.get("/lotes-operaciones", response_model=TillBatchList)
def list_batches(
    abierto: Optional[bool] = Query(None, description="Filtrar por estado abierto/cerrado"),
    caja_id: Optional[int] = Query(None, description="Filtrar por caja"),
    todos: bool = Query(False, description="Todos los lotes (solo administradores)"),
    excluir_usuario: bool = Query(False, description="Lotes de otros usuarios"),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    lotes = TillBatchService(db).list_batches(
        auth_context,
        abierto=abierto,
        caja_id=caja_id,
        todos=todos,
        excluir_usuario=excluir_usuario
    )
    return TillBatchList(lotes=lotes)


@batches_router.get("/detalle-lotes", response_model=TillBatchDetailList)
def get_batch_details(
    lote_id: Optional[int] = Query(None),
    todos: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    detalles = TillBatchService(db).get_details(auth_context, lote_id=lote_id, todos=todos)
    return TillBatchDetailList(detalles=detalles)


@batches_router.post("/detalle-lotes", response_model=TillBatchDetailResponse, status_code=status.HTTP_201_CREATED)
def add_batch_detail(
    data: TillBatchDetailCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    detalle = TillBatchService(db).add_detail(data, auth_context)
    return TillBatchDetailResponse(detalle=detalle, message="Movimiento agregado al lote")
