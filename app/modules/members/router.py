from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from decimal import Decimal

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.members.service import MemberService, DuesLedgerService
from app.modules.members.schemas import (
    MemberCreate, MemberUpdate, MemberResponse, MemberList,
    ChargeTemplateCreate, ChargeTemplateResponse, ChargeTemplateList,
    GenerateChargesRequest, GenerateChargesResult,
    ProcessPaymentRequest, PaymentResult, OverdueResult, DuesStatement
)

members_router = APIRouter(tags=["Socios"])
movements_router = APIRouter(prefix="/movements", tags=["Cuenta corriente de socios"])

ANY_ROLE = ["admin", "supervisor", "member"]
MANAGERS = ["admin", "supervisor"]


# ===== SOCIOS =====

@members_router.get("/socios", response_model=MemberList)
def list_members(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    return MemberList(socios=MemberService(db).list_members())


@members_router.post("/socios", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def create_member(
    data: MemberCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    socio = MemberService(db).create_member(data)
    return MemberResponse(socio=socio, message="Socio creado exitosamente")


@members_router.put("/socios/{socio_id}", response_model=MemberResponse)
def update_member(
    socio_id: int,
    data: MemberUpdate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    socio = MemberService(db).update_member(socio_id, data)
    return MemberResponse(socio=socio, message="Socio actualizado exitosamente")


# ===== CARGOS =====

@members_router.get("/cargos", response_model=ChargeTemplateList)
def list_charge_templates(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    return ChargeTemplateList(cargos=MemberService(db).list_charge_templates())


@members_router.post("/cargos", response_model=ChargeTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_charge_template(
    data: ChargeTemplateCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    cargo = MemberService(db).create_charge_template(data)
    return ChargeTemplateResponse(cargo=cargo, message="Cargo creado exitosamente")


# ===== CUENTA CORRIENTE =====

@movements_router.get("", response_model=DuesStatement)
def member_statement(
    socio_id: int = Query(..., alias="socioId", gt=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    """
    Cuenta corriente del socio en orden cronológico.

    Abierta a todos los roles: los cajeros (rol member) eligen aquí la cuota
    que cobran en /movements/process-payment. Los socios no son usuarios
    del sistema, así que no hay una cuenta "propia" por la cual filtrar.
    """
    movimientos = DuesLedgerService(db).statement(socio_id)
    saldo = movimientos[-1].saldo_acumulado if movimientos else Decimal("0")
    return DuesStatement(movimientos=movimientos, saldo=saldo)


@movements_router.post("/generate-charges", response_model=GenerateChargesResult)
def generate_charges(
    data: GenerateChargesRequest,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    """Generar una cuota para cada socio indicado"""
    return GenerateChargesResult(**DuesLedgerService(db).generate_charges(data))


@movements_router.post("/process-payment", response_model=PaymentResult)
def process_payment(
    data: ProcessPaymentRequest,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    """Cobrar total o parcialmente una cuota"""
    return PaymentResult(**DuesLedgerService(db).process_payment(data, auth_context))


@movements_router.post("/update-overdue", response_model=OverdueResult)
def update_overdue(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    """Marcar como vencidas las cuotas pendientes con vencimiento pasado"""
    updated = DuesLedgerService(db).mark_overdue()
    return OverdueResult(
        updated=updated,
        message=f'Se actualizaron {updated} cuotas a estado "Vencida"'
    )
