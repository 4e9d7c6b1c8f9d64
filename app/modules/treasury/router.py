from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.treasury.service import TreasuryService
from app.modules.treasury.schemas import (
    AccountCreate, AccountList, AccountResponse,
    ConceptCreate, ConceptList, ConceptResponse,
    TillCreate, TillList, TillResponse,
    SupplierCreate, SupplierList, SupplierResponse
)

treasury_router = APIRouter(tags=["Tesorería"])

ANY_ROLE = ["admin", "supervisor", "member"]
MANAGERS = ["admin", "supervisor"]


@treasury_router.get("/cuentas", response_model=AccountList)
def list_accounts(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    return AccountList(cuentas=TreasuryService(db).list_accounts())


@treasury_router.post("/cuentas", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    account: AccountCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    cuenta = TreasuryService(db).create_account(account)
    return AccountResponse(message="Cuenta creada exitosamente", cuenta=cuenta)


@treasury_router.get("/conceptos", response_model=ConceptList)
def list_concepts(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    return ConceptList(conceptos=TreasuryService(db).list_concepts())


@treasury_router.post("/conceptos", response_model=ConceptResponse, status_code=status.HTTP_201_CREATED)
def create_concept(
    concept: ConceptCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    concepto = TreasuryService(db).create_concept(concept)
    return ConceptResponse(message="Concepto creado exitosamente", concepto=concepto)


@treasury_router.get("/cajas", response_model=TillList)
def list_tills(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    return TillList(cajas=TreasuryService(db).list_tills())


@treasury_router.post("/cajas", response_model=TillResponse, status_code=status.HTTP_201_CREATED)
def create_till(
    till: TillCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    caja = TreasuryService(db).create_till(till)
    return TillResponse(caja=caja, message="Caja creada exitosamente")


@treasury_router.get("/proveedores", response_model=SupplierList)
def list_suppliers(
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(ANY_ROLE))
):
    return SupplierList(proveedores=TreasuryService(db).list_suppliers())


@treasury_router.post("/proveedores", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
def create_supplier(
    supplier: SupplierCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_role(MANAGERS))
):
    proveedor = TreasuryService(db).create_supplier(supplier)
    return SupplierResponse(message="Proveedor creado exitosamente", proveedor=proveedor)
