from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status
from typing import List, Optional
import logging

from app.core.config import settings
from app.modules.treasury.models import Account, Concept, Till, Supplier
from app.modules.treasury.schemas import AccountCreate, ConceptCreate, TillCreate, SupplierCreate

logger = logging.getLogger(__name__)


class TreasuryService:
    """Servicio para los datos de referencia de tesorería"""

    def __init__(self, db: Session):
        self.db = db

    # ----- Cuentas -----

    def list_accounts(self) -> List[Account]:
        return self.db.query(Account).order_by(Account.nombre).all()

    def create_account(self, data: AccountCreate) -> Account:
        """
        Crear cuenta de tesorería

        Raises:
            HTTPException: si ya existe una cuenta con el mismo nombre
        """
        existing = self.db.query(Account).filter(Account.nombre == data.nombre).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Ya existe una cuenta con ese nombre"
            )

        account = Account(**data.model_dump())
        return self._save(account, "Error creando la cuenta")

    def require_active_account(self, account_id: int) -> Account:
        account = self.db.query(Account).filter(
            Account.id == account_id,
            Account.activo == True
        ).first()
        if not account:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La cuenta indicada no existe o está inactiva"
            )
        return account

    def resolve_default_cash_account(self) -> Optional[Account]:
        """Primera cuenta de efectivo activa; si no hay, la primera cuenta disponible."""
        accounts = self.db.query(Account).filter(Account.activo == True).order_by(Account.id).all()
        for account in accounts:
            if account.is_cash(settings.CASH_ACCOUNT_TYPE):
                return account
        return self.db.query(Account).order_by(Account.id).first()

    # ----- Conceptos -----

    def list_concepts(self) -> List[Concept]:
        return self.db.query(Concept).filter(
            Concept.activo == True
        ).order_by(Concept.categoria, Concept.nombre).all()

    def create_concept(self, data: ConceptCreate) -> Concept:
        concept = Concept(
            nombre=data.nombre,
            descripcion=data.descripcion,
            tipo=data.tipo.value,
            categoria=data.categoria,
            activo=True
        )
        return self._save(concept, "Error al crear concepto")

    def require_active_concept(self, concept_id: int) -> Concept:
        concept = self.db.query(Concept).filter(
            Concept.id == concept_id,
            Concept.activo == True
        ).first()
        if not concept:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El concepto indicado no existe o está inactivo"
            )
        return concept

    # ----- Cajas -----

    def list_tills(self) -> List[Till]:
        return self.db.query(Till).filter(Till.activo == True).order_by(Till.nombre).all()

    def create_till(self, data: TillCreate) -> Till:
        till = Till(nombre=data.nombre, descripcion=(data.descripcion or "").strip() or None)
        return self._save(till, "Error creando la caja")

    def require_active_till(self, till_id: int) -> Till:
        till = self.db.query(Till).filter(Till.id == till_id, Till.activo == True).first()
        if not till:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La caja indicada no existe o está inactiva"
            )
        return till

    # ----- Proveedores -----

    def list_suppliers(self) -> List[Supplier]:
        return self.db.query(Supplier).order_by(Supplier.razon_social).all()

    def create_supplier(self, data: SupplierCreate) -> Supplier:
        supplier = Supplier(**data.model_dump())
        return self._save(supplier, "Error al crear proveedor")

    def _save(self, instance, error_message: str):
        try:
            self.db.add(instance)
            self.db.commit()
            self.db.refresh(instance)
            return instance
        except IntegrityError:
            self.db.rollback()
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
