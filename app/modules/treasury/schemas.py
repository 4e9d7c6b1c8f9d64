from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from app.modules.treasury.models import ConceptType


# ===== CUENTAS =====

class AccountCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=150)
    descripcion: Optional[str] = None
    tipo: str = Field(default="Otro", max_length=50, description="Efectivo, Banco, Otro...")
    numero_cuenta: Optional[str] = Field(None, max_length=50)
    banco: Optional[str] = Field(None, max_length=100)
    activo: bool = True
    saldo_inicial: Decimal = Field(default=Decimal("0"))

    @field_validator('nombre')
    @classmethod
    def validate_nombre(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre de la cuenta es obligatorio')
        return cleaned


class AccountOut(BaseModel):
    id: int
    nombre: str
    descripcion: Optional[str] = None
    tipo: str
    numero_cuenta: Optional[str] = None
    banco: Optional[str] = None
    activo: bool
    saldo_inicial: Decimal

    model_config = {"from_attributes": True}


class AccountList(BaseModel):
    success: bool = True
    cuentas: List[AccountOut]


class AccountResponse(BaseModel):
    message: str
    cuenta: AccountOut


# ===== CONCEPTOS =====

class ConceptCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=150)
    descripcion: Optional[str] = None
    tipo: ConceptType
    categoria: Optional[str] = Field(None, max_length=100)


class ConceptOut(BaseModel):
    id: int
    nombre: str
    descripcion: Optional[str] = None
    categoria: Optional[str] = None
    tipo: str
    activo: bool

    model_config = {"from_attributes": True}


class ConceptList(BaseModel):
    conceptos: List[ConceptOut]


class ConceptResponse(BaseModel):
    message: str
    concepto: ConceptOut


# ===== CAJAS =====

class TillCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=100)
    descripcion: Optional[str] = None

    @field_validator('nombre')
    @classmethod
    def validate_nombre(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre de la caja es obligatorio')
        return cleaned


class TillOut(BaseModel):
    id: int
    nombre: str
    descripcion: Optional[str] = None
    activo: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TillList(BaseModel):
    success: bool = True
    cajas: List[TillOut]


class TillResponse(BaseModel):
    success: bool = True
    caja: TillOut
    message: str


# ===== PROVEEDORES =====

class SupplierCreate(BaseModel):
    razon_social: str = Field(..., min_length=1, max_length=200)
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None
    estado: str = Field(default="Activo", pattern="^(Activo|Inactivo)$")


class SupplierOut(BaseModel):
    id: int
    razon_social: str
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None
    estado: str

    model_config = {"from_attributes": True}


class SupplierList(BaseModel):
    proveedores: List[SupplierOut]


class SupplierResponse(BaseModel):
    message: str
    proveedor: SupplierOut
