"""
Esquemas Pydantic para movimientos de caja y transferencias entre cajas
"""

from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from app.modules.cash_movements.models import MovementType


class CashMovementCreate(BaseModel):
    """Movimiento manual de caja (ingreso o egreso)"""
    fk_id_cuenta: int = Field(..., gt=0, description="Cuenta de tesorería")
    fk_id_concepto: int = Field(..., gt=0, description="Concepto del movimiento")
    tipo: MovementType
    ingresos: Decimal = Field(..., gt=0, description="Monto del movimiento (siempre positivo)")
    fecha: Optional[date] = Field(None, description="Fecha contable; por defecto hoy")
    concepto_ingreso: str = Field(..., min_length=1, max_length=500)
    apellido_nombres: Optional[str] = Field(None, max_length=200)
    fk_id_proveedor: Optional[int] = Field(None, gt=0)
    numero_comprobante: Optional[str] = Field(None, max_length=100)
    nota: Optional[str] = None
    observaciones: Optional[str] = None


class TransferCreate(BaseModel):
    """
    Transferencia de la caja del usuario a otro lote abierto.
    caja_destino_id es el id del lote destino.
    """
    fk_id_cuenta: int = Field(..., gt=0, description="Cuenta de origen")
    fk_id_concepto: Optional[int] = Field(None, gt=0, description="Concepto del egreso")
    ingresos: Decimal = Field(..., gt=0, description="Monto a transferir")
    caja_destino_id: int = Field(..., gt=0, description="Lote abierto de destino")
    fecha: Optional[date] = None
    concepto_ingreso: str = Field(..., min_length=1, max_length=500)
    apellido_nombres: Optional[str] = Field(None, max_length=200)
    fk_id_proveedor: Optional[int] = Field(None, gt=0)
    numero_comprobante: Optional[str] = Field(None, max_length=100)
    nota: Optional[str] = None
    observaciones: Optional[str] = None


class TypedRef(BaseModel):
    nombre: str
    tipo: str

    model_config = {"from_attributes": True}


class NamedRef(BaseModel):
    nombre: str

    model_config = {"from_attributes": True}


class SupplierRef(BaseModel):
    razon_social: str

    model_config = {"from_attributes": True}


class CashMovementOut(BaseModel):
    id: int
    fk_id_cuenta: int
    fecha: date
    concepto_ingreso: Optional[str] = None
    apellido_nombres: Optional[str] = None
    fk_id_proveedor: Optional[int] = None
    numero_comprobante: Optional[str] = None
    nota: Optional[str] = None
    fk_id_concepto: int
    tipo: str
    ingresos: Decimal
    observaciones: Optional[str] = None
    fk_id_usuario: int
    created_at: Optional[datetime] = None
    cuenta: Optional[TypedRef] = None
    concepto: Optional[TypedRef] = None
    proveedor: Optional[SupplierRef] = None
    usuario: Optional[NamedRef] = None

    model_config = {"from_attributes": True}


class CashMovementResponse(BaseModel):
    success: bool = True
    movimiento: CashMovementOut
    message: str


class CashMovementList(BaseModel):
    success: bool = True
    movimientos: List[CashMovementOut]


class TransferDetails(BaseModel):
    usuario_origen: str
    caja_destino_id: int
    monto: Decimal


class TransferResponse(BaseModel):
    success: bool = True
    egreso: CashMovementOut
    ingreso: CashMovementOut
    detalles: TransferDetails
    message: str
