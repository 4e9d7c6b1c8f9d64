"""
Esquemas Pydantic para lotes de operaciones y su detalle
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from app.modules.batches.models import DetailType


# ===== REFERENCIAS ANIDADAS =====

class TillRef(BaseModel):
    id: int
    nombre: str

    model_config = {"from_attributes": True}


class UserRef(BaseModel):
    nombre: str

    model_config = {"from_attributes": True}


class AccountRef(BaseModel):
    nombre: str
    tipo: str

    model_config = {"from_attributes": True}


# ===== LOTES =====

class TillBatchOpen(BaseModel):
    """Esquema para abrir un lote de caja"""
    fk_id_caja: int = Field(..., gt=0, description="ID de la caja a abrir")
    saldo_inicial: Decimal = Field(..., ge=0, description="Saldo inicial de apertura")
    observaciones: Optional[str] = Field(None, max_length=500)

    @field_validator('observaciones')
    @classmethod
    def strip_observaciones(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class TillBatchClose(BaseModel):
    """Esquema para cerrar un lote de caja"""
    id_lote: int = Field(..., gt=0, description="ID del lote a cerrar")
    observaciones: Optional[str] = Field(None, max_length=500)

    @field_validator('observaciones')
    @classmethod
    def strip_observaciones(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class TillBatchOut(BaseModel):
    id_lote: int
    fk_id_usuario: int
    fk_id_caja: int
    abierto: bool
    tipo_lote: str
    fecha_apertura: datetime
    hora_apertura: Optional[str] = None
    fecha_cierre: Optional[date] = None
    hora_cierre: Optional[str] = None
    saldo_inicial: Decimal
    saldo_final: Optional[Decimal] = None
    observaciones: Optional[str] = None
    caja: Optional[TillRef] = None
    usuario: Optional[UserRef] = None

    model_config = {"from_attributes": True}


class FinancialSummary(BaseModel):
    """
    Resumen del cierre. Los totales incluyen todas las cuentas;
    saldo_final solo considera cuentas de efectivo.
    """
    saldo_inicial: Decimal
    total_ingresos: Decimal
    total_egresos: Decimal
    saldo_final: Decimal


class TillBatchResponse(BaseModel):
    success: bool = True
    lote: TillBatchOut
    message: str


class TillBatchCloseResponse(BaseModel):
    success: bool = True
    lote: TillBatchOut
    resumen: FinancialSummary
    message: str


class TillBatchList(BaseModel):
    success: bool = True
    lotes: List[TillBatchOut]


# ===== DETALLE =====

class TillBatchDetailCreate(BaseModel):
    fk_id_lote: int = Field(..., gt=0)
    fk_id_cuenta_tesoreria: int = Field(..., gt=0)
    tipo: DetailType
    monto: Decimal = Field(..., gt=0, description="Monto (siempre positivo)")
    concepto: Optional[str] = Field(None, max_length=500)
    observaciones: Optional[str] = Field(None, max_length=500)


class BatchRef(BaseModel):
    id_lote: int
    fk_id_usuario: int
    caja: Optional[TillRef] = None
    usuario: Optional[UserRef] = None

    model_config = {"from_attributes": True}


class TillBatchDetailOut(BaseModel):
    id: int
    fk_id_lote: int
    fk_id_cuenta_tesoreria: int
    tipo: str
    monto: Decimal
    concepto: Optional[str] = None
    observaciones: Optional[str] = None
    fecha_movimiento: datetime
    fk_id_movimiento: Optional[int] = None
    cuenta: Optional[AccountRef] = None
    lote: Optional[BatchRef] = None

    model_config = {"from_attributes": True}


class TillBatchDetailList(BaseModel):
    success: bool = True
    detalles: List[TillBatchDetailOut]


class TillBatchDetailResponse(BaseModel):
    success: bool = True
    detalle: TillBatchDetailOut
    message: str
