from pydantic import BaseModel, Field, EmailStr, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from app.common.validators import validate_cuit, format_cuit, validate_dni, format_dni


# ===== SOCIOS =====

class MemberCreate(BaseModel):
    nombre_socio: str = Field(..., min_length=1, max_length=200)
    razon_social: str = Field(..., min_length=1, max_length=200)
    nombre_fantasia: Optional[str] = Field(None, max_length=200)
    domicilio_comercial: Optional[str] = Field(None, max_length=300)
    telefono_comercial: Optional[str] = Field(None, max_length=50)
    celular: Optional[str] = Field(None, max_length=50)
    mail: EmailStr
    documento: str
    cuit: str
    tipo_socio: str = Field("Activo", max_length=50)
    fecha_alta: Optional[date] = None

    @field_validator('cuit')
    @classmethod
    def check_cuit(cls, v: str) -> str:
        if not validate_cuit(v):
            raise ValueError('CUIT inválido')
        return format_cuit(v)

    @field_validator('documento')
    @classmethod
    def check_documento(cls, v: str) -> str:
        if not validate_dni(v):
            raise ValueError('Documento inválido')
        return format_dni(v)


class MemberUpdate(BaseModel):
    nombre_socio: Optional[str] = Field(None, min_length=1, max_length=200)
    razon_social: Optional[str] = Field(None, min_length=1, max_length=200)
    nombre_fantasia: Optional[str] = Field(None, max_length=200)
    domicilio_comercial: Optional[str] = Field(None, max_length=300)
    telefono_comercial: Optional[str] = Field(None, max_length=50)
    celular: Optional[str] = Field(None, max_length=50)
    mail: Optional[EmailStr] = None
    tipo_socio: Optional[str] = Field(None, max_length=50)
    fecha_baja: Optional[date] = None


class MemberOut(BaseModel):
    id: int
    nombre_socio: str
    razon_social: str
    nombre_fantasia: Optional[str] = None
    domicilio_comercial: Optional[str] = None
    telefono_comercial: Optional[str] = None
    celular: Optional[str] = None
    mail: str
    documento: str
    cuit: str
    tipo_socio: str
    fecha_alta: date
    fecha_baja: Optional[date] = None

    model_config = {"from_attributes": True}


class MemberResponse(BaseModel):
    success: bool = True
    socio: MemberOut
    message: str


class MemberList(BaseModel):
    success: bool = True
    socios: List[MemberOut]


# ===== CARGOS =====

class ChargeTemplateCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=150)
    descripcion: Optional[str] = None
    monto: Decimal = Field(..., gt=0)


class ChargeTemplateOut(BaseModel):
    id: int
    nombre: str
    descripcion: Optional[str] = None
    monto: Decimal
    activo: bool

    model_config = {"from_attributes": True}


class ChargeTemplateResponse(BaseModel):
    success: bool = True
    cargo: ChargeTemplateOut
    message: str


class ChargeTemplateList(BaseModel):
    success: bool = True
    cargos: List[ChargeTemplateOut]


# ===== CUENTA CORRIENTE =====

class GenerateChargesRequest(BaseModel):
    member_ids: List[int] = Field(..., alias="memberIds", min_length=1)
    cargo_id: int = Field(..., alias="cargoId", gt=0)
    fecha: Optional[date] = None
    fecha_vencimiento: Optional[date] = Field(None, alias="fechaVencimiento")

    model_config = {"populate_by_name": True}


class GenerateChargesResult(BaseModel):
    success: bool = True
    count: int
    vencidas: int
    pendientes: int
    message: str


class ProcessPaymentRequest(BaseModel):
    movement_id: int = Field(..., alias="movementId", gt=0)
    socio_id: int = Field(..., alias="socioId", gt=0)
    amount: Decimal = Field(..., gt=0)
    cuenta_id: int = Field(..., alias="cuentaId", gt=0)
    cuenta_destino_id: int = Field(..., alias="cuentaDestinoId", gt=0)
    reference: Optional[str] = Field(None, max_length=200)

    model_config = {"populate_by_name": True}


class PaymentOut(BaseModel):
    id: str
    fk_id_socio: int
    fecha: date
    monto: Decimal
    fk_id_movimiento: int
    fk_id_cuenta_tesoreria: int
    referencia: Optional[str] = None

    model_config = {"from_attributes": True}


class PaymentResult(BaseModel):
    success: bool = True
    pago: PaymentOut
    tipo_pago: str = Field(..., alias="tipoPago")
    saldo_anterior: Decimal = Field(..., alias="saldoAnterior")
    monto_pagado: Decimal = Field(..., alias="montoPagado")
    saldo_restante: Decimal = Field(..., alias="saldoRestante")
    message: str

    model_config = {"populate_by_name": True}


class OverdueResult(BaseModel):
    success: bool = True
    updated: int
    message: str


class DuesEntryOut(BaseModel):
    id: int
    fk_id_socio: int
    fecha: date
    tipo: str
    concepto: Optional[str] = None
    monto: Decimal
    saldo: Decimal
    saldo_acumulado: Decimal
    estado: str
    fecha_vencimiento: Optional[date] = None
    fk_id_cargo: Optional[int] = None
    fk_id_pago: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DuesStatement(BaseModel):
    success: bool = True
    movimientos: List[DuesEntryOut]
    saldo: Decimal
