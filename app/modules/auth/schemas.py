from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class ExternalIdentity(BaseModel):
    """Identidad validada por el proveedor externo (claims del token)."""
    subject: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    emails: List[str] = []

    @property
    def primary_email(self) -> Optional[str]:
        return self.emails[0] if self.emails else None


class UserOut(BaseModel):
    id: int
    nombre: str
    email: Optional[str]
    rol: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    success: bool = True
    usuario: UserOut
    message: Optional[str] = None


class AuthContext(BaseModel):
    user_id: int
    nombre: str
    rol: str
    external_id: str = Field(description="Identidad en el proveedor externo")


class ModulePermissions(BaseModel):
    """Permisos del usuario actual sobre un módulo"""
    puede_ver: bool = False
    puede_crear: bool = False
    puede_editar: bool = False
    puede_eliminar: bool = False


class ModuleOut(BaseModel):
    id: int
    nombre: str
    descripcion: Optional[str] = None
    icono: Optional[str] = None
    ruta: Optional[str] = None
    orden: int
    activo: bool
    puede_ver: bool = True

    class Config:
        from_attributes = True
