from fastapi import APIRouter
from typing import List

from app.dependencies.dbDependecies import db_dependency
from app.dependencies.userDependencies import auth_dependency
from app.modules.auth.schemas import ModuleOut, ModulePermissions, UserResponse
from app.modules.auth.service import PermissionService, UserDirectoryService

auth_router = APIRouter(tags=["Usuarios"])


@auth_router.get("/usuarios/current", response_model=UserResponse)
def get_current_user(auth_context: auth_dependency, db: db_dependency):
    """
    Usuario interno vinculado a la sesión actual.
    """
    user = UserDirectoryService(db).get_user(auth_context.user_id)
    return UserResponse(usuario=user)


@auth_router.post("/setup-user", response_model=UserResponse)
def setup_user(auth_context: auth_dependency, db: db_dependency):
    """
    Asegurar que la identidad actual tenga usuario en el directorio.

    Idempotente: la resolución de la sesión ya crea el usuario si no existía,
    así que repetir la llamada devuelve siempre la misma fila.
    """
    user = UserDirectoryService(db).get_user(auth_context.user_id)
    return UserResponse(usuario=user, message="Usuario configurado correctamente")


@auth_router.get("/permissions/{module}", response_model=ModulePermissions)
def get_module_permissions(module: str, auth_context: auth_dependency, db: db_dependency):
    """
    Permisos del usuario actual (ver, crear, editar, eliminar) sobre un módulo.
    """
    return PermissionService(db).get_module_permissions(module, auth_context)


@auth_router.get("/user/modules", response_model=List[ModuleOut])
def get_user_modules(auth_context: auth_dependency, db: db_dependency):
    """
    Módulos activos visibles para el usuario actual.
    """
    return PermissionService(db).get_visible_modules(auth_context)
