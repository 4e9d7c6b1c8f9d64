from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List, Optional
import logging

from app.modules.auth.models import Module, User, UserPermission, UserRole, UserStatus
from app.modules.auth.schemas import AuthContext, ExternalIdentity, ModulePermissions

logger = logging.getLogger(__name__)


class UserDirectoryService:
    """
    Directorio de usuarios internos vinculados a identidades externas.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_external_id(self, external_id: str) -> Optional[User]:
        """
        Buscar usuario por identidad externa.

        Raises:
            HTTPException 400: si la consulta falla por un motivo distinto a "no existe"
        """
        try:
            return self.db.query(User).filter(User.external_id == external_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Error obteniendo usuario {external_id}: {e}")
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Error obteniendo usuario de la base de datos"
            )

    def resolve_or_provision(self, identity: ExternalIdentity) -> User:
        """
        Obtener el usuario interno para la identidad externa, creándolo si no existe.

        La inserción está protegida por la restricción única sobre external_id:
        si otra request creó el usuario en paralelo, se devuelve esa fila.
        """
        user = self.get_by_external_id(identity.subject)
        if user:
            return user

        new_user = User(
            nombre=self._display_name(identity),
            email=identity.primary_email or f"usuario_{identity.subject}@temp.com",
            external_id=identity.subject,
            rol=UserRole.MEMBER.value,
            status=UserStatus.ACTIVE.value
        )

        try:
            self.db.add(new_user)
            self.db.commit()
            self.db.refresh(new_user)
            logger.info(f"Usuario {new_user.id} creado para identidad {identity.subject}")
            return new_user
        except IntegrityError:
            self.db.rollback()
            existing = self.get_by_external_id(identity.subject)
            if existing:
                return existing
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Error creando usuario en la base de datos"
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creando usuario para {identity.subject}: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Error creando usuario en la base de datos"
            )

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Usuario no encontrado"
            )
        return user

    @staticmethod
    def _display_name(identity: ExternalIdentity) -> str:
        full_name = f"{identity.first_name or ''} {identity.last_name or ''}".strip()
        return full_name or identity.primary_email or "Usuario"


class PermissionService:
    """
    Permisos por módulo. Los administradores pueden todo; el resto de los
    usuarios tiene lo que indique permisos_usuarios para cada módulo.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_module_permissions(self, module_name: str, auth_context: AuthContext) -> ModulePermissions:
        if auth_context.rol == UserRole.ADMIN.value:
            return ModulePermissions(puede_ver=True, puede_crear=True, puede_editar=True, puede_eliminar=True)

        try:
            permission = self.db.query(UserPermission).join(Module).filter(
                UserPermission.fk_id_usuario == auth_context.user_id,
                Module.nombre == module_name
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error obteniendo permisos de {auth_context.user_id} sobre {module_name}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error obteniendo permisos"
            )

        if not permission:
            return ModulePermissions()

        return ModulePermissions(
            puede_ver=bool(permission.puede_ver),
            puede_crear=bool(permission.puede_crear),
            puede_editar=bool(permission.puede_editar),
            puede_eliminar=bool(permission.puede_eliminar)
        )

    def get_visible_modules(self, auth_context: AuthContext) -> List[Module]:
        """Módulos activos que el usuario puede ver, ordenados por `orden`."""
        query = self.db.query(Module).filter(Module.activo == True)

        if auth_context.rol != UserRole.ADMIN.value:
            query = query.join(UserPermission, UserPermission.fk_id_modulo == Module.id).filter(
                UserPermission.fk_id_usuario == auth_context.user_id,
                UserPermission.puede_ver == True
            )

        try:
            return query.order_by(Module.orden, Module.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Error obteniendo módulos del usuario {auth_context.user_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error obteniendo módulos"
            )
