"""
Dependencias de autenticación para FastAPI.
"""
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.identity import identity_gateway
from app.modules.auth.schemas import AuthContext
from app.modules.auth.service import UserDirectoryService

# Security scheme; el 401 se emite aquí y no en HTTPBearer
security = HTTPBearer(auto_error=False)


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_auth_context(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Session = Depends(get_db)
    ) -> AuthContext:
        """
        Validar el token del proveedor externo y resolver el usuario interno.
        Crea el usuario en el directorio la primera vez que se ve la identidad.
        """
        identity = identity_gateway.verify(credentials.credentials if credentials else None)

        user = UserDirectoryService(db).resolve_or_provision(identity)

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Usuario inactivo o bloqueado"
            )

        return AuthContext(
            user_id=user.id,
            nombre=user.nombre,
            rol=user.rol,
            external_id=identity.subject
        )

    @staticmethod
    def require_role(allowed_roles: list[str]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if auth_context.rol not in allowed_roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Se requiere uno de estos roles: {', '.join(allowed_roles)}"
                )
            return auth_context
        return role_checker

# Instancias de dependencias
get_auth_context = AuthDependencies.get_auth_context
