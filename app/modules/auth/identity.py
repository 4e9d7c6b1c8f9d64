"""
Gateway hacia el proveedor de identidad externo.

El proveedor emite tokens JWT firmados; aquí solo se valida la firma,
la expiración y (si están configurados) audiencia y emisor. Las
contraseñas y sesiones viven enteramente en el proveedor.
"""
from fastapi import HTTPException, status
import jwt
import logging

from app.core.config import settings
from app.modules.auth.schemas import ExternalIdentity

logger = logging.getLogger(__name__)


class IdentityGateway:

    def __init__(self, secret: str = None, algorithm: str = None,
                 audience: str = None, issuer: str = None):
        self.secret = secret or settings.IDENTITY_JWT_SECRET
        self.algorithm = algorithm or settings.IDENTITY_JWT_ALGORITHM
        self.audience = audience if audience is not None else settings.IDENTITY_JWT_AUDIENCE
        self.issuer = issuer if issuer is not None else settings.IDENTITY_JWT_ISSUER

    def verify(self, token: str) -> ExternalIdentity:
        """
        Validar el token y devolver la identidad externa.

        Raises:
            HTTPException 401: token ausente, inválido o expirado
        """
        unauthenticated = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuario no autenticado",
            headers={"WWW-Authenticate": "Bearer"},
        )
        if not token:
            raise unauthenticated

        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "verify_aud": self.audience is not None,
                    "verify_iss": self.issuer is not None,
                    "require": ["sub"],
                },
            )
        except jwt.PyJWTError as e:
            logger.debug(f"Token rechazado: {e}")
            raise unauthenticated

        emails = payload.get("emails") or []
        if payload.get("email"):
            emails = [payload["email"], *[e for e in emails if e != payload["email"]]]

        return ExternalIdentity(
            subject=str(payload["sub"]),
            first_name=payload.get("given_name") or payload.get("first_name"),
            last_name=payload.get("family_name") or payload.get("last_name"),
            emails=emails,
        )


identity_gateway = IdentityGateway()
