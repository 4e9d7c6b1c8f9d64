from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.common.mixins import ActiveMixin, TimestampMixin
import enum


class UserRole(str, enum.Enum):
    """Roles del directorio de usuarios"""
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    MEMBER = "member"


class UserStatus(str, enum.Enum):
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"


class User(Base, TimestampMixin):
    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    rol = Column(String(20), nullable=False, default=UserRole.MEMBER.value)
    # Identidad del proveedor externo; NULL hasta que se vincula
    external_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)

    __table_args__ = (
        UniqueConstraint("external_id", name="uq_usuarios_external_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value


class Module(Base, ActiveMixin):
    """Secciones de la aplicación sobre las que se otorgan permisos"""
    __tablename__ = "modulos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(100), nullable=False, unique=True)
    descripcion = Column(String(255), nullable=True)
    icono = Column(String(100), nullable=True)
    ruta = Column(String(255), nullable=True)
    orden = Column(Integer, nullable=False, default=0)


class UserPermission(Base, TimestampMixin):
    __tablename__ = "permisos_usuarios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fk_id_usuario = Column(Integer, ForeignKey("usuarios.id"), nullable=False)
    fk_id_modulo = Column(Integer, ForeignKey("modulos.id"), nullable=False)
    puede_ver = Column(Boolean, nullable=False, default=False)
    puede_crear = Column(Boolean, nullable=False, default=False)
    puede_editar = Column(Boolean, nullable=False, default=False)
    puede_eliminar = Column(Boolean, nullable=False, default=False)

    modulo = relationship("Module")

    __table_args__ = (
        UniqueConstraint("fk_id_usuario", "fk_id_modulo", name="uq_permiso_usuario_modulo"),
    )
