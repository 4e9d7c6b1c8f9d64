"""
Tests para el directorio de usuarios y la autenticación

- Rechazo de requests sin token o con token inválido
- Alta automática (idempotente) del usuario la primera vez que se ve la identidad
- Usuarios inactivos y control de roles
"""

import jwt
import pytest

from app.modules.auth.models import Module, User, UserPermission, UserStatus
from app.modules.auth.schemas import ExternalIdentity
from app.modules.auth.service import UserDirectoryService
from conftest import auth_headers


class TestAuthentication:

    def test_missing_token_is_rejected(self, client):
        response = client.get("/usuarios/current")
        assert response.status_code == 401
        assert response.json() == {"error": "Usuario no autenticado"}

    def test_invalid_signature_is_rejected(self, client):
        token = jwt.encode({"sub": "intruso"}, "otro-secreto-que-no-corresponde-al-proveedor", algorithm="HS256")
        response = client.get("/usuarios/current", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_without_subject_is_rejected(self, client):
        from app.core.config import settings
        token = jwt.encode({"email": "x@example.com"}, settings.IDENTITY_JWT_SECRET, algorithm="HS256")
        response = client.get("/usuarios/current", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestUserProvisioning:

    def test_first_request_provisions_member(self, client, db_session):
        """La primera request de una identidad nueva crea el usuario con rol member"""
        headers = auth_headers("nuevo-1", given_name="Julia", family_name="Ríos")
        response = client.get("/usuarios/current", headers=headers)

        assert response.status_code == 200
        usuario = response.json()["usuario"]
        assert usuario["nombre"] == "Julia Ríos"
        assert usuario["rol"] == "member"
        assert usuario["email"] == "nuevo-1@example.com"

    def test_provisioning_is_idempotent(self, client, db_session):
        headers = auth_headers("nuevo-2")
        first = client.get("/usuarios/current", headers=headers).json()["usuario"]
        second = client.post("/setup-user", headers=headers).json()["usuario"]

        assert first["id"] == second["id"]
        assert db_session.query(User).filter(User.external_id == "nuevo-2").count() == 1

    def test_existing_user_is_resolved(self, client, admin_user, admin_headers):
        response = client.get("/usuarios/current", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["usuario"]["id"] == admin_user.id
        assert response.json()["usuario"]["rol"] == "admin"

    def test_display_name_falls_back_to_email(self, db_session):
        identity = ExternalIdentity(subject="sin-nombre", emails=["socio@example.com"])
        user = UserDirectoryService(db_session).resolve_or_provision(identity)
        assert user.nombre == "socio@example.com"

    def test_inactive_user_is_forbidden(self, client, db_session, member_user, member_headers):
        member_user.status = UserStatus.INACTIVE.value
        db_session.commit()

        response = client.get("/usuarios/current", headers=member_headers)
        assert response.status_code == 403


class TestRoles:

    def test_member_cannot_create_accounts(self, client, member_headers):
        response = client.post("/cuentas", json={"nombre": "Caja chica"}, headers=member_headers)
        assert response.status_code == 403
        assert "error" in response.json()

    def test_admin_can_create_accounts(self, client, admin_headers):
        response = client.post(
            "/cuentas",
            json={"nombre": "Caja chica", "tipo": "Efectivo"},
            headers=admin_headers
        )
        assert response.status_code == 201


class TestModulePermissions:

    @pytest.fixture
    def modulos(self, db_session):
        modules = [
            Module(nombre="tesoreria", ruta="/tesoreria", orden=2),
            Module(nombre="socios", ruta="/socios", orden=1),
            Module(nombre="reportes", ruta="/reportes", orden=3, activo=False),
        ]
        db_session.add_all(modules)
        db_session.commit()
        return {module.nombre: module for module in modules}

    def test_admin_has_every_permission(self, client, modulos, admin_headers):
        response = client.get("/permissions/tesoreria", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {
            "puede_ver": True, "puede_crear": True, "puede_editar": True, "puede_eliminar": True
        }

    def test_member_gets_granted_permissions(self, client, db_session, modulos, member_user, member_headers):
        db_session.add(UserPermission(
            fk_id_usuario=member_user.id,
            fk_id_modulo=modulos["tesoreria"].id,
            puede_ver=True,
            puede_crear=True
        ))
        db_session.commit()

        response = client.get("/permissions/tesoreria", headers=member_headers)
        assert response.json() == {
            "puede_ver": True, "puede_crear": True, "puede_editar": False, "puede_eliminar": False
        }

    def test_member_without_grant_gets_nothing(self, client, modulos, member_headers):
        response = client.get("/permissions/socios", headers=member_headers)
        assert response.status_code == 200
        assert not any(response.json().values())

    def test_grants_of_other_users_do_not_apply(self, client, db_session, modulos, other_user, member_headers):
        db_session.add(UserPermission(
            fk_id_usuario=other_user.id, fk_id_modulo=modulos["socios"].id, puede_ver=True
        ))
        db_session.commit()

        response = client.get("/permissions/socios", headers=member_headers)
        assert response.json()["puede_ver"] is False

    def test_admin_sees_active_modules_in_order(self, client, modulos, admin_headers):
        response = client.get("/user/modules", headers=admin_headers)
        assert response.status_code == 200
        assert [m["nombre"] for m in response.json()] == ["socios", "tesoreria"]
        assert all(m["puede_ver"] for m in response.json())

    def test_member_sees_only_viewable_modules(self, client, db_session, modulos, member_user, member_headers):
        db_session.add_all([
            UserPermission(fk_id_usuario=member_user.id, fk_id_modulo=modulos["tesoreria"].id, puede_ver=True),
            UserPermission(fk_id_usuario=member_user.id, fk_id_modulo=modulos["socios"].id, puede_ver=False),
            UserPermission(fk_id_usuario=member_user.id, fk_id_modulo=modulos["reportes"].id, puede_ver=True),
        ])
        db_session.commit()

        response = client.get("/user/modules", headers=member_headers)
        assert [m["nombre"] for m in response.json()] == ["tesoreria"]

    def test_requires_authentication(self, client):
        assert client.get("/user/modules").status_code == 401
