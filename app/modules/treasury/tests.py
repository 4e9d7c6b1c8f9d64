"""
Tests para los datos de referencia de tesorería (cuentas, conceptos, cajas, proveedores)
"""

from app.core.config import settings
from app.modules.treasury.models import Account
from app.modules.treasury.service import TreasuryService


class TestAccounts:

    def test_list_accounts(self, client, treasury_seed, member_headers):
        response = client.get("/cuentas", headers=member_headers)
        assert response.status_code == 200
        nombres = [c["nombre"] for c in response.json()["cuentas"]]
        assert nombres == ["Banco Nación", "Caja Efectivo"]

    def test_duplicate_account_name(self, client, treasury_seed, admin_headers):
        response = client.post("/cuentas", json={"nombre": "Caja Efectivo"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Ya existe una cuenta con ese nombre"

    def test_blank_name_is_a_validation_error(self, client, admin_headers):
        response = client.post("/cuentas", json={"nombre": "   "}, headers=admin_headers)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Datos inválidos"
        assert body["details"][0]["campo"] == "nombre"

    def test_default_cash_account_prefers_cash_type(self, db_session, treasury_seed):
        account = TreasuryService(db_session).resolve_default_cash_account()
        assert account.id == 1
        assert account.is_cash(settings.CASH_ACCOUNT_TYPE)

    def test_default_cash_account_falls_back_to_first(self, db_session):
        db_session.add(Account(id=7, nombre="Mercado Pago", tipo="Billetera"))
        db_session.commit()
        assert TreasuryService(db_session).resolve_default_cash_account().id == 7


class TestConcepts:

    def test_create_concept(self, client, admin_headers):
        response = client.post(
            "/conceptos",
            json={"nombre": "Alquiler salón", "tipo": "Ingreso", "categoria": "Eventos"},
            headers=admin_headers
        )
        assert response.status_code == 201
        assert response.json()["concepto"]["tipo"] == "Ingreso"

    def test_concept_type_must_be_known(self, client, admin_headers):
        response = client.post(
            "/conceptos",
            json={"nombre": "Raro", "tipo": "Otro"},
            headers=admin_headers
        )
        assert response.status_code == 400

    def test_inactive_concepts_are_hidden(self, client, db_session, treasury_seed, member_headers):
        concept = treasury_seed["concepts"][0]
        concept.activo = False
        db_session.commit()

        response = client.get("/conceptos", headers=member_headers)
        ids = [c["id"] for c in response.json()["conceptos"]]
        assert concept.id not in ids
        assert len(ids) == 5


class TestTillsAndSuppliers:

    def test_create_and_list_tills(self, client, admin_headers):
        created = client.post("/cajas", json={"nombre": "Caja Buffet"}, headers=admin_headers)
        assert created.status_code == 201

        listed = client.get("/cajas", headers=admin_headers).json()["cajas"]
        assert [c["nombre"] for c in listed] == ["Caja Buffet"]

    def test_supervisor_can_create_supplier(self, client, db_session, member_user):
        from conftest import auth_headers
        member_user.rol = "supervisor"
        db_session.commit()

        response = client.post(
            "/proveedores",
            json={"razon_social": "Distribuidora Sur SRL"},
            headers=auth_headers(member_user.external_id)
        )
        assert response.status_code == 201
        assert response.json()["proveedor"]["estado"] == "Activo"
