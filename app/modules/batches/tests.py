"""
Tests para lotes de operaciones de caja

Cubren:
- Apertura con saldo inicial y su reflejo en detalle y movimientos_caja
- Un solo lote abierto por (usuario, caja), incluso si dos aperturas compiten
- Cierre con arqueo solo sobre cuentas de efectivo
- Visibilidad de lotes y detalle según rol
"""

import re
from decimal import Decimal

import pytest

from app.modules.batches.models import TillBatch, TillBatchDetail
from app.modules.batches.service import TillBatchService
from app.modules.cash_movements.models import CashMovement


def open_batch(client, headers, caja=1, saldo="0", observaciones=None):
    payload = {"fk_id_caja": caja, "saldo_inicial": saldo}
    if observaciones:
        payload["observaciones"] = observaciones
    return client.post("/lotes-operaciones", json=payload, headers=headers)


# ===== APERTURA =====

class TestOpenBatch:

    def test_open_with_opening_balance(self, client, db_session, treasury_seed, member_user, member_headers):
        """Saldo inicial 1000: una línea de detalle y un movimiento de caja en la cuenta 1"""
        response = open_batch(client, member_headers, saldo="1000")
        assert response.status_code == 201

        lote = response.json()["lote"]
        assert lote["abierto"] is True
        assert lote["tipo_lote"] == "apertura"
        assert lote["caja"]["nombre"] == "Caja Principal"
        assert lote["usuario"]["nombre"] == "Carlos Cajero"
        assert re.fullmatch(r"\d{2}:\d{2}", lote["hora_apertura"])

        details = db_session.query(TillBatchDetail).filter(TillBatchDetail.fk_id_lote == lote["id_lote"]).all()
        assert len(details) == 1
        assert details[0].tipo == "ingreso"
        assert details[0].monto == Decimal("1000")
        assert details[0].concepto == "Saldo inicial de caja"

        movements = db_session.query(CashMovement).all()
        assert len(movements) == 1
        assert movements[0].tipo == "Ingreso"
        assert movements[0].ingresos == Decimal("1000")
        assert movements[0].fk_id_cuenta == 1
        assert movements[0].fk_id_concepto == 6
        assert movements[0].fk_id_usuario == member_user.id
        assert details[0].fk_id_movimiento == movements[0].id

    def test_open_without_balance_writes_nothing_else(self, client, db_session, treasury_seed, member_headers):
        response = open_batch(client, member_headers, saldo="0")
        assert response.status_code == 201
        assert db_session.query(TillBatchDetail).count() == 0
        assert db_session.query(CashMovement).count() == 0

    def test_second_open_on_same_till_conflicts(self, client, db_session, treasury_seed, member_headers):
        assert open_batch(client, member_headers).status_code == 201

        response = open_batch(client, member_headers)
        assert response.status_code == 400
        assert response.json()["error"].startswith("Ya tienes un lote abierto para esta caja")
        assert db_session.query(TillBatch).filter(TillBatch.abierto == True).count() == 1

    def test_open_on_another_till_is_allowed(self, client, treasury_seed, member_headers):
        assert open_batch(client, member_headers, caja=1).status_code == 201
        assert open_batch(client, member_headers, caja=2).status_code == 201

    def test_other_user_can_open_same_till(self, client, treasury_seed, member_headers, other_headers):
        assert open_batch(client, member_headers, caja=1).status_code == 201
        assert open_batch(client, other_headers, caja=1).status_code == 201

    def test_concurrent_open_is_rejected_by_unique_index(
        self, client, db_session, treasury_seed, member_user, member_headers, monkeypatch
    ):
        """Si la verificación previa no ve el lote de otra request, el índice único lo rechaza"""
        db_session.add(TillBatch(fk_id_usuario=member_user.id, fk_id_caja=1, abierto=True, saldo_inicial=0))
        db_session.commit()
        monkeypatch.setattr(TillBatchService, "find_open_batch_for_till", lambda self, user_id, till_id: None)

        response = open_batch(client, member_headers)
        assert response.status_code == 400
        assert response.json()["error"].startswith("Ya tienes un lote abierto para esta caja")
        open_rows = db_session.query(TillBatch).filter(
            TillBatch.fk_id_usuario == member_user.id,
            TillBatch.fk_id_caja == 1,
            TillBatch.abierto == True
        ).count()
        assert open_rows == 1

    def test_negative_opening_balance(self, client, treasury_seed, member_headers):
        response = open_batch(client, member_headers, saldo="-5")
        assert response.status_code == 400

    def test_unknown_till(self, client, treasury_seed, member_headers):
        response = open_batch(client, member_headers, caja=99)
        assert response.status_code == 400
        assert response.json()["error"] == "La caja indicada no existe o está inactiva"

    def test_reopen_after_close(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers).json()["lote"]
        client.post("/lotes-operaciones/cerrar", json={"id_lote": lote["id_lote"]}, headers=member_headers)
        assert open_batch(client, member_headers).status_code == 201


# ===== CIERRE =====

class TestCloseBatch:

    def test_close_with_only_opening_balance(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers, saldo="1000").json()["lote"]

        response = client.post(
            "/lotes-operaciones/cerrar",
            json={"id_lote": lote["id_lote"], "observaciones": "Cierre del día"},
            headers=member_headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["lote"]["abierto"] is False
        assert body["lote"]["tipo_lote"] == "cierre"
        assert body["lote"]["observaciones"] == "Cierre del día"
        assert body["lote"]["fecha_cierre"] is not None
        assert Decimal(body["resumen"]["saldo_final"]) == Decimal("1000")
        assert Decimal(body["lote"]["saldo_final"]) == Decimal("1000")

    def test_opening_balance_on_non_cash_account(self, client, db_session, treasury_seed, member_headers):
        """Sin cuentas de efectivo el saldo inicial cae en la cuenta 1 y no cuenta para el arqueo"""
        treasury_seed["accounts"][0].tipo = "Banco"
        db_session.commit()

        lote = open_batch(client, member_headers, saldo="1000").json()["lote"]
        body = client.post(
            "/lotes-operaciones/cerrar", json={"id_lote": lote["id_lote"]}, headers=member_headers
        ).json()
        assert Decimal(body["resumen"]["saldo_final"]) == Decimal("0")
        assert Decimal(body["resumen"]["total_ingresos"]) == Decimal("1000")

    def test_final_balance_counts_only_cash(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers, saldo="1000").json()["lote"]
        for cuenta, tipo, monto in [(2, "ingreso", "500"), (1, "egreso", "200"), (2, "egreso", "50")]:
            added = client.post(
                "/detalle-lotes",
                json={
                    "fk_id_lote": lote["id_lote"],
                    "fk_id_cuenta_tesoreria": cuenta,
                    "tipo": tipo,
                    "monto": monto,
                    "concepto": "Movimiento de prueba"
                },
                headers=member_headers
            )
            assert added.status_code == 201

        resumen = client.post(
            "/lotes-operaciones/cerrar", json={"id_lote": lote["id_lote"]}, headers=member_headers
        ).json()["resumen"]

        assert Decimal(resumen["saldo_inicial"]) == Decimal("1000")
        assert Decimal(resumen["total_ingresos"]) == Decimal("1500")
        assert Decimal(resumen["total_egresos"]) == Decimal("250")
        assert Decimal(resumen["saldo_final"]) == Decimal("800")

    def test_close_twice(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers).json()["lote"]
        payload = {"id_lote": lote["id_lote"]}
        assert client.post("/lotes-operaciones/cerrar", json=payload, headers=member_headers).status_code == 200

        response = client.post("/lotes-operaciones/cerrar", json=payload, headers=member_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Lote no encontrado o ya está cerrado"

    def test_close_missing_batch(self, client, treasury_seed, member_headers):
        response = client.post("/lotes-operaciones/cerrar", json={"id_lote": 404}, headers=member_headers)
        assert response.status_code == 400

    def test_only_owner_or_admin_can_close(self, client, treasury_seed, member_headers, other_headers, admin_headers):
        lote = open_batch(client, member_headers).json()["lote"]
        payload = {"id_lote": lote["id_lote"]}

        forbidden = client.post("/lotes-operaciones/cerrar", json=payload, headers=other_headers)
        assert forbidden.status_code == 403

        allowed = client.post("/lotes-operaciones/cerrar", json=payload, headers=admin_headers)
        assert allowed.status_code == 200

    def test_close_keeps_notes_when_none_given(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers, observaciones="Turno mañana").json()["lote"]
        body = client.post(
            "/lotes-operaciones/cerrar", json={"id_lote": lote["id_lote"]}, headers=member_headers
        ).json()
        assert body["lote"]["observaciones"] == "Turno mañana"


# ===== CONSULTAS =====

class TestListBatches:

    @pytest.fixture
    def batches(self, client, treasury_seed, member_headers, other_headers):
        mine = open_batch(client, member_headers, caja=1).json()["lote"]
        theirs = open_batch(client, other_headers, caja=2).json()["lote"]
        return mine, theirs

    def test_default_lists_own(self, client, batches, member_headers):
        mine, _ = batches
        lotes = client.get("/lotes-operaciones", headers=member_headers).json()["lotes"]
        assert [l["id_lote"] for l in lotes] == [mine["id_lote"]]

    def test_exclude_user_lists_others(self, client, batches, member_headers):
        _, theirs = batches
        lotes = client.get(
            "/lotes-operaciones", params={"excluir_usuario": True, "abierto": True}, headers=member_headers
        ).json()["lotes"]
        assert [l["id_lote"] for l in lotes] == [theirs["id_lote"]]

    def test_all_for_admin(self, client, batches, admin_headers):
        lotes = client.get("/lotes-operaciones", params={"todos": True}, headers=admin_headers).json()["lotes"]
        assert len(lotes) == 2

    def test_all_for_member_is_scoped(self, client, batches, member_headers):
        mine, _ = batches
        lotes = client.get("/lotes-operaciones", params={"todos": True}, headers=member_headers).json()["lotes"]
        assert [l["id_lote"] for l in lotes] == [mine["id_lote"]]

    def test_filter_by_till_and_state(self, client, batches, member_headers):
        lotes = client.get(
            "/lotes-operaciones", params={"caja_id": 2}, headers=member_headers
        ).json()["lotes"]
        assert lotes == []

        lotes = client.get(
            "/lotes-operaciones", params={"abierto": False}, headers=member_headers
        ).json()["lotes"]
        assert lotes == []


class TestBatchDetails:

    def test_lote_id_is_required(self, client, treasury_seed, member_headers):
        response = client.get("/detalle-lotes", headers=member_headers)
        assert response.status_code == 400

    def test_details_of_own_batch(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers, saldo="300").json()["lote"]
        detalles = client.get(
            "/detalle-lotes", params={"lote_id": lote["id_lote"]}, headers=member_headers
        ).json()["detalles"]
        assert len(detalles) == 1
        assert detalles[0]["cuenta"] == {"nombre": "Caja Efectivo", "tipo": "Efectivo"}

    def test_details_of_foreign_batch(self, client, treasury_seed, member_headers, other_headers):
        lote = open_batch(client, member_headers, saldo="300").json()["lote"]
        response = client.get("/detalle-lotes", params={"lote_id": lote["id_lote"]}, headers=other_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Lote no encontrado o no autorizado"

    def test_all_details_scoped_by_role(self, client, treasury_seed, member_headers, other_headers, admin_headers):
        open_batch(client, member_headers, caja=1, saldo="100")
        open_batch(client, other_headers, caja=2, saldo="200")

        own = client.get("/detalle-lotes", params={"todos": True}, headers=member_headers).json()["detalles"]
        assert [Decimal(d["monto"]) for d in own] == [Decimal("100")]

        everything = client.get("/detalle-lotes", params={"todos": True}, headers=admin_headers).json()["detalles"]
        assert len(everything) == 2

    def test_cannot_add_detail_to_closed_batch(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers).json()["lote"]
        client.post("/lotes-operaciones/cerrar", json={"id_lote": lote["id_lote"]}, headers=member_headers)

        response = client.post(
            "/detalle-lotes",
            json={"fk_id_lote": lote["id_lote"], "fk_id_cuenta_tesoreria": 1, "tipo": "ingreso", "monto": "10"},
            headers=member_headers
        )
        assert response.status_code == 400

    def test_detail_amount_must_be_positive(self, client, treasury_seed, member_headers):
        lote = open_batch(client, member_headers).json()["lote"]
        response = client.post(
            "/detalle-lotes",
            json={"fk_id_lote": lote["id_lote"], "fk_id_cuenta_tesoreria": 1, "tipo": "egreso", "monto": "0"},
            headers=member_headers
        )
        assert response.status_code == 400
