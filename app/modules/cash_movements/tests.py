"""
Tests para movimientos de caja, reflejo en lotes y transferencias entre cajas
"""

import logging
from contextlib import contextmanager
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.modules.auth.schemas import AuthContext
from app.modules.batches.models import TillBatch, TillBatchDetail
from app.modules.batches.schemas import TillBatchClose
from app.modules.batches.service import TillBatchService
from app.modules.cash_movements.mirror import LedgerMirror
from app.modules.cash_movements.models import CashMovement
from app.modules.cash_movements.service import CashMovementService


@contextmanager
def failing_inserts(session, predicate):
    """Hace fallar el flush cuando hay un objeto nuevo que cumple `predicate`."""
    def before_flush(sess, flush_context, instances):
        if any(predicate(obj) for obj in sess.new):
            raise OperationalError("INSERT", {}, Exception("fallo simulado"))

    event.listen(session, "before_flush", before_flush)
    try:
        yield
    finally:
        event.remove(session, "before_flush", before_flush)


def movement_payload(**overrides):
    payload = {
        "fk_id_cuenta": 1,
        "fk_id_concepto": 1,
        "tipo": "Ingreso",
        "ingresos": "250.50",
        "concepto_ingreso": "Venta de rifas",
        "apellido_nombres": "Pérez, Juan",
        "numero_comprobante": "0001-00001234",
    }
    payload.update(overrides)
    return payload


def open_batch(client, headers, caja=1, saldo="0"):
    response = client.post("/lotes-operaciones", json={"fk_id_caja": caja, "saldo_inicial": saldo}, headers=headers)
    assert response.status_code == 201
    return response.json()["lote"]


# ===== MOVIMIENTOS =====

class TestRecordCashMovement:

    def test_requires_open_batch(self, client, db_session, treasury_seed, member_headers):
        response = client.post("/movimientos-caja", json=movement_payload(), headers=member_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Debe abrir una caja antes de registrar movimientos"
        assert db_session.query(CashMovement).count() == 0

    def test_movement_is_mirrored_into_open_batch(self, client, db_session, treasury_seed, member_headers):
        lote = open_batch(client, member_headers)

        response = client.post("/movimientos-caja", json=movement_payload(), headers=member_headers)
        assert response.status_code == 200
        movimiento = response.json()["movimiento"]
        assert movimiento["tipo"] == "Ingreso"
        assert movimiento["cuenta"] == {"nombre": "Caja Efectivo", "tipo": "Efectivo"}
        assert movimiento["concepto"]["nombre"] == "Ventas varias"
        assert movimiento["fecha"] is not None

        detail = db_session.query(TillBatchDetail).filter(TillBatchDetail.fk_id_lote == lote["id_lote"]).one()
        assert detail.tipo == "ingreso"
        assert detail.monto == Decimal("250.50")
        assert detail.concepto == "Venta de rifas"
        assert detail.fk_id_movimiento == movimiento["id"]
        assert "Comprobante: 0001-00001234" in detail.observaciones

    def test_egress_is_lowercased_in_batch(self, client, db_session, treasury_seed, member_headers):
        open_batch(client, member_headers)
        client.post(
            "/movimientos-caja",
            json=movement_payload(tipo="Egreso", fk_id_concepto=2),
            headers=member_headers
        )
        assert db_session.query(TillBatchDetail).one().tipo == "egreso"

    def test_mirror_failure_does_not_fail_request(self, client, db_session, treasury_seed, member_headers):
        open_batch(client, member_headers)

        with failing_inserts(db_session, lambda obj: isinstance(obj, TillBatchDetail)):
            response = client.post("/movimientos-caja", json=movement_payload(), headers=member_headers)

        assert response.status_code == 200
        assert db_session.query(CashMovement).count() == 1
        assert db_session.query(TillBatchDetail).count() == 0

    def test_batch_closed_after_movement_is_not_mirrored(
        self, client, db_session, treasury_seed, member_user, member_headers, monkeypatch
    ):
        """Si el lote se cierra entre el movimiento y su reflejo, el cierre no cambia"""
        lote = open_batch(client, member_headers)
        real_insert = CashMovementService._insert_movement

        def insert_then_close(self, error_message, **fields):
            movement = real_insert(self, error_message, **fields)
            owner = AuthContext(
                user_id=member_user.id, nombre=member_user.nombre, rol=member_user.rol,
                external_id=member_user.external_id
            )
            TillBatchService(self.db).close_batch(TillBatchClose(id_lote=lote["id_lote"]), owner)
            return movement

        monkeypatch.setattr(CashMovementService, "_insert_movement", insert_then_close)
        response = client.post("/movimientos-caja", json=movement_payload(ingresos="300"), headers=member_headers)

        assert response.status_code == 200
        assert db_session.query(CashMovement).count() == 1
        assert db_session.query(TillBatchDetail).count() == 0
        batch = db_session.query(TillBatch).filter(TillBatch.id_lote == lote["id_lote"]).one()
        assert batch.abierto is False
        assert batch.saldo_final == Decimal("0")

    @pytest.mark.parametrize("overrides", [
        {"ingresos": "0"},
        {"concepto_ingreso": ""},
        {"tipo": "Otro"},
        {"fk_id_cuenta": 0},
    ])
    def test_invalid_payload(self, client, treasury_seed, member_headers, overrides):
        open_batch(client, member_headers)
        response = client.post("/movimientos-caja", json=movement_payload(**overrides), headers=member_headers)
        assert response.status_code == 400
        assert response.json()["details"]

    def test_inactive_concept(self, client, db_session, treasury_seed, member_headers):
        open_batch(client, member_headers)
        treasury_seed["concepts"][0].activo = False
        db_session.commit()

        response = client.post("/movimientos-caja", json=movement_payload(), headers=member_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "El concepto indicado no existe o está inactivo"


class TestListCashMovements:

    def test_scoped_by_role(self, client, treasury_seed, member_headers, other_headers, admin_headers):
        open_batch(client, member_headers, caja=1, saldo="100")
        open_batch(client, other_headers, caja=2, saldo="200")

        own = client.get("/movimientos-caja", headers=member_headers).json()["movimientos"]
        assert [Decimal(m["ingresos"]) for m in own] == [Decimal("100")]

        everything = client.get("/movimientos-caja", headers=admin_headers).json()["movimientos"]
        assert len(everything) == 2

    def test_filter_by_account(self, client, treasury_seed, member_headers):
        open_batch(client, member_headers)
        client.post("/movimientos-caja", json=movement_payload(fk_id_cuenta=2), headers=member_headers)
        client.post("/movimientos-caja", json=movement_payload(fk_id_cuenta=1), headers=member_headers)

        movimientos = client.get(
            "/movimientos-caja", params={"cuenta_id": 2}, headers=member_headers
        ).json()["movimientos"]
        assert len(movimientos) == 1
        assert movimientos[0]["cuenta"]["nombre"] == "Banco Nación"


# ===== TRANSFERENCIAS =====

class TestTransferBetweenTills:

    @pytest.fixture
    def batches(self, client, treasury_seed, member_headers, other_headers):
        source = open_batch(client, member_headers, caja=1)
        destination = open_batch(client, other_headers, caja=2)
        return source, destination

    def transfer(self, client, headers, destination_id, monto="300"):
        return client.post(
            "/movimientos-caja/transferencia",
            json={
                "fk_id_cuenta": 1,
                "ingresos": monto,
                "caja_destino_id": destination_id,
                "concepto_ingreso": "Cambio para buffet",
            },
            headers=headers
        )

    def test_successful_transfer(self, client, db_session, batches, member_user, other_user, member_headers):
        source, destination = batches
        response = self.transfer(client, member_headers, destination["id_lote"])
        assert response.status_code == 200

        body = response.json()
        assert body["egreso"]["tipo"] == "Egreso"
        assert body["egreso"]["fk_id_usuario"] == member_user.id
        assert body["egreso"]["fk_id_concepto"] == 4
        assert body["egreso"]["concepto_ingreso"] == "Transferencia a otra caja - Cambio para buffet"
        assert body["ingreso"]["tipo"] == "Ingreso"
        assert body["ingreso"]["fk_id_usuario"] == other_user.id
        assert body["ingreso"]["fk_id_concepto"] == 5
        assert body["detalles"]["usuario_origen"] == "Carlos Cajero"
        assert body["detalles"]["caja_destino_id"] == destination["id_lote"]
        assert Decimal(body["detalles"]["monto"]) == Decimal("300")

        source_rows = db_session.query(TillBatchDetail).filter(TillBatchDetail.fk_id_lote == source["id_lote"]).all()
        dest_rows = db_session.query(TillBatchDetail).filter(TillBatchDetail.fk_id_lote == destination["id_lote"]).all()
        assert [r.tipo for r in source_rows] == ["egreso"]
        assert [r.tipo for r in dest_rows] == ["ingreso"]

    def test_requires_open_batch(self, client, treasury_seed, member_headers):
        response = self.transfer(client, member_headers, 1)
        assert response.status_code == 400
        assert response.json()["error"] == "Debe abrir una caja antes de registrar transferencias"

    def test_closed_destination_leaves_no_trace(self, client, db_session, batches, member_headers, other_headers):
        """El egreso y su reflejo se eliminan si el lote destino ya no está abierto"""
        source, destination = batches
        client.post("/lotes-operaciones/cerrar", json={"id_lote": destination["id_lote"]}, headers=other_headers)

        response = self.transfer(client, member_headers, destination["id_lote"])
        assert response.status_code == 400
        assert response.json()["error"] == "La caja destino no existe o no está abierta"
        assert db_session.query(CashMovement).count() == 0
        assert db_session.query(TillBatchDetail).count() == 0

    def test_destination_closing_mid_transfer(
        self, client, db_session, batches, member_headers, monkeypatch
    ):
        """El lote destino se cierra justo después de registrar el egreso"""
        source, destination = batches
        real_mirror = LedgerMirror.mirror_to_batch

        def mirror_then_close(self, **kwargs):
            result = real_mirror(self, **kwargs)
            batch = self.db.query(TillBatch).filter(TillBatch.id_lote == destination["id_lote"]).one()
            batch.abierto = False
            self.db.commit()
            return result

        monkeypatch.setattr(LedgerMirror, "mirror_to_batch", mirror_then_close)
        response = self.transfer(client, member_headers, destination["id_lote"])

        assert response.status_code == 400
        assert db_session.query(CashMovement).count() == 0
        assert db_session.query(TillBatchDetail).count() == 0

    def test_unknown_destination(self, client, db_session, batches, member_headers):
        response = self.transfer(client, member_headers, 999)
        assert response.status_code == 400
        assert db_session.query(CashMovement).count() == 0

    def test_ingress_failure_reverts_egress(self, client, db_session, batches, member_headers):
        _, destination = batches

        with failing_inserts(db_session, lambda obj: isinstance(obj, CashMovement) and obj.tipo == "Ingreso"):
            response = self.transfer(client, member_headers, destination["id_lote"])

        assert response.status_code == 500
        assert response.json()["error"] == "Error guardando el ingreso - operación revertida"
        assert db_session.query(CashMovement).count() == 0
        assert db_session.query(TillBatchDetail).count() == 0

    def test_failed_compensation_is_logged_as_critical(self, db_session, monkeypatch, caplog):
        def failing_commit():
            raise SQLAlchemyError("conexión perdida")

        monkeypatch.setattr(db_session, "commit", failing_commit)
        with caplog.at_level(logging.CRITICAL, logger="app.modules.cash_movements.service"):
            CashMovementService(db_session)._compensate(123)

        assert any(record.levelno == logging.CRITICAL for record in caplog.records)


class TestLedgerMirror:

    def test_find_open_batch_returns_most_recent(self, db_session, treasury_seed, member_user):
        first = TillBatch(fk_id_usuario=member_user.id, fk_id_caja=1, abierto=True, saldo_inicial=0)
        db_session.add(first)
        db_session.commit()
        second = TillBatch(fk_id_usuario=member_user.id, fk_id_caja=2, abierto=True, saldo_inicial=0)
        db_session.add(second)
        db_session.commit()

        found = LedgerMirror(db_session).find_open_batch(member_user.id)
        assert found.id_lote == second.id_lote

    def test_failed_mirror_returns_none(self, db_session, treasury_seed, member_user):
        batch = TillBatch(fk_id_usuario=member_user.id, fk_id_caja=1, abierto=True, saldo_inicial=0)
        db_session.add(batch)
        db_session.commit()

        with failing_inserts(db_session, lambda obj: isinstance(obj, TillBatchDetail)):
            result = LedgerMirror(db_session).mirror_to_batch(
                batch_id=batch.id_lote,
                account_id=1,
                tipo="Ingreso",
                monto=Decimal("10"),
                concepto="Prueba",
                observaciones=None
            )

        assert result is None
        assert db_session.query(TillBatchDetail).count() == 0

    def test_closed_batch_is_not_mirrored(self, db_session, treasury_seed, member_user):
        batch = TillBatch(fk_id_usuario=member_user.id, fk_id_caja=1, abierto=False, saldo_inicial=0)
        db_session.add(batch)
        db_session.commit()

        result = LedgerMirror(db_session).mirror_to_batch(
            batch_id=batch.id_lote,
            account_id=1,
            tipo="Ingreso",
            monto=Decimal("10"),
            concepto="Prueba",
            observaciones=None
        )

        assert result is None
        assert db_session.query(TillBatchDetail).count() == 0
