"""
Tests para socios y cuenta corriente de cuotas

Cubren:
- Alta de socios con CUIT/documento argentinos y unicidad
- Generación de cuotas con estado inicial según vencimiento
- Cobro total/parcial, sin sobrepago, con reflejo en caja y lote
- Saldo acumulado consistente tras cualquier secuencia de cargos y pagos
- Barrido de vencimientos idempotente (endpoint y tarea de Celery)
"""

import re
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from app.common.dates import local_today
from app.modules.batches.models import TillBatchDetail
from app.modules.cash_movements.models import CashMovement
from app.modules.members.models import (
    Member, ChargeTemplate, MemberDuesEntry, Payment, EntryStatus, EntryType
)
from app.modules.members.service import DuesLedgerService, generate_payment_id


# ===== FIXTURES =====

@pytest.fixture
def socios(db_session):
    members = [
        Member(
            nombre_socio="Roberto Díaz",
            razon_social="Díaz Roberto",
            mail="roberto@example.com",
            documento="12345678",
            cuit="20-12345678-6",
            fecha_alta=local_today(),
        ),
        Member(
            nombre_socio="Comercial Norte",
            razon_social="Comercial Norte SA",
            mail="norte@example.com",
            documento="23456789",
            cuit="30-71234567-1",
            fecha_alta=local_today(),
        ),
    ]
    db_session.add_all(members)
    db_session.commit()
    return members


@pytest.fixture
def cuota(db_session):
    template = ChargeTemplate(nombre="Cuota social", monto=Decimal("500"), activo=True)
    db_session.add(template)
    db_session.commit()
    return template


@pytest.fixture
def open_till(client, treasury_seed, member_headers):
    response = client.post("/lotes-operaciones", json={"fk_id_caja": 1, "saldo_inicial": "0"}, headers=member_headers)
    assert response.status_code == 201
    return response.json()["lote"]


def generate(client, headers, member_ids, cargo_id, fecha=None, vencimiento=None):
    payload = {"memberIds": member_ids, "cargoId": cargo_id}
    if fecha:
        payload["fecha"] = fecha.isoformat()
    if vencimiento:
        payload["fechaVencimiento"] = vencimiento.isoformat()
    return client.post("/movements/generate-charges", json=payload, headers=headers)


def pay(client, headers, entry_id, socio_id, amount, reference=None):
    payload = {
        "movementId": entry_id,
        "socioId": socio_id,
        "amount": amount,
        "cuentaId": 1,
        "cuentaDestinoId": 2,
    }
    if reference:
        payload["reference"] = reference
    return client.post("/movements/process-payment", json=payload, headers=headers)


def charge_of(db_session, socio_id) -> MemberDuesEntry:
    return db_session.query(MemberDuesEntry).filter(
        MemberDuesEntry.fk_id_socio == socio_id,
        MemberDuesEntry.tipo == EntryType.CARGO.value
    ).order_by(MemberDuesEntry.id).first()


def assert_running_balance_consistent(db_session, socio_id):
    entries = db_session.query(MemberDuesEntry).filter(
        MemberDuesEntry.fk_id_socio == socio_id
    ).order_by(MemberDuesEntry.fecha, MemberDuesEntry.id).all()
    running = Decimal("0")
    for entry in entries:
        running += entry.monto if entry.tipo == EntryType.CARGO.value else -entry.monto
        assert entry.saldo_acumulado == running


# ===== SOCIOS Y CARGOS =====

class TestMembers:

    def test_create_member(self, client, admin_headers):
        response = client.post(
            "/socios",
            json={
                "nombre_socio": "Laura Méndez",
                "razon_social": "Méndez Laura",
                "mail": "laura@example.com",
                "documento": "30.123.456",
                "cuit": "20123456786",
            },
            headers=admin_headers
        )
        assert response.status_code == 201
        socio = response.json()["socio"]
        assert socio["cuit"] == "20-12345678-6"
        assert socio["documento"] == "30123456"
        assert socio["tipo_socio"] == "Activo"
        assert socio["fecha_alta"] == local_today().isoformat()

    def test_duplicate_cuit(self, client, socios, admin_headers):
        response = client.post(
            "/socios",
            json={
                "nombre_socio": "Otro",
                "razon_social": "Otro",
                "mail": "otro@example.com",
                "documento": "11222333",
                "cuit": "20-12345678-6",
            },
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Ya existe un socio con ese CUIT"

    def test_duplicate_email(self, client, socios, admin_headers):
        response = client.post(
            "/socios",
            json={
                "nombre_socio": "Otro",
                "razon_social": "Otro",
                "mail": "roberto@example.com",
                "documento": "11222333",
                "cuit": "20-33444555-1",
            },
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Ya existe un socio con ese email"

    def test_invalid_cuit(self, client, admin_headers):
        response = client.post(
            "/socios",
            json={
                "nombre_socio": "Otro",
                "razon_social": "Otro",
                "mail": "otro@example.com",
                "documento": "11222333",
                "cuit": "20123456780",
            },
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["details"][0]["campo"] == "cuit"

    def test_member_role_cannot_create(self, client, member_headers):
        response = client.post("/socios", json={}, headers=member_headers)
        assert response.status_code == 403

    def test_update_member(self, client, socios, admin_headers):
        response = client.put(
            f"/socios/{socios[0].id}",
            json={"tipo_socio": "Adherente", "celular": "11-5555-0000"},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["socio"]["tipo_socio"] == "Adherente"

    def test_list_members(self, client, socios, member_headers):
        socios_json = client.get("/socios", headers=member_headers).json()["socios"]
        assert [s["razon_social"] for s in socios_json] == ["Comercial Norte SA", "Díaz Roberto"]

    def test_charge_templates(self, client, admin_headers):
        created = client.post("/cargos", json={"nombre": "Cuota anual", "monto": "6000"}, headers=admin_headers)
        assert created.status_code == 201

        cargos = client.get("/cargos", headers=admin_headers).json()["cargos"]
        assert [c["nombre"] for c in cargos] == ["Cuota anual"]


# ===== GENERACIÓN DE CUOTAS =====

class TestGenerateCharges:

    def test_overdue_when_due_date_passed(self, client, db_session, socios, cuota, admin_headers):
        yesterday = local_today() - timedelta(days=1)
        response = generate(client, admin_headers, [socios[0].id], cuota.id, vencimiento=yesterday)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["vencidas"] == 1
        assert body["pendientes"] == 0
        assert "vencidas" in body["message"]

        entry = charge_of(db_session, socios[0].id)
        assert entry.estado == EntryStatus.VENCIDA.value
        assert entry.saldo == Decimal("500")
        assert entry.saldo_acumulado == Decimal("500")
        assert entry.concepto == "Cuota social"

    def test_pending_when_due_in_future(self, client, db_session, socios, cuota, admin_headers):
        tomorrow = local_today() + timedelta(days=1)
        body = generate(client, admin_headers, [s.id for s in socios], cuota.id, vencimiento=tomorrow).json()
        assert body["count"] == 2
        assert body["pendientes"] == 2
        assert body["vencidas"] == 0

    def test_running_balance_accumulates(self, client, db_session, socios, cuota, admin_headers):
        socio_id = socios[0].id
        generate(client, admin_headers, [socio_id], cuota.id, fecha=local_today())
        generate(client, admin_headers, [socio_id], cuota.id, fecha=local_today() - timedelta(days=30))

        entries = db_session.query(MemberDuesEntry).filter(
            MemberDuesEntry.fk_id_socio == socio_id
        ).order_by(MemberDuesEntry.fecha, MemberDuesEntry.id).all()
        assert [e.saldo_acumulado for e in entries] == [Decimal("500"), Decimal("1000")]

    def test_empty_member_list(self, client, cuota, admin_headers):
        response = generate(client, admin_headers, [], cuota.id)
        assert response.status_code == 400

    def test_inactive_template(self, client, db_session, socios, cuota, admin_headers):
        cuota.activo = False
        db_session.commit()
        response = generate(client, admin_headers, [socios[0].id], cuota.id)
        assert response.status_code == 404
        assert response.json()["error"] == "Cargo no encontrado o inactivo"

    def test_unknown_members(self, client, cuota, admin_headers):
        response = generate(client, admin_headers, [999], cuota.id)
        assert response.status_code == 404
        assert response.json()["error"] == "No se encontraron socios válidos"

    def test_members_cannot_generate(self, client, socios, cuota, member_headers):
        response = generate(client, member_headers, [socios[0].id], cuota.id)
        assert response.status_code == 403


# ===== COBROS =====

class TestProcessPayment:

    @pytest.fixture
    def overdue_charge(self, client, db_session, socios, cuota, admin_headers):
        generate(client, admin_headers, [socios[0].id], cuota.id, vencimiento=local_today() - timedelta(days=1))
        return charge_of(db_session, socios[0].id)

    def test_requires_open_batch(self, client, db_session, treasury_seed, overdue_charge, member_headers):
        response = pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "200")
        assert response.status_code == 400
        assert response.json()["error"] == "Debe abrir una caja antes de registrar pagos"
        assert db_session.query(Payment).count() == 0

    def test_partial_payment_keeps_overdue(self, client, db_session, open_till, overdue_charge, member_headers):
        response = pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "200", reference="REC-1")
        assert response.status_code == 200

        body = response.json()
        assert body["tipoPago"] == "parcial"
        assert Decimal(body["saldoAnterior"]) == Decimal("500")
        assert Decimal(body["montoPagado"]) == Decimal("200")
        assert Decimal(body["saldoRestante"]) == Decimal("300")
        assert re.fullmatch(r"PAG-\d{8}-[a-z0-9]{4}", body["pago"]["id"])

        db_session.refresh(overdue_charge)
        assert overdue_charge.saldo == Decimal("300")
        assert overdue_charge.estado == EntryStatus.VENCIDA.value
        assert_running_balance_consistent(db_session, overdue_charge.fk_id_socio)

        pago_entry = db_session.query(MemberDuesEntry).filter(MemberDuesEntry.tipo == EntryType.PAGO.value).one()
        assert pago_entry.monto == Decimal("200")
        assert pago_entry.fk_id_pago == body["pago"]["id"]
        assert pago_entry.saldo_acumulado == Decimal("300")

    def test_payment_is_posted_to_ledger_and_batch(self, client, db_session, open_till, overdue_charge, member_headers):
        pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "200", reference="REC-2")

        movement = db_session.query(CashMovement).one()
        assert movement.tipo == "Ingreso"
        assert movement.fk_id_cuenta == 2
        assert movement.fk_id_concepto == 3
        assert movement.concepto_ingreso == "Pago de cuota - Cuota social"
        assert movement.numero_comprobante == "REC-2"
        assert movement.apellido_nombres == "Díaz Roberto"

        detail = db_session.query(TillBatchDetail).filter(TillBatchDetail.fk_id_lote == open_till["id_lote"]).one()
        assert detail.tipo == "ingreso"
        assert detail.fk_id_cuenta_tesoreria == 2
        assert detail.monto == Decimal("200")
        assert detail.fk_id_movimiento == movement.id
        assert "Ref: REC-2" in detail.observaciones

    def test_full_payment_marks_collected(self, client, db_session, open_till, overdue_charge, member_headers):
        body = pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "500").json()
        assert body["tipoPago"] == "total"
        assert "COBRADA" in body["message"]

        db_session.refresh(overdue_charge)
        assert overdue_charge.estado == EntryStatus.COBRADA.value
        assert overdue_charge.saldo == Decimal("0")

        again = pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "1")
        assert again.status_code == 400
        assert again.json()["error"] == "Esta cuota ya está cobrada"

    def test_overpayment_is_rejected(self, client, db_session, open_till, overdue_charge, member_headers):
        response = pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "500.01")
        assert response.status_code == 400
        assert response.json()["error"] == "El monto a pagar no puede ser mayor al saldo pendiente"

        assert db_session.query(Payment).count() == 0
        db_session.refresh(overdue_charge)
        assert overdue_charge.saldo == Decimal("500")
        assert overdue_charge.estado == EntryStatus.VENCIDA.value
        assert db_session.query(MemberDuesEntry).count() == 1

    def test_entry_of_another_member(self, client, socios, open_till, overdue_charge, member_headers):
        response = pay(client, member_headers, overdue_charge.id, socios[1].id, "100")
        assert response.status_code == 404

    def test_balance_update_failure_removes_payment(self, client, db_session, open_till, overdue_charge, member_headers):
        def before_flush(session, flush_context, instances):
            if any(isinstance(o, MemberDuesEntry) and o.tipo == EntryType.PAGO.value for o in session.new):
                raise OperationalError("INSERT", {}, Exception("fallo simulado"))

        event.listen(db_session, "before_flush", before_flush)
        try:
            response = pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "200")
        finally:
            event.remove(db_session, "before_flush", before_flush)

        assert response.status_code == 500
        assert db_session.query(Payment).count() == 0
        db_session.refresh(overdue_charge)
        assert overdue_charge.saldo == Decimal("500")
        assert db_session.query(CashMovement).count() == 0

    def test_entry_vanishing_before_balance_update_returns_404(
        self, client, db_session, open_till, overdue_charge, member_headers, monkeypatch
    ):
        """La cuota desaparece entre el registro del pago y la actualización del saldo"""
        real_lock = DuesLedgerService._lock_entry
        calls = []

        def lock_then_miss(self, entry_id, member_id):
            calls.append(entry_id)
            if len(calls) > 1:
                return real_lock(self, entry_id + 1000, member_id)
            return real_lock(self, entry_id, member_id)

        monkeypatch.setattr(DuesLedgerService, "_lock_entry", lock_then_miss)
        response = pay(client, member_headers, overdue_charge.id, overdue_charge.fk_id_socio, "200")

        assert response.status_code == 404
        assert response.json()["error"] == "No se encontró el movimiento especificado"
        assert db_session.query(Payment).count() == 0
        assert db_session.query(CashMovement).count() == 0

    def test_running_balance_after_mixed_sequence(
        self, client, db_session, socios, cuota, open_till, admin_headers, member_headers
    ):
        socio_id = socios[0].id
        generate(client, admin_headers, [socio_id], cuota.id, fecha=local_today() - timedelta(days=60))
        generate(client, admin_headers, [socio_id], cuota.id, fecha=local_today() - timedelta(days=30))

        charges = db_session.query(MemberDuesEntry).filter(
            MemberDuesEntry.fk_id_socio == socio_id
        ).order_by(MemberDuesEntry.fecha).all()
        pay(client, member_headers, charges[0].id, socio_id, "500")
        pay(client, member_headers, charges[1].id, socio_id, "125.50")
        generate(client, admin_headers, [socio_id], cuota.id)

        assert_running_balance_consistent(db_session, socio_id)

        statement = client.get("/movements", params={"socioId": socio_id}, headers=member_headers).json()
        assert Decimal(statement["saldo"]) == Decimal("874.50")
        assert [m["tipo"] for m in statement["movimientos"]][:2] == ["Cargo", "Cargo"]


class TestStatement:

    def test_cashier_reads_statement_to_pick_charge(
        self, client, db_session, socios, cuota, admin_headers, member_headers
    ):
        generate(client, admin_headers, [socios[0].id], cuota.id)

        response = client.get("/movements", params={"socioId": socios[0].id}, headers=member_headers)
        assert response.status_code == 200
        movimientos = response.json()["movimientos"]
        assert [m["id"] for m in movimientos] == [charge_of(db_session, socios[0].id).id]
        assert Decimal(response.json()["saldo"]) == Decimal("500")

    def test_requires_authentication(self, client, socios):
        response = client.get("/movements", params={"socioId": socios[0].id})
        assert response.status_code == 401


class TestPaymentId:

    def test_format(self):
        assert re.fullmatch(r"PAG-\d{8}-[a-z0-9]{4}", generate_payment_id())

    def test_ids_differ(self):
        assert len({generate_payment_id() for _ in range(20)}) > 1


# ===== VENCIMIENTOS =====

class TestMarkOverdue:

    @pytest.fixture
    def pending_entries(self, db_session, socios):
        yesterday = local_today() - timedelta(days=1)
        tomorrow = local_today() + timedelta(days=1)
        entries = [
            MemberDuesEntry(fk_id_socio=socios[0].id, fecha=yesterday, tipo="Cargo", monto=100, saldo=100,
                            estado="Pendiente", fecha_vencimiento=yesterday),
            MemberDuesEntry(fk_id_socio=socios[0].id, fecha=yesterday, tipo="Cargo", monto=100, saldo=100,
                            estado="Pendiente", fecha_vencimiento=tomorrow),
            MemberDuesEntry(fk_id_socio=socios[1].id, fecha=yesterday, tipo="Cargo", monto=100, saldo=100,
                            estado="Pendiente", fecha_vencimiento=None),
            MemberDuesEntry(fk_id_socio=socios[1].id, fecha=yesterday, tipo="Cargo", monto=100, saldo=0,
                            estado="Cobrada", fecha_vencimiento=yesterday),
        ]
        db_session.add_all(entries)
        db_session.commit()
        return entries

    def test_only_past_due_pending_charges(self, db_session, pending_entries):
        updated = DuesLedgerService(db_session).mark_overdue()
        assert updated == 1

        states = [db_session.get(MemberDuesEntry, e.id).estado for e in pending_entries]
        assert states == ["Vencida", "Pendiente", "Pendiente", "Cobrada"]

    def test_idempotent(self, client, db_session, pending_entries, admin_headers):
        first = client.post("/movements/update-overdue", headers=admin_headers).json()
        overdue_after_first = {
            e.id for e in db_session.query(MemberDuesEntry).filter(MemberDuesEntry.estado == "Vencida")
        }
        second = client.post("/movements/update-overdue", headers=admin_headers).json()
        overdue_after_second = {
            e.id for e in db_session.query(MemberDuesEntry).filter(MemberDuesEntry.estado == "Vencida")
        }

        assert first["updated"] == 1
        assert second["updated"] == 0
        assert overdue_after_first == overdue_after_second

    def test_celery_task(self, db_session, pending_entries, monkeypatch):
        from conftest import TestingSessionLocal
        from app.modules.members import tasks

        monkeypatch.setattr(tasks, "SessionLocal", TestingSessionLocal)
        result = tasks.mark_overdue_dues()

        assert result == {"status": "completed", "updated": 1}
        db_session.expire_all()
        assert db_session.get(MemberDuesEntry, pending_entries[0].id).estado == "Vencida"
