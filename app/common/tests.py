"""
Tests para validadores de CUIT/DNI y utilidades comunes
"""

import re

from app.common.dates import local_time_label, local_now
from app.common.scoping import scope_to_owner
from app.common.validators import (
    calculate_cuit_dv, validate_cuit, format_cuit, validate_dni, format_dni
)
from app.modules.auth.schemas import AuthContext
from app.modules.batches.models import TillBatch


class TestCuitValidation:

    def test_calculate_dv(self):
        assert calculate_cuit_dv("2012345678") == 6
        assert calculate_cuit_dv("3071234567") == 1

    def test_invalid_input(self):
        assert calculate_cuit_dv("") is None
        assert calculate_cuit_dv("abc") is None

    def test_validate(self):
        assert validate_cuit("20-12345678-6") is True
        assert validate_cuit("30712345671") is True
        assert validate_cuit("20123456780") is False
        assert validate_cuit("123") is False

    def test_format(self):
        assert format_cuit("20123456786") == "20-12345678-6"


class TestDniValidation:

    def test_validate(self):
        assert validate_dni("12.345.678") is True
        assert validate_dni("1234567") is True
        assert validate_dni("123456") is False
        assert validate_dni("12A45678") is False

    def test_format(self):
        assert format_dni("12.345.678") == "12345678"


class TestDates:

    def test_time_label(self):
        assert re.fullmatch(r"\d{2}:\d{2}", local_time_label())
        assert local_time_label(local_now().replace(hour=7, minute=5)) == "07:05"


class TestScoping:

    def test_admin_sees_everything(self, db_session):
        query = db_session.query(TillBatch)
        admin = AuthContext(user_id=1, nombre="Admin", rol="admin", external_id="a")
        assert scope_to_owner(query, TillBatch.fk_id_usuario, admin) is query

    def test_others_are_filtered(self, db_session):
        query = db_session.query(TillBatch)
        member = AuthContext(user_id=7, nombre="Socio", rol="supervisor", external_id="m")
        scoped = scope_to_owner(query, TillBatch.fk_id_usuario, member)
        assert scoped is not query
        assert "WHERE lotes_operaciones.fk_id_usuario" in str(scoped.statement)
