"""
Fixtures compartidas por los tests de todos los módulos.

Cada test corre contra una base SQLite en memoria recién creada; los
tokens se firman con el mismo secreto que valida el gateway de identidad.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.config import settings
from app.database.database import Base, get_db
from app.modules.auth.models import User, UserRole
from app.modules.treasury.models import Account, Concept, Till


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_token(subject: str, given_name: str = "Ana", family_name: str = "Gómez", email: str = None) -> str:
    payload = {
        "sub": subject,
        "given_name": given_name,
        "family_name": family_name,
        "email": email or f"{subject}@example.com",
    }
    return jwt.encode(payload, settings.IDENTITY_JWT_SECRET, algorithm=settings.IDENTITY_JWT_ALGORITHM)


def auth_headers(subject: str, **claims) -> dict:
    return {"Authorization": f"Bearer {make_token(subject, **claims)}"}


# ===== BASE DE DATOS Y CLIENTE =====

@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ===== USUARIOS =====

def _create_user(db_session, external_id: str, nombre: str, rol: str) -> User:
    user = User(
        nombre=nombre,
        email=f"{external_id}@example.com",
        rol=rol,
        external_id=external_id,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _create_user(db_session, "admin-1", "Laura Admin", UserRole.ADMIN.value)


@pytest.fixture
def member_user(db_session):
    return _create_user(db_session, "member-1", "Carlos Cajero", UserRole.MEMBER.value)


@pytest.fixture
def other_user(db_session):
    return _create_user(db_session, "member-2", "Marta Tesorera", UserRole.MEMBER.value)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user.external_id)


@pytest.fixture
def member_headers(member_user):
    return auth_headers(member_user.external_id)


@pytest.fixture
def other_headers(other_user):
    return auth_headers(other_user.external_id)


# ===== DATOS DE REFERENCIA =====

@pytest.fixture
def treasury_seed(db_session):
    """
    Cuentas, conceptos y cajas con los ids que usan los asientos automáticos:
    cuenta 1 de efectivo, conceptos 3 (cuotas), 4/5 (transferencias) y 6 (saldo inicial).
    """
    accounts = [
        Account(id=1, nombre="Caja Efectivo", tipo="Efectivo"),
        Account(id=2, nombre="Banco Nación", tipo="Banco"),
    ]
    concepts = [
        Concept(id=1, nombre="Ventas varias", tipo="Ingreso", categoria="Ventas"),
        Concept(id=2, nombre="Gastos generales", tipo="Egreso", categoria="Gastos"),
        Concept(id=3, nombre="Cobro de cuotas", tipo="Ingreso", categoria="Socios"),
        Concept(id=4, nombre="Transferencia enviada", tipo="Egreso", categoria="Transferencias"),
        Concept(id=5, nombre="Transferencia recibida", tipo="Ingreso", categoria="Transferencias"),
        Concept(id=6, nombre="Saldo inicial", tipo="Ingreso", categoria="Caja"),
    ]
    tills = [
        Till(id=1, nombre="Caja Principal"),
        Till(id=2, nombre="Caja Secundaria"),
    ]
    db_session.add_all(accounts + concepts + tills)
    db_session.commit()
    return {"accounts": accounts, "concepts": concepts, "tills": tills}
