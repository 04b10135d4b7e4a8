"""
Fixtures compartidos: base SQLite en memoria, usuarios por rol, catálogo
mínimo y reemplazos de Celery y SMTP que registran en memoria.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("DEBUG", "false")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database.database import Base, get_db
from app.modules.auth.models import User, UserRole
from app.modules.auth.utils import create_access_token
from app.modules.payment_methods.models import PaymentMethod, PaymentCategory, PaymentMethodStatus
from app.modules.products.models import Product
from app.modules.tables.models import Table
from app.modules.taxes.models import Tax, TaxType
from app.modules.email.service import email_service
import app.modules.email.outbox as outbox_module

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class DispatchRecorder:
    """Sustituye la tarea de Celery: guarda los ids encolados"""

    def __init__(self):
        self.event_ids = []

    def delay(self, event_id):
        self.event_ids.append(event_id)


# ===== BASE DE DATOS =====

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


# ===== SIDE EFFECTS =====

@pytest.fixture(autouse=True)
def outbox_dispatches(monkeypatch):
    recorder = DispatchRecorder()
    monkeypatch.setattr(outbox_module, "dispatch_outbox_event_task", recorder)
    return recorder


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    sent = []

    def fake_send_email(to_emails, subject, html_content=None, text_content=None, attachments=None, **kwargs):
        sent.append({
            "to": list(to_emails),
            "subject": subject,
            "html": html_content,
            "attachments": list(attachments or []),
        })
        return True

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


# ===== USUARIOS =====

def _create_user(db, name, email, role, **extra):
    user = User(
        name=name,
        email=email,
        password="not-a-real-hash",
        role=role,
        is_active=True,
        **extra
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(db_session):
    return _create_user(db_session, "Ana Admin", "admin@mesa360.co", UserRole.ADMIN)


@pytest.fixture
def cashier_user(db_session):
    return _create_user(db_session, "Carlos Cajero", "cajero@mesa360.co", UserRole.CASHIER)


@pytest.fixture
def customer_user(db_session):
    return _create_user(
        db_session, "Clara Cliente", "cliente@mesa360.co", UserRole.CUSTOMER,
        phone="3001234567", nit="1020304050"
    )


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def cashier_headers(cashier_user):
    return auth_headers(cashier_user)


@pytest.fixture
def customer_headers(customer_user):
    return auth_headers(customer_user)


# ===== CATÁLOGO =====

@pytest.fixture
def inc_tax(db_session):
    tax = Tax(name="INC 8%", code="04", rate=Decimal("8"), type=TaxType.INC, regimen="REGIMEN_COMUN")
    db_session.add(tax)
    db_session.commit()
    db_session.refresh(tax)
    return tax


@pytest.fixture
def plain_product(db_session):
    """Producto sin impuesto, precio 50000, stock 10"""
    product = Product(name="Bandeja paisa", price=Decimal("50000"), quantity=10, alert_min_stock=2)
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def taxed_product(db_session, inc_tax):
    """Producto con INC 8%, precio 10000"""
    product = Product(
        name="Limonada", price=Decimal("10000"), quantity=5, alert_min_stock=3, tax_id=inc_tax.id
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def cash_method(db_session):
    method = PaymentMethod(name="Efectivo", category=PaymentCategory.EFECTIVO, status=PaymentMethodStatus.ACTIVO)
    db_session.add(method)
    db_session.commit()
    db_session.refresh(method)
    return method


@pytest.fixture
def card_method(db_session):
    method = PaymentMethod(name="Tarjeta crédito", category=PaymentCategory.DATAFONO, status=PaymentMethodStatus.ACTIVO)
    db_session.add(method)
    db_session.commit()
    db_session.refresh(method)
    return method


@pytest.fixture
def table_one(db_session):
    table = Table(number=1, capacity=4)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def table_two(db_session):
    table = Table(number=2, capacity=2)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def headers_for():
    """Encabezados de autenticación para un usuario creado en el test"""
    return auth_headers
