"""
Pytest fixtures for BMS backend tests.

Provides test database setup, tenant fixtures (two companies with users in
every role), and helpers for logging in through the API.
"""

from datetime import timedelta

import pytest

from bms import create_app
from bms.cache import InMemoryTTLCache
from bms.config import TestingConfig
from bms.extensions import db
from bms.models import Company, Customer, Item
from bms.permissions import Role
from bms.services import invoice_service
from bms.services.auth_service import create_user
from bms.time_utils import utctoday


PASSWORD = "Password123!"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope='session')
def clock():
    return FakeClock()


@pytest.fixture(scope='session')
def app(clock):
    """Create application for testing with an injected cache."""
    app = create_app(TestingConfig, cache=InMemoryTTLCache(default_ttl=300, max_entries=1000, clock=clock))

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def cache(app):
    return app.extensions["bms_cache"]


@pytest.fixture(scope='function')
def db_session(app, cache):
    """Fresh data (and an empty cache) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        cache.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# TENANTS AND USERS
# =============================================================================

@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant)."""
    company = Company(name="Acme Ltd", email="office@acme.test", invoice_prefix="INV", receipt_prefix="REC")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant), same prefixes as A on purpose."""
    company = Company(name="Beta Inc", email="office@beta.test", invoice_prefix="INV", receipt_prefix="REC")
    db_session.add(company)
    db_session.commit()
    return company


def make_user(role: Role, email: str, company_id: int | None):
    return create_user(name=email.split("@")[0], email=email, password=PASSWORD,
                       role=role.value, company_id=company_id)


@pytest.fixture(scope='function')
def super_admin(db_session):
    return make_user(Role.SUPER_ADMIN, "root@platform.test", None)


@pytest.fixture(scope='function')
def company_admin_a(db_session, company_a):
    return make_user(Role.COMPANY_ADMIN, "owner@acme.test", company_a.id)


@pytest.fixture(scope='function')
def admin_a(db_session, company_a):
    return make_user(Role.ADMIN, "admin@acme.test", company_a.id)


@pytest.fixture(scope='function')
def accountant_a(db_session, company_a):
    return make_user(Role.ACCOUNTANT, "books@acme.test", company_a.id)


@pytest.fixture(scope='function')
def staff_a(db_session, company_a):
    return make_user(Role.STAFF, "clerk@acme.test", company_a.id)


@pytest.fixture(scope='function')
def admin_b(db_session, company_b):
    return make_user(Role.ADMIN, "admin@beta.test", company_b.id)


# =============================================================================
# CATALOG
# =============================================================================

@pytest.fixture(scope='function')
def customer_a(db_session, company_a):
    customer = Customer(company_id=company_a.id, full_name="Alice Buyer", phone="555-0100")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, company_b):
    customer = Customer(company_id=company_b.id, full_name="Bob Buyer")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def item_a(db_session, company_a):
    item = Item(company_id=company_a.id, name="Consulting hour", item_type="service", selling_price_cents=5000)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session, company_b):
    item = Item(company_id=company_b.id, name="Widget", selling_price_cents=2500)
    db_session.add(item)
    db_session.commit()
    return item


# =============================================================================
# HELPERS
# =============================================================================

def invoice_payload(customer, item, *, quantity=2, rate_cents=None, days_until_due=30, **extra) -> dict:
    """Valid invoice payload; total = quantity * rate (item price by default)."""
    today = utctoday()
    line = {"item_id": item.id, "quantity": quantity}
    if rate_cents is not None:
        line["rate_cents"] = rate_cents
    payload = {
        "customer_id": customer.id,
        "invoice_date": today.isoformat(),
        "due_date": (today + timedelta(days=days_until_due)).isoformat(),
        "lines": [line],
    }
    payload.update(extra)
    return payload


def make_invoice(company, user, customer, item, **kwargs):
    """Create an invoice through the service layer (payload validated first)."""
    data = invoice_service.validate_invoice_payload(invoice_payload(customer, item, **kwargs), partial=False)
    return invoice_service.create_invoice(company.id, user.id, data)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str, company_id: int | None = None) -> dict:
    """Helper to create Authorization headers (plus X-Company-ID for super_admin)."""
    headers = {'Authorization': f'Bearer {token}'}
    if company_id is not None:
        headers['X-Company-ID'] = str(company_id)
    return headers


def login_headers(client, user, company_id: int | None = None) -> dict:
    return auth_headers(get_auth_token(client, user.email), company_id)
