"""
Pytest fixtures for ledgerpos backend tests.

Provides an in-memory test database, two tenants with their stores and
operators, a few products, and a test client with store-context headers.
"""

import pytest
from ledgerpos import create_app
from ledgerpos.extensions import db
from ledgerpos.models import Tenant, Store, User, Product, StockMovement, MOVEMENT_RECEIVE


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEMO_SEED_ENABLED': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first tenant)."""
    tenant = Tenant(name="Tenant A - Acme Corp", code="ACME", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second tenant)."""
    tenant = Tenant(name="Tenant B - Beta Inc", code="BETA", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def store_a(db_session, tenant_a):
    """Create Store A in Tenant A."""
    store = Store(tenant_id=tenant_a.id, name="Store A1", code="A1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_a2(db_session, tenant_a):
    """Second store of Tenant A."""
    store = Store(tenant_id=tenant_a.id, name="Store A2", code="A2")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session, tenant_b):
    """Create Store B in Tenant B."""
    store = Store(tenant_id=tenant_b.id, name="Store B1", code="B1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def user_a(db_session, tenant_a, store_a):
    """Operator of Tenant A."""
    user = User(
        tenant_id=tenant_a.id,
        store_id=store_a.id,
        email="cashier_a@acme.com",
        name="Cashier A",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_b(db_session, tenant_b, store_b):
    """Operator of Tenant B."""
    user = User(
        tenant_id=tenant_b.id,
        store_id=store_b.id,
        email="cashier_b@beta.com",
        name="Cashier B",
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_product(db_session, store, *, name, price_cents=0, sku=None, barcode=None, reorder_level=0):
    product = Product(
        store_id=store.id,
        sku=sku,
        barcode=barcode,
        name=name,
        price_cents=price_cents,
        reorder_level=reorder_level,
    )
    db_session.add(product)
    db_session.commit()
    return product


def receive(db_session, product, quantity, *, reference=None):
    """Put stock on the ledger directly (test setup only)."""
    db_session.add(StockMovement(
        store_id=product.store_id,
        product_id=product.id,
        kind=MOVEMENT_RECEIVE,
        quantity_delta=quantity,
        reference=reference,
    ))
    db_session.commit()


@pytest.fixture(scope='function')
def product_a(db_session, store_a):
    """Water in Store A at 6.00."""
    return make_product(db_session, store_a, name="Mineral Water 500ml", sku="BEV-WATER-500",
                        barcode="6001000000011", price_cents=600, reorder_level=5)


@pytest.fixture(scope='function')
def product_a2(db_session, store_a):
    """Soda in Store A at 9.00."""
    return make_product(db_session, store_a, name="Cola Soda 330ml", sku="BEV-SODA-330",
                        barcode="6001000000028", price_cents=900)


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    """Product in Store B."""
    return make_product(db_session, store_b, name="Product B", sku="PROD-B-001", price_cents=2000)


def store_headers(user, store) -> dict:
    """Gateway headers carrying the acting user and store."""
    return {'X-User-Id': str(user.id), 'X-Store-Id': str(store.id)}


def fail_on_call(func, call_number, exc):
    """Wrap a keyword-only service function so its ``call_number``-th call raises ``exc``."""
    calls = []

    def wrapper(**kwargs):
        calls.append(kwargs)
        if len(calls) == call_number:
            raise exc
        return func(**kwargs)

    return wrapper
