"""
Pytest fixtures for NexaERP backend tests.

Provides the application on an in-memory database, a per-test wipe, one user
per role with ready-made auth headers, and product/sale factories.
"""

import pytest

from nexa import create_app
from nexa.extensions import db
from nexa.models import CompanySettings, Product
from nexa.services import auth_service, sales_service, session_service

PASSWORD = "Passw0rd!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'FISCAL_MODE': 'sandbox',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test; the schema is kept."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions.pop("fiscal_gateway", None)

        yield db.session

        db.session.rollback()


def _make_user(role: str):
    return auth_service.create_user(
        username=role,
        email=f"{role}@nexa.test",
        password=PASSWORD,
        full_name=role.title(),
        roles=[role],
        hash_rounds=4,
    )


@pytest.fixture
def admin(db_session):
    return _make_user("admin")


@pytest.fixture
def manager(db_session):
    return _make_user("manager")


@pytest.fixture
def cashier(db_session):
    return _make_user("cashier")


@pytest.fixture
def seller(db_session):
    return _make_user("seller")


def auth_headers(user) -> dict:
    """Bearer headers for a fresh session of the user."""
    _, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture
def cashier_headers(cashier):
    return auth_headers(cashier)


@pytest.fixture
def seller_headers(seller):
    return auth_headers(seller)


@pytest.fixture
def company(db_session):
    settings = CompanySettings(
        company_name="Mercado Exemplo LTDA",
        trade_name="Mercado Exemplo",
        cnpj="12345678000195",
        address_street="Rua das Flores",
        address_number="100",
        address_city="Sao Paulo",
        address_state="SP",
        phone="1133334444",
    )
    db_session.add(settings)
    db_session.commit()
    return settings


@pytest.fixture
def make_product(db_session):
    """Factory: make_product(name, price_cents, stock_qty, **extra)."""
    def _make(name="Produto", price_cents=1000, stock_qty=10, **extra):
        product = Product(name=name, price_cents=price_cents, stock_qty=stock_qty, **extra)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def make_sale(make_product):
    """Factory: a finalized sale of one product, for fiscal and receipt tests."""
    def _make(user, quantity=1, price_cents=1500, payment_method="pix", **extra):
        product = make_product(name="Cafe 500g", price_cents=price_cents, stock_qty=quantity + 5)
        result = sales_service.finalize_sale(
            user_id=user.id,
            items=[{"product_id": product.id, "quantity": quantity}],
            payment_method=payment_method,
            **extra,
        )
        return result.sale
    return _make
