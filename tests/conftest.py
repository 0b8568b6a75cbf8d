import pytest
from decimal import Decimal
import uuid

from orderdesk import create_app
from orderdesk.database import Base, create_tables, get_engine, get_session
from orderdesk.models import AppUser, Category, Customer, CustomerTier, Product


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    ctx = app.app_context()
    ctx.push()
    create_tables()
    yield app
    ctx.pop()


@pytest.fixture(autouse=True)
def _clean_tables(app):
    """Wipe every table after each test."""
    yield
    db_session = get_session()
    db_session.rollback()
    with get_engine().begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    db_session.remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    return get_session()


@pytest.fixture(scope='function')
def user(session):
    """Staff user acting on orders and stock."""
    user = AppUser(
        email=f'staff-{uuid.uuid4().hex[:8]}@test.com',
        full_name='Staff User',
        role='Admin',
        active=True
    )
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def authenticated_client(client, user):
    """Client logged in as the staff user."""
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
    return client


@pytest.fixture(scope='function')
def category(session):
    category = Category(name='Tarpaulin')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(session, category):
    """Factory for products. Stock is set directly, without ledger entries."""
    counter = {'n': 0}

    def _make_product(name=None, stock=10, price_retail='100', price_wholesale='80'):
        counter['n'] += 1
        product = Product(
            name=name or f'Product {counter["n"]}',
            category_id=category.id,
            price_retail=Decimal(price_retail),
            price_wholesale=Decimal(price_wholesale),
            stock=stock,
            sku=f'TEST-{counter["n"]:03d}',
            gsm=120,
        )
        session.add(product)
        session.commit()
        return product

    return _make_product


@pytest.fixture(scope='function')
def make_customer(session):
    """Factory for customers."""

    def _make_customer(name=None, tier=CustomerTier.RETAILER.value):
        suffix = uuid.uuid4().hex[:8]
        customer = Customer(
            name=name or f'Customer {suffix}',
            email=f'customer-{suffix}@test.com',
            phone='9800000000',
            tier=tier,
        )
        session.add(customer)
        session.commit()
        return customer

    return _make_customer


@pytest.fixture(scope='function')
def retailer(make_customer):
    return make_customer(name='Retail Shop', tier=CustomerTier.RETAILER.value)


@pytest.fixture(scope='function')
def wholesaler(make_customer):
    return make_customer(name='Wholesale House', tier=CustomerTier.WHOLESALER.value)
