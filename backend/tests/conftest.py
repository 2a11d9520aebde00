"""
Pytest fixtures for Gestão Pro backend tests.

Provides test database setup, two independent owners for isolation tests,
product/customer factories and a test client.
"""

from decimal import Decimal

import pytest
from gestao import create_app
from gestao.config import TestConfig
from gestao.extensions import db
from gestao.models import Category, Customer, Product
from gestao.services.auth_service import register_user

PASSWORD = "segredo1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def owner(db_session):
    """Owner A: the account most tests act as."""
    return register_user(
        email="maria@loja.com",
        password=PASSWORD,
        full_name="Maria Souza",
        business_name="Loja da Maria",
    )


@pytest.fixture(scope='function')
def other_owner(db_session):
    """Owner B: a second, unrelated account."""
    return register_user(
        email="joao@mercado.com",
        password=PASSWORD,
        full_name="João Lima",
    )


@pytest.fixture(scope='function')
def make_product(db_session, owner):
    """Factory: make_product(name, stock=10, sale_price="5.00", ...)."""
    def _make(
        name="Produto A",
        stock="10",
        sale_price="5.00",
        cost_price="2.00",
        min_stock=None,
        user=None,
        category=None,
    ):
        product = Product(
            user_id=(user or owner).id,
            name=name,
            cost_price=Decimal(cost_price),
            sale_price=Decimal(sale_price),
            stock_quantity=Decimal(stock),
            min_stock_quantity=Decimal(min_stock) if min_stock is not None else None,
            category_id=category.id if category is not None else None,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_category(db_session, owner):
    def _make(name="Bebidas", user=None):
        category = Category(user_id=(user or owner).id, name=name, name_key=name.lower())
        db_session.add(category)
        db_session.commit()
        return category
    return _make


@pytest.fixture(scope='function')
def customer(db_session, owner):
    customer = Customer(user_id=owner.id, name="Ana Cliente", email="ana@cliente.com", phone="11999990000")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, owner.email, PASSWORD))


@pytest.fixture(scope='function')
def other_headers(client, other_owner):
    return auth_headers(get_auth_token(client, other_owner.email, PASSWORD))


def stock_of(product_id: int) -> Decimal:
    """Fresh stock_quantity straight from the database."""
    db.session.expire_all()
    return Decimal(db.session.get(Product, product_id).stock_quantity)


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get an access token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('access_token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
