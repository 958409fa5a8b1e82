"""
Shared test fixtures for the Quick Shop service.
"""
import os

# Must be set before any application module reads config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PROFILING_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from database import Database
from models import Product, UserRole
from schemas import BuyerInfo, LineItem
from services.account_service import AccountService
from services.catalog_service import CatalogService
from services.order_service import OrderService


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.open()
    database.create_schema()
    yield database
    database.close()


@pytest.fixture
def file_database(tmp_path):
    """A database file shared by several sessions, for races between writers."""
    database = Database(f"sqlite:///{tmp_path / 'quickshop.db'}")
    database.open()
    database.create_schema()
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def accounts():
    return AccountService()


@pytest.fixture
def catalog():
    return CatalogService()


@pytest.fixture
def orders(catalog, accounts):
    return OrderService(catalog, accounts)


@pytest.fixture
def seller(db, accounts):
    return accounts.create_user(db, "seller-one", role=UserRole.SELLER)


@pytest.fixture
def other_seller(db, accounts):
    return accounts.create_user(db, "seller-two", role=UserRole.SELLER)


@pytest.fixture
def customer(db, accounts):
    return accounts.create_user(db, "customer-one", role=UserRole.CUSTOMER)


@pytest.fixture
def other_customer(db, accounts):
    return accounts.create_user(db, "customer-two", role=UserRole.CUSTOMER)


@pytest.fixture
def make_product(db, seller):
    """Insert a product directly; returns its id."""
    def _make(stock, name="Classic Tee", price="10.00", sizes=None, seller_id=None):
        product = Product(
            seller_id=seller.id if seller_id is None else seller_id,
            name=name,
            price=Decimal(price),
            stock=stock,
            sizes=sizes or [],
            image_url="https://img.example/tee.jpg",
            description="Soft cotton t-shirt"
        )
        db.add(product)
        db.commit()
        return product.id
    return _make


@pytest.fixture
def buyer():
    """Buyer details factory; pass a customer id or None for a guest."""
    def _buyer(customer_id=None):
        return BuyerInfo(
            full_name="Ada Buyer",
            address="1 Market Street",
            phone="555-0100",
            payment_method="cash",
            customer_id=customer_id
        )
    return _buyer


@pytest.fixture
def line():
    def _line(product_id, quantity, size=None):
        return LineItem(product_id=product_id, quantity=quantity, size=size)
    return _line


@pytest.fixture
def client():
    from main import app

    with TestClient(app) as test_client:
        yield test_client
