from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ecommerce_store.db.config import StoreSettings
from ecommerce_store.db.models import Address, Customer, Order, Product
from ecommerce_store.db.session import create_store_engine, init_store


@pytest.fixture
def engine():
    """In-memory SQLite store with foreign keys and order-total triggers installed."""
    settings = StoreSettings(database_url="sqlite://")
    engine = create_store_engine(settings, poolclass=StaticPool)
    init_store(engine, settings)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def customer(db):
    customer = Customer(
        email="ada@example.com",
        password_hash="not-a-real-hash",
        first_name="Ada",
        last_name="Lovelace",
    )
    customer.addresses.append(Address(label="Home", line1="12 St James's Square", city="London", country="UK"))
    customer.addresses.append(Address(label="Work", line1="1 Analytical Way", city="London", country="UK"))
    db.add(customer)
    db.commit()
    return customer


@pytest.fixture
def address(customer):
    return customer.addresses[0]


@pytest.fixture
def products(db):
    items = [
        Product(sku="TT-1200", name="Turntable", price=Decimal("19.99")),
        Product(sku="HP-300", name="Headphones", price=Decimal("5.00")),
    ]
    db.add_all(items)
    db.commit()
    return items


@pytest.fixture
def make_order(db, customer, address):
    def _make(**kwargs):
        order = Order(customer_id=customer.id, shipping_address_id=address.id, **kwargs)
        db.add(order)
        db.commit()
        return order

    return _make


def total_of(db, order):
    """Reload an order's cached total from the database."""
    db.refresh(order)
    return order.total_amount
