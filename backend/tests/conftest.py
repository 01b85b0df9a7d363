"""
Pytest fixtures for POS core tests.

Provides the application on an in-memory database, a per-test clean schema,
default cash/bank accounts and an item factory.
"""

import pytest
from poscore import create_app
from poscore.extensions import db
from poscore.models import Item, CashBankAccount


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'POS_RETRY_BACKOFF_SECONDS': 0,
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
def cash_account(db_session):
    """Default CASH account (till)."""
    account = CashBankAccount(name="Cash Drawer", account_type="CASH", balance_cents=0)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def bank_account(db_session):
    """Default BANK account (card/UPI settlements)."""
    account = CashBankAccount(name="Main Bank", account_type="BANK", balance_cents=0)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory for catalog items."""
    def _make(sku, stock_qty=10, selling_price_cents=100, name=None, cost_price_cents=60, **kwargs):
        item = Item(
            sku=sku,
            name=name or f"Item {sku}",
            category=kwargs.pop("category", "General"),
            cost_price_cents=cost_price_cents,
            selling_price_cents=selling_price_cents,
            stock_qty=stock_qty,
            **kwargs,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def scanned_item(make_item):
    """The item from the scan-twice-then-finalize scenario."""
    return make_item("12345678", stock_qty=10, selling_price_cents=100, name="USB Cable")


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Committed stock for a SKU, bypassing the identity map."""
    def _stock(sku: str) -> int:
        return db_session.query(Item.stock_qty).filter(Item.sku == sku).scalar()
    return _stock


@pytest.fixture(scope='function')
def balance_of(db_session):
    def _balance(account_id: int) -> int:
        return db_session.query(CashBankAccount.balance_cents).filter(CashBankAccount.id == account_id).scalar()
    return _balance
