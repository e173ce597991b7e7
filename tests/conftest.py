import pytest
from decimal import Decimal
import uuid

from stockledger import create_app, database
from stockledger.database import get_session
from stockledger.models import (
    Product, Customer, Supplier, CashAccount, MovementKind, DocumentType
)
from stockledger.services import cash_service, movement_store


@pytest.fixture(scope='function')
def app(tmp_path):
    """Application bound to a throwaway SQLite file (one per test)."""
    app = create_app('config.Config', test_config={
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.db'}",
        'SQLALCHEMY_ECHO': False,
        'CACHE_ENABLED': False,
        'ALLOW_NEGATIVE_STOCK': False,
        'ALLOW_NEGATIVE_CASH': False,
        'CONCURRENCY_RETRIES': 3,
    })
    with app.app_context():
        database.create_all()
        session = get_session()
        cash_service.ensure_default_accounts(session)
        session.commit()
        yield app
        database.db_session.remove()
        database.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def make_product(session):
    """Factory: product with an OPENING movement for its initial stock."""
    def _make(name=None, sale_price='100.00', cost='60.00', tax_rate='0', stock=10, min_stock_qty=0):
        suffix = str(uuid.uuid4())[:8]
        product = Product(
            name=name or f'Product {suffix}',
            sku=f'SKU-{suffix}',
            sale_price=Decimal(sale_price),
            cost=Decimal(cost),
            tax_rate=Decimal(tax_rate),
            min_stock_qty=min_stock_qty,
            active=True
        )
        session.add(product)
        session.flush()
        if stock:
            movement_store.record(
                session, product.id, stock, MovementKind.OPENING,
                unit_cost=product.cost, reference_type=DocumentType.OPENING, notes='Opening stock',
            )
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def widget(make_product):
    """Price 100, cost 60, no tax, 10 on hand."""
    return make_product(name='Widget', sale_price='100.00', cost='60.00', stock=10)


@pytest.fixture(scope='function')
def gadget(make_product):
    """Price 50, cost 30, 10% tax, 5 on hand."""
    return make_product(name='Gadget', sale_price='50.00', cost='30.00', tax_rate='10', stock=5)


@pytest.fixture(scope='function')
def make_customer(session):
    def _make(name='Customer', opening_balance='0', is_walk_in=False):
        customer = Customer(name=name, opening_balance=Decimal(opening_balance), is_walk_in=is_walk_in)
        session.add(customer)
        session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def customer(make_customer):
    return make_customer(name='Regular Customer')


@pytest.fixture(scope='function')
def walk_in(make_customer):
    return make_customer(name='Walk-in', is_walk_in=True)


@pytest.fixture(scope='function')
def supplier(session):
    supplier = Supplier(name='Main Supplier', opening_balance=Decimal('0'))
    session.add(supplier)
    session.commit()
    return supplier


@pytest.fixture(scope='function')
def set_cash(session):
    """Set the opening balance of a cash account."""
    def _set(amount, code=cash_service.CASH_IN_HAND):
        account = session.query(CashAccount).filter(CashAccount.code == code).one()
        account.opening_balance = Decimal(str(amount))
        session.commit()
        return account
    return _set
