"""
Concurrent confirmations against the same product, customer and cash account.
"""

import threading
from decimal import Decimal

from stockledger import database
from stockledger.exceptions import InsufficientStockError, InsufficientCashError
from stockledger.models import Sale, Supplier, PartyType
from stockledger.services import cash_service, movement_store, party_ledger
from stockledger.services.payment_service import record_supplier_payment
from stockledger.services.sales_service import create_sale


def _run_concurrently(target, count):
    """Start ``count`` threads on ``target`` together; collect results and errors."""
    barrier = threading.Barrier(count)
    results, errors = [], []
    guard = threading.Lock()

    def worker():
        session = database.db_session()
        try:
            barrier.wait()
            outcome = target(session)
            with guard:
                results.append(outcome)
        except Exception as e:
            with guard:
                errors.append(e)
        finally:
            database.db_session.remove()

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


def test_only_one_of_two_oversized_sales_commits(session, widget):
    widget_id = widget.id

    results, errors = _run_concurrently(
        lambda s: create_sale(s, [{'product_id': widget_id, 'qty': 6}], cash_received=600)['sale'].id,
        2,
    )

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStockError)
    assert movement_store.current_stock(session, widget_id) == 4
    assert session.query(Sale).count() == 1


def test_many_small_sales_never_oversell(session, widget):
    widget_id = widget.id

    results, errors = _run_concurrently(
        lambda s: create_sale(s, [{'product_id': widget_id, 'qty': 1}], cash_received=100)['sale'].invoice_no,
        15,
    )

    assert len(results) == 10
    assert all(isinstance(e, InsufficientStockError) for e in errors)
    assert len(set(results)) == 10
    assert movement_store.current_stock(session, widget_id) == 0
    assert cash_service.balance(session, cash_service.CASH_IN_HAND) == Decimal('1000.00')


def test_concurrent_credit_sales_keep_balance(session, make_product, customer):
    product_id = make_product(stock=100).id
    customer_id = customer.id

    results, errors = _run_concurrently(
        lambda s: create_sale(
            s, [{'product_id': product_id, 'qty': 1}], customer_id=customer_id, payment_mode='CREDIT'
        ),
        8,
    )

    assert errors == []
    assert party_ledger.running_balance(session, PartyType.CUSTOMER, customer_id) == Decimal('800.00')


def test_concurrent_payments_do_not_overdraw(session, set_cash):
    set_cash(300)
    supplier = Supplier(name='Concurrent Supplier', opening_balance=Decimal('1000'))
    session.add(supplier)
    session.commit()
    supplier_id = supplier.id

    results, errors = _run_concurrently(lambda s: record_supplier_payment(s, supplier_id, 200), 2)

    assert len(results) == 1
    assert isinstance(errors[0], InsufficientCashError)
    assert cash_service.balance(session, cash_service.CASH_IN_HAND) == Decimal('100.00')
