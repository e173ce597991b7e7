"""
Integration tests for purchases, purchase returns and cost updates.
"""

import pytest
from decimal import Decimal

from stockledger.exceptions import ValidationError, InsufficientStockError, InsufficientCashError
from stockledger.models import Purchase, Supplier, Product, PartyType, CashPosting
from stockledger.services import cash_service, movement_store, party_ledger
from stockledger.services.purchase_service import create_purchase


@pytest.fixture
def funded(set_cash):
    return set_cash(10000)


class TestPurchase:

    def test_cash_purchase(self, session, widget, supplier, funded):
        result = create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 10, 'unit_price': 80}], cash_paid=800
        )

        purchase = result['purchase']
        assert purchase.invoice_no.startswith('PUR')
        assert purchase.total == Decimal('800.00')
        assert purchase.due == Decimal('0.00')
        assert movement_store.current_stock(session, widget.id) == 20
        assert cash_service.balance(session, cash_service.CASH_IN_HAND) == Decimal('9200.00')
        assert result['new_party_balance'] == Decimal('0.00')

    def test_weighted_average_cost_update(self, session, widget, supplier, funded):
        create_purchase(
            session, supplier.id,
            [{'product_id': widget.id, 'qty': 10, 'unit_price': 80, 'sale_price': 120}],
            cash_paid=800,
        )

        product = session.get(Product, widget.id)
        assert product.cost == Decimal('70.00')
        assert product.sale_price == Decimal('120.00')

    def test_partial_payment_debits_supplier(self, session, widget, supplier, funded):
        result = create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 5, 'unit_price': 60}], cash_paid=100
        )

        assert result['purchase'].due == Decimal('200.00')
        assert result['new_party_balance'] == Decimal('200.00')

    def test_credit_purchase_needs_no_cash(self, session, widget, supplier):
        result = create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 5}], payment_type='CREDIT'
        )

        assert result['purchase'].total == Decimal('300.00')
        assert result['new_party_balance'] == Decimal('300.00')
        assert session.query(CashPosting).count() == 0

    def test_overpayment_settles_prior_balance(self, session, widget, funded):
        supplier = Supplier(name='Owed Supplier', opening_balance=Decimal('150'))
        session.add(supplier)
        session.commit()

        result = create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 1, 'unit_price': 100}], cash_paid=250
        )

        assert result['purchase'].settled == Decimal('150.00')
        assert result['new_party_balance'] == Decimal('0.00')
        assert cash_service.balance(session, cash_service.CASH_IN_HAND) == Decimal('9750.00')

    def test_overpayment_beyond_balance_is_rejected(self, session, widget, supplier, funded):
        with pytest.raises(ValidationError):
            create_purchase(
                session, supplier.id, [{'product_id': widget.id, 'qty': 1, 'unit_price': 100}], cash_paid=200
            )

        assert session.query(Purchase).count() == 0

    def test_cash_outflow_is_gated(self, session, widget, supplier, set_cash):
        set_cash(100)

        with pytest.raises(InsufficientCashError):
            create_purchase(
                session, supplier.id, [{'product_id': widget.id, 'qty': 5, 'unit_price': 60}], cash_paid=300
            )

        assert movement_store.current_stock(session, widget.id) == 10

    def test_supplier_is_required(self, session, widget):
        with pytest.raises(ValidationError):
            create_purchase(session, None, [{'product_id': widget.id, 'qty': 1}])
        with pytest.raises(ValidationError):
            create_purchase(session, 424242, [{'product_id': widget.id, 'qty': 1}], payment_type='CREDIT')
        with pytest.raises(ValidationError) as exc:
            create_purchase(session, 'x', [{'product_id': widget.id, 'qty': 1}], payment_type='CREDIT')
        assert 'supplier_id' in exc.value.message

    def test_null_unit_price_uses_product_cost(self, session, widget, supplier):
        result = create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 2, 'unit_price': None}],
            payment_type='CREDIT',
        )

        assert result['purchase'].total == Decimal('120.00')

    def test_custom_invoice_number_must_be_unique(self, session, widget, supplier):
        create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 1}], payment_type='CREDIT',
            invoice_no='SUP-0001',
        )

        with pytest.raises(ValidationError):
            create_purchase(
                session, supplier.id, [{'product_id': widget.id, 'qty': 1}], payment_type='CREDIT',
                invoice_no='SUP-0001',
            )
        assert session.query(Purchase).count() == 1


class TestPurchaseReturn:

    def test_return_takes_stock_out_and_refunds_cash(self, session, widget, supplier):
        result = create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 4, 'unit_price': 60}], is_return=True
        )

        assert result['purchase'].is_return is True
        assert movement_store.current_stock(session, widget.id) == 6
        assert cash_service.balance(session, cash_service.CASH_IN_HAND) == Decimal('240.00')

    def test_return_cannot_exceed_stock(self, session, widget, supplier):
        with pytest.raises(InsufficientStockError):
            create_purchase(
                session, supplier.id, [{'product_id': widget.id, 'qty': 11}], is_return=True
            )

    def test_credit_return_reduces_payable(self, session, widget, supplier):
        create_purchase(session, supplier.id, [{'product_id': widget.id, 'qty': 5}], payment_type='CREDIT')

        result = create_purchase(
            session, supplier.id, [{'product_id': widget.id, 'qty': 2}], payment_type='CREDIT', is_return=True
        )

        assert result['new_party_balance'] == Decimal('180.00')
        assert party_ledger.running_balance(session, PartyType.SUPPLIER, supplier.id) == Decimal('180.00')
