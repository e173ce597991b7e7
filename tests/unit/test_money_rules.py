"""
Unit tests for number parsing, payment split and cost averaging.
"""

import pytest
from decimal import Decimal

from stockledger.exceptions import ValidationError, InsufficientStockError
from stockledger.services.sales_service import split_payment, normalize_items, parse_payment_mode
from stockledger.services.valuation_service import weighted_average_cost, calculate_profit
from stockledger.models import PaymentMode
from stockledger.utils.number_format import money, parse_qty, parse_id


class TestNumberFormat:

    def test_money_rounds_half_up(self):
        assert money('2.345') == Decimal('2.35')
        assert money(0.1) == Decimal('0.10')

    def test_invalid_amount(self):
        with pytest.raises(ValidationError):
            money('twelve')

    def test_parse_qty(self):
        assert parse_qty('3') == 3
        assert parse_qty(Decimal('4.0')) == 4
        with pytest.raises(ValidationError):
            parse_qty(True)
        with pytest.raises(ValidationError):
            parse_qty('2.5')

    def test_parse_id(self):
        assert parse_id('7') == 7
        assert parse_id(12) == 12

    @pytest.mark.parametrize('value', [None, '', 'abc', 0, -3, 1.5, True])
    def test_invalid_id_names_the_field(self, value):
        with pytest.raises(ValidationError) as exc:
            parse_id(value, 'customer_id')
        assert 'customer_id' in exc.value.message


class TestSplitPayment:

    def test_excess_settles_prior_balance_then_change(self):
        split = split_payment(Decimal('300'), Decimal('1000'), Decimal('500'))

        assert split['paid'] == Decimal('300')
        assert split['due'] == Decimal('0')
        assert split['collected'] == Decimal('500')
        assert split['change'] == Decimal('200')

    def test_short_payment_leaves_due(self):
        split = split_payment(Decimal('300'), Decimal('100'), Decimal('0'))

        assert split['paid'] == Decimal('100')
        assert split['due'] == Decimal('200')
        assert split['change'] == Decimal('0')

    def test_walk_in_gets_all_excess_as_change(self):
        split = split_payment(Decimal('300'), Decimal('500'), None)

        assert split['collected'] == Decimal('0')
        assert split['change'] == Decimal('200')

    def test_credit_balance_is_not_collected(self):
        split = split_payment(Decimal('300'), Decimal('400'), Decimal('-50'))

        assert split['collected'] == Decimal('0')
        assert split['change'] == Decimal('100')


class TestCartInput:

    def test_normalize_items(self):
        items = normalize_items([{'product_id': '5', 'qty': '2'}])

        assert items == [{'product_id': 5, 'qty': 2}]

    @pytest.mark.parametrize('items', [[], [{'qty': 1}], [{'product_id': 1, 'qty': 0}]])
    def test_rejects_bad_items(self, items):
        with pytest.raises(ValidationError):
            normalize_items(items)

    def test_payment_mode(self):
        assert parse_payment_mode('credit') == PaymentMode.CREDIT
        with pytest.raises(ValidationError):
            parse_payment_mode('cheque')


class TestCosting:

    def test_weighted_average_cost(self):
        # 10 @ 60 + 10 @ 80 -> 70
        assert weighted_average_cost(10, '60', 10, '80') == Decimal('70.00')

    def test_negative_stock_takes_purchase_cost(self):
        assert weighted_average_cost(-3, '60', 5, '80') == Decimal('80.00')

    def test_calculate_profit(self):
        profit = calculate_profit('100', '60', 3)

        assert profit['profit'] == Decimal('120.00')
        assert profit['margin'] == Decimal('40.00')


def test_insufficient_stock_message_names_product():
    error = InsufficientStockError('Widget', 5, 3, product_id=1)

    assert 'Widget' in error.message
    assert error.to_dict()['available'] == '3'
    assert error.status_code == 409
