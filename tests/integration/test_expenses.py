"""
Integration tests for expenses and transfers between cash accounts.
"""

import pytest
from decimal import Decimal

from stockledger.exceptions import ValidationError, InsufficientCashError, AlreadyRevertedError
from stockledger.models import Expense, CashTransfer, CashPosting, DocumentStatus, DocumentType
from stockledger.services import cash_service
from stockledger.services.expense_service import record_expense, transfer_funds, list_expenses
from stockledger.services.reversal_service import delete_document


def _cash(session):
    return cash_service.balance(session, cash_service.CASH_IN_HAND)


def _bank(session):
    return cash_service.balance(session, cash_service.BANK)


class TestExpense:

    def test_cash_expense_reduces_drawer(self, session, set_cash):
        set_cash(500)

        result = record_expense(session, '120.50', category='Rent', description='October rent')

        expense = result['expense']
        assert expense.category == 'Rent'
        assert expense.status == DocumentStatus.COMPLETED
        assert result['account_balance'] == Decimal('379.50')
        assert _cash(session) == Decimal('379.50')
        posting = session.query(CashPosting).one()
        assert posting.reference_type == DocumentType.EXPENSE
        assert posting.reference_id == expense.id

    def test_bank_expense(self, session, set_cash):
        set_cash(300, cash_service.BANK)

        record_expense(session, 100, payment_mode='bank', category='Utilities')

        assert _bank(session) == Decimal('200.00')
        assert _cash(session) == Decimal('0.00')

    def test_expense_needs_funds(self, session, set_cash):
        set_cash(50)

        with pytest.raises(InsufficientCashError):
            record_expense(session, 80)

        assert session.query(Expense).count() == 0
        assert _cash(session) == Decimal('50.00')

    def test_expense_cannot_be_on_credit(self, session, set_cash):
        set_cash(100)

        with pytest.raises(ValidationError):
            record_expense(session, 10, payment_mode='CREDIT')

    @pytest.mark.parametrize('amount', [0, -1, 'ten'])
    def test_amount_must_be_positive(self, session, amount):
        with pytest.raises(ValidationError):
            record_expense(session, amount)

    def test_reverting_an_expense_puts_money_back(self, session, set_cash):
        set_cash(500)
        expense_id = record_expense(session, 200, category='Wages')['expense'].id

        result = delete_document(session, 'EXPENSE', expense_id)

        assert result['reversed_postings'] == 1
        assert _cash(session) == Decimal('500.00')
        assert session.get(Expense, expense_id).status == DocumentStatus.CANCELLED
        assert list_expenses(session) == []
        assert len(list_expenses(session, include_cancelled=True)) == 1
        with pytest.raises(AlreadyRevertedError):
            delete_document(session, 'EXPENSE', expense_id)


class TestTransfer:

    def test_deposit_moves_money_between_accounts(self, session, set_cash):
        set_cash(1000)

        result = transfer_funds(session, cash_service.CASH_IN_HAND, cash_service.BANK, 700, description='Deposit')

        assert result['balances'] == {
            cash_service.CASH_IN_HAND: Decimal('300.00'),
            cash_service.BANK: Decimal('700.00'),
        }
        assert _cash(session) + _bank(session) == Decimal('1000.00')

    def test_transfer_needs_funds_in_source(self, session, set_cash):
        set_cash(100)

        with pytest.raises(InsufficientCashError):
            transfer_funds(session, cash_service.CASH_IN_HAND, cash_service.BANK, 150)

        assert session.query(CashTransfer).count() == 0
        assert _bank(session) == Decimal('0.00')

    def test_same_or_unknown_account(self, session, set_cash):
        set_cash(100)

        with pytest.raises(ValidationError):
            transfer_funds(session, cash_service.CASH_IN_HAND, cash_service.CASH_IN_HAND, 10)
        with pytest.raises(ValidationError):
            transfer_funds(session, cash_service.CASH_IN_HAND, 'PETTY_CASH', 10)

    def test_revert_transfer(self, session, set_cash):
        set_cash(400)
        transfer_id = transfer_funds(session, cash_service.CASH_IN_HAND, cash_service.BANK, 250)['transfer'].id

        delete_document(session, 'TRANSFER', transfer_id)

        assert _cash(session) == Decimal('400.00')
        assert _bank(session) == Decimal('0.00')
        assert session.get(CashTransfer, transfer_id).status == DocumentStatus.CANCELLED

    def test_revert_needs_money_still_in_target(self, session, set_cash):
        set_cash(400)
        transfer_id = transfer_funds(session, cash_service.CASH_IN_HAND, cash_service.BANK, 250)['transfer'].id
        record_expense(session, 200, payment_mode='BANK')

        with pytest.raises(InsufficientCashError):
            delete_document(session, 'TRANSFER', transfer_id)

        assert _bank(session) == Decimal('50.00')
        assert session.get(CashTransfer, transfer_id).status == DocumentStatus.COMPLETED


class TestExpensesApi:

    def test_expense_and_transfer_routes(self, client, set_cash):
        set_cash(600)

        response = client.post('/expenses', json={'amount': 100, 'category': 'Supplies'})
        assert response.status_code == 201
        expense_id = response.get_json()['expense']['id']
        assert response.get_json()['account_balance'] == '500.00'

        assert [e['id'] for e in client.get('/expenses').get_json()['expenses']] == [expense_id]
        assert client.get(f'/expenses/{expense_id}').get_json()['expense']['category'] == 'Supplies'

        response = client.post('/cash-accounts/transfers', json={
            'from_account': 'CASH_IN_HAND', 'to_account': 'BANK', 'amount': 300,
        })
        assert response.status_code == 201
        transfer_id = response.get_json()['transfer']['id']
        assert response.get_json()['balances'] == {'CASH_IN_HAND': '200.00', 'BANK': '300.00'}

        assert client.delete(f'/cash-accounts/transfers/{transfer_id}').status_code == 200
        assert client.delete(f'/expenses/{expense_id}').status_code == 200

        accounts = {a['code']: a['balance'] for a in client.get('/cash-accounts').get_json()['accounts']}
        assert accounts == {'CASH_IN_HAND': '600.00', 'BANK': '0.00'}

    def test_expense_without_cash_is_409(self, client):
        response = client.post('/expenses', json={'amount': 10})

        assert response.status_code == 409
        assert response.get_json()['error'] == 'InsufficientCashError'
