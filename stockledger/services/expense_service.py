"""
Expenses and transfers between cash accounts.

Both are cash-only documents: they write cash postings tagged with the
document ref and no stock movements or ledger entries, so the reversal
service reverts them like any other document.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from stockledger.exceptions import ValidationError, NotFoundError
from stockledger.models import Expense, CashTransfer, DocumentStatus, DocumentType, PaymentMode
from stockledger.services import cash_service
from stockledger.services.locking import ledger_transaction, retry_on_conflict, account_key
from stockledger.services.sales_service import parse_payment_mode
from stockledger.utils.number_format import money

logger = logging.getLogger(__name__)


def _positive_amount(amount) -> Decimal:
    amount = money(amount, 'amount')
    if amount <= 0:
        raise ValidationError('Amount must be greater than 0')
    return amount


@retry_on_conflict
def record_expense(
    session,
    amount,
    payment_mode='CASH',
    category: Optional[str] = None,
    description: Optional[str] = None,
    reference: Optional[str] = None,
    allow_negative_cash: bool = False,
    cash_account: str = cash_service.CASH_IN_HAND,
    bank_account: str = cash_service.BANK,
) -> Dict[str, Any]:
    """
    Pay an expense out of the cash drawer (CASH) or the bank (BANK).

    Raises:
        ValidationError: non-positive amount or CREDIT mode.
        InsufficientCashError: the account cannot cover the expense.
    """
    amount = _positive_amount(amount)
    mode = parse_payment_mode(payment_mode)
    if mode == PaymentMode.CREDIT:
        raise ValidationError('Expenses are paid in CASH or through the BANK')
    account_code = cash_service.account_for_mode(mode, cash_account, bank_account)

    with ledger_transaction(session, 'record expense', [account_key(account_code)]):
        account = cash_service.get_account(session, account_code, lock=True)
        cash_service.require_funds(session, account, amount, allow_negative_cash)

        expense = Expense(
            account_id=account.id,
            category=(category or '').strip() or None,
            amount=amount,
            payment_mode=mode,
            description=description,
            reference=reference,
            date=datetime.now(),
            status=DocumentStatus.COMPLETED,
        )
        session.add(expense)
        session.flush()
        cash_service.post(
            session, account, -amount,
            reference_type=DocumentType.EXPENSE, reference_id=expense.id,
            description=f'Expense #{expense.id}: {expense.category or description or "general"}',
        )
        new_balance = cash_service.balance(session, account.code)
        logger.info(f"[EXPENSE] #{expense.id} {amount} from {account.code} ({expense.category})")

    return {'expense': expense, 'account_balance': new_balance}


def list_expenses(session, include_cancelled: bool = False) -> List[Expense]:
    """Expenses, newest first."""
    query = session.query(Expense)
    if not include_cancelled:
        query = query.filter(Expense.status == DocumentStatus.COMPLETED)
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


def get_expense(session, expense_id: int) -> Expense:
    expense = session.query(Expense).filter(Expense.id == expense_id).first()
    if not expense:
        raise NotFoundError(f'Expense #{expense_id} not found')
    return expense


@retry_on_conflict
def transfer_funds(
    session,
    from_account: str,
    to_account: str,
    amount,
    description: Optional[str] = None,
    allow_negative_cash: bool = False,
) -> Dict[str, Any]:
    """
    Move money between two accounts (e.g. deposit the drawer in the bank).

    Writes one negative posting on ``from_account`` and one positive on
    ``to_account``; the total across accounts is unchanged.

    Raises:
        ValidationError: same or unknown account, non-positive amount.
        InsufficientCashError: ``from_account`` cannot cover the amount.
    """
    amount = _positive_amount(amount)
    if not from_account or not to_account:
        raise ValidationError('Both from_account and to_account are required')
    if from_account == to_account:
        raise ValidationError('Cannot transfer to the same account')

    with ledger_transaction(session, 'transfer funds', [account_key(from_account), account_key(to_account)]):
        source = cash_service.get_account(session, from_account, lock=True)
        target = cash_service.get_account(session, to_account, lock=True)
        cash_service.require_funds(session, source, amount, allow_negative_cash)

        transfer = CashTransfer(
            from_account_id=source.id,
            to_account_id=target.id,
            amount=amount,
            description=description,
            date=datetime.now(),
            status=DocumentStatus.COMPLETED,
        )
        session.add(transfer)
        session.flush()
        label = f'Transfer #{transfer.id} {source.code} -> {target.code}'
        cash_service.post(session, source, -amount, reference_type=DocumentType.TRANSFER,
                          reference_id=transfer.id, description=label)
        cash_service.post(session, target, amount, reference_type=DocumentType.TRANSFER,
                          reference_id=transfer.id, description=label)
        balances = {
            source.code: cash_service.balance(session, source.code),
            target.code: cash_service.balance(session, target.code),
        }
        logger.info(f"[TRANSFER] {label}: {amount}")

    return {'transfer': transfer, 'balances': balances}
