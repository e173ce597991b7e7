"""Cash position tracker - balances of cash and bank accounts."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func

from stockledger.exceptions import ValidationError, NotFoundError, InsufficientCashError
from stockledger.models import CashAccount, CashPosting, DocumentType, PaymentMode
from stockledger.utils.number_format import money

logger = logging.getLogger(__name__)

CASH_IN_HAND = 'CASH_IN_HAND'
BANK = 'BANK'

DEFAULT_ACCOUNTS = {
    CASH_IN_HAND: 'Cash in Hand',
    BANK: 'Bank',
}


def ensure_default_accounts(session, opening_balances: Optional[dict] = None) -> List[CashAccount]:
    """Create the cash-in-hand and bank accounts when they do not exist yet."""
    opening_balances = opening_balances or {}
    accounts = []
    for code, name in DEFAULT_ACCOUNTS.items():
        account = session.query(CashAccount).filter(CashAccount.code == code).first()
        if not account:
            account = CashAccount(code=code, name=name, opening_balance=money(opening_balances.get(code, 0)))
            session.add(account)
            logger.info(f"[CASH] Created account {code}")
        accounts.append(account)
    session.flush()
    return accounts


def account_for_mode(payment_mode: PaymentMode, cash_account: str = CASH_IN_HAND,
                     bank_account: str = BANK) -> Optional[str]:
    """Account that a payment mode moves money through (None for credit)."""
    if payment_mode == PaymentMode.CASH:
        return cash_account
    if payment_mode == PaymentMode.BANK:
        return bank_account
    return None


def get_account(session, code: str, lock: bool = False, missing=ValidationError) -> CashAccount:
    query = session.query(CashAccount).filter(CashAccount.code == code)
    if lock:
        query = query.with_for_update()
    account = query.first()
    if not account:
        raise missing(f'Cash account {code} not found')
    return account


def balance(session, code: str) -> Decimal:
    """opening_balance + sum of postings."""
    account = get_account(session, code, missing=NotFoundError)
    return _balance_of(session, account)


def _balance_of(session, account: CashAccount) -> Decimal:
    session.flush()
    total = session.query(
        func.coalesce(func.sum(CashPosting.amount), 0)
    ).filter(CashPosting.account_id == account.id).scalar()
    return money(account.opening_balance or 0) + money(total or 0)


def require_funds(session, account: CashAccount, amount: Decimal, allow_negative: bool = False) -> Decimal:
    """
    Check that ``account`` can pay out ``amount``.

    Must run under the account lock, in the same transaction as the
    posting that debits it.
    """
    available = _balance_of(session, account)
    if not allow_negative and amount > available:
        logger.info(f"[CASH] Rejected: {account.code} required {amount}, available {available}")
        raise InsufficientCashError(account.code, amount, available)
    return available


def post(
    session,
    account: CashAccount,
    amount,
    reference_type: Optional[DocumentType] = None,
    reference_id: Optional[int] = None,
    description: Optional[str] = None,
    is_reversal: bool = False,
) -> CashPosting:
    """Append a signed posting (positive = money in)."""
    amount = money(amount)
    if amount == 0:
        raise ValidationError('Cash posting amount cannot be 0')
    posting = CashPosting(
        account_id=account.id,
        amount=amount,
        date=datetime.now(),
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        is_reversal=is_reversal,
    )
    session.add(posting)
    return posting


def postings_for_document(session, reference_type: DocumentType, reference_id: int) -> List[CashPosting]:
    return (
        session.query(CashPosting)
        .filter(
            CashPosting.reference_type == reference_type,
            CashPosting.reference_id == reference_id,
            CashPosting.is_reversal == False,  # noqa: E712
        )
        .order_by(CashPosting.id)
        .all()
    )


def reverse_posting(session, posting: CashPosting, description: Optional[str] = None) -> CashPosting:
    return post(
        session,
        posting.account,
        -money(posting.amount),
        reference_type=posting.reference_type,
        reference_id=posting.reference_id,
        description=description or f'Reversal: {posting.description or ""}'.strip(),
        is_reversal=True,
    )


def list_balances(session) -> List[dict]:
    return [
        {'code': account.code, 'name': account.name, 'balance': str(_balance_of(session, account))}
        for account in session.query(CashAccount).order_by(CashAccount.id).all()
    ]
