"""
Party ledger - debit/credit entries per customer or supplier.

Balances are folded from the entries every time they are read, ordered
by (date, id) so entries posted with the same timestamp keep their
insertion order.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from stockledger.exceptions import ValidationError, NotFoundError
from stockledger.models import Customer, Supplier, LedgerEntry, PartyType, DocumentType
from stockledger.utils.number_format import ZERO, money

logger = logging.getLogger(__name__)

PARTY_MODELS = {
    PartyType.CUSTOMER: Customer,
    PartyType.SUPPLIER: Supplier,
}


def parse_party_type(value) -> PartyType:
    if isinstance(value, PartyType):
        return value
    try:
        return PartyType(str(value).upper())
    except ValueError:
        raise ValidationError(f'Invalid party type: {value}')


def get_party(session, party_type, party_id: int, lock: bool = False, missing=ValidationError):
    """
    Load a customer or supplier, optionally ``FOR UPDATE``.

    ``missing`` is the exception class raised when the id is unknown:
    ValidationError on write paths, NotFoundError on read paths.
    """
    party_type = parse_party_type(party_type)
    model = PARTY_MODELS[party_type]
    query = session.query(model).filter(model.id == party_id)
    if lock:
        query = query.with_for_update()
    party = query.first()
    if not party:
        raise missing(f'{party_type.value.capitalize()} #{party_id} not found')
    return party


def is_tracked(party) -> bool:
    """Walk-in customers carry no balance; suppliers are always tracked."""
    return party is not None and not getattr(party, 'is_walk_in', False)


def post(
    session,
    party_type,
    party_id: int,
    debit=0,
    credit=0,
    reference_type: Optional[DocumentType] = None,
    reference_id: Optional[int] = None,
    description: Optional[str] = None,
    date: Optional[datetime] = None,
    is_reversal: bool = False,
) -> LedgerEntry:
    """Append a ledger entry. At least one of debit/credit must be non-zero."""
    party_type = parse_party_type(party_type)
    debit = money(debit, 'debit')
    credit = money(credit, 'credit')
    if debit < 0 or credit < 0:
        raise ValidationError('Ledger debit and credit must be positive amounts')
    if debit == 0 and credit == 0:
        raise ValidationError('Ledger entry needs a debit or a credit')
    entry = LedgerEntry(
        party_type=party_type,
        party_id=party_id,
        date=date or datetime.now(),
        debit=debit,
        credit=credit,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        is_reversal=is_reversal,
    )
    session.add(entry)
    return entry


def _ordered_entries(session, party_type: PartyType, party_id: int):
    return (
        session.query(LedgerEntry)
        .filter(LedgerEntry.party_type == party_type, LedgerEntry.party_id == party_id)
        .order_by(LedgerEntry.date, LedgerEntry.id)
    )


def _opening_balance(session, party_type: PartyType, party_id: int) -> Decimal:
    party = get_party(session, party_type, party_id, missing=NotFoundError)
    return money(party.opening_balance or 0)


def running_balance(session, party_type, party_id: int, as_of: Optional[datetime] = None) -> Decimal:
    """opening_balance + sum(debit - credit) over entries up to ``as_of``."""
    party_type = parse_party_type(party_type)
    session.flush()
    balance = _opening_balance(session, party_type, party_id)
    query = _ordered_entries(session, party_type, party_id)
    if as_of is not None:
        query = query.filter(LedgerEntry.date <= as_of)
    for entry in query:
        balance += money(entry.debit) - money(entry.credit)
    return balance


def entries_in_range(session, party_type, party_id: int,
                     start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[LedgerEntry]:
    """Entries dated within [start, end], oldest first (insertion order breaks ties)."""
    party_type = parse_party_type(party_type)
    query = _ordered_entries(session, party_type, party_id)
    if start is not None:
        query = query.filter(LedgerEntry.date >= start)
    if end is not None:
        query = query.filter(LedgerEntry.date <= end)
    return query.all()


def statement(session, party_type, party_id: int,
              start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    """
    Ledger statement with the running balance after every entry.

    Returns:
        dict with opening_balance (as of ``start``), entries and
        closing_balance.
    """
    party_type = parse_party_type(party_type)
    session.flush()
    balance = _opening_balance(session, party_type, party_id)
    if start is not None:
        for entry in _ordered_entries(session, party_type, party_id).filter(LedgerEntry.date < start):
            balance += money(entry.debit) - money(entry.credit)
    opening = balance
    rows = []
    for entry in entries_in_range(session, party_type, party_id, start, end):
        balance += money(entry.debit) - money(entry.credit)
        rows.append({
            'id': entry.id,
            'date': entry.date.isoformat(),
            'description': entry.description,
            'debit': str(money(entry.debit)),
            'credit': str(money(entry.credit)),
            'balance': str(balance),
            'reference_type': entry.reference_type.value if entry.reference_type else None,
            'reference_id': entry.reference_id,
            'is_reversal': entry.is_reversal,
        })
    return {
        'party_type': party_type.value,
        'party_id': party_id,
        'opening_balance': str(opening),
        'entries': rows,
        'closing_balance': str(balance),
    }


def entries_for_document(session, reference_type: DocumentType, reference_id: int) -> List[LedgerEntry]:
    """Original (non-reversal) entries tagged with a document ref."""
    return (
        session.query(LedgerEntry)
        .filter(
            LedgerEntry.reference_type == reference_type,
            LedgerEntry.reference_id == reference_id,
            LedgerEntry.is_reversal == False,  # noqa: E712
        )
        .order_by(LedgerEntry.id)
        .all()
    )


def reverse_entry(session, entry: LedgerEntry, description: Optional[str] = None) -> LedgerEntry:
    """Post the mirror image of ``entry`` (debit and credit swapped)."""
    return post(
        session,
        entry.party_type,
        entry.party_id,
        debit=entry.credit,
        credit=entry.debit,
        reference_type=entry.reference_type,
        reference_id=entry.reference_id,
        description=description or f'Reversal: {entry.description or ""}'.strip(),
        is_reversal=True,
    )


def outstanding(balance: Decimal) -> Decimal:
    """Positive part of a balance (what the party still owes / is owed)."""
    return balance if balance > 0 else ZERO
