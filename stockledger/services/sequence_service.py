"""Sequential, collision-free invoice numbers."""
from datetime import datetime
from typing import Optional

from stockledger.models import InvoiceSequence

SALE_PREFIX = 'INV'
PURCHASE_PREFIX = 'PUR'
NUMBER_WIDTH = 5


def sequence_name(prefix: str, when: Optional[datetime] = None) -> str:
    """Numbers restart every month: ``INV202610``."""
    when = when or datetime.now()
    return f'{prefix}{when.year}{when.month:02d}'


def next_invoice_no(session, prefix: str = SALE_PREFIX, when: Optional[datetime] = None) -> str:
    """
    Reserve the next number for ``prefix`` in the current month.

    The sequence row is locked ``FOR UPDATE`` and incremented inside the
    caller's transaction, so a rolled-back document gives its number back.
    Callers hold the ``sequence_key`` lock for the same name.
    """
    name = sequence_name(prefix, when)
    sequence = (
        session.query(InvoiceSequence)
        .filter(InvoiceSequence.name == name)
        .with_for_update()
        .first()
    )
    if not sequence:
        sequence = InvoiceSequence(name=name, last_value=0)
        session.add(sequence)
    sequence.last_value = (sequence.last_value or 0) + 1
    session.flush()
    return f'{name}{sequence.last_value:0{NUMBER_WIDTH}d}'
