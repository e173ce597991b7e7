"""
Service for reverting documents.

Nothing is deleted: every stock movement, ledger entry and cash posting
of the document gets a compensating row, and the document is marked
CANCELLED (adjustments get ``reversed_at``). Reverting a document twice
raises ``AlreadyRevertedError``.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Any

from stockledger.exceptions import ValidationError, NotFoundError, AlreadyRevertedError, InsufficientStockError
from stockledger.models import (
    Sale, Purchase, Expense, CashTransfer, StockMovement, LedgerEntry,
    DocumentStatus, DocumentType, MovementKind, PartyType
)
from stockledger.services import cash_service, movement_store, party_ledger
from stockledger.services.cache_service import invalidate_derived
from stockledger.services.locking import (
    ledger_transaction, retry_on_conflict, product_key, customer_key, supplier_key, account_key
)
from stockledger.utils.number_format import parse_id

logger = logging.getLogger(__name__)

REVERSIBLE = (
    DocumentType.SALE,
    DocumentType.PURCHASE,
    DocumentType.ADJUSTMENT,
    DocumentType.COLLECTION,
    DocumentType.SUPPLIER_PAYMENT,
    DocumentType.EXPENSE,
    DocumentType.TRANSFER,
)

# Documents with their own header row carrying a status
STATUS_DOCUMENTS = {
    DocumentType.SALE: Sale,
    DocumentType.PURCHASE: Purchase,
    DocumentType.EXPENSE: Expense,
    DocumentType.TRANSFER: CashTransfer,
}


def parse_document_type(value) -> DocumentType:
    if isinstance(value, DocumentType):
        document_type = value
    else:
        try:
            document_type = DocumentType(str(value).strip().upper())
        except ValueError:
            raise ValidationError(f'Invalid document type: {value}')
    if document_type not in REVERSIBLE:
        raise ValidationError(f'{document_type.value} documents cannot be reverted')
    return document_type


def _load_document(session, document_type: DocumentType, document_id: int, lock: bool = False):
    """Fetch the row that represents the document (refreshed when locking)."""
    if document_type in STATUS_DOCUMENTS:
        model = STATUS_DOCUMENTS[document_type]
        query = session.query(model).filter(model.id == document_id)
    elif document_type == DocumentType.ADJUSTMENT:
        query = session.query(StockMovement).filter(
            StockMovement.id == document_id,
            StockMovement.kind == MovementKind.ADJUSTMENT,
            StockMovement.is_reversal == False,  # noqa: E712
        )
    else:
        query = session.query(LedgerEntry).filter(
            LedgerEntry.id == document_id,
            LedgerEntry.reference_type == document_type,
            LedgerEntry.is_reversal == False,  # noqa: E712
        )
    if lock:
        query = query.with_for_update().populate_existing()
    document = query.first()
    if not document:
        raise NotFoundError(f'{document_type.value} #{document_id} not found')
    return document


def _is_reverted(session, document_type: DocumentType, document) -> bool:
    if document_type in STATUS_DOCUMENTS:
        return document.status == DocumentStatus.CANCELLED
    if document_type == DocumentType.ADJUSTMENT:
        return document.reversed_at is not None
    return session.query(LedgerEntry.id).filter(
        LedgerEntry.reference_type == document_type,
        LedgerEntry.reference_id == document.id,
        LedgerEntry.is_reversal == True,  # noqa: E712
    ).first() is not None


def _document_rows(session, document_type: DocumentType, document_id: int):
    """Original movements, ledger entries and cash postings of a document."""
    movements = movement_store.movements_for_document(session, document_type, document_id)
    entries = party_ledger.entries_for_document(session, document_type, document_id)
    postings = cash_service.postings_for_document(session, document_type, document_id)
    return movements, entries, postings


def _lock_keys(movements, entries, postings):
    keys = [product_key(m.product_id) for m in movements]
    for entry in entries:
        if entry.party_type == PartyType.CUSTOMER:
            keys.append(customer_key(entry.party_id))
        else:
            keys.append(supplier_key(entry.party_id))
    keys.extend(account_key(p.account.code) for p in postings)
    return keys


@retry_on_conflict
def delete_document(
    session,
    document_type,
    document_id: int,
    allow_negative_stock: bool = False,
    allow_negative_cash: bool = False,
) -> Dict[str, Any]:
    """
    Revert a SALE, PURCHASE, ADJUSTMENT, COLLECTION, SUPPLIER_PAYMENT,
    EXPENSE or TRANSFER.

    The reversal is refused when it would take a product's stock or a
    cash account below zero (a sold-through purchase, a refunded sale
    whose cash has already left the drawer).

    Raises:
        NotFoundError, AlreadyRevertedError, InsufficientStockError,
        InsufficientCashError, ValidationError.
    """
    document_type = parse_document_type(document_type)
    document_id = parse_id(document_id, 'document_id')

    # Read outside the locks only to learn which entities to lock
    _load_document(session, document_type, document_id)
    lock_keys = _lock_keys(*_document_rows(session, document_type, document_id))

    label = f'{document_type.value} #{document_id}'
    with ledger_transaction(session, f'revert {label}', lock_keys):
        document = _load_document(session, document_type, document_id, lock=True)
        if _is_reverted(session, document_type, document):
            raise AlreadyRevertedError(document_type.value, document_id)

        movements, entries, postings = _document_rows(session, document_type, document_id)

        # Stock: the reversal must not drive any product negative
        deltas = defaultdict(int)
        for movement in movements:
            deltas[movement.product_id] -= movement.qty
        products = movement_store.lock_products(session, deltas.keys(), require_active=False)
        levels = movement_store.stock_levels(session, deltas.keys())
        for product_id, delta in deltas.items():
            if delta < 0 and levels[product_id] + delta < 0 and not allow_negative_stock:
                product = products[product_id]
                logger.info(f"[REVERSAL] {label} rejected: {product.name} stock {levels[product_id]}, delta {delta}")
                raise InsufficientStockError(product.name, -delta, levels[product_id], product_id=product_id)

        # Cash: the reversal must not overdraw any account
        cash_deltas = defaultdict(int)
        for posting in postings:
            cash_deltas[posting.account.code] -= posting.amount
        for code, delta in cash_deltas.items():
            account = cash_service.get_account(session, code, lock=True)
            if delta < 0:
                cash_service.require_funds(session, account, -delta, allow_negative_cash)

        for movement in movements:
            movement_store.reverse_movement(session, movement, notes=f'Reversal of {label}')
        for entry in entries:
            party_ledger.reverse_entry(session, entry, description=f'Reversal of {label}')
        for posting in postings:
            cash_service.reverse_posting(session, posting, description=f'Reversal of {label}')

        if document_type in STATUS_DOCUMENTS:
            document.status = DocumentStatus.CANCELLED
            document.cancelled_at = datetime.now()

        session.flush()
        logger.info(
            f"[REVERSAL] {label} reverted: {len(movements)} movements, "
            f"{len(entries)} ledger entries, {len(postings)} cash postings"
        )

    invalidate_derived()
    return {
        'reverted': True,
        'document_type': document_type.value,
        'document_id': document_id,
        'reversed_movements': len(movements),
        'reversed_entries': len(entries),
        'reversed_postings': len(postings),
    }


def delete_sale(session, sale_id: int, **kwargs) -> Dict[str, Any]:
    return delete_document(session, DocumentType.SALE, sale_id, **kwargs)


def delete_purchase(session, purchase_id: int, **kwargs) -> Dict[str, Any]:
    return delete_document(session, DocumentType.PURCHASE, purchase_id, **kwargs)


def delete_adjustment(session, movement_id: int, **kwargs) -> Dict[str, Any]:
    return delete_document(session, DocumentType.ADJUSTMENT, movement_id, **kwargs)
