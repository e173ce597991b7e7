"""Manual stock adjustments (counts, breakage, found stock)."""
import logging
from typing import Optional, Dict, Any

from stockledger.exceptions import ValidationError, InsufficientStockError
from stockledger.models import Purchase, PurchaseLine, DocumentStatus, MovementKind, DocumentType
from stockledger.services import movement_store
from stockledger.services.cache_service import invalidate_derived
from stockledger.services.locking import ledger_transaction, retry_on_conflict, product_key
from stockledger.utils.number_format import money, parse_qty, parse_id

logger = logging.getLogger(__name__)


def latest_purchase_cost(session, product):
    """Unit price of the product's most recent completed purchase, else its cost."""
    row = (
        session.query(PurchaseLine.unit_price)
        .join(Purchase, Purchase.id == PurchaseLine.purchase_id)
        .filter(
            PurchaseLine.product_id == product.id,
            Purchase.status == DocumentStatus.COMPLETED,
            Purchase.is_return == False,  # noqa: E712
        )
        .order_by(Purchase.date.desc(), PurchaseLine.id.desc())
        .first()
    )
    if row is not None:
        return money(row[0])
    return money(product.cost or 0)


@retry_on_conflict
def adjust_stock(
    session,
    product_id: int,
    qty,
    notes: Optional[str] = None,
    allow_negative_stock: bool = False,
) -> Dict[str, Any]:
    """
    Record a signed stock adjustment for one product.

    The movement is its own document: ``reference_id`` is the movement id,
    which is what ``delete_document('ADJUSTMENT', id)`` expects.

    Raises:
        ValidationError: qty is zero or not a whole number, unknown product.
        InsufficientStockError: the adjustment would take stock below zero.
    """
    product_id = parse_id(product_id, 'product_id')
    qty = parse_qty(qty)
    if qty == 0:
        raise ValidationError('Adjustment quantity cannot be 0')

    with ledger_transaction(session, 'adjust stock', [product_key(product_id)]):
        product = movement_store.lock_products(session, [product_id], require_active=False)[product_id]
        before = movement_store.current_stock(session, product.id)
        if qty < 0 and before + qty < 0 and not allow_negative_stock:
            raise InsufficientStockError(product.name, -qty, before, product_id=product.id)

        movement = movement_store.record(
            session,
            product_id=product.id,
            qty=qty,
            kind=MovementKind.ADJUSTMENT,
            unit_cost=latest_purchase_cost(session, product),
            reference_type=DocumentType.ADJUSTMENT,
            notes=notes or 'Manual adjustment',
        )
        session.flush()
        movement.reference_id = movement.id
        session.flush()
        new_stock = movement_store.current_stock(session, product.id)
        logger.info(f"[ADJUSTMENT] {product.name}: {before} {qty:+d} -> {new_stock} (movement #{movement.id})")

    invalidate_derived()
    return {'movement': movement, 'previous_stock': before, 'new_stock': new_stock}
