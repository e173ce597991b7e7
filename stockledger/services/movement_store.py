"""
Movement store - append-only stock movements.

Stock for a product is never stored; it is the sum of ``qty`` over the
product's movements. Writes go through the order, adjustment and
reversal services only.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func

from stockledger.exceptions import ValidationError, NotFoundError, InsufficientStockError
from stockledger.models import Product, StockMovement, MovementKind, DocumentType

logger = logging.getLogger(__name__)


def lock_products(session, product_ids: Iterable[int], require_active: bool = True) -> Dict[int, Product]:
    """
    Load products ``FOR UPDATE`` and return them keyed by id.

    Raises:
        ValidationError: if an id is unknown or the product is inactive.
    """
    ids = sorted({int(pid) for pid in product_ids})
    if not ids:
        return {}
    products = (
        session.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
        .all()
    )
    found = {p.id: p for p in products}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise ValidationError(f'Unknown product id(s): {", ".join(str(m) for m in missing)}')
    if require_active:
        for product in products:
            if not product.active:
                raise ValidationError(f'Product "{product.name}" is not active')
    return found


def get_product(session, product_id: int) -> Product:
    """Read-only product lookup."""
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError(f'Product #{product_id} not found')
    return product


def current_stock(session, product_id: int) -> int:
    """Sum of all movement quantities for the product."""
    total = session.query(
        func.coalesce(func.sum(StockMovement.qty), 0)
    ).filter(StockMovement.product_id == product_id).scalar()
    return int(total or 0)


def stock_levels(session, product_ids: Iterable[int]) -> Dict[int, int]:
    """Current stock for several products in one query (0 when no movements)."""
    ids = list({int(pid) for pid in product_ids})
    if not ids:
        return {}
    rows = (
        session.query(StockMovement.product_id, func.sum(StockMovement.qty))
        .filter(StockMovement.product_id.in_(ids))
        .group_by(StockMovement.product_id)
        .all()
    )
    levels = {pid: 0 for pid in ids}
    for product_id, qty in rows:
        levels[product_id] = int(qty or 0)
    return levels


def require_stock(product: Product, requested: int, available: int, allow_negative: bool = False) -> None:
    """Raise ``InsufficientStockError`` when ``requested`` exceeds ``available``."""
    if allow_negative:
        return
    if requested > available:
        logger.info(f"[STOCK] Rejected: {product.name} requested {requested}, available {available}")
        raise InsufficientStockError(product.name, requested, available, product_id=product.id)


def record(
    session,
    product_id: int,
    qty: int,
    kind: MovementKind,
    unit_cost=0,
    reference_type: Optional[DocumentType] = None,
    reference_id: Optional[int] = None,
    notes: Optional[str] = None,
    is_reversal: bool = False,
    reversal_of_id: Optional[int] = None,
) -> StockMovement:
    """Append a movement. ``qty`` is signed; zero is rejected."""
    if qty == 0:
        raise ValidationError(f'Movement quantity for product {product_id} cannot be 0')
    movement = StockMovement(
        product_id=product_id,
        qty=int(qty),
        unit_cost=unit_cost,
        kind=kind,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        is_reversal=is_reversal,
        reversal_of_id=reversal_of_id,
        created_at=datetime.now(),
    )
    session.add(movement)
    return movement


def history(session, product_id: int) -> List[StockMovement]:
    """Movements for a product, oldest first (insertion order breaks ties)."""
    return (
        session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at, StockMovement.id)
        .all()
    )


def movements_for_document(session, reference_type: DocumentType, reference_id: int) -> List[StockMovement]:
    """Original (non-reversal) movements tagged with a document ref."""
    return (
        session.query(StockMovement)
        .filter(
            StockMovement.reference_type == reference_type,
            StockMovement.reference_id == reference_id,
            StockMovement.is_reversal == False,  # noqa: E712
        )
        .order_by(StockMovement.id)
        .all()
    )


def reverse_movement(session, movement: StockMovement, notes: Optional[str] = None) -> StockMovement:
    """
    Undo a movement by appending its negation and stamping ``reversed_at``.

    The original row stays in the log; only the reversal bookkeeping
    columns change.
    """
    movement.reversed_at = datetime.now()
    return record(
        session,
        product_id=movement.product_id,
        qty=-movement.qty,
        kind=movement.kind,
        unit_cost=movement.unit_cost,
        reference_type=movement.reference_type,
        reference_id=movement.reference_id,
        notes=notes or f'Reversal of movement #{movement.id}',
        is_reversal=True,
        reversal_of_id=movement.id,
    )


def is_low_stock(session, product: Product) -> bool:
    """Evaluated on every read against the folded stock."""
    return current_stock(session, product.id) <= (product.min_stock_qty or 0)


def low_stock_products(session) -> List[dict]:
    """Active products whose stock is at or below their minimum."""
    products = session.query(Product).filter(Product.active == True).order_by(Product.name).all()  # noqa: E712
    levels = stock_levels(session, [p.id for p in products])
    return [
        {
            'product_id': p.id,
            'name': p.name,
            'sku': p.sku,
            'stock': levels.get(p.id, 0),
            'min_stock_qty': p.min_stock_qty,
        }
        for p in products
        if levels.get(p.id, 0) <= (p.min_stock_qty or 0)
    ]
