"""Held sales - carts parked at the POS and resumed later."""
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from stockledger.exceptions import ValidationError, NotFoundError
from stockledger.models import HeldSale, HeldSaleLine
from stockledger.utils.number_format import ZERO, money, parse_qty, parse_id

logger = logging.getLogger(__name__)


def _line_from_item(item: Dict[str, Any]) -> HeldSaleLine:
    if not isinstance(item, dict) or item.get('product_id') in (None, ''):
        raise ValidationError('Each held item must have a product_id')
    product_id = parse_id(item['product_id'], 'product_id')
    unit_price = item.get('unit_price')
    return HeldSaleLine(
        product_id=product_id,
        qty=parse_qty(item.get('qty')),
        unit_price=money(unit_price, 'unit price') if unit_price not in (None, '') else None,
        discount=money(item.get('discount') or 0, 'discount'),
    )


def held_sale_to_dict(held: HeldSale) -> Dict[str, Any]:
    """Draft shape accepted back by ``create_sale``."""
    items = []
    for line in held.lines:
        discount = line.discount if line.discount is not None else ZERO
        item = {'product_id': line.product_id, 'qty': line.qty, 'discount': str(discount)}
        if line.unit_price is not None:
            item['unit_price'] = str(line.unit_price)
        items.append(item)
    return {
        'id': held.id,
        'customer_id': held.customer_id,
        'discount': str(held.discount if held.discount is not None else ZERO),
        'payment_mode': held.payment_mode,
        'cash_received': str(held.cash_received if held.cash_received is not None else ZERO),
        'note': held.note,
        'items': items,
        'created_at': held.created_at.isoformat() if held.created_at else None,
    }


def hold_sale(
    session: Session,
    items: List[Dict[str, Any]],
    customer_id: Optional[int] = None,
    discount=0,
    payment_mode: str = 'CASH',
    cash_received=0,
    note: Optional[str] = None,
) -> HeldSale:
    """
    Park the current cart as is.

    No stock, price or party checks happen here; they all run when the
    resumed cart is confirmed. No movements, ledger entries or cash
    postings are written.
    """
    held = HeldSale(
        customer_id=parse_id(customer_id, 'customer_id') if customer_id not in (None, '') else None,
        discount=money(discount or 0, 'discount'),
        payment_mode=str(payment_mode or 'CASH').upper(),
        cash_received=money(cash_received or 0, 'cash received'),
        note=note,
    )
    if items and not isinstance(items, (list, tuple)):
        raise ValidationError('items must be a list')
    held.lines = [_line_from_item(item) for item in items or []]
    try:
        session.add(held)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[HELD] Held sale #{held.id} saved with {len(held.lines)} lines")
    return held


def get_held_sale(session: Session, held_id: int) -> HeldSale:
    held = session.query(HeldSale).filter(HeldSale.id == held_id).first()
    if not held:
        raise NotFoundError(f'Held sale #{held_id} not found')
    return held


def list_held_sales(session: Session) -> List[Dict[str, Any]]:
    """Held sales, oldest first."""
    return [held_sale_to_dict(h) for h in session.query(HeldSale).order_by(HeldSale.created_at, HeldSale.id).all()]


def resume_held_sale(session: Session, held_id: int) -> Dict[str, Any]:
    """Return the held cart as a draft and delete it."""
    held = get_held_sale(session, held_id)
    draft = held_sale_to_dict(held)
    try:
        session.delete(held)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[HELD] Held sale #{held_id} resumed")
    return draft


def delete_held_sale(session: Session, held_id: int) -> None:
    held = get_held_sale(session, held_id)
    try:
        session.delete(held)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[HELD] Held sale #{held_id} deleted")
