"""
Pricing & tax calculator.

Pure functions: no session, no clock, no module state. Totals are
always recomputed from the raw line inputs, so calling ``price_lines``
twice on the same input gives the same result.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Dict, Any

from stockledger.exceptions import ValidationError
from stockledger.utils.number_format import CENTS, ZERO, to_decimal, money, parse_qty

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


def line_tax(line_subtotal: Decimal, tax_rate: Decimal) -> Decimal:
    """Tax for one line, rounded half-up to cents."""
    return (line_subtotal * tax_rate / HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)


def price_line(item: Dict[str, Any], is_return: bool = False, enforce_cost_floor: bool = True) -> Dict[str, Any]:
    """
    Price a single line item.

    ``item`` keys: qty, unit_price, discount (optional), tax_rate
    (optional, percent), unit_cost (optional), product_id (passed through).

    A unit price below ``unit_cost`` is raised to ``unit_cost`` and the
    line is flagged ``clamped`` unless this is a return.
    """
    qty = parse_qty(item.get('qty'))
    if qty <= 0:
        raise ValidationError(f'Quantity must be greater than 0 for product {item.get("product_id")}, got {qty}')

    unit_price = money(item.get('unit_price'), 'unit price')
    if unit_price < 0:
        raise ValidationError(f'Unit price cannot be negative for product {item.get("product_id")}')

    unit_cost = money(item.get('unit_cost') or 0, 'unit cost')
    tax_rate = to_decimal(item.get('tax_rate') or 0, 'tax rate')
    if tax_rate < 0 or tax_rate > HUNDRED:
        raise ValidationError(f'Tax rate must be between 0 and 100, got {tax_rate}')

    clamped = False
    if enforce_cost_floor and not is_return and unit_price < unit_cost:
        clamped = True
        unit_price = unit_cost

    line_subtotal = (unit_price * qty).quantize(CENTS)
    discount = money(item.get('discount') or 0, 'discount')
    if discount < 0:
        raise ValidationError(f'Discount cannot be negative for product {item.get("product_id")}')
    if discount > line_subtotal:
        raise ValidationError(
            f'Discount {discount} exceeds line subtotal {line_subtotal} for product {item.get("product_id")}'
        )

    tax = line_tax(line_subtotal, tax_rate)
    return {
        'product_id': item.get('product_id'),
        'qty': qty,
        'unit_price': unit_price,
        'unit_cost': unit_cost,
        'discount': discount,
        'tax_rate': tax_rate,
        'tax': tax,
        'line_subtotal': line_subtotal,
        'line_total': line_subtotal - discount + tax,
        'clamped': clamped,
    }


def price_lines(
    items: List[Dict[str, Any]],
    discount=0,
    is_return: bool = False,
    enforce_cost_floor: bool = True,
) -> Dict[str, Any]:
    """
    Price a whole document.

    Returns a dict with the priced ``lines`` and the document totals:
    subtotal (sum of qty x price), discount (document discount plus all
    line discounts), tax (sum of line taxes) and
    total = subtotal - discount + tax. ``warnings`` lists every line whose
    price was raised to cost.
    """
    if not items:
        raise ValidationError('The document has no items')

    document_discount = money(discount or 0, 'discount')
    if document_discount < 0:
        raise ValidationError('Document discount cannot be negative')

    lines = [price_line(item, is_return=is_return, enforce_cost_floor=enforce_cost_floor) for item in items]

    subtotal = sum((line['line_subtotal'] for line in lines), ZERO)
    line_discounts = sum((line['discount'] for line in lines), ZERO)
    tax = sum((line['tax'] for line in lines), ZERO)
    total_discount = document_discount + line_discounts
    total = subtotal - total_discount + tax

    if total < 0:
        raise ValidationError(f'Discount {total_discount} exceeds the document amount {subtotal + tax}')

    warnings = []
    for line in lines:
        if line['clamped']:
            message = (f'Price for product {line["product_id"]} raised to unit cost {line["unit_cost"]}')
            logger.warning(f"[PRICING] {message}")
            warnings.append({
                'product_id': line['product_id'],
                'code': 'PRICE_BELOW_COST',
                'message': message,
                'unit_cost': str(line['unit_cost']),
            })

    return {
        'lines': lines,
        'subtotal': subtotal,
        'document_discount': document_discount,
        'discount': total_discount,
        'tax': tax,
        'total': total,
        'warnings': warnings,
    }
