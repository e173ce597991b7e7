"""Stock valuation and profit helpers (read side)."""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any

from stockledger.models import Product, Sale, DocumentStatus
from stockledger.services.cache_service import get_cache
from stockledger.services.movement_store import stock_levels
from stockledger.utils.number_format import CENTS, ZERO, money

logger = logging.getLogger(__name__)


def weighted_average_cost(stock_before: int, cost_before, qty_in: int, unit_cost_in) -> Decimal:
    """
    Weighted average unit cost after receiving ``qty_in`` units.

    Negative stock counts as zero, so a purchase into a hole simply takes
    the purchase cost.
    """
    on_hand = max(int(stock_before), 0)
    cost_before = money(cost_before or 0)
    unit_cost_in = money(unit_cost_in or 0)
    if on_hand + qty_in <= 0:
        return unit_cost_in
    value = cost_before * on_hand + unit_cost_in * qty_in
    return (value / (on_hand + qty_in)).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_profit(sale_price, cost_price, qty) -> Dict[str, Decimal]:
    """Profit and margin (percent of revenue) for ``qty`` units."""
    revenue = money(sale_price) * int(qty)
    cost = money(cost_price) * int(qty)
    profit = revenue - cost
    margin = ZERO
    if revenue:
        margin = (profit / revenue * 100).quantize(CENTS, rounding=ROUND_HALF_UP)
    return {'revenue': revenue, 'cost': cost, 'profit': profit, 'margin': margin}


def sale_profit(sale: Sale) -> Dict[str, Decimal]:
    """Profit of a completed sale from its line costs (zero when cancelled)."""
    if sale.status != DocumentStatus.COMPLETED:
        return {'revenue': ZERO, 'cost': ZERO, 'profit': ZERO}
    revenue = money(sale.total) - money(sale.tax)
    cost = sum((money(line.unit_cost) * line.qty for line in sale.lines), ZERO)
    sign = -1 if sale.is_return else 1
    return {'revenue': revenue * sign, 'cost': cost * sign, 'profit': (revenue - cost) * sign}


def _compute_valuation(session) -> Dict[str, Any]:
    products = session.query(Product).filter(Product.active == True).order_by(Product.name).all()  # noqa: E712
    levels = stock_levels(session, [p.id for p in products])
    items = []
    total_value = ZERO
    total_units = 0
    for product in products:
        qty = levels.get(product.id, 0)
        if qty <= 0:
            continue
        value = money(product.cost) * qty
        total_value += value
        total_units += qty
        items.append({
            'product_id': product.id,
            'name': product.name,
            'qty': qty,
            'unit_cost': str(money(product.cost)),
            'value': str(value),
        })
    return {'items': items, 'total_units': total_units, 'total_value': str(total_value)}


def stock_valuation(session, use_cache: bool = True) -> Dict[str, Any]:
    """
    Value of stock on hand at weighted average cost.

    Cached in Redis (module ``valuation``) when the app cache is up; every
    ledger commit drops the cached copy.
    """
    if not use_cache:
        return _compute_valuation(session)
    try:
        cache = get_cache()
    except RuntimeError:
        return _compute_valuation(session)
    return cache.memoize('valuation', 'all', lambda: _compute_valuation(session))
