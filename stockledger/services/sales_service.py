"""
Sales service with transactional logic.

Handles sale and sale-return confirmation: stock check, pricing, payment
split against the customer's prior balance, stock movements, ledger
entries and cash postings, all in one commit.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import List, Dict, Optional, Any

from stockledger.exceptions import ValidationError, NotFoundError
from stockledger.models import (
    Sale, SaleLine, DocumentStatus, PaymentMode, PartyType,
    MovementKind, DocumentType
)
from stockledger.services import cash_service, movement_store, party_ledger
from stockledger.services.cache_service import invalidate_derived
from stockledger.services.locking import (
    ledger_transaction, retry_on_conflict,
    product_key, customer_key, account_key, sequence_key
)
from stockledger.services.pricing_service import price_lines
from stockledger.services.sequence_service import SALE_PREFIX, next_invoice_no, sequence_name
from stockledger.utils.number_format import ZERO, money, parse_qty, parse_id

logger = logging.getLogger(__name__)


def parse_payment_mode(value) -> PaymentMode:
    """Accept 'cash', 'CASH', PaymentMode.CASH ... ('credit' for on-account)."""
    if isinstance(value, PaymentMode):
        return value
    try:
        return PaymentMode(str(value or 'CASH').strip().upper())
    except ValueError:
        raise ValidationError(f'Invalid payment mode: {value}. Use CASH, BANK or CREDIT')


def normalize_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Check the shape of cart items and coerce ids/quantities."""
    if not items:
        raise ValidationError('The cart is empty')
    if not isinstance(items, (list, tuple)):
        raise ValidationError('items must be a list')
    normalized = []
    for item in items:
        if not isinstance(item, dict) or item.get('product_id') in (None, ''):
            raise ValidationError('Each item must have a product_id')
        product_id = parse_id(item['product_id'], 'product_id')
        qty = parse_qty(item.get('qty'))
        if qty <= 0:
            raise ValidationError(f'Quantity must be greater than 0 for product {product_id}, got {qty}')
        normalized.append(dict(item, product_id=product_id, qty=qty))
    return normalized


def price_or_default(item: Dict[str, Any], default):
    """Line price, falling back to ``default`` when absent or null."""
    price = item.get('unit_price')
    return default if price in (None, '') else price


def requested_quantities(items: List[Dict[str, Any]]) -> Dict[int, int]:
    """Total quantity per product (a product may appear on several lines)."""
    totals = OrderedDict()
    for item in items:
        totals[item['product_id']] = totals.get(item['product_id'], 0) + item['qty']
    return totals


def split_payment(total: Decimal, received: Decimal, prior_balance: Optional[Decimal]) -> Dict[str, Decimal]:
    """
    Split cash received between the current bill and the prior balance.

    ``prior_balance`` is None for walk-in customers (nothing to settle).
    Returns paid (towards the bill), due (left on the bill), collected
    (applied to the prior balance) and change (handed back).
    """
    paid = min(received, total)
    due = total - paid
    excess = received - paid
    collected = ZERO
    if prior_balance is not None and prior_balance > 0:
        collected = min(excess, prior_balance)
    return {
        'paid': paid,
        'due': due,
        'collected': collected,
        'change': excess - collected,
    }


@retry_on_conflict
def create_sale(
    session,
    items: List[Dict[str, Any]],
    customer_id: Optional[int] = None,
    discount=0,
    payment_mode='CASH',
    cash_received=0,
    is_return: bool = False,
    notes: Optional[str] = None,
    allow_negative_stock: bool = False,
    allow_negative_cash: bool = False,
    cash_account: str = cash_service.CASH_IN_HAND,
    bank_account: str = cash_service.BANK,
    invoice_prefix: str = SALE_PREFIX,
) -> Dict[str, Any]:
    """
    Confirm a sale (or a sale return) in a single transaction.

    Args:
        items: list of {product_id, qty, unit_price?, discount?}. Price and
            tax rate default to the product's current values.
        customer_id: None for an anonymous walk-in sale.
        payment_mode: CASH, BANK or CREDIT (on account).
        cash_received: money handed over by the customer.

    Returns:
        dict with sale, change, new_party_balance (None when the customer
        is not tracked) and pricing warnings.

    Raises:
        ValidationError, InsufficientStockError, InsufficientCashError,
        ConcurrencyConflict (after retries), CommitFailed.
    """
    items = normalize_items(items)
    if customer_id in (None, ''):
        customer_id = None
    else:
        customer_id = parse_id(customer_id, 'customer_id')
    mode = parse_payment_mode(payment_mode)
    received = money(cash_received or 0, 'cash received')
    if received < 0:
        raise ValidationError('Cash received cannot be negative')
    if mode == PaymentMode.CREDIT and received > 0 and not is_return:
        raise ValidationError('A credit sale cannot receive cash; use CASH or BANK for partial payments')

    quantities = requested_quantities(items)
    account_code = cash_service.account_for_mode(mode, cash_account, bank_account)

    lock_keys = [product_key(pid) for pid in quantities]
    # One clock read: the locked sequence is the one numbered below
    now = datetime.now()
    lock_keys.append(sequence_key(sequence_name(invoice_prefix, now)))
    if customer_id is not None:
        lock_keys.append(customer_key(customer_id))
    if account_code:
        lock_keys.append(account_key(account_code))

    operation = 'confirm sale return' if is_return else 'confirm sale'
    with ledger_transaction(session, operation, lock_keys):
        products = movement_store.lock_products(session, quantities.keys())

        customer = None
        if customer_id is not None:
            customer = party_ledger.get_party(session, PartyType.CUSTOMER, customer_id, lock=True)
        tracked = party_ledger.is_tracked(customer)

        if mode == PaymentMode.CREDIT and not tracked:
            raise ValidationError('Credit (on account) requires a registered, non walk-in customer')

        account = cash_service.get_account(session, account_code, lock=True) if account_code else None

        # Pricing
        priced = price_lines(
            [
                {
                    'product_id': item['product_id'],
                    'qty': item['qty'],
                    'unit_price': price_or_default(item, products[item['product_id']].sale_price),
                    'discount': item.get('discount') or 0,
                    'tax_rate': products[item['product_id']].tax_rate,
                    'unit_cost': products[item['product_id']].cost,
                }
                for item in items
            ],
            discount=discount,
            is_return=is_return,
        )
        total = priced['total']

        # Stock check under the same locks as the decrement
        if not is_return:
            levels = movement_store.stock_levels(session, quantities.keys())
            for product_id, requested in quantities.items():
                movement_store.require_stock(
                    products[product_id], requested, levels[product_id], allow_negative_stock
                )

        # Payment split
        cash_delta = ZERO
        if is_return:
            split = {'paid': total, 'due': ZERO, 'collected': ZERO, 'change': ZERO}
            if mode == PaymentMode.CREDIT:
                split['paid'], split['due'] = ZERO, total
            elif total > 0:
                cash_service.require_funds(session, account, total, allow_negative_cash)
                cash_delta = -total
        elif mode == PaymentMode.CREDIT:
            split = {'paid': ZERO, 'due': total, 'collected': ZERO, 'change': ZERO}
        else:
            prior = None
            if tracked:
                prior = party_ledger.running_balance(session, PartyType.CUSTOMER, customer.id)
            split = split_payment(total, received, prior)
            if split['due'] > 0 and not tracked:
                raise ValidationError(
                    f'Walk-in sale must be paid in full: total {total}, received {received}'
                )
            cash_delta = split['paid'] + split['collected']

        # Commit actions
        invoice_no = next_invoice_no(session, invoice_prefix, now)
        sale = Sale(
            invoice_no=invoice_no,
            customer_id=customer.id if customer else None,
            date=now,
            subtotal=priced['subtotal'],
            discount=priced['discount'],
            tax=priced['tax'],
            total=total,
            paid=split['paid'],
            due=split['due'],
            change=split['change'],
            collected=split['collected'],
            payment_mode=mode,
            status=DocumentStatus.COMPLETED,
            is_return=is_return,
            notes=notes,
        )
        session.add(sale)
        session.flush()

        kind = MovementKind.SALE_RETURN if is_return else MovementKind.SALE
        label = f'Return {invoice_no}' if is_return else f'Sale {invoice_no}'
        for line in priced['lines']:
            session.add(SaleLine(
                sale_id=sale.id,
                product_id=line['product_id'],
                qty=line['qty'],
                unit_price=line['unit_price'],
                discount=line['discount'],
                tax_rate=line['tax_rate'],
                tax=line['tax'],
                line_total=line['line_total'],
                unit_cost=line['unit_cost'],
            ))
            movement_store.record(
                session,
                product_id=line['product_id'],
                qty=line['qty'] if is_return else -line['qty'],
                kind=kind,
                unit_cost=line['unit_cost'],
                reference_type=DocumentType.SALE,
                reference_id=sale.id,
                notes=label,
            )

        if tracked:
            if is_return and mode == PaymentMode.CREDIT and total > 0:
                party_ledger.post(
                    session, PartyType.CUSTOMER, customer.id, credit=total,
                    reference_type=DocumentType.SALE, reference_id=sale.id,
                    description=label, date=now,
                )
            elif not is_return and split['due'] > 0:
                party_ledger.post(
                    session, PartyType.CUSTOMER, customer.id, debit=total, credit=split['paid'],
                    reference_type=DocumentType.SALE, reference_id=sale.id,
                    description=label, date=now,
                )
            if split['collected'] > 0:
                party_ledger.post(
                    session, PartyType.CUSTOMER, customer.id, credit=split['collected'],
                    reference_type=DocumentType.SALE, reference_id=sale.id,
                    description=f'Collection with sale {invoice_no}', date=now,
                )

        if cash_delta != 0:
            cash_service.post(
                session, account, cash_delta,
                reference_type=DocumentType.SALE, reference_id=sale.id,
                description=f'Refund {invoice_no}' if is_return else label,
            )

        session.flush()
        new_balance = None
        if tracked:
            new_balance = party_ledger.running_balance(session, PartyType.CUSTOMER, customer.id)

        logger.info(
            f"[SALE] {invoice_no} committed: total={total} paid={split['paid']} due={split['due']} "
            f"collected={split['collected']} change={split['change']} return={is_return}"
        )

    invalidate_derived()
    return {
        'sale': sale,
        'change': split['change'],
        'new_party_balance': new_balance,
        'warnings': priced['warnings'],
    }


def get_sale(session, sale_id: int) -> Sale:
    sale = session.query(Sale).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError(f'Sale #{sale_id} not found')
    return sale

