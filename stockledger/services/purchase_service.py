"""
Purchase service.

Confirms supplier purchases and purchase returns: stock in (or out),
supplier ledger split, cash outflow gated by the cash position, and the
weighted average cost update on products.
"""
import logging
from datetime import datetime
from typing import List, Dict, Optional, Any

from stockledger.exceptions import ValidationError, NotFoundError
from stockledger.models import (
    Purchase, PurchaseLine, DocumentStatus, PaymentMode, PartyType,
    MovementKind, DocumentType
)
from stockledger.services import cash_service, movement_store, party_ledger
from stockledger.services.cache_service import invalidate_derived
from stockledger.services.locking import (
    ledger_transaction, retry_on_conflict,
    product_key, supplier_key, account_key, sequence_key
)
from stockledger.services.pricing_service import price_lines
from stockledger.services.sales_service import (
    normalize_items, parse_payment_mode, requested_quantities, price_or_default
)
from stockledger.services.sequence_service import PURCHASE_PREFIX, next_invoice_no, sequence_name
from stockledger.services.valuation_service import weighted_average_cost
from stockledger.utils.number_format import ZERO, money, parse_id

logger = logging.getLogger(__name__)


def _check_invoice_no_free(session, invoice_no: str) -> str:
    invoice_no = str(invoice_no).strip()
    if not invoice_no:
        raise ValidationError('Invoice number cannot be blank')
    if session.query(Purchase.id).filter(Purchase.invoice_no == invoice_no).first():
        raise ValidationError(f'Purchase invoice {invoice_no} already exists')
    return invoice_no


@retry_on_conflict
def create_purchase(
    session,
    supplier_id: int,
    items: List[Dict[str, Any]],
    discount=0,
    payment_type='CASH',
    cash_paid=0,
    is_return: bool = False,
    invoice_no: Optional[str] = None,
    notes: Optional[str] = None,
    allow_negative_stock: bool = False,
    allow_negative_cash: bool = False,
    cash_account: str = cash_service.CASH_IN_HAND,
    bank_account: str = cash_service.BANK,
    invoice_prefix: str = PURCHASE_PREFIX,
) -> Dict[str, Any]:
    """
    Confirm a purchase (or a purchase return) in a single transaction.

    Items are {product_id, qty, unit_price?, discount?, sale_price?};
    unit_price defaults to the product's current cost. ``sale_price``
    optionally updates the product's selling price.

    Payment split (non-return):
        paid < total  -> the difference is debited to the supplier
        paid > total  -> the excess settles the prior balance; paying more
                         than total + prior balance is rejected
    Returns refund through the chosen account (cash in) or, for CREDIT,
    credit the supplier ledger.
    """
    if supplier_id in (None, ''):
        raise ValidationError('A supplier is required for purchases')
    supplier_id = parse_id(supplier_id, 'supplier_id')
    items = normalize_items(items)
    mode = parse_payment_mode(payment_type)
    paid_in = money(cash_paid or 0, 'cash paid')
    if paid_in < 0:
        raise ValidationError('Cash paid cannot be negative')
    if mode == PaymentMode.CREDIT and paid_in > 0 and not is_return:
        raise ValidationError('A credit purchase cannot pay cash; use CASH or BANK for partial payments')

    quantities = requested_quantities(items)
    account_code = cash_service.account_for_mode(mode, cash_account, bank_account)

    lock_keys = [product_key(pid) for pid in quantities]
    lock_keys.append(supplier_key(supplier_id))
    if account_code:
        lock_keys.append(account_key(account_code))
    now = datetime.now()
    if not invoice_no:
        lock_keys.append(sequence_key(sequence_name(invoice_prefix, now)))

    operation = 'confirm purchase return' if is_return else 'confirm purchase'
    with ledger_transaction(session, operation, lock_keys):
        products = movement_store.lock_products(session, quantities.keys())
        supplier = party_ledger.get_party(session, PartyType.SUPPLIER, supplier_id, lock=True)
        account = cash_service.get_account(session, account_code, lock=True) if account_code else None

        priced = price_lines(
            [
                {
                    'product_id': item['product_id'],
                    'qty': item['qty'],
                    'unit_price': price_or_default(item, products[item['product_id']].cost),
                    'discount': item.get('discount') or 0,
                    'tax_rate': products[item['product_id']].tax_rate,
                    'unit_cost': products[item['product_id']].cost,
                }
                for item in items
            ],
            discount=discount,
            is_return=is_return,
            enforce_cost_floor=False,
        )
        total = priced['total']
        levels = movement_store.stock_levels(session, quantities.keys())

        # Goods going back to the supplier must be on hand
        if is_return:
            for product_id, requested in quantities.items():
                movement_store.require_stock(
                    products[product_id], requested, levels[product_id], allow_negative_stock
                )

        cash_delta = ZERO
        settled = ZERO
        if is_return:
            if mode == PaymentMode.CREDIT:
                paid, due = ZERO, total
            else:
                paid, due = total, ZERO
                cash_delta = total
        elif mode == PaymentMode.CREDIT:
            paid, due = ZERO, total
        else:
            paid = min(paid_in, total)
            due = total - paid
            excess = paid_in - paid
            if excess > 0:
                prior = party_ledger.outstanding(
                    party_ledger.running_balance(session, PartyType.SUPPLIER, supplier.id)
                )
                if excess > prior:
                    raise ValidationError(
                        f'Payment {paid_in} exceeds purchase total {total} plus supplier balance {prior}'
                    )
                settled = excess
            outflow = paid + settled
            if outflow > 0:
                cash_service.require_funds(session, account, outflow, allow_negative_cash)
                cash_delta = -outflow

        if invoice_no:
            number = _check_invoice_no_free(session, invoice_no)
        else:
            number = next_invoice_no(session, invoice_prefix, now)

        purchase = Purchase(
            invoice_no=number,
            supplier_id=supplier.id,
            date=now,
            subtotal=priced['subtotal'],
            discount=priced['discount'],
            tax=priced['tax'],
            total=total,
            paid=paid,
            due=due,
            settled=settled,
            payment_mode=mode,
            status=DocumentStatus.COMPLETED,
            is_return=is_return,
            notes=notes,
        )
        session.add(purchase)
        session.flush()

        kind = MovementKind.PURCHASE_RETURN if is_return else MovementKind.PURCHASE
        label = f'Purchase return {number}' if is_return else f'Purchase {number}'
        for item, line in zip(items, priced['lines']):
            product = products[line['product_id']]
            session.add(PurchaseLine(
                purchase_id=purchase.id,
                product_id=line['product_id'],
                qty=line['qty'],
                unit_price=line['unit_price'],
                discount=line['discount'],
                tax_rate=line['tax_rate'],
                tax=line['tax'],
                line_total=line['line_total'],
                unit_cost=line['unit_price'],
            ))
            movement_store.record(
                session,
                product_id=line['product_id'],
                qty=-line['qty'] if is_return else line['qty'],
                kind=kind,
                unit_cost=line['unit_price'],
                reference_type=DocumentType.PURCHASE,
                reference_id=purchase.id,
                notes=label,
            )
            if not is_return:
                new_cost = weighted_average_cost(
                    levels[product.id], product.cost, line['qty'], line['unit_price']
                )
                levels[product.id] += line['qty']
                if new_cost != money(product.cost):
                    logger.info(f"[PURCHASE] {product.name}: cost {product.cost} -> {new_cost}")
                    product.cost = new_cost
                if item.get('sale_price') not in (None, ''):
                    product.sale_price = money(item['sale_price'], 'sale price')

        if is_return:
            if mode == PaymentMode.CREDIT and total > 0:
                party_ledger.post(
                    session, PartyType.SUPPLIER, supplier.id, credit=total,
                    reference_type=DocumentType.PURCHASE, reference_id=purchase.id,
                    description=label, date=now,
                )
        else:
            if due > 0:
                party_ledger.post(
                    session, PartyType.SUPPLIER, supplier.id, debit=total, credit=paid,
                    reference_type=DocumentType.PURCHASE, reference_id=purchase.id,
                    description=label, date=now,
                )
            if settled > 0:
                party_ledger.post(
                    session, PartyType.SUPPLIER, supplier.id, credit=settled,
                    reference_type=DocumentType.PURCHASE, reference_id=purchase.id,
                    description=f'Payment with purchase {number}', date=now,
                )

        if cash_delta != 0:
            cash_service.post(
                session, account, cash_delta,
                reference_type=DocumentType.PURCHASE, reference_id=purchase.id,
                description=f'Refund {number}' if is_return else label,
            )

        session.flush()
        new_balance = party_ledger.running_balance(session, PartyType.SUPPLIER, supplier.id)
        logger.info(
            f"[PURCHASE] {number} committed: total={total} paid={paid} due={due} "
            f"settled={settled} return={is_return}"
        )

    invalidate_derived()
    return {'purchase': purchase, 'new_party_balance': new_balance, 'warnings': priced['warnings']}


def get_purchase(session, purchase_id: int) -> Purchase:
    purchase = session.query(Purchase).filter(Purchase.id == purchase_id).first()
    if not purchase:
        raise NotFoundError(f'Purchase #{purchase_id} not found')
    return purchase
