"""Sales blueprint - confirm, view and revert sales."""
from flask import Blueprint, jsonify, current_app

from stockledger.blueprints.metrics import record_commit
from stockledger.database import get_session
from stockledger.services import reversal_service, sales_service, valuation_service
from stockledger.utils.request_helpers import json_payload, ledger_options, bool_field

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def _money_or_none(value):
    return str(value) if value is not None else None


@sales_bp.route('', methods=['POST'])
def create_sale():
    """
    Confirm a sale or sale return.

    Body: {items: [{product_id, qty, unit_price?, discount?}], customer_id?,
    discount?, payment_mode?, cash_received?, is_return?, notes?}
    """
    payload = json_payload()
    result = sales_service.create_sale(
        get_session(),
        items=payload.get('items') or [],
        customer_id=payload.get('customer_id'),
        discount=payload.get('discount', 0),
        payment_mode=payload.get('payment_mode', 'CASH'),
        cash_received=payload.get('cash_received', 0),
        is_return=bool_field(payload, 'is_return'),
        notes=payload.get('notes'),
        allow_negative_stock=current_app.config.get('ALLOW_NEGATIVE_STOCK', False),
        invoice_prefix=current_app.config.get('SALE_INVOICE_PREFIX', 'INV'),
        **ledger_options()
    )
    sale = result['sale']
    record_commit('SALE_RETURN' if sale.is_return else 'SALE')
    current_app.logger.info(f"Sale {sale.invoice_no} confirmed (total {sale.total})")
    return jsonify({
        'status': 'success',
        'sale': sale.to_dict(),
        'change': str(result['change']),
        'new_party_balance': _money_or_none(result['new_party_balance']),
        'warnings': result['warnings'],
    }), 201


@sales_bp.route('/<int:sale_id>', methods=['GET'])
def get_sale(sale_id):
    """Sale with its profit at the line costs recorded on confirmation."""
    sale = sales_service.get_sale(get_session(), sale_id)
    profit = {key: str(value) for key, value in valuation_service.sale_profit(sale).items()}
    return jsonify({'status': 'success', 'sale': sale.to_dict(), 'profit': profit})


@sales_bp.route('/<int:sale_id>', methods=['DELETE'])
def delete_sale(sale_id):
    """Revert a sale: stock back in, ledger and cash reversed, sale CANCELLED."""
    result = reversal_service.delete_sale(
        get_session(),
        sale_id,
        allow_negative_stock=current_app.config.get('ALLOW_NEGATIVE_STOCK', False),
        **ledger_options(accounts=False)
    )
    record_commit('SALE_REVERSAL')
    return jsonify(dict(result, status='success'))
