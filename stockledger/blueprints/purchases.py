"""Purchases blueprint."""
from flask import Blueprint, jsonify, current_app

from stockledger.blueprints.metrics import record_commit
from stockledger.database import get_session
from stockledger.services import purchase_service, reversal_service
from stockledger.utils.request_helpers import json_payload, ledger_options, bool_field

purchases_bp = Blueprint('purchases', __name__, url_prefix='/purchases')


@purchases_bp.route('', methods=['POST'])
def create_purchase():
    """
    Confirm a purchase or purchase return.

    Body: {supplier_id, items: [{product_id, qty, unit_price?, discount?,
    sale_price?}], discount?, payment_type?, cash_paid?, is_return?,
    invoice_no?, notes?}
    """
    payload = json_payload()
    result = purchase_service.create_purchase(
        get_session(),
        supplier_id=payload.get('supplier_id'),
        items=payload.get('items') or [],
        discount=payload.get('discount', 0),
        payment_type=payload.get('payment_type', 'CASH'),
        cash_paid=payload.get('cash_paid', 0),
        is_return=bool_field(payload, 'is_return'),
        invoice_no=payload.get('invoice_no'),
        notes=payload.get('notes'),
        allow_negative_stock=current_app.config.get('ALLOW_NEGATIVE_STOCK', False),
        invoice_prefix=current_app.config.get('PURCHASE_INVOICE_PREFIX', 'PUR'),
        **ledger_options()
    )
    purchase = result['purchase']
    record_commit('PURCHASE_RETURN' if purchase.is_return else 'PURCHASE')
    current_app.logger.info(f"Purchase {purchase.invoice_no} confirmed (total {purchase.total})")
    return jsonify({
        'status': 'success',
        'purchase': purchase.to_dict(),
        'new_party_balance': str(result['new_party_balance']),
        'warnings': result['warnings'],
    }), 201


@purchases_bp.route('/<int:purchase_id>', methods=['GET'])
def get_purchase(purchase_id):
    purchase = purchase_service.get_purchase(get_session(), purchase_id)
    return jsonify({'status': 'success', 'purchase': purchase.to_dict()})


@purchases_bp.route('/<int:purchase_id>', methods=['DELETE'])
def delete_purchase(purchase_id):
    result = reversal_service.delete_purchase(
        get_session(),
        purchase_id,
        allow_negative_stock=current_app.config.get('ALLOW_NEGATIVE_STOCK', False),
        **ledger_options(accounts=False)
    )
    record_commit('PURCHASE_REVERSAL')
    return jsonify(dict(result, status='success'))
