"""Held sales blueprint."""
from flask import Blueprint, jsonify

from stockledger.database import get_session
from stockledger.services import held_sale_service
from stockledger.utils.request_helpers import json_payload

held_sales_bp = Blueprint('held_sales', __name__, url_prefix='/held-sales')


@held_sales_bp.route('', methods=['GET'])
def list_held():
    return jsonify({'status': 'success', 'held_sales': held_sale_service.list_held_sales(get_session())})


@held_sales_bp.route('', methods=['POST'])
def hold():
    """Park a cart. Same body as POST /sales; nothing is validated against stock."""
    payload = json_payload()
    session = get_session()
    held = held_sale_service.hold_sale(
        session,
        items=payload.get('items') or [],
        customer_id=payload.get('customer_id'),
        discount=payload.get('discount', 0),
        payment_mode=payload.get('payment_mode', 'CASH'),
        cash_received=payload.get('cash_received', 0),
        note=payload.get('note'),
    )
    return jsonify({'status': 'success', 'held_sale': held_sale_service.held_sale_to_dict(held)}), 201


@held_sales_bp.route('/<int:held_id>/resume', methods=['POST'])
def resume(held_id):
    draft = held_sale_service.resume_held_sale(get_session(), held_id)
    return jsonify({'status': 'success', 'draft': draft})


@held_sales_bp.route('/<int:held_id>', methods=['DELETE'])
def delete(held_id):
    held_sale_service.delete_held_sale(get_session(), held_id)
    return jsonify({'status': 'success', 'deleted': held_id})
