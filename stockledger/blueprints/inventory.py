"""Inventory blueprint - stock levels, history, adjustments and valuation."""
from flask import Blueprint, jsonify, current_app

from stockledger.blueprints.metrics import record_commit
from stockledger.database import get_session
from stockledger.services import adjustment_service, movement_store, reversal_service, valuation_service
from stockledger.utils.request_helpers import json_payload

inventory_bp = Blueprint('inventory', __name__, url_prefix='/inventory')


def _movement_to_dict(movement):
    return {
        'id': movement.id,
        'qty': movement.qty,
        'kind': movement.kind.value,
        'unit_cost': str(movement.unit_cost),
        'reference_type': movement.reference_type.value if movement.reference_type else None,
        'reference_id': movement.reference_id,
        'notes': movement.notes,
        'is_reversal': movement.is_reversal,
        'reversed_at': movement.reversed_at.isoformat() if movement.reversed_at else None,
        'created_at': movement.created_at.isoformat() if movement.created_at else None,
    }


@inventory_bp.route('/<int:product_id>', methods=['GET'])
def product_stock(product_id):
    """Current stock (folded from movements) with the full movement history."""
    session = get_session()
    product = movement_store.get_product(session, product_id)
    stock = movement_store.current_stock(session, product.id)
    return jsonify({
        'status': 'success',
        'product_id': product.id,
        'name': product.name,
        'stock': stock,
        'low_stock': movement_store.is_low_stock(session, product),
        'movements': [_movement_to_dict(m) for m in movement_store.history(session, product.id)],
    })


@inventory_bp.route('/low-stock', methods=['GET'])
def low_stock():
    return jsonify({'status': 'success', 'products': movement_store.low_stock_products(get_session())})


@inventory_bp.route('/valuation', methods=['GET'])
def valuation():
    return jsonify(dict(valuation_service.stock_valuation(get_session()), status='success'))


@inventory_bp.route('/adjust', methods=['POST'])
def adjust():
    """Body: {product_id, qty (signed), notes?}"""
    payload = json_payload()
    result = adjustment_service.adjust_stock(
        get_session(),
        product_id=payload.get('product_id'),
        qty=payload.get('qty'),
        notes=payload.get('notes'),
        allow_negative_stock=current_app.config.get('ALLOW_NEGATIVE_STOCK', False),
        retries=current_app.config.get('CONCURRENCY_RETRIES', 3),
    )
    record_commit('ADJUSTMENT')
    return jsonify({
        'status': 'success',
        'movement': _movement_to_dict(result['movement']),
        'previous_stock': result['previous_stock'],
        'new_stock': result['new_stock'],
    }), 201


@inventory_bp.route('/adjustments/<int:movement_id>', methods=['DELETE'])
def delete_adjustment(movement_id):
    result = reversal_service.delete_adjustment(
        get_session(),
        movement_id,
        allow_negative_stock=current_app.config.get('ALLOW_NEGATIVE_STOCK', False),
        retries=current_app.config.get('CONCURRENCY_RETRIES', 3),
    )
    record_commit('ADJUSTMENT_REVERSAL')
    return jsonify(dict(result, status='success'))
