"""Expenses blueprint - money paid out for running costs."""
from flask import Blueprint, jsonify, current_app, request

from stockledger.blueprints.metrics import record_commit
from stockledger.database import get_session
from stockledger.services import expense_service, reversal_service
from stockledger.utils.request_helpers import json_payload, ledger_options

expenses_bp = Blueprint('expenses', __name__, url_prefix='/expenses')


@expenses_bp.route('', methods=['GET'])
def list_expenses():
    """?all=1 includes cancelled expenses."""
    expenses = expense_service.list_expenses(get_session(), include_cancelled=request.args.get('all') == '1')
    return jsonify({'status': 'success', 'expenses': [e.to_dict() for e in expenses]})


@expenses_bp.route('', methods=['POST'])
def create_expense():
    """Body: {amount, payment_mode? (CASH|BANK), category?, description?, reference?}"""
    payload = json_payload()
    result = expense_service.record_expense(
        get_session(),
        amount=payload.get('amount'),
        payment_mode=payload.get('payment_mode', 'CASH'),
        category=payload.get('category'),
        description=payload.get('description'),
        reference=payload.get('reference'),
        **ledger_options()
    )
    record_commit('EXPENSE')
    return jsonify({
        'status': 'success',
        'expense': result['expense'].to_dict(),
        'account_balance': str(result['account_balance']),
    }), 201


@expenses_bp.route('/<int:expense_id>', methods=['GET'])
def get_expense(expense_id):
    return jsonify({'status': 'success', 'expense': expense_service.get_expense(get_session(), expense_id).to_dict()})


@expenses_bp.route('/<int:expense_id>', methods=['DELETE'])
def delete_expense(expense_id):
    """Revert an expense: the money goes back into its account."""
    result = reversal_service.delete_document(get_session(), 'EXPENSE', expense_id, **ledger_options(accounts=False))
    record_commit('EXPENSE_REVERSAL')
    current_app.logger.info(f"Expense #{expense_id} reverted")
    return jsonify(dict(result, status='success'))
