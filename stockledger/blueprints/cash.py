"""Cash accounts blueprint - balances and transfers between accounts."""
from flask import Blueprint, jsonify

from stockledger.blueprints.metrics import record_commit
from stockledger.database import get_session
from stockledger.services import cash_service, expense_service, reversal_service
from stockledger.utils.request_helpers import json_payload, ledger_options

cash_bp = Blueprint('cash', __name__, url_prefix='/cash-accounts')


@cash_bp.route('', methods=['GET'])
def list_accounts():
    """Balance of every cash/bank account (opening + postings)."""
    return jsonify({'status': 'success', 'accounts': cash_service.list_balances(get_session())})


@cash_bp.route('/transfers', methods=['POST'])
def create_transfer():
    """Body: {from_account, to_account, amount, description?}"""
    payload = json_payload()
    result = expense_service.transfer_funds(
        get_session(),
        from_account=payload.get('from_account'),
        to_account=payload.get('to_account'),
        amount=payload.get('amount'),
        description=payload.get('description'),
        **ledger_options(accounts=False)
    )
    record_commit('TRANSFER')
    return jsonify({
        'status': 'success',
        'transfer': result['transfer'].to_dict(),
        'balances': {code: str(value) for code, value in result['balances'].items()},
    }), 201


@cash_bp.route('/transfers/<int:transfer_id>', methods=['DELETE'])
def delete_transfer(transfer_id):
    result = reversal_service.delete_document(get_session(), 'TRANSFER', transfer_id, **ledger_options(accounts=False))
    record_commit('TRANSFER_REVERSAL')
    return jsonify(dict(result, status='success'))
