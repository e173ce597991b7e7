"""Customer and supplier ledgers, collections and supplier payments."""
from flask import Blueprint, jsonify

from stockledger.blueprints.metrics import record_commit
from stockledger.database import get_session
from stockledger.exceptions import NotFoundError
from stockledger.models import PartyType
from stockledger.services import party_ledger, payment_service
from stockledger.utils.request_helpers import json_payload, ledger_options, date_arg

parties_bp = Blueprint('parties', __name__)


def _statement(party_type, party_id):
    session = get_session()
    party = party_ledger.get_party(session, party_type, party_id, missing=NotFoundError)
    statement = party_ledger.statement(session, party_type, party.id, start=date_arg('start'), end=date_arg('end'))
    statement['name'] = party.name
    return jsonify(dict(statement, status='success'))


def _payment_response(result):
    entry = result['entry']
    return jsonify({
        'status': 'success',
        'document_id': entry.id,
        'document_type': entry.reference_type.value,
        'amount': str(entry.credit),
        'new_party_balance': str(result['new_party_balance']),
    }), 201


@parties_bp.route('/customers/<int:customer_id>/ledger', methods=['GET'])
def customer_ledger(customer_id):
    """Statement with running balance; optional ?start=&end= ISO dates."""
    return _statement(PartyType.CUSTOMER, customer_id)


@parties_bp.route('/suppliers/<int:supplier_id>/ledger', methods=['GET'])
def supplier_ledger(supplier_id):
    return _statement(PartyType.SUPPLIER, supplier_id)


@parties_bp.route('/customers/<int:customer_id>/collections', methods=['POST'])
def collect(customer_id):
    """Body: {amount, payment_mode?, description?}"""
    payload = json_payload()
    result = payment_service.record_collection(
        get_session(),
        customer_id,
        amount=payload.get('amount'),
        payment_mode=payload.get('payment_mode', 'CASH'),
        description=payload.get('description'),
        **ledger_options()
    )
    record_commit('COLLECTION')
    return _payment_response(result)


@parties_bp.route('/suppliers/<int:supplier_id>/payments', methods=['POST'])
def pay_supplier(supplier_id):
    payload = json_payload()
    result = payment_service.record_supplier_payment(
        get_session(),
        supplier_id,
        amount=payload.get('amount'),
        payment_mode=payload.get('payment_mode', 'CASH'),
        description=payload.get('description'),
        **ledger_options()
    )
    record_commit('SUPPLIER_PAYMENT')
    return _payment_response(result)
