"""
Standalone payments against party balances.

Customer collections bring money in and credit the customer; supplier
payments take money out (gated by the cash position) and credit the
supplier. Each payment is one ledger entry whose own id is its document
reference, so it can be reverted through the reversal service.
"""
import logging
from typing import Optional, Dict, Any

from stockledger.exceptions import ValidationError
from stockledger.models import PartyType, DocumentType, PaymentMode
from stockledger.services import cash_service, party_ledger
from stockledger.services.locking import (
    ledger_transaction, retry_on_conflict, customer_key, supplier_key, account_key
)
from stockledger.services.sales_service import parse_payment_mode
from stockledger.utils.number_format import money, parse_id

logger = logging.getLogger(__name__)

PAYMENT_DOCUMENTS = {
    PartyType.CUSTOMER: DocumentType.COLLECTION,
    PartyType.SUPPLIER: DocumentType.SUPPLIER_PAYMENT,
}


def _record_payment(session, party_type: PartyType, party_id, amount, payment_mode,
                    description, allow_negative_cash, cash_account, bank_account) -> Dict[str, Any]:
    party_id = parse_id(party_id, 'customer_id' if party_type == PartyType.CUSTOMER else 'supplier_id')
    amount = money(amount, 'amount')
    if amount <= 0:
        raise ValidationError('Payment amount must be greater than 0')
    mode = parse_payment_mode(payment_mode)
    if mode == PaymentMode.CREDIT:
        raise ValidationError('Payments must go through CASH or BANK')
    account_code = cash_service.account_for_mode(mode, cash_account, bank_account)
    party_key = customer_key(party_id) if party_type == PartyType.CUSTOMER else supplier_key(party_id)
    document_type = PAYMENT_DOCUMENTS[party_type]
    incoming = party_type == PartyType.CUSTOMER

    operation = 'record collection' if incoming else 'record supplier payment'
    with ledger_transaction(session, operation, [party_key, account_key(account_code)]):
        party = party_ledger.get_party(session, party_type, party_id, lock=True)
        if not party_ledger.is_tracked(party):
            raise ValidationError('Walk-in customers carry no balance to collect')
        account = cash_service.get_account(session, account_code, lock=True)

        outstanding = party_ledger.outstanding(party_ledger.running_balance(session, party_type, party.id))
        if amount > outstanding:
            raise ValidationError(f'Payment {amount} exceeds outstanding balance {outstanding}')
        if not incoming:
            cash_service.require_funds(session, account, amount, allow_negative_cash)

        entry = party_ledger.post(
            session, party_type, party.id, credit=amount,
            reference_type=document_type,
            description=description or ('Collection' if incoming else 'Payment to supplier'),
        )
        session.flush()
        entry.reference_id = entry.id
        cash_service.post(
            session, account, amount if incoming else -amount,
            reference_type=document_type, reference_id=entry.id,
            description=entry.description,
        )
        session.flush()
        new_balance = party_ledger.running_balance(session, party_type, party.id)
        logger.info(f"[PAYMENT] {document_type.value} #{entry.id}: {party_type.value} {party.id} amount={amount}")

    return {'entry': entry, 'new_party_balance': new_balance}


@retry_on_conflict
def record_collection(session, customer_id: int, amount, payment_mode='CASH', description: Optional[str] = None,
                      allow_negative_cash: bool = False, cash_account: str = cash_service.CASH_IN_HAND,
                      bank_account: str = cash_service.BANK) -> Dict[str, Any]:
    """Customer pays (part of) their balance."""
    return _record_payment(session, PartyType.CUSTOMER, customer_id, amount, payment_mode, description,
                           allow_negative_cash, cash_account, bank_account)


@retry_on_conflict
def record_supplier_payment(session, supplier_id: int, amount, payment_mode='CASH', description: Optional[str] = None,
                            allow_negative_cash: bool = False, cash_account: str = cash_service.CASH_IN_HAND,
                            bank_account: str = cash_service.BANK) -> Dict[str, Any]:
    """We pay (part of) what we owe a supplier."""
    return _record_payment(session, PartyType.SUPPLIER, supplier_id, amount, payment_mode, description,
                           allow_negative_cash, cash_account, bank_account)
