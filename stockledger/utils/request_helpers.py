"""Helpers shared by the JSON blueprints."""
from datetime import datetime

from flask import current_app, request

from stockledger.exceptions import ValidationError


def json_payload() -> dict:
    """Request body as a dict; anything else is a ValidationError."""
    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError('Request body must be JSON')
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def ledger_options(accounts: bool = True) -> dict:
    """Policy kwargs for the ledger services, read from app config."""
    config = current_app.config
    options = {
        'allow_negative_cash': config.get('ALLOW_NEGATIVE_CASH', False),
        'retries': config.get('CONCURRENCY_RETRIES', 3),
    }
    if accounts:
        options['cash_account'] = config.get('CASH_ACCOUNT_CODE', 'CASH_IN_HAND')
        options['bank_account'] = config.get('BANK_ACCOUNT_CODE', 'BANK')
    return options


def date_arg(name: str):
    """Optional ISO date/datetime query arg."""
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f'Invalid {name}: {value!r}, expected ISO date')


def bool_field(payload: dict, name: str, default: bool = False) -> bool:
    """JSON boolean field; strings such as "false" are rejected, not coerced."""
    value = payload.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f'{name} must be true or false, got {value!r}')
    return value
