"""Custom exceptions for the stock ledger engine."""
from decimal import Decimal


def _fmt_amount(value):
    """Render a quantity or amount without trailing zeros."""
    if value is None:
        return '0'
    value = Decimal(str(value))
    if value % 1 == 0:
        return f"{int(value)}"
    return f"{value:.2f}".rstrip('0').rstrip('.')


class LedgerError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['error'] = type(self).__name__
        return rv


class BusinessLogicError(LedgerError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class ValidationError(BusinessLogicError):
    """Malformed input: bad quantity, unknown product or party, bad amount."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFoundError(LedgerError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available, product_id=None):
        self.product_name = product_name
        self.product_id = product_id
        self.required = required
        self.available = available
        message = (
            f"Insufficient stock for {product_name}: "
            f"requested {_fmt_amount(required)}, available {_fmt_amount(available)}"
        )
        payload = {
            'product_id': product_id,
            'product': product_name,
            'requested': _fmt_amount(required),
            'available': _fmt_amount(available),
        }
        super().__init__(message, status_code=409, payload=payload)


class InsufficientCashError(BusinessLogicError):
    """Raised when a cash account cannot cover an outgoing payment."""
    def __init__(self, account, required, available):
        self.account = account
        self.required = required
        self.available = available
        message = (
            f"Insufficient funds in {account}: "
            f"required {_fmt_amount(required)}, available {_fmt_amount(available)}"
        )
        payload = {
            'account': account,
            'required': _fmt_amount(required),
            'available': _fmt_amount(available),
        }
        super().__init__(message, status_code=409, payload=payload)


class AlreadyRevertedError(BusinessLogicError):
    """Raised when a document has already been reversed."""
    def __init__(self, document_type, document_id):
        self.document_type = document_type
        self.document_id = document_id
        message = f"{document_type} #{document_id} has already been reverted"
        super().__init__(message, status_code=409,
                         payload={'document_type': document_type, 'document_id': document_id})


class ConcurrencyConflict(LedgerError):
    """The transaction could not be serialized; safe to retry."""
    def __init__(self, message="Concurrent update detected, please retry", payload=None):
        super().__init__(message, 409, payload)


class CommitFailed(LedgerError):
    """A store-level failure aborted the commit; nothing was written."""
    def __init__(self, operation, cause):
        self.operation = operation
        self.cause = cause
        message = f"Could not {operation}: {cause}"
        super().__init__(message, 500, payload={'operation': operation})
