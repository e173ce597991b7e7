"""Number parsing utilities for money and quantities."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from stockledger.exceptions import ValidationError

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value, field='amount') -> Decimal:
    """
    Parse an int, float, str or Decimal into a Decimal.

    Floats go through ``str()`` so that 0.1 stays 0.1.

    Raises:
        ValidationError: if the value is not a finite number.
    """
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f'Invalid {field}: {value!r}')
    if not result.is_finite():
        raise ValidationError(f'Invalid {field}: {value!r}')
    return result


def money(value, field='amount') -> Decimal:
    """Parse and round half-up to cents."""
    return to_decimal(value, field).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_qty(value, field='quantity') -> int:
    """
    Parse a unit quantity. Quantities are whole units.

    Raises:
        ValidationError: if the value is not an integer.
    """
    if isinstance(value, bool):
        raise ValidationError(f'Invalid {field}: {value!r}')
    number = to_decimal(value, field)
    if number != number.to_integral_value():
        raise ValidationError(f'{field.capitalize()} must be a whole number, got {value}')
    return int(number)


def parse_id(value, field='id') -> int:
    """
    Parse a database id (positive integer).

    Raises:
        ValidationError: naming ``field`` when the id is missing or malformed.
    """
    if value is None or value == '' or isinstance(value, (bool, float)):
        raise ValidationError(f'Invalid {field}: {value!r}')
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValidationError(f'Invalid {field}: {value!r}')
    if number <= 0:
        raise ValidationError(f'Invalid {field}: {value!r}')
    return number
