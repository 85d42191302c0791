from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException

MONEY = Decimal("0.01")
QUANTITY = Decimal("0.001")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # float -> str first so 0.1 stays 0.1
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise _not_a_number(value)


def _not_a_number(value) -> AppException:
    return AppException(
        400,
        "Numeric value is malformed or out of range",
        ErrorCode.VALIDATION_ERROR,
        {"value": str(value)},
    )


def _quantize(value, step: Decimal) -> Decimal:
    raw = to_decimal(value)
    if not raw.is_finite():
        raise _not_a_number(value)
    try:
        return raw.quantize(step, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise _not_a_number(value)


def money(value) -> Decimal:
    return _quantize(value, MONEY)


def quantity(value) -> Decimal:
    return _quantize(value, QUANTITY)
