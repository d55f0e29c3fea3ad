"""Server-side request validation.

Every check raises ``ValidationError(field, reason)``; none touch the network.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from tron_gateway.chain.tron.address import is_valid_address
from tron_gateway.errors.gateway_errors import ValidationError

MAX_REFERENCE_ID_LENGTH = 255
MAX_OWNER_ID_LENGTH = 100

_REFERENCE_ID_RE = re.compile(r"[A-Za-z0-9\-_.]+")
_PRIVATE_KEY_RE = re.compile(r"[0-9a-fA-F]{64}")


def parse_amount(raw: str | Decimal) -> Decimal:
    """Parse a decimal string, rejecting floats-in-disguise like ``NaN``."""
    try:
        amount = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise ValidationError("amount", f"not a decimal number: {raw!r}") from exc
    if not amount.is_finite():
        raise ValidationError("amount", "must be a finite number")
    return amount


def fraction_digits(amount: Decimal) -> int:
    """Number of significant digits after the decimal point."""
    normalized = amount.normalize()
    exponent = normalized.as_tuple().exponent
    assert isinstance(exponent, int)
    return max(0, -exponent)


def validate_amount(
    amount: Decimal,
    *,
    max_amount: Decimal = Decimal("1000000000"),
    max_fraction_digits: int = 6,
) -> Decimal:
    """Check an order amount is positive, bounded and not over-precise."""
    if amount <= 0:
        raise ValidationError("amount", "must be greater than zero")
    if amount > max_amount:
        raise ValidationError("amount", f"must not exceed {max_amount}")
    if fraction_digits(amount) > max_fraction_digits:
        raise ValidationError(
            "amount", f"must have at most {max_fraction_digits} decimal places"
        )
    return amount


def validate_reference_id(reference_id: str) -> str:
    if not reference_id:
        raise ValidationError("reference_id", "must not be empty")
    if len(reference_id) > MAX_REFERENCE_ID_LENGTH:
        raise ValidationError(
            "reference_id", f"must be at most {MAX_REFERENCE_ID_LENGTH} characters"
        )
    if not _REFERENCE_ID_RE.fullmatch(reference_id):
        raise ValidationError(
            "reference_id", "may only contain letters, digits, '-', '_' and '.'"
        )
    return reference_id


def validate_address(address: str, *, field: str = "address") -> str:
    if not is_valid_address(address):
        raise ValidationError(field, f"not a valid TRON address: {address!r}")
    return address


def validate_private_key(private_key: str) -> str:
    if not _PRIVATE_KEY_RE.fullmatch(private_key):
        raise ValidationError("private_key", "must be 64 hexadecimal characters")
    return private_key


def validate_owner_id(owner_id: str) -> str:
    if len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise ValidationError("owner_id", f"must be at most {MAX_OWNER_ID_LENGTH} characters")
    return owner_id
