"""Locale-aware currency text parsing and formatting (es-AR style: 1.234,56)"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from billfold.config import settings
from billfold.domain.exceptions import ValidationError
from billfold.domain.models import CENT


def _group(digits: str, group_separator: str) -> str:
    return re.sub(r"\B(?=(\d{3})+(?!\d))", group_separator, digits)


def format_currency_input(
    value: str,
    decimal_separator: Optional[str] = None,
    group_separator: Optional[str] = None,
) -> str:
    """
    Reformat text as the user types it.

    Keeps digits and the decimal separator, regroups the integer part and
    cuts decimals to two digits: "1234567,891" -> "1.234.567,89".
    """
    decimal_separator = decimal_separator or settings.decimal_separator
    group_separator = group_separator or settings.group_separator

    clean = re.sub(rf"[^\d{re.escape(decimal_separator)}]", "", value)
    if not clean:
        return ""

    parts = clean.split(decimal_separator)
    integer_part = _group(parts[0], group_separator)
    if len(parts) > 1:
        return f"{integer_part}{decimal_separator}{parts[1][:2]}"
    return integer_part


def parse_currency_input(
    value: str,
    decimal_separator: Optional[str] = None,
    group_separator: Optional[str] = None,
) -> Optional[Decimal]:
    """
    Parse user-entered currency text into a Decimal.

    Returns None for blank input.

    Raises:
        ValidationError: if the text is not a number
    """
    decimal_separator = decimal_separator or settings.decimal_separator
    group_separator = group_separator or settings.group_separator

    text = value.strip().lstrip("$").strip()
    if not text:
        return None

    normalized = text.replace(group_separator, "").replace(decimal_separator, ".")
    try:
        amount = Decimal(normalized)
    except InvalidOperation as e:
        raise ValidationError(f"Not a valid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"Not a valid amount: {value!r}")
    return amount


def format_currency(
    amount: Decimal,
    decimal_separator: Optional[str] = None,
    group_separator: Optional[str] = None,
) -> str:
    """Display an amount with grouping and between zero and two decimals: 1234.5 -> "1.234,5" """
    decimal_separator = decimal_separator or settings.decimal_separator
    group_separator = group_separator or settings.group_separator

    rounded = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    integer_part, _, fraction = f"{abs(rounded):.2f}".partition(".")
    fraction = fraction.rstrip("0")

    text = sign + _group(integer_part, group_separator)
    if fraction:
        text += decimal_separator + fraction
    return text
