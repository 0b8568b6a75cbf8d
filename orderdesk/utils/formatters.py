"""
Number and money formatting helpers.

Amounts are rendered with a thousands separator and without trailing
decimal zeros, so 150.00 becomes "150" and 1500.5 becomes "1,500.5".
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Union

Number = Union[int, float, Decimal, str, None]


def format_number(value: Number) -> str:
    """
    Format a number with ',' as thousands separator, dropping trailing zeros.

    Examples:
        format_number(1500) -> "1,500"
        format_number(1500.50) -> "1,500.5"
        format_number(None) -> "0"
    """
    if value is None or value == '':
        return '0'

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return str(value)

    if not num.is_finite():
        return str(value)

    num = num.quantize(Decimal('0.01'))
    sign = '-' if num < 0 else ''
    integer_part, decimal_part = f"{abs(num):.2f}".split('.')
    decimal_part = decimal_part.rstrip('0')

    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i + 3] for i in range(0, len(reversed_int), 3)]
    integer_formatted = ','.join(groups)[::-1]

    if decimal_part:
        return f"{sign}{integer_formatted}.{decimal_part}"
    return f"{sign}{integer_formatted}"


def format_money(value: Number, symbol: str = '₹') -> str:
    """format_money(150) -> "₹150"."""
    formatted = format_number(value)
    if formatted.startswith('-'):
        return f"-{symbol}{formatted[1:]}"
    return f"{symbol}{formatted}"


def format_qty(value: Number) -> str:
    """Quantities are whole numbers; render them without decimals."""
    if value is None or value == '':
        return '0'
    try:
        return f"{int(Decimal(str(value))):,}"
    except (InvalidOperation, ValueError, TypeError):
        return str(value)


def format_date(value: Union[date, datetime, None]) -> str:
    """Format a date as DD/MM/YYYY, or '-' when missing."""
    if value is None:
        return '-'
    return value.strftime('%d/%m/%Y')
