"""
Value formatting for renderers.

    money    -> "$1,234.56"
    percent  -> value * 100 with 2 decimals, e.g. "12.50%"
    generic  -> grouped number, e.g. "1,234.5"
    custom   -> same as generic
"""

import math


def format_currency(amount: float, currency_format: str = "${amount}") -> str:
    """Format amount with currency symbol/format (with 2 decimal places).

    Args:
        amount: The amount to format
        currency_format: Format string with {amount} placeholder, e.g. "${amount}" or "{amount} zł"

    Returns:
        Formatted currency string, e.g. "$1,234.56" or "-$12.00"
    """
    formatted_num = f"{abs(amount):,.2f}"
    sign = '-' if amount < 0 else ''
    return sign + currency_format.format(amount=formatted_num)


def format_percent(value: float) -> str:
    return f"{value * 100:.2f}%"


def format_number(value: float) -> str:
    """Grouped number with at most 3 decimals and no trailing zeros."""
    text = f"{value:,.3f}".rstrip('0').rstrip('.')
    return '0' if text == '-0' else text


def format_value(value, value_format: str = 'generic', currency_format: str = "${amount}") -> str:
    """Format a number according to a model's chart label type."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ''
    if value_format == 'money':
        return format_currency(value, currency_format)
    if value_format == 'percent':
        return format_percent(value)
    return format_number(value)
