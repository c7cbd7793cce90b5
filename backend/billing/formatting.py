"""Currency and date formatting shared by receipts and spreadsheets"""
from datetime import date, datetime
from typing import Optional, Union

from .calculator import Number, quantize

CURRENCY_SYMBOL = "₹"


def format_currency(value: Optional[Number], symbol: str = CURRENCY_SYMBOL) -> str:
    """1568 -> '₹1,568.00', -12.5 -> '-₹12.50'"""
    amount = quantize(value or 0)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_date(value: Optional[Union[date, datetime, str]], with_time: bool = False) -> str:
    if value is None:
        return "-"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if with_time and isinstance(value, datetime):
        return value.strftime("%d %b %Y, %I:%M %p")
    return value.strftime("%d %b %Y")
