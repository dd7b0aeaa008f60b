"""Currency display helpers."""

import math
from dataclasses import dataclass
from decimal import Decimal
from numbers import Real


@dataclass(frozen=True)
class Currency:
    code: str
    name: str
    symbol: str


CURRENCIES: list[Currency] = [
    Currency("USD", "Dólar estadounidense", "$"),
    Currency("EUR", "Euro", "€"),
    Currency("DOP", "Peso dominicano", "RD$"),
    Currency("MXN", "Peso mexicano", "MX$"),
    Currency("COP", "Peso colombiano", "CO$"),
    Currency("ARS", "Peso argentino", "AR$"),
    Currency("CLP", "Peso chileno", "CL$"),
    Currency("PEN", "Sol peruano", "S/"),
    Currency("BRL", "Real brasileño", "R$"),
    Currency("GTQ", "Quetzal guatemalteco", "Q"),
]

DEFAULT_SYMBOL = "$"

_SYMBOLS = {c.code: c.symbol for c in CURRENCIES}


def currency_symbol(currency_code: str | None) -> str:
    """Look up the display symbol for an ISO code, defaulting to '$'."""
    return _SYMBOLS.get(currency_code or "", DEFAULT_SYMBOL)


def format_currency(amount: object, currency_code: str | None) -> str:
    """
    Format an amount as '<symbol><amount with 2 decimals>'.

    No thousands separators are used. Anything that is not a finite number
    (None, strings, NaN, infinities, booleans) renders as '$0.00'.
    """
    if isinstance(amount, bool) or not isinstance(amount, (Real, Decimal)):
        return f"{DEFAULT_SYMBOL}0.00"
    if not math.isfinite(amount):
        return f"{DEFAULT_SYMBOL}0.00"

    return f"{currency_symbol(currency_code)}{amount:.2f}"
