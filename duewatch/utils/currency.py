"""Currency formatting helpers."""

from typing import Iterable, Tuple

from duewatch.utils.constants import CURRENCY_SYMBOLS


def format_currency(amount: float, currency: str) -> str:
    """Format an amount with its currency symbol (e.g. "99.99 ₺").

    Unknown currency codes are shown as-is.
    """
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{amount:.2f} {symbol}"


def format_total(items: Iterable[Tuple[float, str]]) -> str:
    """Sum (amount, currency) pairs per currency.

    Currencies keep their first-seen order, so a mixed group renders as
    "10.00 $ + 5.00 €" instead of a single misleading total.
    """
    totals: dict[str, float] = {}
    for amount, currency in items:
        totals[currency] = totals.get(currency, 0.0) + amount
    return " + ".join(format_currency(total, currency) for currency, total in totals.items())
