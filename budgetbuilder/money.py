# budgetbuilder/money.py
"""Currency formatting and forgiving numeric parsing."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from babel import Locale
from babel.numbers import format_currency as _babel_format_currency

MIN_QUANTITY = 1
MIN_DISCOUNT = 0.0
MAX_DISCOUNT = 100.0
MAX_MARKUP = 999.99


@dataclass(frozen=True)
class CurrencyFormat:
    currency: str = 'ARS'
    locale: str = 'es-AR'
    min_fraction_digits: int = 0
    max_fraction_digits: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'CurrencyFormat':
        return cls(
            currency=data.get('currency', cls.currency),
            locale=data.get('locale', cls.locale),
            min_fraction_digits=int(data.get('min_fraction_digits', cls.min_fraction_digits)),
            max_fraction_digits=int(data.get('max_fraction_digits', cls.max_fraction_digits)),
        )


def parse_numeric_input(raw: Any, fallback: float = 0.0) -> float:
    """Return ``raw`` as a float, or ``fallback`` when it is not a usable number."""
    if raw is None or isinstance(raw, bool):
        return fallback
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return fallback
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(value) or math.isinf(value):
        return fallback
    return value


def clamp_min(value: float, minimum: float) -> float:
    return value if value >= minimum else minimum


def clamp_range(value: float, minimum: float, maximum: float) -> float:
    return min(max(value, minimum), maximum)


def _locale(tag: str) -> Locale:
    # accept BCP-47 tags ("es-AR") as well as POSIX ones ("es_AR")
    return Locale.parse(tag.replace('-', '_'))


def format_currency(amount: Any, currency_format: CurrencyFormat) -> str:
    """Render ``amount`` with the locale's currency pattern.

    The fraction digits come from ``currency_format`` rather than from the
    currency itself, so the budget builder can quote whole pesos while the
    tracking screens keep cents.
    """
    value = parse_numeric_input(amount, 0.0)
    locale = _locale(currency_format.locale)
    pattern = copy.copy(locale.currency_formats['standard'])
    pattern.frac_prec = (
        currency_format.min_fraction_digits,
        max(currency_format.min_fraction_digits, currency_format.max_fraction_digits),
    )
    return _babel_format_currency(
        Decimal(str(value)),
        currency_format.currency,
        format=pattern,
        locale=locale,
        currency_digits=False,
    )
