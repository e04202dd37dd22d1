# budgetbuilder/budget/aggregator.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from budgetbuilder.budget.cost_model import CartLineItem
from budgetbuilder.money import (
    MAX_DISCOUNT,
    MIN_DISCOUNT,
    CurrencyFormat,
    clamp_range,
    format_currency,
    parse_numeric_input,
)

CLIENT_VIEW = 'client'
INTERNAL_VIEW = 'internal'
VIEWS = (CLIENT_VIEW, INTERNAL_VIEW)

# Figures the client-facing view never shows
INTERNAL_FIELDS = ('total_cost', 'total_labor', 'total_profit', 'profit_margin_percent')
MONEY_FIELDS = (
    'subtotal', 'discount_amount', 'grand_total',
    'total_cost', 'total_labor', 'total_profit',
)


@dataclass(frozen=True)
class BudgetTotals:
    subtotal: float = 0.0
    discount_percent: float = 0.0
    discount_amount: float = 0.0
    grand_total: float = 0.0
    total_cost: float = 0.0
    total_labor: float = 0.0
    total_profit: float = 0.0
    profit_margin_percent: float = 0.0

    def to_dict(self, view: str = INTERNAL_VIEW) -> dict:
        data = {
            'subtotal': self.subtotal,
            'discount_percent': self.discount_percent,
            'discount_amount': self.discount_amount,
            'grand_total': self.grand_total,
            'total_cost': self.total_cost,
            'total_labor': self.total_labor,
            'total_profit': self.total_profit,
            'profit_margin_percent': self.profit_margin_percent,
        }
        if view == CLIENT_VIEW:
            for key in INTERNAL_FIELDS:
                data.pop(key)
        return data

    def formatted(self, currency_format: CurrencyFormat, view: str = INTERNAL_VIEW) -> dict:
        data = self.to_dict(view)
        return {
            key: format_currency(data[key], currency_format)
            for key in MONEY_FIELDS
            if key in data
        }


def clamp_discount(value: Any) -> float:
    """Discount percentages are clamped to 0-100 once, before aggregating."""
    return clamp_range(parse_numeric_input(value, 0.0), MIN_DISCOUNT, MAX_DISCOUNT)


def aggregate(items: Iterable[CartLineItem], discount_percent: float = 0.0) -> BudgetTotals:
    """Derive the budget summary from cart lines.

    ``discount_percent`` must already be clamped (see ``clamp_discount``).
    Labor is summed on its own and is not part of the subtotal.
    """
    items = list(items)
    subtotal = sum(i.unit_price * i.quantity for i in items)
    total_cost = sum(i.cost * i.quantity for i in items)
    total_labor = sum(i.labor * i.quantity for i in items)
    total_profit = sum(i.profit * i.quantity for i in items)

    discount_amount = subtotal * discount_percent / 100
    margin = round((total_profit / subtotal) * 100, 1) if subtotal > 0 else 0.0

    return BudgetTotals(
        subtotal=subtotal,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        grand_total=subtotal - discount_amount,
        total_cost=total_cost,
        total_labor=total_labor,
        total_profit=total_profit,
        profit_margin_percent=margin,
    )
