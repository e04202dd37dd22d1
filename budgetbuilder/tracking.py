# budgetbuilder/tracking.py
"""Budget-vs-actual rollup over a project's budget categories.

This view is independent of the line items: allocated/spent figures are
entered per category and are not reconciled against budget lines.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from budgetbuilder.money import parse_numeric_input

CRITICAL_THRESHOLD = 90.0
WARNING_THRESHOLD = 75.0
DEFAULT_COLOR = 'bg-blue-500'


class SpendStatus(str, Enum):
    NORMAL = 'normal'
    WARNING = 'warning'
    CRITICAL = 'critical'


def percentage(spent: float, allocated: float) -> float:
    return (spent / allocated) * 100 if allocated > 0 else 0.0


def variance(allocated: float, spent: float) -> float:
    return allocated - spent


def classify(pct: float) -> SpendStatus:
    if pct >= CRITICAL_THRESHOLD:
        return SpendStatus.CRITICAL
    if pct >= WARNING_THRESHOLD:
        return SpendStatus.WARNING
    return SpendStatus.NORMAL


@dataclass
class CategorySpend:
    id: Any
    name: str
    allocated: float
    spent: float
    color: str
    percentage: float
    variance: float
    status: SpendStatus


@dataclass
class BudgetRollup:
    total_allocated: float = 0.0
    total_spent: float = 0.0
    overall_percentage: float = 0.0
    overall_variance: float = 0.0
    overall_status: SpendStatus = SpendStatus.NORMAL
    overspend_alert: bool = False
    categories: list[CategorySpend] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['overall_status'] = self.overall_status.value
        for cat in data['categories']:
            cat['status'] = cat['status'].value
        return data


def _field(row: Any, name: str):
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def rollup(categories: Iterable[Any]) -> BudgetRollup:
    """Total allocated and spent, per-category percentage, variance and status.

    ``categories`` may be ``BudgetCategory`` rows or plain mappings.  The
    overspend alert follows the overall percentage, not any single category.
    """
    per_category = []
    for row in categories:
        allocated = parse_numeric_input(_field(row, 'allocated'), 0.0)
        spent = parse_numeric_input(_field(row, 'spent'), 0.0)
        pct = percentage(spent, allocated)
        per_category.append(CategorySpend(
            id=_field(row, 'id'),
            name=_field(row, 'name') or '',
            allocated=allocated,
            spent=spent,
            color=_field(row, 'color') or DEFAULT_COLOR,
            percentage=pct,
            variance=variance(allocated, spent),
            status=classify(pct),
        ))

    total_allocated = sum(c.allocated for c in per_category)
    total_spent = sum(c.spent for c in per_category)
    overall = percentage(total_spent, total_allocated)
    return BudgetRollup(
        total_allocated=total_allocated,
        total_spent=total_spent,
        overall_percentage=overall,
        overall_variance=variance(total_allocated, total_spent),
        overall_status=classify(overall),
        overspend_alert=overall >= CRITICAL_THRESHOLD,
        categories=per_category,
    )
