# budgetbuilder/budget/reconciler.py
"""Save a cart as a project's line items, and rebuild a cart from them."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterable

from budgetbuilder import store
from budgetbuilder.budget.aggregator import BudgetTotals
from budgetbuilder.budget.cost_model import (
    CartLineItem,
    CatalogLookup,
    PersistedLineItem,
    to_cart_item,
    to_persisted_item,
)
from budgetbuilder.errors import SaveInProgress

_saving: set = set()
_saving_lock = threading.Lock()


@contextmanager
def single_flight(project_id):
    """Reject a second save for a project while the first is still running."""
    with _saving_lock:
        if project_id in _saving:
            raise SaveInProgress(project_id)
        _saving.add(project_id)
    try:
        yield
    finally:
        with _saving_lock:
            _saving.discard(project_id)


def replace_for_project(
    project_id: int,
    cart_items: Iterable[CartLineItem],
    totals: BudgetTotals | None = None,
) -> list:
    """Replace every persisted line of ``project_id`` with the cart's lines.

    An empty cart still deletes the existing lines.  Delete and insert share
    one transaction, so a failure leaves the previous lines in place and
    raises ``StorageError``.
    """
    persisted = [to_persisted_item(item, project_id) for item in cart_items]
    with single_flight(project_id):
        rows = store.line_items.replace_for_project(project_id, persisted, totals)
    logging.info("saved budget project=%s lines=%s", project_id, len(rows))
    return rows


def load_for_project(
    project_id: int, catalog_lookup: CatalogLookup | None = None
) -> list[CartLineItem]:
    rows = store.line_items.get_by_project(project_id)
    return [to_cart_item(PersistedLineItem.from_row(r), catalog_lookup) for r in rows]
