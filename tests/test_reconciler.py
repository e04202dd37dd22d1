import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sqlalchemy.exc import IntegrityError

from budgetbuilder import create_app, db, store
from budgetbuilder.budget.aggregator import aggregate
from budgetbuilder.budget.cost_model import CartLineItem
from budgetbuilder.budget.reconciler import load_for_project, replace_for_project, single_flight
from budgetbuilder.errors import SaveInProgress, StorageError
from budgetbuilder.models import Project


def setup_app():
    app = create_app('development', {
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'TESTING': True,
        'AUTH_URL': '',
    })
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def _cart():
    return [
        CartLineItem(id='temp-1', name='Faucet', unit_price=1000.0, cost=600.0,
                     labor=100.0, profit=400.0, quantity=3, product_ref=7),
        CartLineItem(id='temp-2', name='Pipe', unit_price=120.0, cost=100.0,
                     labor=0.0, profit=20.0, quantity=10),
    ]


def _snapshot(project_id):
    return [
        (r.name, r.quantity, r.unit_cost, r.labor, round(r.markup, 6))
        for r in store.line_items.get_by_project(project_id)
    ]


def test_replace_is_idempotent():
    app = setup_app()
    with app.app_context():
        proj = store.projects.create('u1', {'name': 'Kitchen'})
        replace_for_project(proj.id, _cart())
        first = _snapshot(proj.id)
        replace_for_project(proj.id, _cart())
        assert _snapshot(proj.id) == first
        assert len(first) == 2


def test_replace_with_empty_cart_clears_lines():
    app = setup_app()
    with app.app_context():
        proj = store.projects.create('u1', {'name': 'Kitchen'})
        replace_for_project(proj.id, _cart())
        assert replace_for_project(proj.id, []) == []
        assert load_for_project(proj.id) == []


def test_replace_writes_totals_snapshot():
    app = setup_app()
    with app.app_context():
        proj = store.projects.create('u1', {'name': 'Kitchen'})
        totals = aggregate(_cart(), 10)
        replace_for_project(proj.id, _cart(), totals)
        saved = db.session.get(Project, proj.id)
        assert saved.subtotal == 4200
        assert saved.discount == 10
        assert saved.total == pytest.approx(3780)


def test_load_rebuilds_cart_without_catalog_link():
    app = setup_app()
    with app.app_context():
        proj = store.projects.create('u1', {'name': 'Kitchen'})
        replace_for_project(proj.id, _cart())
        cart = load_for_project(proj.id)
        assert [i.name for i in cart] == ['Faucet', 'Pipe']
        assert all(i.product_ref is None for i in cart)
        assert cart[0].unit_price == pytest.approx(1000.0)
        assert cart[0].quantity == 3
        assert aggregate(cart).total_profit == pytest.approx(aggregate(_cart()).total_profit)


def test_failed_replace_keeps_previous_lines(monkeypatch):
    app = setup_app()
    with app.app_context():
        proj = store.projects.create('u1', {'name': 'Kitchen'})
        replace_for_project(proj.id, _cart())
        before = _snapshot(proj.id)

        def broken():
            raise IntegrityError('INSERT', {}, Exception('NOT NULL constraint failed'))

        monkeypatch.setattr(db.session, 'commit', broken)
        with pytest.raises(StorageError):
            replace_for_project(proj.id, _cart()[:1])
        monkeypatch.undo()

        assert _snapshot(proj.id) == before


def test_concurrent_save_is_rejected():
    app = setup_app()
    with app.app_context():
        proj = store.projects.create('u1', {'name': 'Kitchen'})
        with single_flight(proj.id):
            with pytest.raises(SaveInProgress):
                replace_for_project(proj.id, _cart())
        assert len(replace_for_project(proj.id, _cart())) == 2
