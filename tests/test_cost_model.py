import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from budgetbuilder.budget.cost_model import (
    CartLineItem,
    CatalogProduct,
    PersistedLineItem,
    add_to_cart,
    build_catalog_lookup,
    cart_from_payload,
    remove_item,
    to_cart_item,
    to_persisted_item,
    update_quantity,
)


def _product(**kw):
    data = dict(id=7, name='Faucet', category='Plumbing', code='F-1', image='f.png',
                final_price=1000.0, cost=600.0, labor=100.0, profit=400.0)
    data.update(kw)
    return CatalogProduct(**data)


def test_persisted_to_cart_prices_from_markup():
    persisted = PersistedLineItem(project_id=1, id=3, name='Sink', unit_cost=500.0,
                                  markup=20.0, quantity=2, labor=50.0)
    item = to_cart_item(persisted)
    assert item.unit_price == pytest.approx(600.0)
    assert item.profit == pytest.approx(100.0)
    assert item.cost == 500.0
    assert item.labor == 50.0
    assert item.quantity == 2
    assert item.id == '3'
    assert item.product_ref is None

    back = to_persisted_item(item, project_id=1)
    assert back.markup == pytest.approx(20.0)
    assert back.unit_cost == 500.0


def test_zero_cost_gives_zero_markup():
    item = CartLineItem(id='x', name='Gift', unit_price=50.0, cost=0.0, quantity=1)
    assert to_persisted_item(item, 9).markup == 0.0


def test_markup_is_capped():
    item = CartLineItem(id='x', name='Rare', unit_price=1000.0, cost=1.0, quantity=1)
    assert to_persisted_item(item, 9).markup == 999.99


def test_round_trip_loses_catalog_link_but_keeps_figures():
    cart = []
    add_to_cart(cart, _product(), 3)
    assert cart[0].product_ref == 7

    persisted = to_persisted_item(cart[0], project_id=1)
    lookup = build_catalog_lookup([_product()])
    reloaded = to_cart_item(persisted, lookup)

    assert reloaded.product_ref is None
    assert reloaded.code == 'F-1'
    assert reloaded.image == 'f.png'
    assert reloaded.unit_price == pytest.approx(1000.0)
    assert reloaded.cost == 600.0
    assert reloaded.labor == 100.0
    assert reloaded.quantity == 3


def test_quantity_floor_on_reload():
    for qty in (0, -2, 0.2):
        item = to_cart_item(PersistedLineItem.from_row(
            {'project_id': 1, 'name': 'x', 'quantity': qty}))
        assert item.quantity == 1
    assert to_cart_item(PersistedLineItem(project_id=1, quantity=2.6)).quantity == 3


def test_from_row_defaults():
    p = PersistedLineItem.from_row({'project_id': 4, 'markup': 5000, 'unit_cost': 'bad'})
    assert p.name == 'Unnamed product'
    assert p.category == 'General'
    assert p.quantity == 1.0
    assert p.unit_cost == 0.0
    assert p.markup == 999.99
    assert 'id' not in p.to_row()


def test_add_to_cart_merges_by_product():
    cart = []
    first = add_to_cart(cart, _product())
    again = add_to_cart(cart, _product(), 2)
    assert first is again
    assert len(cart) == 1
    assert cart[0].quantity == 3
    assert cart[0].is_temporary

    add_to_cart(cart, _product(id=8, name='Valve'), 0)
    assert len(cart) == 2
    assert cart[1].quantity == 1


def test_update_and_remove():
    cart = []
    item = add_to_cart(cart, _product())
    assert update_quantity(cart, item.id, 5)
    assert cart[0].quantity == 5
    assert not update_quantity(cart, 'missing', 2)
    assert update_quantity(cart, item.id, 0)
    assert cart == []
    assert not remove_item(cart, item.id)


def test_cart_from_payload_drops_empty_lines():
    cart = cart_from_payload([
        {'id': 'a', 'name': 'One', 'unit_price': '10', 'quantity': 2, 'product_ref': '4'},
        {'id': 'b', 'name': 'Zero', 'unit_price': 5, 'quantity': 0},
        {'name': '', 'unit_price': -3},
    ])
    assert cart[0].id == 'a'
    assert cart[0].product_ref == 4
    assert cart[0].line_total == 20.0
    assert len(cart) == 2
    assert cart[1].name == 'Unnamed product'
    assert cart[1].unit_price == 0.0
    assert cart[1].quantity == 1


def test_unusable_product_ref_becomes_none():
    cart = cart_from_payload([
        {'id': 'a', 'name': 'One', 'unit_price': 10, 'product_ref': 'abc'},
        {'id': 'b', 'name': 'Two', 'unit_price': 10, 'product_ref': 2.5},
        {'id': 'c', 'name': 'Three', 'unit_price': 10, 'product_ref': '12'},
    ])
    assert [i.product_ref for i in cart] == [None, None, 12]
