import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sqlalchemy.exc import OperationalError

from budgetbuilder import create_app, db, store
from budgetbuilder.budget.reconciler import single_flight

USER = {'X-User-Id': 'u1'}


def setup_app():
    app = create_app('development', {
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'TESTING': True,
        'AUTH_URL': '',
        'BUDGET_CURRENCY': {'currency': 'USD', 'locale': 'en_US',
                            'min_fraction_digits': 0, 'max_fraction_digits': 0},
    })
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def _seed(app):
    with app.app_context():
        cat = store.categories.create('u1', {'name': 'Plumbing'})
        prod = store.products.create('u1', {
            'name': 'Faucet', 'category_id': cat.id, 'code': 'F-1', 'image': 'f.png',
            'final_price': 1000, 'cost': 600, 'labor': 100, 'profit': 400,
        })
        proj = store.projects.create('u1', {'name': 'Kitchen'})
        return prod.id, proj.id


def test_add_then_totals():
    app = setup_app()
    product_id, _ = _seed(app)
    client = app.test_client()

    resp = client.post('/budget/add', json={'items': [], 'product_id': product_id,
                                            'quantity': 2}, headers=USER)
    assert resp.status_code == 200
    items = resp.get_json()['items']
    resp = client.post('/budget/add', json={'items': items, 'product_id': product_id},
                       headers=USER)
    data = resp.get_json()
    assert len(data['items']) == 1
    assert data['items'][0]['quantity'] == 3
    assert data['items'][0]['product_ref'] == product_id

    resp = client.post('/budget/totals', json={'items': data['items'], 'discount': 10,
                                               'view': 'internal'}, headers=USER)
    body = resp.get_json()
    assert body['totals']['grand_total'] == 2700
    assert body['totals']['profit_margin_percent'] == 40.0
    assert body['formatted']['grand_total'] == '$2,700'

    resp = client.post('/budget/totals', json={'items': data['items'], 'discount': 10},
                       headers=USER)
    assert 'total_profit' not in resp.get_json()['totals']


def test_add_unknown_product_is_404():
    app = setup_app()
    _seed(app)
    client = app.test_client()
    resp = client.post('/budget/add', json={'items': [], 'product_id': 999}, headers=USER)
    assert resp.status_code == 404


def test_update_quantity_zero_removes_line():
    app = setup_app()
    product_id, _ = _seed(app)
    client = app.test_client()
    items = client.post('/budget/add', json={'product_id': product_id},
                        headers=USER).get_json()['items']

    resp = client.post('/budget/update-quantity',
                       json={'items': items, 'item_id': items[0]['id'], 'quantity': 5},
                       headers=USER)
    assert resp.get_json()['items'][0]['quantity'] == 5

    resp = client.post('/budget/update-quantity',
                       json={'items': items, 'item_id': items[0]['id'], 'quantity': 0},
                       headers=USER)
    assert resp.get_json()['items'] == []
    assert resp.get_json()['totals']['subtotal'] == 0

    resp = client.post('/budget/update-quantity',
                       json={'items': [], 'item_id': 'nope', 'quantity': 1}, headers=USER)
    assert resp.status_code == 404


def test_save_then_load():
    app = setup_app()
    product_id, project_id = _seed(app)
    client = app.test_client()
    items = client.post('/budget/add', json={'product_id': product_id, 'quantity': 3},
                        headers=USER).get_json()['items']

    resp = client.post(f'/budget/{project_id}/save', json={'items': items, 'discount': 10},
                       headers=USER)
    assert resp.status_code == 200
    saved = resp.get_json()
    assert saved['success'] is True
    assert len(saved['line_items']) == 1
    assert saved['totals']['grand_total'] == 2700

    resp = client.get(f'/budget/{project_id}?view=internal', headers=USER)
    data = resp.get_json()
    assert data['discount'] == 10
    assert data['items'][0]['product_ref'] is None
    assert data['items'][0]['code'] == 'F-1'
    assert data['totals']['subtotal'] == pytest.approx(3000)
    assert data['totals']['total_labor'] == 300


def test_save_foreign_project_is_404():
    app = setup_app()
    _, project_id = _seed(app)
    client = app.test_client()
    resp = client.post(f'/budget/{project_id}/save', json={'items': []},
                       headers={'X-User-Id': 'intruder'})
    assert resp.status_code == 404


def test_concurrent_save_is_409():
    app = setup_app()
    _, project_id = _seed(app)
    client = app.test_client()
    with single_flight(project_id):
        resp = client.post(f'/budget/{project_id}/save', json={'items': []}, headers=USER)
    assert resp.status_code == 409


def test_schema_fault_is_503(monkeypatch):
    app = setup_app()
    _, project_id = _seed(app)

    def missing_table(*a, **kw):
        raise OperationalError('DELETE', {}, Exception('no such table: line_items'))

    monkeypatch.setattr(db.session, 'flush', missing_table)
    client = app.test_client()
    resp = client.post(f'/budget/{project_id}/save', json={'items': []}, headers=USER)
    assert resp.status_code == 503
    assert resp.get_json()['error'] == 'Storage is misconfigured or unreachable'


def test_export_csv():
    app = setup_app()
    product_id, project_id = _seed(app)
    client = app.test_client()
    items = client.post('/budget/add', json={'product_id': product_id, 'quantity': 2},
                        headers=USER).get_json()['items']
    client.post(f'/budget/{project_id}/save', json={'items': items}, headers=USER)

    resp = client.get(f'/budget/{project_id}/export.csv', headers=USER)
    assert resp.status_code == 200
    assert resp.mimetype == 'text/csv'
    assert f'budget-{project_id}.csv' in resp.headers['Content-Disposition']
    text = resp.get_data(as_text=True)
    assert text.startswith('product,category,quantity,unit_price,line_total')
    assert 'Faucet' in text
    assert 'INTERNAL METRICS' not in text

    text = client.get(f'/budget/{project_id}/export.csv?view=internal',
                      headers=USER).get_data(as_text=True)
    assert 'INTERNAL METRICS' in text


def test_totals_tolerate_bad_product_ref():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/budget/totals', json={'items': [
        {'id': 'x', 'name': 'Faucet', 'unit_price': 100, 'cost': 60, 'quantity': 2,
         'product_ref': 'abc'},
    ]}, headers=USER)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['items'][0]['product_ref'] is None
    assert body['totals']['subtotal'] == 200
