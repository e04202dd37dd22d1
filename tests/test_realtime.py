import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from budgetbuilder import create_app, db, store
from budgetbuilder.models import Category
from budgetbuilder.realtime import DELETE, INSERT, UPDATE, ChangeEvent, apply_change, feed


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


def test_events_published_after_commit():
    app = setup_app()
    received = []
    sub = feed.subscribe('categories', received.append, {'user_id': 'u1'})
    try:
        with app.app_context():
            cat = store.categories.create('u1', {'name': 'Plumbing'})
            store.categories.create('u2', {'name': 'Other user'})
            store.categories.delete(cat.id, 'u1')
            store.categories.permanent_delete(cat.id, 'u1')
    finally:
        feed.unsubscribe(sub)

    assert [e.event_type for e in received] == [INSERT, UPDATE, DELETE]
    assert received[0].new['name'] == 'Plumbing'
    assert received[1].new['deleted_at'] is not None
    assert received[2].old['id'] == received[0].new['id']


def test_rollback_discards_events():
    app = setup_app()
    received = []
    sub = feed.subscribe('categories', received.append)
    try:
        with app.app_context():
            db.session.add(Category(user_id='u1', name='Draft'))
            db.session.flush()
            db.session.rollback()
    finally:
        feed.unsubscribe(sub)
    assert received == []


def test_failing_subscriber_does_not_block_others():
    received = []

    def broken(evt):
        raise RuntimeError('listener bug')

    subs = [feed.subscribe('products', broken), feed.subscribe('products', received.append)]
    try:
        delivered = feed.publish(ChangeEvent('products', INSERT, new={'id': 1}))
    finally:
        for s in subs:
            feed.unsubscribe(s)
    assert delivered == 2
    assert len(received) == 1


def test_apply_change_patches_lists():
    rows = [{'id': 1, 'name': 'A'}, {'id': 2, 'name': 'B'}]
    rows = apply_change(rows, ChangeEvent('products', INSERT, new={'id': 3, 'name': 'C'}))
    assert [r['id'] for r in rows] == [1, 2, 3]

    rows = apply_change(rows, ChangeEvent('products', UPDATE,
                                          new={'id': 2, 'name': 'B2', 'deleted_at': None}))
    assert rows[1]['name'] == 'B2'

    rows = apply_change(rows, ChangeEvent('products', UPDATE,
                                          new={'id': 1, 'deleted_at': '2024-01-01T00:00:00'}))
    assert [r['id'] for r in rows] == [2, 3]

    rows = apply_change(rows, ChangeEvent('products', DELETE, old={'id': 3}))
    assert [r['id'] for r in rows] == [2]
