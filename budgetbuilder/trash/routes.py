# budgetbuilder/trash/routes.py

from flask import Blueprint, abort, g, jsonify

from budgetbuilder import store
from budgetbuilder.auth import require_user

bp = Blueprint('trash', __name__)
bp.before_request(require_user)

STORES = {
    'products': store.products,
    'categories': store.categories,
    'projects': store.projects,
}


def _store_for(kind):
    s = STORES.get(kind)
    if s is None:
        abort(404)
    return s


@bp.route('/')
def list_trash():
    return jsonify(
        products=[p.to_dict() for p in store.products.get_deleted(g.user_id)],
        categories=[c.to_dict() for c in store.categories.get_deleted(g.user_id)],
        projects=[p.to_dict() for p in store.projects.get_deleted(g.user_id)],
        stats=store.trash.get_stats(g.user_id),
    )


@bp.route('/<kind>/<int:obj_id>/restore', methods=['POST'])
def restore(kind, obj_id):
    obj = _store_for(kind).restore(obj_id, g.user_id)
    if obj is None:
        abort(404)
    return jsonify(success=True, item=obj.to_dict())


@bp.route('/<kind>/<int:obj_id>/purge', methods=['POST'])
def purge(kind, obj_id):
    """Permanently delete one trashed row; active rows are left alone."""
    if not _store_for(kind).permanent_delete(obj_id, g.user_id, trashed_only=True):
        abort(404)
    return jsonify(success=True)


@bp.route('/empty', methods=['POST'])
def empty():
    removed = store.trash.empty_trash(g.user_id)
    return jsonify(success=True, removed=removed)
