# budgetbuilder/catalog/routes.py

from flask import Blueprint, abort, g, jsonify, request

from budgetbuilder import store
from budgetbuilder.auth import require_user

bp = Blueprint('catalog', __name__)
bp.before_request(require_user)


@bp.route('/categories')
def list_categories():
    cats = store.categories.get_all(g.user_id)
    return jsonify(categories=[
        {**c.to_dict(), 'product_count': store.categories.count_products(c.id)}
        for c in cats
    ])


@bp.route('/categories', methods=['POST'])
def create_category():
    cat = store.categories.create(g.user_id, request.get_json() or {})
    return jsonify(category=cat.to_dict()), 201


@bp.route('/categories/<int:category_id>/update', methods=['POST'])
def update_category(category_id):
    cat = store.categories.update(category_id, request.get_json() or {}, g.user_id)
    if cat is None:
        abort(404)
    return jsonify(category=cat.to_dict())


@bp.route('/categories/<int:category_id>/delete', methods=['POST'])
def delete_category(category_id):
    """Soft delete; the category stays in the trash until purged."""
    if not store.categories.delete(category_id, g.user_id):
        abort(404)
    return jsonify(success=True)


@bp.route('/products')
def list_products():
    """
    All active products, or one category's with ?category_id=.
    Returns { products: [ {id,name,code,final_price,cost,labor,profit,category_name,…}, … ] }.
    """
    category_id = request.args.get('category_id', type=int)
    if category_id is not None:
        prods = store.products.get_by_category(g.user_id, category_id)
    else:
        prods = store.products.get_all(g.user_id)
    return jsonify(products=[p.to_dict() for p in prods])


@bp.route('/products', methods=['POST'])
def create_product():
    prod = store.products.create(g.user_id, request.get_json() or {})
    return jsonify(product=prod.to_dict()), 201


@bp.route('/products/<int:product_id>/update', methods=['POST'])
def update_product(product_id):
    prod = store.products.update(product_id, request.get_json() or {}, g.user_id)
    if prod is None:
        abort(404)
    return jsonify(product=prod.to_dict())


@bp.route('/products/<int:product_id>/delete', methods=['POST'])
def delete_product(product_id):
    if not store.products.delete(product_id, g.user_id):
        abort(404)
    return jsonify(success=True)
