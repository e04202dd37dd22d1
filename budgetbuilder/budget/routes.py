# budgetbuilder/budget/routes.py

from flask import Blueprint, current_app, abort, g, jsonify, make_response, request

from budgetbuilder import store
from budgetbuilder.auth import require_user
from budgetbuilder.budget.aggregator import CLIENT_VIEW, VIEWS, aggregate, clamp_discount
from budgetbuilder.budget.cost_model import (
    add_to_cart,
    build_catalog_lookup,
    cart_from_payload,
    update_quantity,
)
from budgetbuilder.budget.reconciler import load_for_project, replace_for_project
from budgetbuilder.export import budget_rows, render_csv
from budgetbuilder.money import CurrencyFormat, parse_numeric_input

bp = Blueprint('budget', __name__)
bp.before_request(require_user)


def _currency():
    return CurrencyFormat.from_mapping(current_app.config['BUDGET_CURRENCY'])


def _view(value):
    return value if value in VIEWS else CLIENT_VIEW


def _project_or_404(project_id):
    project = store.projects.get_by_id(project_id, g.user_id)
    if project is None:
        abort(404)
    return project


def _budget_payload(cart, discount, view):
    totals = aggregate(cart, discount)
    return {
        'items': [i.to_dict() for i in cart],
        'discount': discount,
        'view': view,
        'totals': totals.to_dict(view),
        'formatted': totals.formatted(_currency(), view),
    }


@bp.route('/<int:project_id>')
def load_budget(project_id):
    """Rebuild the cart from the project's saved line items."""
    project = _project_or_404(project_id)
    lookup = build_catalog_lookup(store.products.get_catalog(g.user_id))
    cart = load_for_project(project.id, lookup)
    discount = clamp_discount(project.discount)
    view = _view(request.args.get('view'))
    return jsonify(project_id=project.id, **_budget_payload(cart, discount, view))


@bp.route('/totals', methods=['POST'])
def budget_totals():
    data = request.get_json() or {}
    cart = cart_from_payload(data.get('items'))
    return jsonify(**_budget_payload(cart, clamp_discount(data.get('discount')),
                                     _view(data.get('view'))))


@bp.route('/add', methods=['POST'])
def add_item():
    """
    Add a catalog product to the posted cart.
    Body: { items: [...], product_id, quantity, discount, view }
    """
    data = request.get_json() or {}
    product = store.products.get(data.get('product_id'), g.user_id)
    if product is None:
        return jsonify(error='Product not found'), 404
    cart = cart_from_payload(data.get('items'))
    quantity = int(parse_numeric_input(data.get('quantity'), 1))
    add_to_cart(cart, product.to_catalog(), quantity)
    return jsonify(**_budget_payload(cart, clamp_discount(data.get('discount')),
                                     _view(data.get('view'))))


@bp.route('/update-quantity', methods=['POST'])
def change_quantity():
    data = request.get_json() or {}
    cart = cart_from_payload(data.get('items'))
    quantity = int(parse_numeric_input(data.get('quantity'), 0))
    if not update_quantity(cart, data.get('item_id'), quantity):
        return jsonify(error='Item not in budget'), 404
    return jsonify(**_budget_payload(cart, clamp_discount(data.get('discount')),
                                     _view(data.get('view'))))


@bp.route('/<int:project_id>/save', methods=['POST'])
def save_budget(project_id):
    """Replace the project's line items with the posted cart."""
    project = _project_or_404(project_id)
    data = request.get_json() or {}
    cart = cart_from_payload(data.get('items'))
    totals = aggregate(cart, clamp_discount(data.get('discount')))
    rows = replace_for_project(project.id, cart, totals)
    return jsonify(
        success=True,
        line_items=[r.to_dict() for r in rows],
        totals=totals.to_dict(),
    )


@bp.route('/<int:project_id>/export.csv')
def export_budget(project_id):
    project = _project_or_404(project_id)
    lookup = build_catalog_lookup(store.products.get_catalog(g.user_id))
    cart = load_for_project(project.id, lookup)
    view = _view(request.args.get('view'))
    totals = aggregate(cart, clamp_discount(project.discount))
    columns, rows = budget_rows(cart, totals, view)
    resp = make_response(render_csv(columns, rows))
    resp.headers['Content-Disposition'] = f'attachment; filename=budget-{project.id}.csv'
    resp.mimetype = 'text/csv'
    return resp
