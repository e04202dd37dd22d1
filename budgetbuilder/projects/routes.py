# budgetbuilder/projects/routes.py

from flask import Blueprint, abort, current_app, g, jsonify, request

from budgetbuilder import store
from budgetbuilder.auth import require_user
from budgetbuilder.money import CurrencyFormat, format_currency
from budgetbuilder.tracking import rollup

bp = Blueprint('projects', __name__)
bp.before_request(require_user)


def _project_or_404(project_id):
    project = store.projects.get_by_id(project_id, g.user_id)
    if project is None:
        abort(404)
    return project


def _tracking_currency():
    return CurrencyFormat.from_mapping(current_app.config['TRACKING_CURRENCY'])


@bp.route('/')
def list_projects():
    return jsonify(projects=[p.to_dict() for p in store.projects.get_all(g.user_id)])


@bp.route('/', methods=['POST'])
def create_project():
    proj = store.projects.create(g.user_id, request.get_json() or {})
    return jsonify(project=proj.to_dict()), 201


@bp.route('/<int:project_id>')
def view_project(project_id):
    return jsonify(project=_project_or_404(project_id).to_dict())


@bp.route('/<int:project_id>/update', methods=['POST'])
def update_project(project_id):
    _project_or_404(project_id)
    proj = store.projects.update(project_id, request.get_json() or {}, g.user_id)
    return jsonify(project=proj.to_dict())


@bp.route('/<int:project_id>/delete', methods=['POST'])
def delete_project(project_id):
    _project_or_404(project_id)
    store.projects.delete(project_id, g.user_id)
    return jsonify(success=True)


# -- line items --------------------------------------------------------------

def _line_item_or_404(project_id, line_item_id):
    item = store.line_items.get(line_item_id, project_id)
    if item is None:
        abort(404)
    return item


@bp.route('/<int:project_id>/line-items')
def list_line_items(project_id):
    """
    Saved budget lines with their marked-up totals.
    Returns { line_items: [ {…, line_total}, … ], grand_total, grand_total_formatted }.
    """
    _project_or_404(project_id)
    items = store.line_items.get_by_project(project_id)
    grand_total = sum(i.line_total for i in items)
    return jsonify(
        line_items=[{**i.to_dict(), 'line_total': i.line_total} for i in items],
        grand_total=grand_total,
        grand_total_formatted=format_currency(grand_total, _tracking_currency()),
    )


@bp.route('/<int:project_id>/line-items', methods=['POST'])
def create_line_item(project_id):
    _project_or_404(project_id)
    item = store.line_items.create(project_id, request.get_json() or {})
    return jsonify(line_item={**item.to_dict(), 'line_total': item.line_total}), 201


@bp.route('/<int:project_id>/line-items/<int:line_item_id>/update', methods=['POST'])
def update_line_item(project_id, line_item_id):
    _project_or_404(project_id)
    _line_item_or_404(project_id, line_item_id)
    item = store.line_items.update(line_item_id, request.get_json() or {})
    return jsonify(line_item={**item.to_dict(), 'line_total': item.line_total})


@bp.route('/<int:project_id>/line-items/<int:line_item_id>/delete', methods=['POST'])
def delete_line_item(project_id, line_item_id):
    _project_or_404(project_id)
    _line_item_or_404(project_id, line_item_id)
    store.line_items.delete(line_item_id)
    return jsonify(success=True)


# -- budget categories -------------------------------------------------------

@bp.route('/<int:project_id>/budget-categories')
def list_budget_categories(project_id):
    _project_or_404(project_id)
    cats = store.budget_categories.get_by_project(project_id)
    summary = rollup(cats)
    currency = _tracking_currency()
    return jsonify(
        rollup=summary.to_dict(),
        formatted={
            'total_allocated': format_currency(summary.total_allocated, currency),
            'total_spent': format_currency(summary.total_spent, currency),
            'overall_variance': format_currency(summary.overall_variance, currency),
        },
    )


@bp.route('/<int:project_id>/budget-categories', methods=['POST'])
def create_budget_category(project_id):
    _project_or_404(project_id)
    cat = store.budget_categories.create(project_id, request.get_json() or {})
    return jsonify(budget_category=cat.to_dict()), 201


@bp.route('/<int:project_id>/budget-categories/<int:category_id>/update', methods=['POST'])
def update_budget_category(project_id, category_id):
    _project_or_404(project_id)
    cat = store.budget_categories.update(category_id, request.get_json() or {}, project_id)
    if cat is None:
        abort(404)
    return jsonify(budget_category=cat.to_dict())


@bp.route('/<int:project_id>/budget-categories/<int:category_id>/delete', methods=['POST'])
def delete_budget_category(project_id, category_id):
    _project_or_404(project_id)
    if not store.budget_categories.delete(category_id, project_id):
        abort(404)
    return jsonify(success=True)


# -- milestones --------------------------------------------------------------

def _milestone_or_404(project_id, milestone_id):
    ms = store.milestones.get(milestone_id, project_id)
    if ms is None:
        abort(404)
    return ms


@bp.route('/<int:project_id>/milestones')
def list_milestones(project_id):
    _project_or_404(project_id)
    return jsonify(milestones=[m.to_dict() for m in store.milestones.get_by_project(project_id)])


@bp.route('/<int:project_id>/milestones', methods=['POST'])
def create_milestone(project_id):
    _project_or_404(project_id)
    ms = store.milestones.create(project_id, request.get_json() or {})
    return jsonify(milestone=ms.to_dict()), 201


@bp.route('/<int:project_id>/milestones/<int:milestone_id>/update', methods=['POST'])
def update_milestone(project_id, milestone_id):
    _project_or_404(project_id)
    _milestone_or_404(project_id, milestone_id)
    ms = store.milestones.update(milestone_id, request.get_json() or {})
    return jsonify(milestone=ms.to_dict())


@bp.route('/<int:project_id>/milestones/<int:milestone_id>/delete', methods=['POST'])
def delete_milestone(project_id, milestone_id):
    _project_or_404(project_id)
    _milestone_or_404(project_id, milestone_id)
    store.milestones.delete(milestone_id)
    return jsonify(success=True)


@bp.route('/<int:project_id>/milestones/<int:milestone_id>/tasks', methods=['POST'])
def create_task(project_id, milestone_id):
    _project_or_404(project_id)
    _milestone_or_404(project_id, milestone_id)
    task = store.milestone_tasks.create(milestone_id, request.get_json() or {})
    return jsonify(task=task.to_dict()), 201


@bp.route('/<int:project_id>/milestones/<int:milestone_id>/tasks/<int:task_id>/update',
          methods=['POST'])
def update_task(project_id, milestone_id, task_id):
    _project_or_404(project_id)
    _milestone_or_404(project_id, milestone_id)
    task = store.milestone_tasks.update(task_id, request.get_json() or {}, milestone_id)
    if task is None:
        abort(404)
    return jsonify(task=task.to_dict())


@bp.route('/<int:project_id>/milestones/<int:milestone_id>/tasks/<int:task_id>/delete',
          methods=['POST'])
def delete_task(project_id, milestone_id, task_id):
    _project_or_404(project_id)
    _milestone_or_404(project_id, milestone_id)
    if not store.milestone_tasks.delete(task_id, milestone_id):
        abort(404)
    return jsonify(success=True)
