# budgetbuilder/store.py
"""Per-entity persistence operations over the SQLAlchemy models.

Every store follows one error policy.  Schema and connection faults are
re-raised as ``SchemaError`` because they point at a broken deployment.
Other database errors degrade to an empty result on reads (with an error
log) and raise ``StorageError`` on writes, so a failed save is never silent.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from functools import wraps
from typing import Any, Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError

from budgetbuilder import db
from budgetbuilder.budget.cost_model import PersistedLineItem
from budgetbuilder.errors import SchemaError, StorageError, ValidationError, is_schema_error
from budgetbuilder.models import (
    BudgetCategory,
    Category,
    LineItem,
    Milestone,
    MilestoneTask,
    Product,
    Project,
)
from budgetbuilder.money import MAX_MARKUP, clamp_min, clamp_range, parse_numeric_input


def _label(store, fn) -> str:
    return f"{type(store).__name__}.{fn.__name__}"


def _raise_if_schema_error(label: str, e: SQLAlchemyError) -> None:
    db.session.rollback()
    if is_schema_error(e):
        logging.exception("%s: schema or connection fault", label)
        raise SchemaError(f"{label}: {e}") from e


def reads(default=list):
    """Read operations degrade to ``default()`` on data errors."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except SQLAlchemyError as e:
                label = _label(self, fn)
                _raise_if_schema_error(label, e)
                logging.error("%s error: %s", label, e)
                return default() if callable(default) else default
        return wrapper
    return decorator


def writes(fn):
    """Write operations roll back and raise on any database error."""
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except ValidationError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            label = _label(self, fn)
            _raise_if_schema_error(label, e)
            logging.error("%s error: %s", label, e)
            raise StorageError(f"{label} failed: {e}") from e
    return wrapper


def _require(data: Mapping[str, Any], *fields: str) -> None:
    missing = [f for f in fields if not str(data.get(f) or '').strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _parse_date(value: Any, field: str) -> date | None:
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date for {field}: {value!r}")


def _amount(value: Any) -> float:
    return clamp_min(parse_numeric_input(value, 0.0), 0.0)


def _quantity(value: Any) -> float:
    quantity = parse_numeric_input(value, 1.0)
    return quantity if quantity > 0 else 1.0


def _given(data: Mapping[str, Any], field: str) -> bool:
    return data.get(field) not in (None, '')


# a product's sale price is built from these when it is not set directly
PRICE_PARTS = ('cost', 'labor', 'profit')


def _sale_price(cost: float, labor: float, profit: float) -> float:
    return clamp_min(cost + labor + profit, 0.0)


def _apply(obj, updates: Mapping[str, Any], converters: Mapping[str, Any]) -> int:
    """Copy whitelisted ``updates`` onto ``obj``; return how many were applied."""
    applied = 0
    for field, convert in converters.items():
        if field not in updates:
            continue
        value = updates[field]
        setattr(obj, field, convert(value) if convert else value)
        applied += 1
    return applied


def _to_id(value: Any) -> int | None:
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid id: {value!r}")


def _non_blank(field: str):
    def convert(value):
        value = str(value or '').strip()
        if not value:
            raise ValidationError(f"{field} cannot be empty")
        return value
    return convert


class _SoftDeleteStore:
    """Shared soft-delete / restore / purge operations for user-owned rows."""

    model: Any = None

    def _get(self, obj_id, user_id=None):
        obj = db.session.get(self.model, obj_id)
        if obj is None or (user_id is not None and obj.user_id != user_id):
            return None
        return obj

    def _active(self, user_id):
        return self.model.query.filter(
            self.model.user_id == user_id,
            self.model.deleted_at.is_(None),
        )

    @writes
    def delete(self, obj_id, user_id) -> bool:
        obj = self._get(obj_id, user_id)
        if obj is None:
            return False
        obj.deleted_at = datetime.utcnow()
        obj.deleted_by = user_id
        db.session.commit()
        return True

    @reads(default=list)
    def get_deleted(self, user_id) -> list:
        return (
            self.model.query
            .filter(self.model.user_id == user_id, self.model.deleted_at.isnot(None))
            .order_by(self.model.deleted_at.desc())
            .all()
        )

    @writes
    def restore(self, obj_id, user_id=None):
        obj = self._get(obj_id, user_id)
        if obj is None or obj.deleted_at is None:
            return None
        obj.deleted_at = None
        obj.deleted_by = None
        db.session.commit()
        return obj

    @writes
    def permanent_delete(self, obj_id, user_id=None, trashed_only=False) -> bool:
        obj = self._get(obj_id, user_id)
        if obj is None or (trashed_only and not obj.is_deleted):
            return False
        self._before_purge(obj)
        db.session.delete(obj)
        db.session.commit()
        return True

    def _before_purge(self, obj) -> None:
        pass


class CategoriesStore(_SoftDeleteStore):
    model = Category

    @reads(default=list)
    def get_all(self, user_id) -> list[Category]:
        return self._active(user_id).order_by(Category.created_at.desc(), Category.id.desc()).all()

    @writes
    def create(self, user_id, data: Mapping[str, Any]) -> Category:
        _require(data, 'name')
        cat = Category(user_id=user_id, name=data['name'].strip(), icon=data.get('icon') or None)
        db.session.add(cat)
        db.session.commit()
        return cat

    @writes
    def update(self, category_id, updates: Mapping[str, Any], user_id=None) -> Category | None:
        cat = self._get(category_id, user_id)
        if cat is None:
            return None
        _apply(cat, updates, {'name': _non_blank('name'), 'icon': None})
        db.session.commit()
        return cat

    @reads(default=0)
    def count_products(self, category_id) -> int:
        return Product.query.filter(
            Product.category_id == category_id,
            Product.deleted_at.is_(None),
        ).count()

    def _before_purge(self, obj) -> None:
        # Detach products first so the foreign key never dangles
        Product.query.filter_by(category_id=obj.id).update(
            {'category_id': None}, synchronize_session=False
        )


class ProductsStore(_SoftDeleteStore):
    model = Product

    FIELDS = {
        'category_id': _to_id,
        'name': _non_blank('name'),
        'code': None,
        'image': None,
        'alt': None,
        'has_pdf': bool,
        'final_price': _amount,
        'cost': _amount,
        'labor': _amount,
        'profit': lambda v: parse_numeric_input(v, 0.0),
    }

    @reads(default=list)
    def get_all(self, user_id) -> list[Product]:
        return self._active(user_id).order_by(Product.created_at.desc(), Product.id.desc()).all()

    @reads(default=list)
    def get_by_category(self, user_id, category_id) -> list[Product]:
        return (
            self._active(user_id)
            .filter(Product.category_id == category_id)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .all()
        )

    @reads(default=None)
    def get(self, product_id, user_id) -> Product | None:
        return self._active(user_id).filter(Product.id == _to_id(product_id)).first()

    def get_catalog(self, user_id) -> list:
        return [p.to_catalog() for p in self.get_all(user_id)]

    @writes
    def create(self, user_id, data: Mapping[str, Any]) -> Product:
        _require(data, 'name', 'category_id')
        category = categories._get(_to_id(data['category_id']), user_id)
        if category is None or category.is_deleted:
            raise ValidationError('Unknown category')
        cost = _amount(data.get('cost'))
        labor = _amount(data.get('labor'))
        if _given(data, 'final_price'):
            final_price = _amount(data['final_price'])
            profit = parse_numeric_input(data.get('profit'), final_price - cost)
        else:
            profit = parse_numeric_input(data.get('profit'), 0.0)
            final_price = _sale_price(cost, labor, profit)
        prod = Product(
            user_id=user_id,
            category_id=category.id,
            name=data['name'].strip(),
            code=data.get('code'),
            image=data.get('image') or None,
            alt=data.get('alt') or None,
            has_pdf=bool(data.get('has_pdf', False)),
            final_price=final_price,
            cost=cost,
            labor=labor,
            profit=profit,
        )
        db.session.add(prod)
        db.session.commit()
        return prod

    @writes
    def update(self, product_id, updates: Mapping[str, Any], user_id=None) -> Product | None:
        prod = self._get(product_id, user_id)
        if prod is None:
            return None
        _apply(prod, updates, self.FIELDS)
        if not _given(updates, 'final_price') and any(f in updates for f in PRICE_PARTS):
            prod.final_price = _sale_price(prod.cost or 0.0, prod.labor or 0.0, prod.profit or 0.0)
        db.session.commit()
        return prod


class ProjectsStore(_SoftDeleteStore):
    model = Project

    FIELDS = {
        'name': _non_blank('name'),
        'description': None,
        'client': None,
        'project_type': None,
        'status': None,
        'start_date': lambda v: _parse_date(v, 'start_date'),
        'end_date': lambda v: _parse_date(v, 'end_date'),
    }

    @reads(default=list)
    def get_all(self, user_id) -> list[Project]:
        return self._active(user_id).order_by(Project.created_at.desc(), Project.id.desc()).all()

    @reads(default=None)
    def get_by_id(self, project_id, user_id) -> Project | None:
        return self._active(user_id).filter(Project.id == project_id).first()

    @writes
    def create(self, user_id, data: Mapping[str, Any]) -> Project:
        _require(data, 'name')
        proj = Project(
            user_id=user_id,
            name=data['name'].strip(),
            description=data.get('description') or None,
            client=data.get('client') or None,
            project_type=data.get('project_type') or None,
            status=data.get('status') or 'active',
            start_date=_parse_date(data.get('start_date'), 'start_date'),
            end_date=_parse_date(data.get('end_date'), 'end_date'),
        )
        db.session.add(proj)
        db.session.commit()
        return proj

    @writes
    def update(self, project_id, updates: Mapping[str, Any], user_id=None) -> Project | None:
        proj = self._get(project_id, user_id)
        if proj is None:
            return None
        if not any(f in updates for f in self.FIELDS):
            raise ValidationError('No updatable fields supplied')
        _apply(proj, updates, self.FIELDS)
        db.session.commit()
        return proj


class LineItemsStore:
    FIELDS = {
        'category': None,
        'name': None,
        'quantity': _quantity,
        'unit_cost': _amount,
        'labor': _amount,
        'markup': lambda v: min(parse_numeric_input(v, 0.0), MAX_MARKUP),
    }

    @reads(default=list)
    def get_by_project(self, project_id) -> list[LineItem]:
        return (
            LineItem.query.filter_by(project_id=project_id)
            .order_by(LineItem.created_at.asc(), LineItem.id.asc())
            .all()
        )

    @reads(default=None)
    def get(self, line_item_id, project_id=None) -> LineItem | None:
        item = db.session.get(LineItem, line_item_id)
        if item is None or (project_id is not None and item.project_id != project_id):
            return None
        return item

    @writes
    def create(self, project_id, data: Mapping[str, Any]) -> LineItem:
        row = PersistedLineItem.from_row({**data, 'project_id': project_id}).to_row()
        item = LineItem(**row)
        db.session.add(item)
        db.session.commit()
        return item

    @writes
    def update(self, line_item_id, updates: Mapping[str, Any]) -> LineItem | None:
        item = db.session.get(LineItem, line_item_id)
        if item is None:
            return None
        _apply(item, updates, self.FIELDS)
        db.session.commit()
        return item

    @writes
    def delete(self, line_item_id) -> bool:
        item = db.session.get(LineItem, line_item_id)
        if item is None:
            return False
        db.session.delete(item)
        db.session.commit()
        return True

    @writes
    def replace_for_project(
        self,
        project_id,
        items: Iterable[PersistedLineItem],
        totals=None,
    ) -> list[LineItem]:
        """Replace a project's line items in a single transaction.

        The delete is flushed before any insert so new rows never sit beside
        stale ones.  When ``totals`` is given the project's subtotal, discount
        and total snapshot is written in the same transaction.
        """
        for row in LineItem.query.filter_by(project_id=project_id).all():
            db.session.delete(row)
        db.session.flush()

        rows = [LineItem(**item.to_row()) for item in items]
        db.session.add_all(rows)

        if totals is not None:
            project = db.session.get(Project, project_id)
            if project is not None:
                project.subtotal = totals.subtotal
                project.discount = totals.discount_percent
                project.total = totals.grand_total

        db.session.commit()
        logging.info("replaced line items project=%s rows=%s", project_id, len(rows))
        return rows


class BudgetCategoriesStore:
    FIELDS = {
        'name': _non_blank('name'),
        'allocated': _amount,
        'spent': _amount,
        'color': None,
    }

    @reads(default=list)
    def get_by_project(self, project_id) -> list[BudgetCategory]:
        return (
            BudgetCategory.query.filter_by(project_id=project_id)
            .order_by(BudgetCategory.created_at.asc(), BudgetCategory.id.asc())
            .all()
        )

    @writes
    def create(self, project_id, data: Mapping[str, Any]) -> BudgetCategory:
        _require(data, 'name')
        cat = BudgetCategory(
            project_id=project_id,
            name=data['name'].strip(),
            allocated=_amount(data.get('allocated')),
            spent=_amount(data.get('spent')),
            color=data.get('color') or None,
        )
        db.session.add(cat)
        db.session.commit()
        return cat

    def _get(self, budget_category_id, project_id=None):
        cat = db.session.get(BudgetCategory, budget_category_id)
        if cat is None or (project_id is not None and cat.project_id != project_id):
            return None
        return cat

    @writes
    def update(self, budget_category_id, updates: Mapping[str, Any], project_id=None):
        cat = self._get(budget_category_id, project_id)
        if cat is None:
            return None
        _apply(cat, updates, self.FIELDS)
        db.session.commit()
        return cat

    @writes
    def delete(self, budget_category_id, project_id=None) -> bool:
        cat = self._get(budget_category_id, project_id)
        if cat is None:
            return False
        db.session.delete(cat)
        db.session.commit()
        return True


def _progress(value) -> int:
    return int(clamp_range(parse_numeric_input(value, 0.0), 0, 100))


class MilestonesStore:
    FIELDS = {
        'title': _non_blank('title'),
        'description': None,
        'start_date': lambda v: _parse_date(v, 'start_date'),
        'end_date': lambda v: _parse_date(v, 'end_date'),
        'status': None,
        'progress': _progress,
    }

    @reads(default=list)
    def get_by_project(self, project_id) -> list[Milestone]:
        return (
            Milestone.query.filter_by(project_id=project_id)
            .order_by(Milestone.start_date.asc(), Milestone.id.asc())
            .all()
        )

    @reads(default=None)
    def get(self, milestone_id, project_id=None) -> Milestone | None:
        ms = db.session.get(Milestone, milestone_id)
        if ms is None or (project_id is not None and ms.project_id != project_id):
            return None
        return ms

    @writes
    def create(self, project_id, data: Mapping[str, Any]) -> Milestone:
        _require(data, 'title')
        ms = Milestone(
            project_id=project_id,
            title=data['title'].strip(),
            description=data.get('description') or None,
            start_date=_parse_date(data.get('start_date'), 'start_date'),
            end_date=_parse_date(data.get('end_date'), 'end_date'),
            status=data.get('status') or 'pending',
            progress=_progress(data.get('progress')),
        )
        db.session.add(ms)
        db.session.commit()
        return ms

    @writes
    def update(self, milestone_id, updates: Mapping[str, Any]) -> Milestone | None:
        ms = db.session.get(Milestone, milestone_id)
        if ms is None:
            return None
        _apply(ms, updates, self.FIELDS)
        db.session.commit()
        return ms

    @writes
    def delete(self, milestone_id) -> bool:
        ms = db.session.get(Milestone, milestone_id)
        if ms is None:
            return False
        db.session.delete(ms)
        db.session.commit()
        return True


class MilestoneTasksStore:
    @reads(default=list)
    def get_by_milestone(self, milestone_id) -> list[MilestoneTask]:
        return (
            MilestoneTask.query.filter_by(milestone_id=milestone_id)
            .order_by(MilestoneTask.created_at.asc(), MilestoneTask.id.asc())
            .all()
        )

    @writes
    def create(self, milestone_id, data: Mapping[str, Any]) -> MilestoneTask:
        _require(data, 'name')
        task = MilestoneTask(
            milestone_id=milestone_id,
            name=data['name'].strip(),
            completed=bool(data.get('completed', False)),
        )
        db.session.add(task)
        db.session.commit()
        return task

    def _get(self, task_id, milestone_id=None):
        task = db.session.get(MilestoneTask, task_id)
        if task is None or (milestone_id is not None and task.milestone_id != milestone_id):
            return None
        return task

    @writes
    def update(self, task_id, updates: Mapping[str, Any], milestone_id=None):
        task = self._get(task_id, milestone_id)
        if task is None:
            return None
        _apply(task, updates, {'name': _non_blank('name'), 'completed': bool})
        db.session.commit()
        return task

    @writes
    def delete(self, task_id, milestone_id=None) -> bool:
        task = self._get(task_id, milestone_id)
        if task is None:
            return False
        db.session.delete(task)
        db.session.commit()
        return True


class TrashStore:
    @writes
    def empty_trash(self, user_id) -> dict:
        """Purge every soft-deleted product, then every soft-deleted category."""
        deleted_products = Product.query.filter(
            Product.user_id == user_id, Product.deleted_at.isnot(None)
        ).all()
        for p in deleted_products:
            db.session.delete(p)
        db.session.flush()

        deleted_categories = Category.query.filter(
            Category.user_id == user_id, Category.deleted_at.isnot(None)
        ).all()
        for c in deleted_categories:
            categories._before_purge(c)
            db.session.delete(c)
        db.session.commit()
        logging.info(
            "emptied trash user=%s products=%s categories=%s",
            user_id, len(deleted_products), len(deleted_categories),
        )
        return {'products': len(deleted_products), 'categories': len(deleted_categories)}

    @reads(default=lambda: {'products': 0, 'categories': 0})
    def get_stats(self, user_id) -> dict:
        return {
            'products': Product.query.filter(
                Product.user_id == user_id, Product.deleted_at.isnot(None)
            ).count(),
            'categories': Category.query.filter(
                Category.user_id == user_id, Category.deleted_at.isnot(None)
            ).count(),
        }


categories = CategoriesStore()
products = ProductsStore()
projects = ProjectsStore()
line_items = LineItemsStore()
budget_categories = BudgetCategoriesStore()
milestones = MilestonesStore()
milestone_tasks = MilestoneTasksStore()
trash = TrashStore()
