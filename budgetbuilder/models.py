import math
from datetime import date, datetime

from budgetbuilder import db


class SerializerMixin:
    def to_dict(self):
        out = {}
        for col in self.__table__.columns.keys():
            val = getattr(self, col)
            if isinstance(val, (date, datetime)):
                val = val.isoformat()
            out[col] = val
        return out


class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime, nullable=True)
    deleted_by = db.Column(db.String(64), nullable=True)

    @property
    def is_deleted(self):
        return self.deleted_at is not None


class Category(SerializerMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'categories'
    id         = db.Column(db.Integer, primary_key=True)
    user_id    = db.Column(db.String(64), nullable=False, index=True)
    name       = db.Column(db.String(120), nullable=False)
    icon       = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    products = db.relationship('Product', backref='category', lazy=True)


class Product(SerializerMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'products'
    id          = db.Column(db.Integer, primary_key=True)
    user_id     = db.Column(db.String(64), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id', ondelete='SET NULL'))
    name        = db.Column(db.String(200), nullable=False)
    code        = db.Column(db.String(64))
    image       = db.Column(db.String(500))
    alt         = db.Column(db.String(200))
    has_pdf     = db.Column(db.Boolean, default=False)
    final_price = db.Column(db.Float, default=0.0)
    cost        = db.Column(db.Float, default=0.0)
    labor       = db.Column(db.Float, default=0.0)
    profit      = db.Column(db.Float, default=0.0)
    created_at  = db.Column(db.DateTime, default=datetime.utcnow)

    def to_catalog(self):
        from budgetbuilder.budget.cost_model import DEFAULT_CATEGORY, CatalogProduct
        return CatalogProduct(
            id=self.id,
            name=self.name,
            category=self.category.name if self.category else DEFAULT_CATEGORY,
            code=self.code,
            image=self.image,
            alt=self.alt,
            final_price=self.final_price or 0.0,
            cost=self.cost or 0.0,
            labor=self.labor or 0.0,
            profit=self.profit or 0.0,
        )

    def to_dict(self):
        data = super().to_dict()
        data['category_name'] = self.category.name if self.category else None
        return data


class Project(SerializerMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'projects'
    id           = db.Column(db.Integer, primary_key=True)
    user_id      = db.Column(db.String(64), nullable=False, index=True)
    name         = db.Column(db.String(200), nullable=False)
    description  = db.Column(db.Text)
    client       = db.Column(db.String(200))
    project_type = db.Column(db.String(64))
    status       = db.Column(db.String(32), nullable=False, default='active')
    start_date   = db.Column(db.Date)
    end_date     = db.Column(db.Date)
    # snapshot of the last saved budget
    subtotal     = db.Column(db.Float, default=0.0)
    discount     = db.Column(db.Float, default=0.0)
    total        = db.Column(db.Float, default=0.0)
    created_at   = db.Column(db.DateTime, default=datetime.utcnow)

    line_items = db.relationship(
        'LineItem',
        backref='project',
        lazy=True,
        cascade='all, delete-orphan'
    )
    budget_categories = db.relationship(
        'BudgetCategory',
        backref='project',
        lazy=True,
        cascade='all, delete-orphan'
    )
    milestones = db.relationship(
        'Milestone',
        backref='project',
        lazy=True,
        cascade='all, delete-orphan'
    )


class LineItem(SerializerMixin, db.Model):
    __tablename__ = 'line_items'
    id         = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    category   = db.Column(db.String(120), default='General')
    name       = db.Column(db.String(200))
    quantity   = db.Column(db.Float, default=1)
    unit_cost  = db.Column(db.Float, default=0.0)
    labor      = db.Column(db.Float, default=0.0)
    markup     = db.Column(db.Float, default=0.0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def line_total(self):
        subtotal = (self.quantity or 0) * (self.unit_cost or 0)
        return subtotal + subtotal * ((self.markup or 0) / 100)


class BudgetCategory(SerializerMixin, db.Model):
    __tablename__ = 'budget_categories'
    id         = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    name       = db.Column(db.String(120), nullable=False)
    allocated  = db.Column(db.Float, default=0.0)
    spent      = db.Column(db.Float, default=0.0)
    color      = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Milestone(SerializerMixin, db.Model):
    __tablename__ = 'milestones'
    id          = db.Column(db.Integer, primary_key=True)
    project_id  = db.Column(db.Integer, db.ForeignKey('projects.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    title       = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    start_date  = db.Column(db.Date)
    end_date    = db.Column(db.Date)
    status      = db.Column(db.String(32), nullable=False, default='pending')
    progress    = db.Column(db.Integer, default=0)
    created_at  = db.Column(db.DateTime, default=datetime.utcnow)

    tasks = db.relationship(
        'MilestoneTask',
        backref='milestone',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='MilestoneTask.created_at'
    )

    @property
    def duration_days(self):
        if not self.start_date or not self.end_date:
            return None
        delta = abs(self.end_date - self.start_date)
        return math.ceil(delta.total_seconds() / 86400)

    def to_dict(self):
        data = super().to_dict()
        data['duration_days'] = self.duration_days
        data['tasks'] = [t.to_dict() for t in self.tasks]
        return data


class MilestoneTask(SerializerMixin, db.Model):
    __tablename__ = 'milestone_tasks'
    id           = db.Column(db.Integer, primary_key=True)
    milestone_id = db.Column(db.Integer, db.ForeignKey('milestones.id', ondelete='CASCADE'),
                             nullable=False, index=True)
    name         = db.Column(db.String(200), nullable=False)
    completed    = db.Column(db.Boolean, default=False)
    created_at   = db.Column(db.DateTime, default=datetime.utcnow)
