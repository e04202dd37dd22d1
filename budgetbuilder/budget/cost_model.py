# budgetbuilder/budget/cost_model.py
"""Budget line records and the conversions between cart and storage form.

A budget line exists in two shapes:

* ``CartLineItem`` -- what the builder edits: sale price, cost, labor and
  profit per unit plus an integer quantity.
* ``PersistedLineItem`` -- what is stored per project: unit cost and a
  markup percentage.

Labor travels with both shapes but never enters the price/markup identity;
it is always totalled on its own.  Catalog linkage is not stored, so a cart
rebuilt from storage has ``product_ref=None``.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from budgetbuilder.money import (
    MAX_MARKUP,
    MIN_QUANTITY,
    clamp_min,
    parse_numeric_input,
)

DEFAULT_CATEGORY = 'General'
DEFAULT_NAME = 'Unnamed product'
TEMP_ID_PREFIX = 'temp-'


@dataclass
class CatalogProduct:
    id: int
    name: str
    category: str = DEFAULT_CATEGORY
    code: Optional[str] = None
    image: Optional[str] = None
    alt: Optional[str] = None
    final_price: float = 0.0
    cost: float = 0.0
    labor: float = 0.0
    profit: float = 0.0


@dataclass
class CartLineItem:
    id: str
    name: str
    unit_price: float = 0.0
    cost: float = 0.0
    labor: float = 0.0
    profit: float = 0.0
    quantity: int = MIN_QUANTITY
    product_ref: Optional[int] = None
    category: str = DEFAULT_CATEGORY
    code: Optional[str] = None
    image: Optional[str] = None
    alt: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    @property
    def is_temporary(self) -> bool:
        return str(self.id).startswith(TEMP_ID_PREFIX)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['line_total'] = self.line_total
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CartLineItem':
        """Build a cart line from a JSON payload, applying every default here."""
        return cls(
            id=str(data.get('id') or new_temp_id()),
            name=data.get('name') or DEFAULT_NAME,
            unit_price=clamp_min(parse_numeric_input(data.get('unit_price'), 0.0), 0.0),
            cost=clamp_min(parse_numeric_input(data.get('cost'), 0.0), 0.0),
            labor=clamp_min(parse_numeric_input(data.get('labor'), 0.0), 0.0),
            profit=parse_numeric_input(data.get('profit'), 0.0),
            quantity=int(parse_numeric_input(data.get('quantity'), MIN_QUANTITY)),
            product_ref=_product_ref(data.get('product_ref')),
            category=data.get('category') or DEFAULT_CATEGORY,
            code=data.get('code'),
            image=data.get('image'),
            alt=data.get('alt'),
        )


@dataclass
class PersistedLineItem:
    project_id: int
    name: str = DEFAULT_NAME
    category: str = DEFAULT_CATEGORY
    quantity: float = 1.0
    unit_cost: float = 0.0
    labor: float = 0.0
    markup: float = 0.0
    id: Optional[int] = None

    @property
    def line_total(self) -> float:
        """Row total as shown by the manual line-items editor (labor excluded)."""
        subtotal = self.quantity * self.unit_cost
        return subtotal + subtotal * (self.markup / 100)

    @classmethod
    def from_row(cls, row: Any) -> 'PersistedLineItem':
        """Normalise a stored row (model instance or mapping)."""
        get = row.get if isinstance(row, Mapping) else (lambda k: getattr(row, k, None))
        quantity = parse_numeric_input(get('quantity'), 1.0)
        return cls(
            id=get('id'),
            project_id=get('project_id'),
            name=get('name') or DEFAULT_NAME,
            category=get('category') or DEFAULT_CATEGORY,
            quantity=quantity if quantity > 0 else 1.0,
            unit_cost=clamp_min(parse_numeric_input(get('unit_cost'), 0.0), 0.0),
            labor=clamp_min(parse_numeric_input(get('labor'), 0.0), 0.0),
            markup=min(parse_numeric_input(get('markup'), 0.0), MAX_MARKUP),
        )

    def to_row(self) -> dict:
        """Column values for an insert; the id is left to the database."""
        data = asdict(self)
        data.pop('id')
        return data


def _product_ref(value: Any) -> Optional[int]:
    ref = parse_numeric_input(value, None)
    return int(ref) if ref is not None and ref.is_integer() else None


CatalogLookup = Callable[[str], Optional[CatalogProduct]]


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def build_catalog_lookup(products: Iterable[CatalogProduct]) -> CatalogLookup:
    """Exact-name lookup over the catalog; the first product with a name wins."""
    by_name: dict[str, CatalogProduct] = {}
    for p in products:
        by_name.setdefault(p.name, p)
    return by_name.get


def to_cart_item(
    persisted: PersistedLineItem, catalog_lookup: CatalogLookup | None = None
) -> CartLineItem:
    unit_cost = persisted.unit_cost
    unit_price = unit_cost * (1 + persisted.markup / 100)
    match = catalog_lookup(persisted.name) if catalog_lookup else None
    return CartLineItem(
        id=str(persisted.id) if persisted.id is not None else new_temp_id(),
        product_ref=None,
        name=persisted.name,
        category=persisted.category,
        code=match.code if match else None,
        image=match.image if match else None,
        unit_price=unit_price,
        cost=unit_cost,
        labor=persisted.labor,
        profit=unit_price - unit_cost,
        quantity=int(clamp_min(round(persisted.quantity), MIN_QUANTITY)),
    )


def to_persisted_item(item: CartLineItem, project_id: int) -> PersistedLineItem:
    unit_cost = clamp_min(parse_numeric_input(item.cost, 0.0), 0.0)
    unit_price = parse_numeric_input(item.unit_price, 0.0)
    markup = 0.0
    if unit_cost > 0:
        markup = min(((unit_price - unit_cost) / unit_cost) * 100, MAX_MARKUP)
    quantity = parse_numeric_input(item.quantity, 1.0)
    return PersistedLineItem(
        project_id=project_id,
        name=item.name or DEFAULT_NAME,
        category=item.category or DEFAULT_CATEGORY,
        quantity=quantity if quantity > 0 else 1.0,
        unit_cost=unit_cost,
        labor=clamp_min(parse_numeric_input(item.labor, 0.0), 0.0),
        markup=markup,
    )


def add_to_cart(
    cart: list[CartLineItem], product: CatalogProduct, quantity: int = MIN_QUANTITY
) -> CartLineItem:
    """Add ``quantity`` units of ``product``, merging with an existing line."""
    quantity = int(clamp_min(quantity, MIN_QUANTITY))
    for item in cart:
        if item.product_ref is not None and item.product_ref == product.id:
            item.quantity += quantity
            return item

    item = CartLineItem(
        id=new_temp_id(),
        product_ref=product.id,
        name=product.name,
        category=product.category or DEFAULT_CATEGORY,
        code=product.code,
        image=product.image,
        alt=product.alt,
        unit_price=product.final_price or 0.0,
        cost=product.cost or 0.0,
        labor=product.labor or 0.0,
        profit=product.profit or 0.0,
        quantity=quantity,
    )
    cart.append(item)
    return item


def remove_item(cart: list[CartLineItem], item_id: str) -> bool:
    before = len(cart)
    cart[:] = [i for i in cart if i.id != str(item_id)]
    return len(cart) != before


def update_quantity(cart: list[CartLineItem], item_id: str, quantity: int) -> bool:
    """Set a line's quantity; zero or less removes the line instead."""
    if quantity <= 0:
        return remove_item(cart, item_id)
    for item in cart:
        if item.id == str(item_id):
            item.quantity = int(quantity)
            return True
    return False


def cart_from_payload(rows: Iterable[Mapping[str, Any]] | None) -> list[CartLineItem]:
    """Parse a posted cart; lines whose quantity is not positive are dropped."""
    cart = []
    for row in rows or []:
        item = CartLineItem.from_dict(row)
        if item.quantity >= MIN_QUANTITY:
            cart.append(item)
    return cart
