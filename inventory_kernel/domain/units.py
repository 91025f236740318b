"""
UnitConverter -- set/item quantity arithmetic.

Responsibility:
    The one place where a human-facing quantity (sets, loose items, or a raw
    item count) becomes the integer item count the ledger stores, and where
    an item count becomes a display string again.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Items are the only unit inside the ledger.  Every service resolves its
      input through ``resolve_quantity`` exactly once, at the edge.
    - A caller supplies either a raw ``quantity`` or a ``sets``/``items``
      pair, never both.  Summing both is how stock used to be counted twice.

Failure modes:
    - InvalidQuantityError for negative inputs.
    - AmbiguousQuantityError when both input methods are used.
"""

from typing import Protocol

from inventory_kernel.exceptions import AmbiguousQuantityError, InvalidQuantityError

PRODUCT_TYPE_INDIVIDUAL = "individual"
PRODUCT_TYPE_SET = "set"


class ProductLike(Protocol):
    """Attributes the converter reads from a product (ORM row or DTO)."""

    id: object
    product_type: str
    items_per_set: int | None
    unit_of_measurement: str


def _is_set(product: ProductLike) -> bool:
    return product.product_type == PRODUCT_TYPE_SET


def _items_per_set(product: ProductLike) -> int:
    if not _is_set(product):
        return 1
    return product.items_per_set or 1


def _unit_label(product: ProductLike) -> str:
    # Shown exactly as configured on the product, whatever the count.
    return product.unit_of_measurement or "items"


def _set_label(count: int) -> str:
    return "set" if count == 1 else "sets"


class UnitConverter:
    """
    Stateless converter between sets and items.

    Examples for a product sold in sets of 12 bottles:
        to_items(5, p)   == 60
        format(14, p)    == "1 set, 2 bottles"
        format(11, p)    == "11 bottles"
        format(24, p)    == "2 sets"
    """

    @staticmethod
    def to_items(quantity: int, product: ProductLike) -> int:
        """Convert a quantity expressed in the product's selling unit to items."""
        if quantity < 0:
            raise InvalidQuantityError(quantity, "quantity cannot be negative")
        return quantity * _items_per_set(product)

    @staticmethod
    def format(total_items: int, product: ProductLike) -> str:
        """Render an item count as whole sets and loose items."""
        if total_items < 0:
            raise InvalidQuantityError(total_items, "quantity cannot be negative")

        if not _is_set(product):
            return f"{total_items} {_unit_label(product)}"

        per_set = _items_per_set(product)
        sets, remainder = divmod(total_items, per_set)

        parts = []
        if sets:
            parts.append(f"{sets} {_set_label(sets)}")
        if remainder:
            parts.append(f"{remainder} {_unit_label(product)}")
        if not parts:
            return f"0 {_unit_label(product)}"
        return ", ".join(parts)

    @staticmethod
    def resolve_quantity(
        product: ProductLike,
        quantity: int | None = None,
        sets: int | None = None,
        items: int | None = None,
    ) -> int:
        """
        Resolve caller input to an item count.

        ``quantity`` is a raw item count.  ``sets`` and ``items`` are summed
        as ``sets * items_per_set + items``.  Zero or missing values count as
        not supplied.

        Raises:
            InvalidQuantityError: Any input is negative.
            AmbiguousQuantityError: Both ``quantity`` and ``sets``/``items``
                are supplied.
        """
        for value in (quantity, sets, items):
            if value is not None and value < 0:
                raise InvalidQuantityError(value, "quantity cannot be negative")

        has_quantity = bool(quantity)
        has_split = bool(sets) or bool(items)

        if has_quantity and has_split:
            raise AmbiguousQuantityError(str(product.id))

        if has_quantity:
            return quantity
        return (sets or 0) * _items_per_set(product) + (items or 0)
