"""
Stock scopes -- where a quantity of a product lives.

A scope is either the central warehouse or one operating unit.  Every ledger
mutation names the scope it touches; multi-scope operations lock their rows
in ``sort_key`` order so two transfers in opposite directions always queue on
the same first row instead of deadlocking.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class ScopeKind(str, Enum):
    """Kind of stock holder.  Declaration order is the lock order."""

    CENTRAL = "central"
    UNIT = "unit"


_KIND_RANK = {ScopeKind.CENTRAL: 0, ScopeKind.UNIT: 1}


@dataclass(frozen=True)
class StockScope:
    """
    Central warehouse or a single unit's inventory.

    Guarantees:
        - CENTRAL scopes carry no unit_id; UNIT scopes always carry one.
    """

    kind: ScopeKind
    unit_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.kind == ScopeKind.CENTRAL and self.unit_id is not None:
            raise ValueError("Central scope cannot name a unit")
        if self.kind == ScopeKind.UNIT and self.unit_id is None:
            raise ValueError("Unit scope requires a unit_id")

    @classmethod
    def central(cls) -> "StockScope":
        return cls(ScopeKind.CENTRAL)

    @classmethod
    def unit(cls, unit_id: UUID) -> "StockScope":
        return cls(ScopeKind.UNIT, unit_id)

    @property
    def is_central(self) -> bool:
        return self.kind == ScopeKind.CENTRAL

    @property
    def sort_key(self) -> tuple[int, str]:
        """Total lock order: central first, then units by id."""
        return (_KIND_RANK[self.kind], str(self.unit_id or ""))

    def __str__(self) -> str:
        if self.is_central:
            return "central"
        return f"unit:{self.unit_id}"
