"""Pure domain layer: clock, scopes, unit conversion, and DTOs."""

from inventory_kernel.domain.actors import SYSTEM_ACTOR_ID
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.scopes import ScopeKind, StockScope
from inventory_kernel.domain.units import UnitConverter

__all__ = [
    "Clock",
    "DeterministicClock",
    "ScopeKind",
    "StockScope",
    "SYSTEM_ACTOR_ID",
    "SystemClock",
    "UnitConverter",
]
