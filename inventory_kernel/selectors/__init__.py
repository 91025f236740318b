"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.selectors.report_selector import ReportSelector
from inventory_kernel.selectors.sale_selector import SaleSelector

__all__ = [
    "InventorySelector",
    "ReportSelector",
    "SaleSelector",
]
