"""
inventory_services -- Package init and public API.

Responsibility:
    Transaction-owning orchestration over the inventory kernel: sales and
    stock movements (TransactionCoordinator), stock requests
    (StockRequestWorkflow), daily reports (ReconciliationEngine) and the
    read-only report consistency pass (ReportDiagnostics).

Architecture position:
    Services -- above inventory_kernel and inventory_config.

    Dependency direction:
        inventory_services/ -> inventory_kernel/  (allowed)
        inventory_services/ -> inventory_config/  (allowed, schema only)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)

Audit relevance:
    This package is the canonical import surface for callers such as an
    HTTP layer or the scripts/ tools.
"""

from inventory_services.reconciliation_engine import ReconciliationEngine
from inventory_services.report_diagnostics import ReportDiagnostics
from inventory_services.stock_request_workflow import StockRequestWorkflow
from inventory_services.transaction_coordinator import TransactionCoordinator

__all__ = [
    "ReconciliationEngine",
    "ReportDiagnostics",
    "StockRequestWorkflow",
    "TransactionCoordinator",
]
