"""Domain models for the inventory kernel."""

from inventory_kernel.models.audit_event import AuditAction, AuditEvent, SubjectType
from inventory_kernel.models.daily_report import DailyReport, DailyReportItem, ReportStatus
from inventory_kernel.models.product import Product, ProductType, SourceType
from inventory_kernel.models.sale import PaymentStatus, Sale, SaleItem
from inventory_kernel.models.sequence import SequenceCounter
from inventory_kernel.models.stock import CentralStock, Inventory
from inventory_kernel.models.stock_request import StockRequest, StockRequestStatus
from inventory_kernel.models.unit import OperatingUnit

__all__ = [
    "AuditAction",
    "AuditEvent",
    "CentralStock",
    "DailyReport",
    "DailyReportItem",
    "Inventory",
    "OperatingUnit",
    "PaymentStatus",
    "Product",
    "ProductType",
    "ReportStatus",
    "Sale",
    "SaleItem",
    "SequenceCounter",
    "SourceType",
    "StockRequest",
    "StockRequestStatus",
    "SubjectType",
]
