"""Kernel services - imperative shell over the database."""

from inventory_kernel.services.auditor_service import AuditorService, AuditSink
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.stock_ledger import StockLedger

__all__ = [
    "AuditorService",
    "AuditSink",
    "BaseService",
    "SequenceService",
    "StockLedger",
]
