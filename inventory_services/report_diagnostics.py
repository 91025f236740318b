"""
ReportDiagnostics -- read-only consistency pass over closed daily reports.

Responsibility:
    Re-derives every historical report item's closing stock from its
    opening, received, sold and damaged columns and reports each item where
    the chain does not hold.  Legacy reports written before the opening
    clamp can carry negative openings; those are reported too.

Architecture position:
    Services -- read-only.  Never writes, never corrects.  Used by
    ReconciliationEngine.diagnose() and scripts/diagnose_reports.py.

Audit relevance:
    Each finding is logged as ``report_discrepancy_found`` so the drift is
    visible in the structured log even when no one reads the result.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import DiagnosisResult, Discrepancy
from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.report_selector import ReportSelector

logger = get_logger("services.report_diagnostics")

CLOSING_MISMATCH = "closing_mismatch"
NEGATIVE_OPENING = "negative_opening"


class ReportDiagnostics:
    """
    Usage:
        result = ReportDiagnostics(session).diagnose(unit_id)
        for d in result.discrepancies:
            print(d.kind, d.product_id, d.difference)
    """

    def __init__(self, session: Session):
        self._reports = ReportSelector(session)

    def diagnose(self, unit_id: UUID | None = None) -> DiagnosisResult:
        reports = self._reports.in_chronological_order(unit_id)
        items_checked = 0
        discrepancies: list[Discrepancy] = []

        for report in reports:
            for item in report.items:
                items_checked += 1
                kinds = []
                if item.expected_closing != item.closing_stock:
                    kinds.append(CLOSING_MISMATCH)
                if item.opening_stock < 0:
                    kinds.append(NEGATIVE_OPENING)

                for kind in kinds:
                    found = Discrepancy(
                        kind=kind,
                        report_id=report.id,
                        unit_id=report.unit_id,
                        report_date=report.report_date,
                        product_id=item.product_id,
                        opening_stock=item.opening_stock,
                        stock_received=item.stock_received,
                        quantity_sold=item.quantity_sold,
                        damages=item.damages,
                        closing_stock=item.closing_stock,
                        expected_closing=item.expected_closing,
                    )
                    discrepancies.append(found)
                    logger.warning(
                        "report_discrepancy_found",
                        extra={
                            "kind": kind,
                            "report_id": str(report.id),
                            "unit_id": str(report.unit_id),
                            "report_date": report.report_date.isoformat(),
                            "product_id": str(item.product_id),
                            "closing_stock": item.closing_stock,
                            "expected_closing": item.expected_closing,
                        },
                    )

        result = DiagnosisResult(
            reports_checked=len(reports),
            items_checked=items_checked,
            discrepancies=tuple(discrepancies),
        )
        logger.info(
            "report_diagnosis_completed",
            extra={
                "unit_id": str(unit_id) if unit_id else None,
                "reports_checked": result.reports_checked,
                "items_checked": result.items_checked,
                "discrepancy_count": len(result.discrepancies),
            },
        )
        return result
