"""
Module: inventory_kernel.selectors.report_selector
Responsibility: Read-only access to closed daily reports.
Architecture position: Kernel > Selectors.  Used by ReconciliationEngine for
    lookups and prior-report openings, and by ReportDiagnostics for its
    consistency pass.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import DailyReportRecord
from inventory_kernel.models.daily_report import DailyReport
from inventory_kernel.selectors.base import BaseSelector


class ReportSelector(BaseSelector):
    """Daily report lookups.  Items are eager-loaded by the mapping."""

    def get(self, report_id: UUID) -> DailyReportRecord | None:
        report = self.session.get(DailyReport, report_id)
        return DailyReportRecord.from_model(report) if report is not None else None

    def find(self, unit_id: UUID, report_date: date) -> DailyReportRecord | None:
        report = self.session.execute(
            select(DailyReport).where(
                DailyReport.unit_id == unit_id,
                DailyReport.report_date == report_date,
            )
        ).scalar_one_or_none()
        return DailyReportRecord.from_model(report) if report is not None else None

    def exists(self, unit_id: UUID, report_date: date) -> bool:
        return self.session.execute(
            select(DailyReport.id).where(
                DailyReport.unit_id == unit_id,
                DailyReport.report_date == report_date,
            )
        ).first() is not None

    def latest_before(self, unit_id: UUID, report_date: date) -> DailyReportRecord | None:
        """Most recent report for the unit strictly before ``report_date``."""
        report = self.session.execute(
            select(DailyReport)
            .where(
                DailyReport.unit_id == unit_id,
                DailyReport.report_date < report_date,
            )
            .order_by(DailyReport.report_date.desc())
            .limit(1)
        ).scalar_one_or_none()
        return DailyReportRecord.from_model(report) if report is not None else None

    def list(self, unit_id: UUID | None = None) -> list[DailyReportRecord]:
        """Reports newest first, optionally for one unit."""
        stmt = select(DailyReport).order_by(
            DailyReport.report_date.desc(), DailyReport.unit_id
        )
        if unit_id is not None:
            stmt = stmt.where(DailyReport.unit_id == unit_id)
        return [
            DailyReportRecord.from_model(r)
            for r in self.session.execute(stmt).scalars().all()
        ]

    def in_chronological_order(self, unit_id: UUID | None = None) -> list[DailyReportRecord]:
        """Reports oldest first, grouped by unit."""
        stmt = select(DailyReport).order_by(DailyReport.unit_id, DailyReport.report_date)
        if unit_id is not None:
            stmt = stmt.where(DailyReport.unit_id == unit_id)
        return [
            DailyReportRecord.from_model(r)
            for r in self.session.execute(stmt).scalars().all()
        ]
