"""Tests for scripts/diagnose_reports.py exit codes and output."""

from datetime import date
from decimal import Decimal

import pytest

from inventory_kernel.db import engine as engine_module
from inventory_kernel.models.daily_report import DailyReport, DailyReportItem
from scripts.diagnose_reports import main


@pytest.fixture
def script_session(session, monkeypatch):
    """Run the script against the test session instead of a fresh engine."""
    monkeypatch.delenv("INVENTORY_LEDGER_CONFIG", raising=False)
    monkeypatch.setattr(engine_module, "init_engine_from_url", lambda *a, **kw: None)
    monkeypatch.setattr(engine_module, "get_session", lambda: session)
    return session


def test_consistent_history_exits_zero(
    script_session, reconciliation_engine, unit, water, set_unit_stock, test_actor_id, capsys
):
    set_unit_stock(unit, water, 12)
    reconciliation_engine.generate(unit.id, test_actor_id)

    assert main([]) == 0

    out = capsys.readouterr().out
    assert "Checked 1 report(s), 1 item(s)." in out
    assert "No discrepancies found." in out


def test_discrepancy_exits_two(script_session, unit, other_unit, water, test_actor_id, capsys):
    script_session.add(
        DailyReport(
            user_id=test_actor_id,
            unit_id=unit.id,
            report_date=date(2023, 12, 31),
            total_sales_amount=Decimal("0"),
            created_by_id=test_actor_id,
            items=[
                DailyReportItem(
                    product_id=water.id,
                    opening_stock=-4,
                    stock_received=0,
                    quantity_sold=0,
                    damages=0,
                    closing_stock=0,
                )
            ],
        )
    )
    script_session.commit()

    assert main([str(unit.id)]) == 2
    out = capsys.readouterr().out
    assert "2 discrepancy(ies)" in out
    assert "closing_mismatch" in out
    assert "negative_opening" in out

    assert main([str(other_unit.id)]) == 0
