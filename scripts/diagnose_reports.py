#!/usr/bin/env python3
"""
Check closed daily reports for stock-chain drift.

For every report item, re-derives closing stock as
opening + received - sold - damages and prints each item where it differs
from the recorded closing stock, plus any negative opening.  Read-only.

Exit codes:
    0  all reports consistent
    2  discrepancies found

Usage:
    python3 scripts/diagnose_reports.py                      # all units
    python3 scripts/diagnose_reports.py <unit_id>            # one unit
    python3 scripts/diagnose_reports.py --config ledger.yaml
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Diagnose daily report stock chains")
    parser.add_argument("unit_id", nargs="?", type=UUID, help="Only check this unit")
    parser.add_argument("--config", type=Path, help="Ledger settings YAML file")
    args = parser.parse_args(argv)

    from inventory_config import get_active_settings
    from inventory_kernel.db.engine import get_session, init_engine_from_url
    from inventory_services.report_diagnostics import ReportDiagnostics

    settings = get_active_settings(args.config)
    init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        lock_timeout_ms=settings.lock_timeout_ms,
    )

    session = get_session()
    try:
        result = ReportDiagnostics(session).diagnose(args.unit_id)
    finally:
        session.close()

    print(
        f"Checked {result.reports_checked} report(s), "
        f"{result.items_checked} item(s)."
    )
    if result.is_consistent:
        print("No discrepancies found.")
        return 0

    print(f"\n{len(result.discrepancies)} discrepancy(ies):\n")
    for d in result.discrepancies:
        print(
            f"  {d.report_date}  unit={d.unit_id}  product={d.product_id}  {d.kind}\n"
            f"      opening={d.opening_stock} received={d.stock_received} "
            f"sold={d.quantity_sold} damages={d.damages} "
            f"closing={d.closing_stock} expected={d.expected_closing} "
            f"(diff {d.difference:+d})"
        )
    return 2


if __name__ == "__main__":
    sys.exit(main())
