"""
Shared transaction envelope for the orchestration services.

Every public operation of TransactionCoordinator and ReconciliationEngine
runs through ``run_in_transaction``: a correlation-scoped log context,
``<operation>_started`` / ``_completed`` / ``_failed`` events with
duration_ms, driver lock errors translated into ConcurrencyError subclasses,
and commit or rollback when the service owns the transaction.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from inventory_kernel.db.engine import translate_db_errors
from inventory_kernel.exceptions import InventoryKernelError
from inventory_kernel.logging_config import LogContext

T = TypeVar("T")


def run_in_transaction(
    session: Session,
    operation: str,
    fn: Callable[[], T],
    *,
    logger: logging.Logger,
    auto_commit: bool,
    actor_id: UUID | None = None,
    unit_id: UUID | None = None,
    **log_fields: Any,
) -> T:
    """
    Run ``fn`` as one unit of work.

    With ``auto_commit`` the session is committed on success and rolled back
    on any exception.  Without it the caller owns both; the session is left
    as ``fn`` left it.  The exception always propagates unchanged, except
    lock failures, which arrive as LockTimeoutError / DeadlockDetectedError.
    """
    with LogContext.bind(
        correlation_id=str(uuid4()),
        actor_id=actor_id,
        unit_id=unit_id,
        operation=operation,
    ):
        logger.info(f"{operation}_started", extra=log_fields)
        t0 = time.monotonic()
        try:
            with translate_db_errors(operation):
                result = fn()
                if auto_commit:
                    session.commit()
        except Exception as exc:
            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            if auto_commit:
                session.rollback()
            if isinstance(exc, InventoryKernelError):
                logger.warning(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms, "error_code": exc.code},
                )
            else:
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
            raise

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})
        return result
