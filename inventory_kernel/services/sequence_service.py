"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing sequence numbers for
    replenishment batch numbers, and for audit events on SQLite (PostgreSQL
    draws audit seq from a database sequence).  Uses a dedicated counter table
    with row-level locking (``SELECT ... FOR UPDATE``) to guarantee
    uniqueness and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by AuditorService (audit seq on SQLite) and
    TransactionCoordinator (batch numbers).

Invariants enforced:
    - Sequence monotonicity: the locked counter row is the sole source of
      truth for the next value.  Aggregate-max-plus-one is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: Concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        seq = SequenceService(session).next_value(SequenceService.AUDIT_EVENT)
    """

    # Well-known sequence names
    AUDIT_EVENT = "audit_event"
    BATCH_PREFIX = "batch"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Increment and return a named counter, creating it at 1 on first use.

        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              previously returned value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create the same counter
            # concurrently; the savepoint keeps the rest of our work intact.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_batch_number(self, business_date: date, prefix: str = "BATCH") -> str:
        """
        Allocate the next replenishment batch number for a business day.

        Each day has its own counter, so numbering restarts at 0001:
        ``BATCH-20240101-0001``, ``BATCH-20240101-0002``, ...
        """
        day = business_date.strftime("%Y%m%d")
        value = self.next_value(f"{self.BATCH_PREFIX}:{day}")
        return f"{prefix}-{day}-{value:04d}"
