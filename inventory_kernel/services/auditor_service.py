"""
AuditorService -- append-only audit trail for stock mutations.

Responsibility:
    Creates immutable audit events for every stock mutation and lifecycle
    transition, inside the caller's transaction.  Provides trace queries for
    forensic review.

Architecture position:
    Kernel > Services -- imperative shell, called by StockLedger,
    StockRequestWorkflow, TransactionCoordinator, and ReconciliationEngine.

Invariants enforced:
    - Unique, increasing seq without a lock shared between transactions:
      a database sequence on PostgreSQL.  On SQLite, where BEGIN IMMEDIATE
      already serializes writers, the SequenceService counter row.
    - Append-only: audit events are never modified or deleted (ORM listeners
      on the AuditEvent model).
    - Same transaction: ``record`` only flushes.  If the mutation rolls back,
      so does its audit event.

Audit relevance:
    This IS the audit service.  The ledger depends on the ``AuditSink``
    protocol so tests and alternative sinks can be substituted.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_event import (
    AUDIT_EVENT_SEQ,
    AuditAction,
    AuditEvent,
    SubjectType,
)
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.auditor")


class AuditSink(Protocol):
    """Destination for audit records.  Called inside the mutating transaction."""

    def record(
        self,
        action: AuditAction,
        product_id: UUID | None,
        subject_type: SubjectType,
        subject_id: UUID,
        old_values: dict[str, Any] | None,
        new_values: dict[str, Any] | None,
        description: str | None,
        actor_id: UUID,
    ) -> Any:
        ...


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: str
    product_id: UUID | None
    actor_id: UUID
    occurred_at: datetime
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    description: str | None


@dataclass(frozen=True)
class AuditTrace:
    """All audit events for one subject, in seq order."""

    subject_type: str
    subject_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def last_action(self) -> str | None:
        return self.entries[-1].action if self.entries else None


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditorService:
    """
    Database-backed AuditSink.

    Guarantees:
        - ``seq`` comes from ``audit_event_seq`` where the database has
          sequences, else from the ``audit_event`` counter row.
        - old_values / new_values are stored as JSON-safe snapshots.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _next_seq(self) -> int:
        if self._session.get_bind().dialect.supports_sequences:
            return self._session.execute(select(AUDIT_EVENT_SEQ.next_value())).scalar_one()
        return self._sequence_service.next_value(SequenceService.AUDIT_EVENT)

    def record(
        self,
        action: AuditAction,
        product_id: UUID | None,
        subject_type: SubjectType,
        subject_id: UUID,
        old_values: dict[str, Any] | None,
        new_values: dict[str, Any] | None,
        description: str | None,
        actor_id: UUID,
    ) -> AuditEvent:
        """
        Append one audit event and flush it.

        Postconditions:
            - A new ``AuditEvent`` row with a monotonically increasing
              ``seq`` is pending in the caller's transaction.
        """
        seq = self._next_seq()

        audit_event = AuditEvent(
            seq=seq,
            action=action,
            product_id=product_id,
            subject_type=subject_type,
            subject_id=subject_id,
            actor_id=actor_id,
            old_values=_jsonable(old_values) if old_values is not None else None,
            new_values=_jsonable(new_values) if new_values is not None else None,
            description=description,
            occurred_at=self._clock.now(),
        )

        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "action": _jsonable(action),
                "subject_type": _jsonable(subject_type),
                "subject_id": str(subject_id),
                "seq": seq,
            },
        )

        return audit_event

    def get_trace(self, subject_type: SubjectType, subject_id: UUID) -> AuditTrace:
        """All audit events for a subject in seq order."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.subject_type == subject_type,
                AuditEvent.subject_id == subject_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        return AuditTrace(
            subject_type=_jsonable(subject_type),
            subject_id=subject_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=e.seq,
                    action=_jsonable(e.action),
                    product_id=e.product_id,
                    actor_id=e.actor_id,
                    occurred_at=e.occurred_at,
                    old_values=e.old_values,
                    new_values=e.new_values,
                    description=e.description,
                )
                for e in events
            ),
        )

