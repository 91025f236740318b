"""
Module: inventory_kernel.models.audit_event
Responsibility: ORM persistence for the append-only stock audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listeners).
    - seq is unique and increasing.  PostgreSQL draws it from the
      audit_event_seq sequence; SQLite, whose writers are serialized, from
      the SequenceService counter row.
    - The audited subject is named by an explicit SubjectType plus id,
      never by a runtime class name.

Audit relevance:
    Every non-zero stock mutation writes one event per mutated scope with
    the quantity before and after, inside the mutating transaction.  A
    rollback discards the event together with the mutation.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, Sequence, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Ledger movements
    STOCK_SOLD = "stock_sold"
    STOCK_TRANSFERRED_OUT = "stock_transferred_out"
    STOCK_TRANSFERRED_IN = "stock_transferred_in"
    STOCK_REPLENISHED = "stock_replenished"
    STOCK_RECEIVED = "stock_received"
    STOCK_ADJUSTED = "stock_adjusted"

    # Request lifecycle
    STOCK_REQUEST_APPROVED = "stock_request_approved"
    STOCK_REQUEST_REJECTED = "stock_request_rejected"

    # Sale lifecycle
    SALE_PAID = "sale_paid"

    # Report lifecycle
    REPORT_GENERATED = "report_generated"
    REPORT_REMARK_UPDATED = "report_remark_updated"


class SubjectType(str, Enum):
    """Kind of row an audit event is about."""

    CENTRAL_STOCK = "central_stock"
    INVENTORY = "inventory"
    STOCK_REQUEST = "stock_request"
    SALE = "sale"
    DAILY_REPORT = "daily_report"


# Created on PostgreSQL only; SQLite ignores sequences.
AUDIT_EVENT_SEQ = Sequence("audit_event_seq")


class AuditEvent(Base):
    """
    One audited change.

    Guarantees:
        - seq is globally unique and monotonically increasing.
        - old_values / new_values are JSON snapshots of the mutated fields.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_subject", "subject_type", "subject_id"),
        Index("idx_audit_product", "product_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger, AUDIT_EVENT_SEQ, nullable=False, unique=True
    )

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    product_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    subject_type: Mapped[SubjectType] = mapped_column(String(30), nullable=False)

    subject_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.action} on {self.subject_type}:{self.subject_id}>"
