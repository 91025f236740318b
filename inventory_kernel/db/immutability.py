"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Closed trading days and the audit trail are the record the business
reconciles against.  Once written they must not drift: a report whose items
can be edited, or an audit event that can be deleted, makes every later
reconciliation meaningless.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable                 | Mutable fields
------------------|--------------------------------|---------------------------
AuditEvent        | ALWAYS (from creation)         | none
SaleItem          | ALWAYS (from creation)         | none
Sale              | After payment_status = paid    | audit metadata only
DailyReport       | ALWAYS (written closed)        | remark, audit metadata
DailyReportItem   | ALWAYS (from creation)         | none

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

Called once at startup (and by the test fixtures):

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    from inventory_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})

DAILY_REPORT_MUTABLE_FIELDS = AUDIT_METADATA_FIELDS | {"remark"}


def _block(entity_type: str, entity_id, operation: str, reason: str, **extra) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_columns(target, allowed: frozenset[str]) -> list[str]:
    """Column attributes with pending changes, excluding ``allowed``."""
    insp = inspect(target)
    changed = []
    for attr in insp.mapper.column_attrs:
        if attr.key in allowed:
            continue
        if insp.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


# =============================================================================
# Always-immutable rows
# =============================================================================


def _check_audit_event_immutability(mapper, connection, target):
    """Audit events are never modified."""
    if _changed_columns(target, frozenset()):
        _block(
            "AuditEvent", target.id, "UPDATE",
            "Audit events are immutable and cannot be modified",
        )


def _check_audit_event_delete(mapper, connection, target):
    _block("AuditEvent", target.id, "DELETE", "Audit events cannot be deleted")


def _check_sale_item_immutability(mapper, connection, target):
    """Sale items are never modified; corrections are new sales."""
    if _changed_columns(target, frozenset()):
        _block(
            "SaleItem", target.id, "UPDATE",
            "Sale items cannot be modified after they are recorded",
        )


def _check_sale_item_delete(mapper, connection, target):
    _block("SaleItem", target.id, "DELETE", "Sale items cannot be deleted")


def _check_daily_report_item_immutability(mapper, connection, target):
    if _changed_columns(target, frozenset()):
        _block(
            "DailyReportItem", target.id, "UPDATE",
            "Daily report items cannot be modified",
        )


def _check_daily_report_item_delete(mapper, connection, target):
    _block("DailyReportItem", target.id, "DELETE", "Daily report items cannot be deleted")


# =============================================================================
# Daily reports: remark only
# =============================================================================


def _check_daily_report_immutability(mapper, connection, target):
    """
    Closed reports accept a new remark and nothing else.

    before_update also fires for rows that are dirty only through a
    relationship collection, so only column attributes are inspected.
    """
    changed = _changed_columns(target, DAILY_REPORT_MUTABLE_FIELDS)
    if changed:
        _block(
            "DailyReport", target.id, "UPDATE",
            f"Cannot modify field '{changed[0]}' on a closed daily report",
            field=changed[0],
        )


def _check_daily_report_delete(mapper, connection, target):
    _block("DailyReport", target.id, "DELETE", "Daily reports cannot be deleted")


# =============================================================================
# Sales: frozen once paid
# =============================================================================


def _was_paid(target) -> bool:
    """
    True when the row was already paid before this flush.

    The pending -> paid transition itself is allowed; anything after it is not.
    """
    from inventory_kernel.models.sale import PaymentStatus

    history = get_history(target, "payment_status")
    if history.deleted:
        return history.deleted[0] == PaymentStatus.PAID
    if history.added:
        return False
    return target.payment_status == PaymentStatus.PAID


def _check_sale_immutability(mapper, connection, target):
    if not _was_paid(target):
        return
    changed = _changed_columns(target, AUDIT_METADATA_FIELDS)
    if changed:
        _block(
            "Sale", target.id, "UPDATE",
            f"Cannot modify field '{changed[0]}' on a paid sale",
            field=changed[0],
        )


def _check_sale_delete(mapper, connection, target):
    from inventory_kernel.models.sale import PaymentStatus

    if target.payment_status == PaymentStatus.PAID:
        _block("Sale", target.id, "DELETE", "Paid sales cannot be deleted")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from inventory_kernel.models.audit_event import AuditEvent
    from inventory_kernel.models.daily_report import DailyReport, DailyReportItem
    from inventory_kernel.models.sale import Sale, SaleItem

    return [
        (AuditEvent, "before_update", _check_audit_event_immutability),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (SaleItem, "before_update", _check_sale_item_immutability),
        (SaleItem, "before_delete", _check_sale_item_delete),
        (Sale, "before_update", _check_sale_immutability),
        (Sale, "before_delete", _check_sale_delete),
        (DailyReport, "before_update", _check_daily_report_immutability),
        (DailyReport, "before_delete", _check_daily_report_delete),
        (DailyReportItem, "before_update", _check_daily_report_item_immutability),
        (DailyReportItem, "before_delete", _check_daily_report_item_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
