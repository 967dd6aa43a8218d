"""
ORM guards for rows that must not change.

Stock movements and status transitions are append-only, and a document that
reached DONE stays exactly as it was when its stock moved.  The services
never write to such rows; these mapper events stop anyone else doing it
through the ORM.  Each check runs inside the flush, before any SQL:

    session.flush()
      before_update(target) -- _check_<entity>_immutability --+
      before_delete(target) -- _check_<entity>_delete --------+--> ImmutabilityViolationError
      UPDATE / DELETE statements

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                    | Why
--------------------|-----------------------------------|---------------------------------
StockMovement       | ALWAYS (from creation)            | The ledger is append-only
DocumentTransition  | ALWAYS (from creation)            | Status history is append-only
Document            | After status = DONE               | Stock already moved for it
DocumentLine        | When parent document is DONE      | Lines are part of the document
StockLevel          | DELETE while movements reference  | Level must stay reconcilable

===============================================================================
NOTES
===============================================================================

- ``updated_at`` and ``updated_by_id`` (TrackedBase.MUTABLE_AUDIT_COLUMNS)
  may change on a frozen row.
- "Frozen" means DONE *before* the flush.  The flush that completes a
  document sets status=DONE and fills quantity_fulfilled on every line; the
  old status in the attribute history is READY, so it passes.
- Model imports are inline: the models package imports db.
- Core statements (``table.update()``, ``table.delete()``) bypass the
  guards.  Tests use that to plant drift.

Usage::

    from stock_ledger.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent

unregister_immutability_listeners() removes them again.
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm.attributes import get_history

from stock_ledger.db.base import TrackedBase
from stock_ledger.exceptions import ImmutabilityViolationError
from stock_ledger.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    extra = {
        "entity_type": entity_type,
        "entity_id": str(target.id),
        "operation": operation,
    }
    if field is not None:
        extra["field"] = field
    logger.error("immutability_violation_blocked", extra=extra)
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    """Mapped attributes with pending changes, audit fields excluded."""
    changed = []
    for attr in inspect(target).attrs:
        if attr.key in TrackedBase.MUTABLE_AUDIT_COLUMNS:
            continue
        if attr.history.has_changes():
            changed.append(attr.key)
    return changed


def _was_done(document) -> bool:
    """
    Whether the document was already DONE before the pending flush.

    A status change in flight exposes its old value in history.deleted.
    With no change in flight the current value is the stored one.
    """
    from stock_ledger.models.document import DocumentStatus

    history = get_history(document, "status")
    if history.deleted:
        return history.deleted[0] == DocumentStatus.DONE.value
    if history.added:
        return False
    return document.status == DocumentStatus.DONE.value


# StockMovement


def _check_stock_movement_immutability(mapper, connection, target):
    """Movements are never modified."""
    fields = _changed_fields(target)
    if fields:
        _block(
            "StockMovement",
            target,
            "UPDATE",
            f"Cannot modify field '{fields[0]}' on a stock movement",
            field=fields[0],
        )


def _check_stock_movement_delete(mapper, connection, target):
    """Movements are never deleted."""
    _block("StockMovement", target, "DELETE", "Stock movements cannot be deleted")


# DocumentTransition


def _check_transition_immutability(mapper, connection, target):
    fields = _changed_fields(target)
    if fields:
        _block(
            "DocumentTransition",
            target,
            "UPDATE",
            "Document transition history cannot be modified",
            field=fields[0],
        )


def _check_transition_delete(mapper, connection, target):
    _block(
        "DocumentTransition",
        target,
        "DELETE",
        "Document transition history cannot be deleted",
    )


# Document


def _check_document_immutability(mapper, connection, target):
    """
    Block changes to a document that was DONE before this flush.

    The READY -> DONE flush itself passes because the old status in the
    attribute history is READY.
    """
    if not _was_done(target):
        return
    fields = _changed_fields(target)
    if fields:
        _block(
            "Document",
            target,
            "UPDATE",
            f"Cannot modify field '{fields[0]}' on a completed document",
            field=fields[0],
        )


def _check_document_delete(mapper, connection, target):
    if _was_done(target):
        _block("Document", target, "DELETE", "Completed documents cannot be deleted")


# DocumentLine


def _check_document_line_immutability(mapper, connection, target):
    document = target.document
    if document is None or not _was_done(document):
        return
    fields = _changed_fields(target)
    if fields:
        _block(
            "DocumentLine",
            target,
            "UPDATE",
            "Document lines cannot be modified after the document is completed",
            field=fields[0],
        )


def _check_document_line_delete(mapper, connection, target):
    document = target.document
    if document is not None and _was_done(document):
        _block(
            "DocumentLine",
            target,
            "DELETE",
            "Document lines cannot be deleted after the document is completed",
        )


# StockLevel


def _check_stock_level_delete(mapper, connection, target):
    """A level with movements behind it must stay for reconciliation."""
    from stock_ledger.models.stock import StockMovement

    count = connection.execute(
        select(func.count())
        .select_from(StockMovement)
        .where(
            StockMovement.product_id == target.product_id,
            StockMovement.warehouse_id == target.warehouse_id,
            StockMovement.location_id == target.location_id,
        )
    ).scalar_one()
    if count:
        _block(
            "StockLevel",
            target,
            "DELETE",
            f"Stock level is referenced by {count} movement(s)",
        )


def _listeners():
    from stock_ledger.models.document import (
        Document,
        DocumentLine,
        DocumentTransition,
    )
    from stock_ledger.models.stock import StockLevel, StockMovement

    return (
        (StockMovement, "before_update", _check_stock_movement_immutability),
        (StockMovement, "before_delete", _check_stock_movement_delete),
        (DocumentTransition, "before_update", _check_transition_immutability),
        (DocumentTransition, "before_delete", _check_transition_delete),
        (Document, "before_update", _check_document_immutability),
        (Document, "before_delete", _check_document_delete),
        (DocumentLine, "before_update", _check_document_line_immutability),
        (DocumentLine, "before_delete", _check_document_line_delete),
        (StockLevel, "before_delete", _check_stock_level_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; a listener already registered is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must plant data the guards would
    otherwise reject.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
