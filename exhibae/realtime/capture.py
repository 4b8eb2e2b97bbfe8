"""
Commit-time change capture.

Rows of tracked tables touched by a flush are recorded on the session and
published only after the transaction commits; a rollback discards them.
"""

import logging

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from .broker import broker
from .events import DELETE, INSERT, UPDATE, ChangeEvent, previous_values, row_snapshot

logger = logging.getLogger(__name__)

TRACKED_TABLES = {
    "stall_applications",
    "stall_instances",
    "notifications",
    "conversations",
    "messages",
    "support_tickets",
    "chat_messages",
}

PENDING_KEY = "realtime_pending_changes"


def _tablename(obj):
    return getattr(obj, "__tablename__", None)


def _version(snapshot):
    return snapshot.get("version") if snapshot else None


def record_change(session: Session, operation: str, obj, old=None) -> None:
    """Queue a change for publication on commit; used directly for bulk UPDATE statements"""
    table = _tablename(obj)
    if table not in TRACKED_TABLES:
        return
    new = row_snapshot(obj) if operation != DELETE else None
    if operation == DELETE:
        old = row_snapshot(obj)
    change = ChangeEvent(operation=operation, table=table, new=new, old=old, version=_version(new or old))
    session.info.setdefault(PENDING_KEY, []).append(change)


@event.listens_for(Session, "after_flush")
def _capture_flush(session, flush_context):
    for obj in session.new:
        record_change(session, INSERT, obj)
    for obj in session.dirty:
        if _tablename(obj) in TRACKED_TABLES and session.is_modified(obj, include_collections=False):
            record_change(session, UPDATE, obj, old=previous_values(obj))
    for obj in session.deleted:
        record_change(session, DELETE, obj)


@event.listens_for(Session, "after_commit")
def _publish_on_commit(session):
    changes = session.info.pop(PENDING_KEY, [])
    for change in changes:
        delivered = broker.publish(change)
        logger.debug(f"📡 {change.operation} {change.table} v{change.version} -> {delivered} subscriber(s)")


@event.listens_for(Session, "after_rollback")
def _discard_on_rollback(session):
    discarded = session.info.pop(PENDING_KEY, [])
    if discarded:
        logger.info(f"↩️ Discarded {len(discarded)} unpublished change(s) after rollback")


def refresh_for_change(session: Session, obj) -> None:
    """Reload a row after a bulk UPDATE so its snapshot reflects storage"""
    if inspect(obj).persistent:
        session.refresh(obj)
