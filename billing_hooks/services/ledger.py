from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import FlushError

from billing_hooks.extensions import db
from billing_hooks.models import ProcessedEvent
from billing_hooks.utils.helpers import utcnow
from .errors import DuplicateEventError


def has_processed(event_id: str) -> bool:
    """Fast-path read. The insert in mark_processed is what actually guards."""
    return db.session.get(ProcessedEvent, event_id) is not None


def mark_processed(event_id: str, event_type: str) -> ProcessedEvent:
    """
    Insert the ledger row inside the caller's transaction and flush it.

    Runs after the handler has flushed its mutation and before commit, so a
    concurrent delivery of the same id blocks on the primary key and then fails
    here, rolling back its own mutation with it.
    The caller owns commit/rollback and must roll back on DuplicateEventError.
    """
    row = ProcessedEvent(event_id=event_id, event_type=event_type, processed_at=utcnow())
    db.session.add(row)
    try:
        db.session.flush()
    except (IntegrityError, FlushError) as exc:
        # FlushError: same id already in this session's identity map
        raise DuplicateEventError(event_id) from exc
    return row


def prune_processed(older_than_days: int) -> int:
    """Retention: drop ledger rows older than the cutoff. Returns rows deleted."""
    cutoff = utcnow() - timedelta(days=older_than_days)
    deleted = (
        db.session.query(ProcessedEvent)
        .filter(ProcessedEvent.processed_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
