import json
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from billing_hooks.extensions import db
from billing_hooks.models import FailedEvent
from billing_hooks.utils.helpers import utcnow
from . import alerts, ledger, pipeline
from .failures import describe_error
from .router import DUPLICATE, IGNORED

# Wait after the Nth failed retry before the next one. Fixed and auditable.
RETRY_DELAYS: List[timedelta] = [
    timedelta(minutes=5),
    timedelta(minutes=15),
    timedelta(hours=1),
    timedelta(hours=4),
    timedelta(hours=24),
]
MAX_ATTEMPTS = 5
DEFAULT_BATCH_SIZE = 10
MAX_BATCH_SIZE = 50


def backoff_for(retry_count: int) -> timedelta:
    """Minimum age of last_retry_at for a record that has failed `retry_count` retries."""
    if retry_count <= 0:
        return timedelta(0)
    return RETRY_DELAYS[min(retry_count, len(RETRY_DELAYS)) - 1]


def is_due(record: FailedEvent, now: datetime, max_attempts: int = MAX_ATTEMPTS) -> bool:
    if record.retry_count >= max_attempts:
        return False
    if record.last_retry_at is None:
        return True
    return record.last_retry_at <= now - backoff_for(record.retry_count)


def _due_clause(now: datetime, max_attempts: int):
    # SQL mirror of is_due(): one window per retry count
    windows = [
        and_(FailedEvent.retry_count == n, FailedEvent.last_retry_at <= now - delay)
        for n, delay in enumerate(RETRY_DELAYS, start=1)
    ]
    windows.append(and_(
        FailedEvent.retry_count > len(RETRY_DELAYS),
        FailedEvent.last_retry_at <= now - RETRY_DELAYS[-1],
    ))
    return and_(
        FailedEvent.retry_count < max_attempts,
        or_(FailedEvent.last_retry_at.is_(None), *windows),
    )


def select_due(now: Optional[datetime] = None, limit: int = DEFAULT_BATCH_SIZE,
               max_attempts: int = MAX_ATTEMPTS) -> List[FailedEvent]:
    now = now or utcnow()
    return (
        FailedEvent.query
        .filter(_due_clause(now, max_attempts))
        .order_by(FailedEvent.created_at.asc(), FailedEvent.id.asc())
        .limit(limit)
        .all()
    )


def terminal_events() -> List[FailedEvent]:
    max_attempts = current_app.config.get("WEBHOOK_MAX_ATTEMPTS", MAX_ATTEMPTS)
    return (
        FailedEvent.query
        .filter(FailedEvent.retry_count >= max_attempts)
        .order_by(FailedEvent.created_at.asc())
        .all()
    )


def requeue(event_id: str) -> Optional[FailedEvent]:
    """Operator reset of a (usually terminal) record: eligible on the next batch."""
    record = FailedEvent.query.filter_by(event_id=event_id).first()
    if record is None:
        return None
    record.retry_count = 0
    record.last_retry_at = None
    db.session.commit()
    current_app.logger.info(json.dumps({"event": "failed_event_requeued", "event_id": event_id}))
    return record


def _settle(record_id: int) -> None:
    """Pipeline committed nothing (duplicate/ignored): clear the row, make sure the ledger has it."""
    record = db.session.get(FailedEvent, record_id)
    if record is None:
        return
    if not ledger.has_processed(record.event_id):
        ledger.mark_processed(record.event_id, record.event_type)
    db.session.delete(record)
    db.session.commit()


def _record_attempt_failure(record_id: int, error: BaseException, now: datetime, max_attempts: int) -> None:
    db.session.rollback()
    record = db.session.get(FailedEvent, record_id)
    if record is None:
        return
    record.retry_count = (record.retry_count or 0) + 1
    record.last_retry_at = now
    record.error = describe_error(error)
    db.session.commit()

    current_app.logger.warning(json.dumps({
        "event": "stripe_webhook_retry_failed",
        "event_id": record.event_id,
        "event_type": record.event_type,
        "retry_count": record.retry_count,
        "error": record.error,
    }))
    if record.retry_count >= max_attempts:
        alerts.notify_ops(
            "failed_event_exhausted",
            event_id=record.event_id,
            event_type=record.event_type,
            retry_count=record.retry_count,
            error=record.error,
        )


def batch_size(limit: Optional[int] = None) -> int:
    """Records per invocation: the configured default, or `limit` capped at the configured maximum."""
    cfg = current_app.config
    if limit is None:
        return cfg.get("WEBHOOK_RETRY_BATCH_SIZE", DEFAULT_BATCH_SIZE)
    if limit < 1:
        raise ValueError(f"retry batch limit must be at least 1, got {limit}")
    return min(limit, cfg.get("WEBHOOK_RETRY_MAX_BATCH_SIZE", MAX_BATCH_SIZE))


def run_retry_batch(limit: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    One scheduler invocation: replay due failed events through the pipeline.

    Success deletes the failed row in the same transaction that writes the ledger
    row (see pipeline.process_event). Failure bumps retry_count/last_retry_at;
    a record reaching max attempts stays put until an operator requeues it.
    """
    cfg = current_app.config
    max_attempts = cfg.get("WEBHOOK_MAX_ATTEMPTS", MAX_ATTEMPTS)
    limit = batch_size(limit)
    now = now or utcnow()

    due_ids = [r.id for r in select_due(now, limit, max_attempts)]
    successful = failed = 0

    for record_id in due_ids:
        record = db.session.get(FailedEvent, record_id)
        if record is None:
            # A live redelivery succeeded in the meantime
            continue
        payload = dict(record.payload or {})
        current_app.logger.info(json.dumps({
            "event": "stripe_webhook_retry",
            "event_id": record.event_id,
            "event_type": record.event_type,
            "attempt": record.retry_count + 1,
        }))
        try:
            result = pipeline.process_event(payload, source="retry")
            if result.outcome in (DUPLICATE, IGNORED):
                _settle(record_id)
        except Exception as exc:
            try:
                _record_attempt_failure(record_id, exc, now, max_attempts)
            except SQLAlchemyError as store_exc:
                db.session.rollback()
                current_app.logger.error(json.dumps({
                    "event": "stripe_webhook_retry_bookkeeping_failed",
                    "failed_event_id": record_id,
                    "error": describe_error(store_exc),
                }))
            failed += 1
            continue
        successful += 1

    summary = {"processed": successful + failed, "successful": successful, "failed": failed}
    current_app.logger.info(json.dumps({"event": "stripe_webhook_retry_batch", **summary}))
    return summary
