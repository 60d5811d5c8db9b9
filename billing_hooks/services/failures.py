import json
from typing import Any, Dict

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from billing_hooks.extensions import db
from billing_hooks.models import FailedEvent
from . import alerts

MAX_ERROR_LENGTH = 2000


def describe_error(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"[:MAX_ERROR_LENGTH]


def _upsert(payload: Dict[str, Any], message: str) -> None:
    event_id = payload["id"]
    existing = FailedEvent.query.filter_by(event_id=event_id).first()
    if existing is not None:
        # Source-side redelivery of an event we already hold: keep its retry state
        existing.error = message
    else:
        db.session.add(FailedEvent(
            event_id=event_id,
            event_type=payload.get("type") or "unknown",
            payload=payload,
            error=message,
            retry_count=0,
            last_retry_at=None,
        ))
    db.session.commit()


def record_failure(payload: Dict[str, Any], error: BaseException) -> bool:
    """
    Persist a verified event whose processing raised, for the retry scheduler.

    Runs in its own transaction after the pipeline rolled back. Returns False if
    the write itself failed; at that point no record of the event exists anywhere,
    so it is raised to ops.
    """
    message = describe_error(error)
    event_id = payload.get("id")
    try:
        db.session.rollback()
        try:
            _upsert(payload, message)
        except IntegrityError:
            # A concurrent delivery inserted the row first; update that one
            db.session.rollback()
            _upsert(payload, message)
    except SQLAlchemyError as exc:
        db.session.rollback()
        alerts.notify_ops(
            "failed_event_record_lost",
            event_id=event_id,
            event_type=payload.get("type"),
            processing_error=message,
            store_error=describe_error(exc),
        )
        return False

    current_app.logger.warning(json.dumps({
        "event": "stripe_webhook_failed",
        "event_id": event_id,
        "event_type": payload.get("type"),
        "error": message,
    }))
    return True
