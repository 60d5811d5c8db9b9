import json
from typing import Any, Dict

from flask import current_app

from billing_hooks.extensions import db
from billing_hooks.models import FailedEvent
from . import ledger, router
from .errors import DuplicateEventError, MalformedEventError
from .router import DUPLICATE, HandlerResult


def _log(outcome: str, payload: Dict[str, Any], result: HandlerResult, source: str) -> None:
    current_app.logger.info(json.dumps({
        "event": f"stripe_webhook_{outcome}",
        "event_id": payload.get("id"),
        "event_type": payload.get("type"),
        "tenant_id": result.tenant_id,
        "detail": result.detail,
        "source": source,
    }))


def process_event(payload: Dict[str, Any], source: str = "webhook") -> HandlerResult:
    """
    Ledger check -> route -> resolve -> apply -> ledger commit, as one transaction.

    The ledger row, the tenant mutation and the removal of any failed-event row
    for the same id commit together, or not at all. Exceptions propagate after
    rollback; the caller decides whether to record the failure.
    """
    event_id = payload.get("id")
    event_type = payload.get("type")
    if not event_id or not event_type:
        raise MalformedEventError("event missing id or type")

    if not router.is_handled(event_type):
        return router.dispatch(payload)

    if ledger.has_processed(event_id):
        result = HandlerResult(DUPLICATE)
        _log(DUPLICATE, payload, result, source)
        return result

    try:
        # Handler first: its processor fetches happen before anything is written,
        # so no row lock is held across a network call
        result = router.dispatch(payload)
        ledger.mark_processed(event_id, event_type)
        FailedEvent.query.filter_by(event_id=event_id).delete()
        db.session.commit()
    except DuplicateEventError:
        # Lost the race to a concurrent delivery; its transaction owns the effect
        db.session.rollback()
        result = HandlerResult(DUPLICATE)
        _log(DUPLICATE, payload, result, source)
        return result
    except Exception:
        db.session.rollback()
        raise

    _log(result.outcome, payload, result, source)
    return result
