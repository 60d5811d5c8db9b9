import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from flask import current_app

from . import state
from . import stripe_gateway
from .errors import MalformedEventError, TenantNotResolvedError
from .events import (
    CHECKOUT_COMPLETED,
    INVOICE_PAYMENT_FAILED,
    SUBSCRIPTION_DELETED,
    SUBSCRIPTION_UPDATED,
    checkout_from_session,
    parse_event,
)
from .resolver import resolve_tenant

# Handler outcomes
PROCESSED = "processed"
SKIPPED = "skipped"      # known type, deliberately not applied (still ledgered)
IGNORED = "ignored"      # unknown type: acknowledged, nothing written
DUPLICATE = "duplicate"


@dataclass(frozen=True)
class HandlerResult:
    outcome: str
    tenant_id: Optional[str] = None
    detail: Optional[str] = None


def _require_tenant(event) -> str:
    tenant_id = resolve_tenant(event)
    if tenant_id is None:
        # May be a provisioning race; fail so the retry scheduler picks it up
        raise TenantNotResolvedError(
            f"no tenant for event {event.event_id} (customer={getattr(event, 'customer_id', None)})"
        )
    return tenant_id


def handle_checkout_completed(payload: Dict[str, Any]) -> HandlerResult:
    event = parse_event(payload)
    if event.mode is None:
        # Abbreviated payload: fetch the full session
        event = checkout_from_session(event.event_id, stripe_gateway.retrieve_checkout_session(event.session_id))
    if event.mode != "subscription":
        return HandlerResult(SKIPPED, detail=f"checkout mode {event.mode!r}")
    if not event.subscription_id:
        raise MalformedEventError(f"event {event.event_id!r} missing subscription")

    tenant_id = resolve_tenant(event)
    if tenant_id is None:
        # No metadata and no known customer: there may never be a tenant for this
        current_app.logger.warning(json.dumps({
            "event": "checkout_tenant_unresolved",
            "event_id": event.event_id,
            "customer_id": event.customer_id,
        }))
        return HandlerResult(SKIPPED, detail="no tenant for checkout")

    tenant = state.apply_checkout_completed(event, tenant_id)
    return HandlerResult(PROCESSED, tenant.id, tenant.subscription_status)


def handle_subscription_updated(payload: Dict[str, Any]) -> HandlerResult:
    event = parse_event(payload)
    tenant = state.apply_subscription_updated(event, _require_tenant(event))
    return HandlerResult(PROCESSED, tenant.id, tenant.subscription_status)


def handle_subscription_deleted(payload: Dict[str, Any]) -> HandlerResult:
    event = parse_event(payload)
    tenant = state.apply_subscription_deleted(event, _require_tenant(event))
    return HandlerResult(PROCESSED, tenant.id, tenant.subscription_status)


def handle_invoice_payment_failed(payload: Dict[str, Any]) -> HandlerResult:
    event = parse_event(payload)
    tenant = state.apply_invoice_payment_failed(event, _require_tenant(event))
    return HandlerResult(PROCESSED, tenant.id, tenant.subscription_status)


HANDLERS: Dict[str, Callable[[Dict[str, Any]], HandlerResult]] = {
    CHECKOUT_COMPLETED: handle_checkout_completed,
    SUBSCRIPTION_UPDATED: handle_subscription_updated,
    SUBSCRIPTION_DELETED: handle_subscription_deleted,
    INVOICE_PAYMENT_FAILED: handle_invoice_payment_failed,
}


def is_handled(event_type: Optional[str]) -> bool:
    return event_type in HANDLERS


def dispatch(payload: Dict[str, Any]) -> HandlerResult:
    """Run the handler for the event's type; unknown types are a no-op success."""
    handler = HANDLERS.get(payload.get("type"))
    if handler is None:
        current_app.logger.info(json.dumps({
            "event": "stripe_webhook_unhandled_type",
            "event_id": payload.get("id"),
            "event_type": payload.get("type"),
        }))
        return HandlerResult(IGNORED)
    return handler(payload)
