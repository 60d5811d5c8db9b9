"""
Typed views over Stripe webhook payloads.

Stripe payloads are loosely-typed unions keyed by ``type``. Each handled event
type gets a small frozen dataclass carrying exactly the fields the state applier
needs; ``parse_event`` raises MalformedEventError when one of them is missing
instead of letting handlers probe optional keys inline.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from billing_hooks.models.tenant import TENANT_ID_LENGTH
from billing_hooks.utils.helpers import external_id, from_unix
from .errors import MalformedEventError

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    # None when the payload was abbreviated; the applier fetches the session
    mode: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]
    tenant_id: Optional[str]
    plan: Optional[str]
    amount_total: Optional[int]
    currency: Optional[str]


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Full processor-side subscription state (updated/deleted events)."""
    event_id: str
    subscription_id: str
    customer_id: str
    status: str
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    price_id: Optional[str]
    tenant_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionUpdated(SubscriptionSnapshot):
    pass


@dataclass(frozen=True)
class SubscriptionDeleted(SubscriptionSnapshot):
    pass


@dataclass(frozen=True)
class InvoicePaymentFailed:
    event_id: str
    invoice_id: str
    customer_id: str
    subscription_id: Optional[str]
    amount_due: Optional[int]
    currency: Optional[str]


BillingEvent = Union[CheckoutCompleted, SubscriptionUpdated, SubscriptionDeleted, InvoicePaymentFailed]


def _object(event: Dict[str, Any]) -> Dict[str, Any]:
    obj = (event.get("data") or {}).get("object")
    if not isinstance(obj, dict):
        raise MalformedEventError(f"event {event.get('id')!r} has no data.object")
    return obj


def _require(value, field: str, event_id: str):
    if value in (None, ""):
        raise MalformedEventError(f"event {event_id!r} missing {field}")
    return value


def _metadata_tenant(obj: Dict[str, Any], event_id: str) -> Optional[str]:
    meta = obj.get("metadata") or {}
    tenant_id = meta.get("tenant_id")
    if not tenant_id:
        return None
    tenant_id = str(tenant_id).strip()
    if len(tenant_id) > TENANT_ID_LENGTH:
        raise MalformedEventError(f"event {event_id!r} has an invalid metadata tenant_id")
    return tenant_id or None


def _int_or_none(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def subscription_period(sub: Dict[str, Any]):
    """
    (start, end) of the current billing period.

    Older API versions put the bounds on the subscription; newer ones moved them
    to the subscription items. Both bounds always come from the same place.
    """
    start, end = sub.get("current_period_start"), sub.get("current_period_end")
    if start is None and end is None:
        items = (sub.get("items") or {}).get("data") or []
        if items:
            start = items[0].get("current_period_start")
            end = items[0].get("current_period_end")
    return from_unix(start), from_unix(end)


def subscription_price_id(sub: Dict[str, Any]) -> Optional[str]:
    items = (sub.get("items") or {}).get("data") or []
    if not items:
        return None
    return external_id(items[0].get("price"))


def _snapshot(cls, event_id: str, obj: Dict[str, Any]):
    start, end = subscription_period(obj)
    return cls(
        event_id=event_id,
        subscription_id=_require(external_id(obj.get("id")), "subscription id", event_id),
        customer_id=_require(external_id(obj.get("customer")), "customer", event_id),
        status=_require(obj.get("status"), "status", event_id),
        period_start=start,
        period_end=end,
        price_id=subscription_price_id(obj),
        tenant_id=_metadata_tenant(obj, event_id),
    )


def _invoice_subscription(obj: Dict[str, Any]) -> Optional[str]:
    sub = external_id(obj.get("subscription"))
    if sub:
        return sub
    # Newer API versions nest it under parent.subscription_details
    details = (obj.get("parent") or {}).get("subscription_details") or {}
    return external_id(details.get("subscription"))


def checkout_from_session(event_id: str, obj: Dict[str, Any]) -> CheckoutCompleted:
    """Build the checkout view from a session object (event payload or fetched)."""
    meta = obj.get("metadata") or {}
    return CheckoutCompleted(
        event_id=event_id,
        session_id=_require(external_id(obj.get("id")), "session id", event_id),
        mode=obj.get("mode") or None,
        customer_id=external_id(obj.get("customer")),
        subscription_id=external_id(obj.get("subscription")),
        tenant_id=_metadata_tenant(obj, event_id),
        plan=meta.get("plan") or None,
        amount_total=_int_or_none(obj.get("amount_total")),
        currency=obj.get("currency"),
    )


def parse_event(event: Dict[str, Any]) -> BillingEvent:
    event_id = _require(event.get("id"), "id", "<unknown>")
    event_type = _require(event.get("type"), "type", event_id)
    obj = _object(event)

    if event_type == CHECKOUT_COMPLETED:
        return checkout_from_session(event_id, obj)
    if event_type == SUBSCRIPTION_UPDATED:
        return _snapshot(SubscriptionUpdated, event_id, obj)
    if event_type == SUBSCRIPTION_DELETED:
        return _snapshot(SubscriptionDeleted, event_id, obj)
    if event_type == INVOICE_PAYMENT_FAILED:
        return InvoicePaymentFailed(
            event_id=event_id,
            invoice_id=_require(external_id(obj.get("id")), "invoice id", event_id),
            customer_id=_require(external_id(obj.get("customer")), "customer", event_id),
            subscription_id=_invoice_subscription(obj),
            amount_due=_int_or_none(obj.get("amount_due")),
            currency=obj.get("currency"),
        )
    raise MalformedEventError(f"no typed view for event type {event_type!r}")
