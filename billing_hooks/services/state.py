"""
Subscription lifecycle state machine.

Every transition is a full-state overwrite of the tenant's billing fields taken
from the processor's snapshot, so applying the same event twice writes identical
data and an out-of-order redelivery is redundant rather than corrupting. There
is no sequence number to compare against: the last event applied wins.

Nothing here commits. The pipeline wraps each event in one transaction so a
failure anywhere leaves the tenant row untouched.
"""
import json
from typing import Optional

from flask import current_app

from billing_hooks.billing.plans import format_minor_units, resolve_plan, transaction_limit_for
from billing_hooks.extensions import db
from billing_hooks.models import Tenant
from billing_hooks.models.tenant import STATUS_CANCELED, STATUS_PAST_DUE, SUBSCRIPTION_STATUSES
from billing_hooks.utils.helpers import external_id
from . import stripe_gateway
from .errors import CustomerConflictError, MalformedEventError, TenantNotFoundError
from .events import (
    CheckoutCompleted,
    InvoicePaymentFailed,
    SubscriptionDeleted,
    SubscriptionUpdated,
    subscription_period,
    subscription_price_id,
)


def _status(value: Optional[str], event_id: str) -> str:
    if value not in SUBSCRIPTION_STATUSES:
        raise MalformedEventError(f"event {event_id!r} has unknown subscription status {value!r}")
    return value


def _load(tenant_id: str) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)
    return tenant


def _claim_customer(tenant: Tenant, customer_id: Optional[str]) -> None:
    """Attach the external customer to this tenant. Once set, neither side of the link changes."""
    if not customer_id or tenant.stripe_customer_id == customer_id:
        return
    if tenant.stripe_customer_id:
        # Replacing it would orphan every later event for the old customer
        raise CustomerConflictError(
            f"tenant {tenant.id} is linked to customer {tenant.stripe_customer_id}, not {customer_id}"
        )
    owner = (
        db.session.query(Tenant.id)
        .filter(Tenant.stripe_customer_id == customer_id, Tenant.id != tenant.id)
        .scalar()
    )
    if owner:
        raise CustomerConflictError(f"customer {customer_id} already belongs to tenant {owner}")
    tenant.stripe_customer_id = customer_id


def apply_checkout_completed(event: CheckoutCompleted, tenant_id: str) -> Tenant:
    """Subscription-mode checkout: attach subscription, plan, status, period and limit."""
    if not event.subscription_id:
        raise MalformedEventError(f"event {event.event_id!r} missing subscription")

    # Gather everything from the processor before touching the row
    sub = stripe_gateway.retrieve_subscription(event.subscription_id)
    status = _status(sub.get("status"), event.event_id)
    plan = resolve_plan(metadata_plan=event.plan, price_id=subscription_price_id(sub))
    limit = transaction_limit_for(plan)
    start, end = subscription_period(sub)
    customer_id = external_id(sub.get("customer")) or event.customer_id

    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        # Lazily provision on first event
        tenant = Tenant(id=tenant_id)
        db.session.add(tenant)
        current_app.logger.info(json.dumps({"event": "tenant_created_from_checkout", "tenant_id": tenant_id}))

    _claim_customer(tenant, customer_id)
    tenant.stripe_subscription_id = external_id(sub.get("id")) or event.subscription_id
    tenant.subscription_plan = plan
    tenant.subscription_status = status
    tenant.subscription_period_start = start
    tenant.subscription_period_end = end
    tenant.transaction_limit = limit
    tenant.trial_ends_at = None
    db.session.flush()

    current_app.logger.info(json.dumps({
        "event": "subscription_started",
        "event_id": event.event_id,
        "tenant_id": tenant.id,
        "plan": plan,
        "status": status,
        "amount_total": event.amount_total,
    }))
    return tenant


def apply_subscription_updated(event: SubscriptionUpdated, tenant_id: str) -> Tenant:
    status = _status(event.status, event.event_id)
    tenant = _load(tenant_id)
    tenant.subscription_status = status
    # Period bounds are replaced wholesale, never merged
    tenant.subscription_period_start = event.period_start
    tenant.subscription_period_end = event.period_end
    db.session.flush()
    return tenant


def apply_subscription_deleted(event: SubscriptionDeleted, tenant_id: str) -> Tenant:
    tenant = _load(tenant_id)
    tenant.subscription_status = STATUS_CANCELED
    tenant.stripe_subscription_id = None
    db.session.flush()
    return tenant


def apply_invoice_payment_failed(event: InvoicePaymentFailed, tenant_id: str) -> Tenant:
    tenant = _load(tenant_id)
    tenant.subscription_status = STATUS_PAST_DUE
    db.session.flush()
    current_app.logger.warning(json.dumps({
        "event": "invoice_payment_failed",
        "event_id": event.event_id,
        "tenant_id": tenant.id,
        "invoice_id": event.invoice_id,
        "amount_due": event.amount_due,
        "amount_display": format_minor_units(event.amount_due, event.currency),
    }))
    return tenant
