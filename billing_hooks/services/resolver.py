from typing import Optional

from billing_hooks.extensions import db
from billing_hooks.models import Tenant
from .events import BillingEvent, CheckoutCompleted


def _by_column(column, value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return db.session.query(Tenant.id).filter(column == value).scalar()


def resolve_tenant(event: BillingEvent) -> Optional[str]:
    """
    Map an event to a tenant id, in priority order:

    1. ``metadata.tenant_id`` (checkout sessions and subscriptions). Used when the
       tenant exists; for checkout it is trusted even without a row, since the
       applier creates the tenant lazily.
    2. the tenant holding the event's external customer id.
    3. the tenant holding the event's external subscription id.

    ``None`` is a valid answer; what it means is up to the caller.
    """
    tenant_id = getattr(event, "tenant_id", None)
    if tenant_id:
        if db.session.get(Tenant, tenant_id) is not None or isinstance(event, CheckoutCompleted):
            return tenant_id

    found = _by_column(Tenant.stripe_customer_id, getattr(event, "customer_id", None))
    if found:
        return found
    return _by_column(Tenant.stripe_subscription_id, getattr(event, "subscription_id", None))
