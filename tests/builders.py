"""Stripe-shaped payloads for tests."""
from datetime import datetime, timezone

PERIOD_START = int(datetime(2026, 9, 1, tzinfo=timezone.utc).timestamp())
PERIOD_END = int(datetime(2026, 10, 1, tzinfo=timezone.utc).timestamp())
NEXT_PERIOD_START = PERIOD_END
NEXT_PERIOD_END = int(datetime(2026, 11, 1, tzinfo=timezone.utc).timestamp())


def naive(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, timezone.utc).replace(tzinfo=None)


def subscription_object(sub_id="sub_123", customer="cus_123", status="active", price="price_pro",
                        start=PERIOD_START, end=PERIOD_END, metadata=None):
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "current_period_start": start,
        "current_period_end": end,
        "metadata": metadata or {},
        "items": {"data": [{"quantity": 1, "price": {"id": price, "product": "prod_x"}}]},
    }


def checkout_event(event_id="evt_checkout_1", *, tenant_id="t-1", plan="pro", customer="cus_123",
                   subscription="sub_123", mode="subscription", amount_total=2999):
    metadata = {}
    if tenant_id:
        metadata["tenant_id"] = tenant_id
    if plan:
        metadata["plan"] = plan
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": f"cs_{event_id}",
            "object": "checkout.session",
            "mode": mode,
            "customer": customer,
            "subscription": subscription,
            "amount_total": amount_total,
            "currency": "usd",
            "metadata": metadata,
        }},
    }


def subscription_event(event_type, event_id, **kwargs):
    return {
        "id": event_id,
        "type": event_type,
        "data": {"object": subscription_object(**kwargs)},
    }


def invoice_failed_event(event_id="evt_invoice_1", customer="cus_123", subscription="sub_123", amount_due=2999):
    return {
        "id": event_id,
        "type": "invoice.payment_failed",
        "data": {"object": {
            "id": f"in_{event_id}",
            "object": "invoice",
            "customer": customer,
            "subscription": subscription,
            "amount_due": amount_due,
            "currency": "usd",
        }},
    }
