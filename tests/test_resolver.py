from billing_hooks.extensions import db
from billing_hooks.models import Tenant
from billing_hooks.services.events import parse_event
from billing_hooks.services.resolver import resolve_tenant
from builders import checkout_event, invoice_failed_event, subscription_event


def _seed():
    db.session.add_all([
        Tenant(id="t-meta"),
        Tenant(id="t-cust", stripe_customer_id="cus_123"),
        Tenant(id="t-sub", stripe_subscription_id="sub_only"),
    ])
    db.session.commit()

def test_metadata_tenant_wins_over_customer(app):
    with app.app_context():
        _seed()
        evt = parse_event(checkout_event(tenant_id="t-meta", customer="cus_123"))
        assert resolve_tenant(evt) == "t-meta"

def test_checkout_trusts_metadata_for_unprovisioned_tenant(app):
    with app.app_context():
        _seed()
        evt = parse_event(checkout_event(tenant_id="t-new", customer="cus_unknown"))
        assert resolve_tenant(evt) == "t-new"

def test_subscription_metadata_for_unknown_tenant_falls_through_to_customer(app):
    with app.app_context():
        _seed()
        evt = parse_event(subscription_event(
            "customer.subscription.updated", "evt_u", customer="cus_123", metadata={"tenant_id": "t-ghost"},
        ))
        assert resolve_tenant(evt) == "t-cust"

def test_customer_lookup(app):
    with app.app_context():
        _seed()
        assert resolve_tenant(parse_event(invoice_failed_event(customer="cus_123"))) == "t-cust"

def test_subscription_id_is_last_resort(app):
    with app.app_context():
        _seed()
        evt = parse_event(invoice_failed_event(customer="cus_nobody", subscription="sub_only"))
        assert resolve_tenant(evt) == "t-sub"

def test_no_match_is_none(app):
    with app.app_context():
        _seed()
        evt = parse_event(checkout_event(tenant_id=None, customer="cus_nobody", subscription="sub_nobody"))
        assert resolve_tenant(evt) is None
