import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import hashlib
import hmac
import json
import time

import pytest
from billing_hooks import create_app
from billing_hooks.extensions import db

WEBHOOK_SECRET = "whsec_test_secret"
CRON_SECRET = "cron-test-secret"


def sign(body: str, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    """Stripe-Signature header for `body`: t=<ts>,v1=HMAC_SHA256(secret, "<ts>.<body>")."""
    ts = int(time.time()) if timestamp is None else int(timestamp)
    mac = hmac.new(secret.encode("utf-8"), f"{ts}.{body}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={mac}"


@pytest.fixture(scope="session")
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "STRIPE_SECRET_KEY": "sk_test_x",
        "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "STRIPE_WEBHOOK_TOLERANCE": 300,
        "STRIPE_PRICE_STARTER": "price_starter",
        "STRIPE_PRICE_PRO": "price_pro",
        "STRIPE_PRICE_BUSINESS": "price_business",
        "CRON_SECRET": CRON_SECRET,
        "OPS_ALERT_EMAIL": None,
        "MAIL_SUPPRESS_SEND": True,
        "RATELIMIT_ENABLED": False,
        "WEBHOOK_MAX_ATTEMPTS": 5,
        "WEBHOOK_RETRY_BATCH_SIZE": 10,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()

@pytest.fixture()
def post_event(client):
    """POST a correctly signed event to /webhooks/stripe."""
    def _post(event: dict, secret: str = WEBHOOK_SECRET, timestamp=None, signature=None):
        body = json.dumps(event)
        headers = {"Stripe-Signature": signature if signature is not None else sign(body, secret, timestamp)}
        return client.post("/webhooks/stripe", data=body, headers=headers, content_type="application/json")
    return _post

@pytest.fixture()
def stripe_objects(monkeypatch):
    """
    Replace the Stripe client used by the gateway. Tests put subscription/session
    dicts into the returned store; unknown ids raise like the API would.
    """
    store = {"subscriptions": {}, "sessions": {}}

    class _Resource:
        def __init__(self, bucket):
            self._bucket = bucket
        def retrieve(self, obj_id):
            if obj_id not in store[self._bucket]:
                raise RuntimeError(f"No such {self._bucket[:-1]}: {obj_id}")
            return store[self._bucket][obj_id]

    class _Checkout:
        sessions = _Resource("sessions")

    class _FakeClient:
        def __init__(self, key):
            assert key == "sk_test_x"
            self.subscriptions = _Resource("subscriptions")
            self.checkout = _Checkout()

    monkeypatch.setattr("billing_hooks.services.stripe_gateway.StripeClient", _FakeClient)
    return store

@pytest.fixture()
def alerts_sent(monkeypatch):
    sent = []
    def _fake_notify(kind, **fields):
        sent.append({"kind": kind, **fields})
        return False
    monkeypatch.setattr("billing_hooks.services.alerts.notify_ops", _fake_notify)
    return sent
