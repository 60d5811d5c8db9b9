from typing import Any, Dict
from flask import current_app
from stripe import StripeClient


def _client() -> StripeClient:
    key = current_app.config.get("STRIPE_SECRET_KEY")
    if not key:
        raise RuntimeError("STRIPE_SECRET_KEY is not configured")
    return StripeClient(key)


def _as_dict(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


def retrieve_subscription(subscription_id: str) -> Dict[str, Any]:
    """Full subscription object; checkout sessions only carry its id."""
    return _as_dict(_client().subscriptions.retrieve(subscription_id))


def retrieve_checkout_session(session_id: str) -> Dict[str, Any]:
    return _as_dict(_client().checkout.sessions.retrieve(session_id))
