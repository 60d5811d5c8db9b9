from decimal import Decimal
from typing import Dict, Optional
from flask import current_app

from billing_hooks.services.errors import MalformedEventError

PLANS = ("starter", "pro", "business")

def plan_limits() -> Dict[str, int]:
    cfg = current_app.config
    return {
        "starter": cfg.get("PLAN_LIMIT_STARTER", 500),
        "pro": cfg.get("PLAN_LIMIT_PRO", 5000),
        "business": cfg.get("PLAN_LIMIT_BUSINESS", -1),
    }

def transaction_limit_for(plan: str) -> int:
    limits = plan_limits()
    if plan not in limits:
        raise MalformedEventError(f"unknown plan {plan!r}")
    return limits[plan]

def plan_for_price(price_id: Optional[str]) -> Optional[str]:
    """Map a Stripe price id to a plan tier using the configured price ids."""
    if not price_id:
        return None
    cfg = current_app.config
    price_to_plan = {
        cfg.get("STRIPE_PRICE_STARTER"): "starter",
        cfg.get("STRIPE_PRICE_PRO"): "pro",
        cfg.get("STRIPE_PRICE_BUSINESS"): "business",
    }
    price_to_plan.pop(None, None)
    return price_to_plan.get(price_id)

def resolve_plan(*, metadata_plan: Optional[str], price_id: Optional[str]) -> str:
    """Metadata wins, then the price id, then DEFAULT_PLAN."""
    if metadata_plan:
        plan = metadata_plan.strip().lower()
        if plan not in PLANS:
            raise MalformedEventError(f"unknown plan {metadata_plan!r}")
        return plan
    return plan_for_price(price_id) or current_app.config.get("DEFAULT_PLAN", "starter")

def format_minor_units(amount: Optional[int], currency: Optional[str] = None) -> str:
    """Presentation only: 2999, "usd" -> "29.99 USD". Stored values stay in minor units."""
    if amount is None:
        return "n/a"
    major = (Decimal(int(amount)) / Decimal(100)).quantize(Decimal("0.01"))
    return f"{major} {(currency or '').upper()}".strip()
