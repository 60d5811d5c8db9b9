import uuid
from billing_hooks.extensions import db
from billing_hooks.utils.helpers import utcnow

# Stripe subscription statuses (processor-reported; stored verbatim)
STATUS_TRIALING = "trialing"
STATUS_ACTIVE = "active"
STATUS_PAST_DUE = "past_due"
STATUS_CANCELED = "canceled"
SUBSCRIPTION_STATUSES = frozenset({
    STATUS_TRIALING,
    STATUS_ACTIVE,
    STATUS_PAST_DUE,
    STATUS_CANCELED,
    "unpaid",
    "incomplete",
    "incomplete_expired",
    "paused",
})

UNLIMITED = -1
TENANT_ID_LENGTH = 36

def _new_id() -> str:
    return str(uuid.uuid4())

class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.String(TENANT_ID_LENGTH), primary_key=True, default=_new_id)
    name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(320), nullable=True, index=True)

    # 1:1 with the processor's customer; never reassigned once set
    stripe_customer_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    stripe_subscription_id = db.Column(db.String(64), nullable=True, unique=True, index=True)

    subscription_status = db.Column(db.String(32), nullable=False, default=STATUS_TRIALING, index=True)
    subscription_plan = db.Column(db.String(32), nullable=False, default="starter")
    subscription_period_start = db.Column(db.DateTime, nullable=True)
    subscription_period_end = db.Column(db.DateTime, nullable=True)
    trial_ends_at = db.Column(db.DateTime, nullable=True)

    transaction_count = db.Column(db.Integer, nullable=False, default=0)
    transaction_limit = db.Column(db.Integer, nullable=False, default=500)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_unlimited(self) -> bool:
        return self.transaction_limit == UNLIMITED

    def usage(self) -> dict:
        """Usage snapshot: count, limit, remaining and percent used (None when unlimited)."""
        count = self.transaction_count or 0
        if self.is_unlimited:
            return {"count": count, "limit": UNLIMITED, "remaining": None, "percentage": None, "unlimited": True}
        limit = self.transaction_limit or 0
        remaining = max(limit - count, 0)
        percentage = round(count * 100.0 / limit, 1) if limit else 100.0
        return {"count": count, "limit": limit, "remaining": remaining, "percentage": percentage, "unlimited": False}

    def to_billing_dict(self) -> dict:
        def _iso(dt):
            return dt.isoformat() if dt else None
        return {
            "id": self.id,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "subscription_status": self.subscription_status,
            "subscription_plan": self.subscription_plan,
            "subscription_period_start": _iso(self.subscription_period_start),
            "subscription_period_end": _iso(self.subscription_period_end),
            "trial_ends_at": _iso(self.trial_ends_at),
            "usage": self.usage(),
        }

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} status={self.subscription_status!r} plan={self.subscription_plan!r}>"
