from sqlalchemy.dialects.postgresql import JSONB
from billing_hooks.extensions import db
from billing_hooks.utils.helpers import utcnow

class FailedEvent(db.Model):
    __tablename__ = "failed_events"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    event_type = db.Column(db.String(80), nullable=False, index=True)
    # Full verified payload, replayed as-is by the retry scheduler
    payload = db.Column(db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    error = db.Column(db.Text, nullable=True)

    retry_count = db.Column(db.Integer, nullable=False, default=0, index=True)
    last_retry_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "error": self.error,
            "retry_count": self.retry_count,
            "last_retry_at": self.last_retry_at.isoformat() if self.last_retry_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<FailedEvent {self.event_id} type={self.event_type!r} retries={self.retry_count}>"
