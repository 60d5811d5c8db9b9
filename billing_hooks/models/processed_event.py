from billing_hooks.extensions import db
from billing_hooks.utils.helpers import utcnow

class ProcessedEvent(db.Model):
    """Append-only idempotency ledger; the primary key is the duplicate guard."""
    __tablename__ = "processed_events"

    event_id = db.Column(db.String(255), primary_key=True)
    event_type = db.Column(db.String(80), nullable=False, index=True)
    processed_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<ProcessedEvent {self.event_id} type={self.event_type!r}>"
