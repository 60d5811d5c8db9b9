from datetime import datetime, timezone
from typing import Any, Optional

def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime in this app is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def from_unix(ts: Any) -> Optional[datetime]:
    if ts in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(ts), timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError):
        return None

def external_id(value: Any) -> Optional[str]:
    # Stripe fields may be a bare id or an expanded object carrying "id"
    if isinstance(value, dict):
        value = value.get("id")
    return str(value) if value else None
