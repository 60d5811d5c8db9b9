import json
from typing import Any, Dict, Optional

import stripe

from .errors import SignatureError

DEFAULT_TOLERANCE = 300

def verify_event(raw_body: bytes, sig_header: Optional[str], secret: str,
                 tolerance: int = DEFAULT_TOLERANCE) -> Dict[str, Any]:
    """
    Verify a Stripe-signed body and return it as a plain dict.

    Fails closed: a missing header, bad signature, stale timestamp or undecodable
    body all raise SignatureError. Nothing about the request is persisted.
    """
    if not sig_header:
        raise SignatureError("missing signature header")
    if not secret:
        raise SignatureError("webhook secret not configured")
    try:
        payload = raw_body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SignatureError("body is not utf-8") from exc

    try:
        stripe.Webhook.construct_event(
            payload=payload,
            sig_header=sig_header,
            secret=secret,
            tolerance=tolerance,
        )
    except stripe.SignatureVerificationError as exc:
        raise SignatureError(str(exc)) from exc
    except ValueError as exc:
        # construct_event raises ValueError on invalid JSON
        raise SignatureError("invalid payload") from exc

    # Work on the verified raw JSON rather than the SDK object; this dict is what
    # gets stored for replay.
    event = json.loads(payload)
    if not isinstance(event, dict):
        raise SignatureError("payload is not an object")
    return event
