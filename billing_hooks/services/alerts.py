import json
import time
from typing import Any, Dict

from flask import current_app, render_template
from flask_mail import Message

from billing_hooks.extensions import mail


def notify_ops(kind: str, **fields: Any) -> bool:
    """
    Operational alert: always an error-level log line, plus an e-mail when
    OPS_ALERT_EMAIL is configured. Returns True if a mail was handed to the
    transport. Mail failures are logged, never raised; callers are already on a
    failure path.
    """
    payload: Dict[str, Any] = {"event": "ops_alert", "kind": kind, **fields}
    current_app.logger.error(json.dumps(payload, default=str))

    to_email = current_app.config.get("OPS_ALERT_EMAIL")
    if not to_email:
        return False

    msg = Message(recipients=[to_email], subject=f"[billing-webhooks] {kind}")
    msg.body = render_template("email/ops_alert.txt", kind=kind, fields=fields)

    start = time.perf_counter()
    try:
        mail.send(msg)
    except Exception as ex:
        current_app.logger.warning(json.dumps({
            "event": "mail_send",
            "template": "ops_alert",
            "outcome": "smtp_error",
            "latency_ms": int((time.perf_counter() - start) * 1000),
            "smtp_error": str(ex),
        }))
        return False
    current_app.logger.info(json.dumps({
        "event": "mail_send",
        "template": "ops_alert",
        "outcome": "sent",
        "latency_ms": int((time.perf_counter() - start) * 1000),
    }))
    return True
