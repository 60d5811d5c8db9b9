import hmac
import json
from functools import wraps

from flask import current_app, jsonify, request


def _bearer_token() -> str:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def require_cron_secret(fn):
    """Shared-secret bearer guard for scheduler/operator endpoints. Fails closed."""
    @wraps(fn)
    def _wrap(*args, **kwargs):
        expected = current_app.config.get("CRON_SECRET") or ""
        token = _bearer_token()
        if not expected or not token or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            current_app.logger.warning(json.dumps({
                "event": "unauthorized_ops_request",
                "path": request.path,
                "remote_addr": request.remote_addr,
            }))
            return jsonify({"error": "unauthorized", "code": 401}), 401
        return fn(*args, **kwargs)
    return _wrap
