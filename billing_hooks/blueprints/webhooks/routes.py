import json
from flask import request, jsonify, abort, current_app

from . import bp
from .auth import require_cron_secret
from billing_hooks.extensions import limiter
from billing_hooks.models import FailedEvent
from billing_hooks.services import retry as retry_service
from billing_hooks.services.errors import SignatureError
from billing_hooks.services.failures import record_failure
from billing_hooks.services.pipeline import process_event
from billing_hooks.services.signatures import verify_event


def _webhook_limit():
    return current_app.config.get("WEBHOOK_RATE_LIMIT", "600/minute")

def _ops_limit():
    return current_app.config.get("OPS_RATE_LIMIT", "30/minute")


# ----- Stripe Webhook (subscriptions lifecycle) -----
@bp.post("/stripe")
@limiter.limit(_webhook_limit)
def stripe_webhook():
    """
    Stripe → /webhooks/stripe
    Verifies signature, then runs the idempotent reconcile pipeline. Processing
    errors are recorded for the retry scheduler and answered with 500.
    """
    # 1) Verify signature
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        abort(500, description="Stripe webhook secret not configured")

    raw_bytes = request.get_data(cache=False, as_text=False)
    sig_header = request.headers.get("Stripe-Signature", "")
    try:
        event = verify_event(
            raw_bytes,
            sig_header,
            secret,
            tolerance=current_app.config.get("STRIPE_WEBHOOK_TOLERANCE", 300),
        )
    except SignatureError as e:
        # Untrusted body: dropped, not recorded anywhere
        current_app.logger.warning(json.dumps({
            "event": "stripe_webhook_signature_invalid",
            "reason": str(e),
            "remote_addr": request.remote_addr,
        }))
        return jsonify({"error": "invalid_signature"}), 400

    ev_id = event.get("id")
    ev_type = event.get("type")
    if not ev_id or not ev_type:
        return jsonify({"error": "malformed_event"}), 400

    # 2) Ledger check → route → resolve → apply → ledger commit
    try:
        result = process_event(event)
    except Exception as e:
        current_app.logger.exception("stripe_webhook_handler_error")
        recorded = record_failure(event, e)
        return jsonify({
            "error": "processing_failed",
            "event_id": ev_id,
            "recorded": recorded,
        }), 500

    return jsonify({"received": True, "event_id": ev_id, "outcome": result.outcome}), 200


# ----- Retry scheduler trigger (cron) -----
@bp.post("/retry")
@limiter.limit(_ops_limit)
@require_cron_secret
def retry_failed():
    limit = None
    if "limit" in request.args:
        limit = request.args.get("limit", type=int)
        if limit is None or limit < 1:
            return jsonify({"error": "invalid_limit", "code": 400}), 400
    summary = retry_service.run_retry_batch(limit=limit)
    return jsonify(summary), 200


# ----- Operator views over the failed-event store -----
@bp.get("/failed")
@limiter.limit(_ops_limit)
@require_cron_secret
def list_failed():
    terminal_only = request.args.get("terminal", "").lower() in ("1", "true", "yes")
    if terminal_only:
        records = retry_service.terminal_events()
    else:
        records = FailedEvent.query.order_by(FailedEvent.created_at.asc()).all()
    return jsonify({"failed": [r.to_dict() for r in records], "count": len(records)}), 200


@bp.post("/failed/<event_id>/requeue")
@limiter.limit(_ops_limit)
@require_cron_secret
def requeue_failed(event_id):
    record = retry_service.requeue(event_id)
    if record is None:
        return jsonify({"error": "not_found", "code": 404}), 404
    return jsonify({"requeued": True, "event": record.to_dict()}), 200
