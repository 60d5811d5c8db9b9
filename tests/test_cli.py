import json
from datetime import timedelta

from billing_hooks.extensions import db
from billing_hooks.models import FailedEvent, ProcessedEvent, Tenant
from billing_hooks.utils.helpers import utcnow
from builders import invoice_failed_event


def _failed(event_id, retry_count=0):
    event = invoice_failed_event(event_id, customer="cus_nobody")
    db.session.add(FailedEvent(event_id=event_id, event_type=event["type"], payload=event,
                               error="TenantNotResolvedError: no tenant", retry_count=retry_count))
    db.session.commit()


def test_cli_retry_prints_summary(app):
    with app.app_context():
        _failed("evt_cli_1")
    result = app.test_cli_runner().invoke(args=["webhooks", "retry"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"processed": 1, "successful": 0, "failed": 1}

def test_cli_failed_lists_records(app):
    runner = app.test_cli_runner()
    assert "No failed events" in runner.invoke(args=["webhooks", "failed"]).output

    with app.app_context():
        _failed("evt_open")
        _failed("evt_done_trying", retry_count=5)
    out = runner.invoke(args=["webhooks", "failed"]).output
    assert "evt_open" in out and "evt_done_trying" in out
    terminal = runner.invoke(args=["webhooks", "failed", "--terminal"]).output
    assert "evt_done_trying" in terminal
    assert "evt_open" not in terminal

def test_cli_requeue(app):
    with app.app_context():
        _failed("evt_rq", retry_count=5)
    runner = app.test_cli_runner()
    result = runner.invoke(args=["webhooks", "requeue", "evt_rq"])
    assert result.exit_code == 0
    with app.app_context():
        assert FailedEvent.query.one().retry_count == 0

    missing = runner.invoke(args=["webhooks", "requeue", "evt_missing"])
    assert missing.exit_code != 0
    assert "not found" in missing.output

def test_cli_prune(app):
    with app.app_context():
        db.session.add(ProcessedEvent(event_id="evt_old", event_type="invoice.payment_failed",
                                      processed_at=utcnow() - timedelta(days=120)))
        db.session.add(ProcessedEvent(event_id="evt_recent", event_type="invoice.payment_failed"))
        db.session.commit()

    runner = app.test_cli_runner()
    assert runner.invoke(args=["webhooks", "prune", "--days", "0"]).exit_code != 0
    result = runner.invoke(args=["webhooks", "prune"])
    assert result.exit_code == 0
    assert "Pruned 1" in result.output
    with app.app_context():
        assert [p.event_id for p in ProcessedEvent.query.all()] == ["evt_recent"]

def test_cli_tenant_show(app):
    with app.app_context():
        db.session.add(Tenant(id="t-cli", subscription_status="active", subscription_plan="pro",
                              transaction_limit=5000, transaction_count=50))
        db.session.commit()
    runner = app.test_cli_runner()
    result = runner.invoke(args=["tenants", "show", "t-cli"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["subscription_status"] == "active"
    assert data["usage"]["remaining"] == 4950

    assert runner.invoke(args=["tenants", "show", "t-none"]).exit_code != 0

def test_cli_retry_rejects_non_positive_limit(app):
    with app.app_context():
        _failed("evt_cli_bad_limit")
    runner = app.test_cli_runner()
    for bad in ("0", "-1"):
        result = runner.invoke(args=["webhooks", "retry", "--limit", bad])
        assert result.exit_code != 0
    with app.app_context():
        assert FailedEvent.query.one().retry_count == 0
