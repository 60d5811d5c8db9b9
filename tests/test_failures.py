import pytest
from sqlalchemy.exc import OperationalError

from billing_hooks.extensions import db
from billing_hooks.models import FailedEvent
from billing_hooks.services import failures
from builders import invoice_failed_event


def test_record_failure_stores_full_payload(app):
    event = invoice_failed_event("evt_f1")
    with app.app_context():
        assert failures.record_failure(event, ValueError("boom")) is True
        rec = FailedEvent.query.one()
        assert rec.payload == event
        assert rec.error == "ValueError: boom"
        assert rec.retry_count == 0

def test_record_failure_refreshes_error_but_keeps_retry_state(app):
    event = invoice_failed_event("evt_f2")
    with app.app_context():
        failures.record_failure(event, ValueError("first"))
        rec = FailedEvent.query.one()
        rec.retry_count = 3
        db.session.commit()

        failures.record_failure(event, KeyError("second"))
        rec = FailedEvent.query.one()
        assert rec.retry_count == 3
        assert rec.error.startswith("KeyError")

def test_error_text_is_truncated(app):
    with app.app_context():
        failures.record_failure(invoice_failed_event("evt_long"), RuntimeError("x" * 5000))
        assert len(FailedEvent.query.one().error) == failures.MAX_ERROR_LENGTH

def test_store_failure_alerts_ops_and_reports_unrecorded(app, alerts_sent, monkeypatch):
    def _broken(payload, message):
        raise OperationalError("INSERT", {}, Exception("database is gone"))
    monkeypatch.setattr(failures, "_upsert", _broken)

    with app.app_context():
        assert failures.record_failure(invoice_failed_event("evt_lost"), ValueError("boom")) is False
    assert len(alerts_sent) == 1
    assert alerts_sent[0]["kind"] == "failed_event_record_lost"
    assert alerts_sent[0]["event_id"] == "evt_lost"

def test_webhook_reports_unrecorded_failure(app, post_event, alerts_sent, monkeypatch):
    def _broken(payload, message):
        raise OperationalError("INSERT", {}, Exception("database is gone"))
    monkeypatch.setattr(failures, "_upsert", _broken)

    resp = post_event(invoice_failed_event("evt_lost_http", customer="cus_nobody"))
    assert resp.status_code == 500
    assert resp.get_json()["recorded"] is False
    assert [a["kind"] for a in alerts_sent] == ["failed_event_record_lost"]


@pytest.mark.parametrize("to_email,expect_sent", [(None, False), ("ops@example.test", True)])
def test_notify_ops_mails_only_when_configured(app, monkeypatch, to_email, expect_sent):
    from billing_hooks.extensions import mail
    from billing_hooks.services import alerts

    outbox = []
    monkeypatch.setattr(mail, "send", lambda msg: outbox.append(msg))
    monkeypatch.setitem(app.config, "OPS_ALERT_EMAIL", to_email)
    with app.app_context():
        assert alerts.notify_ops("failed_event_exhausted", event_id="evt_x", retry_count=5) is expect_sent
    assert len(outbox) == (1 if expect_sent else 0)
    if expect_sent:
        assert outbox[0].recipients == ["ops@example.test"]
        assert "evt_x" in outbox[0].body

def test_notify_ops_swallows_mail_errors(app, monkeypatch):
    from billing_hooks.extensions import mail
    from billing_hooks.services import alerts

    def _smtp_down(msg):
        raise ConnectionRefusedError("smtp down")
    monkeypatch.setattr(mail, "send", _smtp_down)
    monkeypatch.setitem(app.config, "OPS_ALERT_EMAIL", "ops@example.test")
    with app.app_context():
        assert alerts.notify_ops("failed_event_exhausted", event_id="evt_y") is False
