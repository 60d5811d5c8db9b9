import json

import click
from flask import current_app
from flask.cli import with_appcontext

from billing_hooks.extensions import db
from billing_hooks.models import FailedEvent, Tenant
from billing_hooks.services import ledger
from billing_hooks.services import retry as retry_service


@click.group()
def webhooks():
    """Webhook ledger / failed-event ops."""

@webhooks.command("retry")
@click.option("--limit", type=click.IntRange(min=1), default=None,
              help="Max records this batch (default: WEBHOOK_RETRY_BATCH_SIZE, capped at WEBHOOK_RETRY_MAX_BATCH_SIZE)")
@with_appcontext
def webhooks_retry(limit):
    summary = retry_service.run_retry_batch(limit=limit)
    click.echo(json.dumps(summary))

@webhooks.command("failed")
@click.option("--terminal", is_flag=True, help="Only records that exhausted their retries")
@with_appcontext
def webhooks_failed(terminal):
    records = retry_service.terminal_events() if terminal else FailedEvent.query.order_by(FailedEvent.created_at.asc()).all()
    if not records:
        click.echo("No failed events")
        return
    for r in records:
        last = r.last_retry_at.isoformat() if r.last_retry_at else "-"
        click.echo(f"{r.event_id}  {r.event_type}  retries={r.retry_count}  last_retry={last}  error={r.error}")

@webhooks.command("requeue")
@click.argument("event_id")
@with_appcontext
def webhooks_requeue(event_id):
    if retry_service.requeue(event_id) is None:
        raise click.ClickException(f"Failed event {event_id} not found")
    click.echo(f"Requeued {event_id}")

@webhooks.command("prune")
@click.option("--days", type=int, default=None, help="Retention in days (default: PROCESSED_EVENT_RETENTION_DAYS)")
@with_appcontext
def webhooks_prune(days):
    days = days if days is not None else current_app.config.get("PROCESSED_EVENT_RETENTION_DAYS", 90)
    if days < 1:
        raise click.ClickException("Refused: retention must be at least 1 day")
    deleted = ledger.prune_processed(days)
    click.echo(f"Pruned {deleted} processed events older than {days} days")

@click.group()
def tenants():
    """Tenant billing state."""

@tenants.command("show")
@click.argument("tenant_id")
@with_appcontext
def tenants_show(tenant_id):
    tenant = db.session.get(Tenant, tenant_id)
    if not tenant:
        raise click.ClickException(f"Tenant {tenant_id} not found")
    click.echo(json.dumps(tenant.to_billing_dict(), indent=2))

def register_cli(app):
    app.cli.add_command(webhooks)
    app.cli.add_command(tenants)
