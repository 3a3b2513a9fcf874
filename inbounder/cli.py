import json
import click
from flask.cli import with_appcontext
from inbounder.extensions import db
from inbounder.models import Tenant
from inbounder.services.tracking import DeliveryStateTracker, TrackerError

@click.group()
def tenants():
    """Tenant signing keys."""

@tenants.command("add")
@click.option("--name", required=True)
@click.option("--domain", required=True, help="Mailgun sending domain, e.g. mg.acme.com")
@click.option("--signing-key", required=True)
@with_appcontext
def tenants_add(name, domain, signing_key):
    domain = domain.strip().lower()
    if db.session.query(Tenant).filter_by(mail_domain=domain).count():
        raise click.ClickException(f"Tenant for {domain} already exists")

    tenant = Tenant(name=name, mail_domain=domain, webhook_signing_key=signing_key)
    db.session.add(tenant)
    db.session.commit()
    click.echo(f"Tenant created id={tenant.id} domain={domain}")

@tenants.command("list")
@with_appcontext
def tenants_list():
    rows = db.session.query(Tenant).order_by(Tenant.mail_domain).all()
    if not rows:
        click.echo("No tenants.")
        return
    for t in rows:
        key_state = "set" if t.webhook_signing_key else "missing"
        click.echo(f"{t.id}\t{t.mail_domain}\t{t.name}\tkey={key_state}")

@click.group()
def tracking():
    """Outbound email tracking."""

@tracking.command("record")
@click.option("--message-id", required=True)
@click.option("--recipient", required=True)
@click.option("--campaign", "campaign_id", default=None)
@click.option("--user", "user_id", default=None)
@click.option("--subject", default=None)
@with_appcontext
def tracking_record(message_id, recipient, campaign_id, user_id, subject):
    try:
        email = DeliveryStateTracker().record_send(
            message_id, recipient, campaign_id=campaign_id, user_id=user_id, subject=subject
        )
    except TrackerError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Tracking {email.message_id} to {email.recipient} status={email.status}")

@tracking.command("show")
@click.argument("message_id")
@with_appcontext
def tracking_show(message_id):
    email = DeliveryStateTracker().get_by_message_id(message_id)
    if email is None:
        raise click.ClickException(f"Message {message_id} not found")
    record = email.to_dict()
    record["events"] = [ev.to_dict() for ev in email.events]
    click.echo(json.dumps(record, indent=2))

@tracking.command("stats")
@click.option("--campaign", "campaign_id", default=None)
@click.option("--user", "user_id", default=None)
@with_appcontext
def tracking_stats(campaign_id, user_id):
    if bool(campaign_id) == bool(user_id):
        raise click.UsageError("Pass exactly one of --campaign or --user")

    tracker = DeliveryStateTracker()
    if campaign_id:
        stats = tracker.cumulative_campaign_stats(campaign_id)
        label = f"campaign {campaign_id}"
    else:
        stats = tracker.cumulative_user_stats(user_id)
        label = f"user {user_id}"

    click.echo(f"Stats for {label}")
    for key, value in stats.items():
        click.echo(f"  {key:<14}{value}")

def register_cli(app):
    app.cli.add_command(tenants)
    app.cli.add_command(tracking)
