"""create tracking tables

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:00:00
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3f1c2a9d7e10"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "outbound_emails",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("message_id", sa.String(length=255), nullable=False),
        sa.Column("recipient", sa.String(length=320), nullable=False),
        sa.Column("from_address", sa.String(length=320), nullable=True),
        sa.Column("from_name", sa.String(length=200), nullable=True),
        sa.Column("subject", sa.String(length=998), nullable=True),
        sa.Column("template_name", sa.String(length=128), nullable=True),
        sa.Column("campaign_id", sa.String(length=128), nullable=True),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="sent"),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("opened_at", sa.DateTime(), nullable=True),
        sa.Column("clicked_at", sa.DateTime(), nullable=True),
        sa.Column("bounced_at", sa.DateTime(), nullable=True),
        sa.Column("complained_at", sa.DateTime(), nullable=True),
        sa.Column("unsubscribed_at", sa.DateTime(), nullable=True),
        sa.Column("failed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('sent','delivered','opened','clicked','bounced','complained','unsubscribed','failed')",
            name="ck_outbound_emails_status_valid",
        ),
    )
    op.create_index("ix_outbound_emails_message_id", "outbound_emails", ["message_id"], unique=True)
    op.create_index("ix_outbound_emails_recipient", "outbound_emails", ["recipient"], unique=False)
    op.create_index("ix_outbound_emails_campaign_id", "outbound_emails", ["campaign_id"], unique=False)
    op.create_index("ix_outbound_emails_user_id", "outbound_emails", ["user_id"], unique=False)
    op.create_index("ix_outbound_emails_status", "outbound_emails", ["status"], unique=False)
    op.create_index("ix_outbound_emails_sent_at", "outbound_emails", ["sent_at"], unique=False)

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event", sa.String(length=32), nullable=False),
        sa.Column("message_id", sa.String(length=255), nullable=True),
        sa.Column("recipient", sa.String(length=320), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=True),
        sa.Column("region", sa.String(length=128), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("device_type", sa.String(length=64), nullable=True),
        sa.Column("client_type", sa.String(length=64), nullable=True),
        sa.Column("client_name", sa.String(length=128), nullable=True),
        sa.Column("client_os", sa.String(length=128), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("severity", sa.String(length=32), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("user_variables", sa.JSON(), nullable=True),
        sa.Column("event_timestamp", sa.DateTime(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_events_event", "webhook_events", ["event"], unique=False)
    op.create_index("ix_webhook_events_message_id", "webhook_events", ["message_id"], unique=False)
    op.create_index("ix_webhook_events_recipient", "webhook_events", ["recipient"], unique=False)

    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("mail_domain", sa.String(length=255), nullable=False),
        sa.Column("webhook_signing_key", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenants_mail_domain", "tenants", ["mail_domain"], unique=True)

    op.create_table(
        "inbound_emails",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("message_id", sa.String(length=255), nullable=True),
        sa.Column("from_address", sa.String(length=320), nullable=True),
        sa.Column("sender", sa.String(length=320), nullable=True),
        sa.Column("recipient", sa.String(length=320), nullable=True),
        sa.Column("subject", sa.String(length=998), nullable=True),
        sa.Column("body_plain", sa.Text(), nullable=True),
        sa.Column("body_html", sa.Text(), nullable=True),
        sa.Column("stripped_text", sa.Text(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=False),
        sa.Column("received_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_inbound_emails_message_id", "inbound_emails", ["message_id"], unique=False)
    op.create_index("ix_inbound_emails_sender", "inbound_emails", ["sender"], unique=False)
    op.create_index("ix_inbound_emails_recipient", "inbound_emails", ["recipient"], unique=False)

def downgrade():
    op.drop_index("ix_inbound_emails_recipient", table_name="inbound_emails")
    op.drop_index("ix_inbound_emails_sender", table_name="inbound_emails")
    op.drop_index("ix_inbound_emails_message_id", table_name="inbound_emails")
    op.drop_table("inbound_emails")
    op.drop_index("ix_tenants_mail_domain", table_name="tenants")
    op.drop_table("tenants")
    op.drop_index("ix_webhook_events_recipient", table_name="webhook_events")
    op.drop_index("ix_webhook_events_message_id", table_name="webhook_events")
    op.drop_index("ix_webhook_events_event", table_name="webhook_events")
    op.drop_table("webhook_events")
    op.drop_index("ix_outbound_emails_sent_at", table_name="outbound_emails")
    op.drop_index("ix_outbound_emails_status", table_name="outbound_emails")
    op.drop_index("ix_outbound_emails_user_id", table_name="outbound_emails")
    op.drop_index("ix_outbound_emails_campaign_id", table_name="outbound_emails")
    op.drop_index("ix_outbound_emails_recipient", table_name="outbound_emails")
    op.drop_index("ix_outbound_emails_message_id", table_name="outbound_emails")
    op.drop_table("outbound_emails")
