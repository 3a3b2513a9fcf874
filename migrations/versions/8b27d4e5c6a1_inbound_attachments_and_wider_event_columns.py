"""inbound attachments; widen webhook_events.event and code

Revision ID: 8b27d4e5c6a1
Revises: 3f1c2a9d7e10
Create Date: 2026-10-20 10:15:00
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "8b27d4e5c6a1"
down_revision = "3f1c2a9d7e10"
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "inbound_email_attachments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inbound_email_id", sa.Integer(), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=True),
        sa.Column("content_type", sa.String(length=255), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("file_path", sa.String(length=512), nullable=True),
        sa.Column("disposition", sa.String(length=32), nullable=False, server_default="attachment"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["inbound_email_id"], ["inbound_emails.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_inbound_email_attachments_inbound_email_id",
        "inbound_email_attachments",
        ["inbound_email_id"],
        unique=False,
    )

    with op.batch_alter_table("inbound_emails") as batch_op:
        batch_op.add_column(sa.Column("attachment_count", sa.Integer(), nullable=False, server_default="0"))

    # Provider-supplied values; 32 chars was too tight
    with op.batch_alter_table("webhook_events") as batch_op:
        batch_op.alter_column("event", existing_type=sa.String(length=32), type_=sa.String(length=64), existing_nullable=False)
        batch_op.alter_column("code", existing_type=sa.String(length=32), type_=sa.String(length=64), existing_nullable=True)

def downgrade():
    with op.batch_alter_table("webhook_events") as batch_op:
        batch_op.alter_column("code", existing_type=sa.String(length=64), type_=sa.String(length=32), existing_nullable=True)
        batch_op.alter_column("event", existing_type=sa.String(length=64), type_=sa.String(length=32), existing_nullable=False)

    with op.batch_alter_table("inbound_emails") as batch_op:
        batch_op.drop_column("attachment_count")

    op.drop_index("ix_inbound_email_attachments_inbound_email_id", table_name="inbound_email_attachments")
    op.drop_table("inbound_email_attachments")
