"""newsletter subscribers

Revision ID: 0002_newsletter_subscriber
Revises: 0001_initial_schema
Create Date: 2025-03-02
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_newsletter_subscriber"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "newsletter_subscriber",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("unsubscribe_token", sa.String(length=64), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("unsubscribe_token"),
    )
    op.create_index("ix_newsletter_subscriber_email", "newsletter_subscriber", ["email"], unique=True)
    op.create_index("ix_newsletter_subscriber_status", "newsletter_subscriber", ["status"])


def downgrade():
    op.drop_index("ix_newsletter_subscriber_status", table_name="newsletter_subscriber")
    op.drop_index("ix_newsletter_subscriber_email", table_name="newsletter_subscriber")
    op.drop_table("newsletter_subscriber")
