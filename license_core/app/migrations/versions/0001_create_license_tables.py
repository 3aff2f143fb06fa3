"""create license tables

Revision ID: 0001
Revises:
Create Date: 2026-01-16 06:30:22

"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

PARTIAL_INDEX_DIALECTS = ("sqlite", "postgresql")


def upgrade():
    op.create_table(
        "licenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("purchase_code", sa.String(255), nullable=False),
        sa.Column("item_id", sa.String(32), nullable=False),
        sa.Column("binding_mode", sa.Enum("device", "network", name="binding_mode"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_licenses_id", "licenses", ["id"])
    op.create_index("ix_licenses_purchase_code", "licenses", ["purchase_code"], unique=True)
    op.create_index("ix_licenses_item_id", "licenses", ["item_id"])
    op.create_index("ix_licenses_binding_mode", "licenses", ["binding_mode"])

    op.create_table(
        "oauth_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_user_id", sa.String(255), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_oauth_users_id", "oauth_users", ["id"])
    op.create_index("ix_oauth_users_external_user_id", "oauth_users", ["external_user_id"], unique=True)

    op.create_table(
        "activations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("license_id", sa.Integer(), sa.ForeignKey("licenses.id"), nullable=False),
        sa.Column("device_id", sa.String(255), nullable=True),
        sa.Column("network_address", sa.String(45), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("activated_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_activations_id", "activations", ["id"])
    op.create_index("ix_activations_license_id", "activations", ["license_id"])
    op.create_index("ix_activations_device_id", "activations", ["device_id"])
    op.create_index("ix_activations_network_address", "activations", ["network_address"])
    op.create_index("ix_activations_is_active", "activations", ["is_active"])
    # one active activation per license; MySQL has no partial indexes and
    # relies on the license row lock instead
    if op.get_bind().dialect.name in PARTIAL_INDEX_DIALECTS:
        op.create_index(
            "uq_activations_one_active",
            "activations",
            ["license_id"],
            unique=True,
            sqlite_where=sa.text("is_active = 1"),
            postgresql_where=sa.text("is_active"),
        )

    op.create_table(
        "license_resets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("license_id", sa.Integer(), sa.ForeignKey("licenses.id"), nullable=False),
        sa.Column("oauth_user_id", sa.Integer(), sa.ForeignKey("oauth_users.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_license_resets_id", "license_resets", ["id"])
    op.create_index("ix_license_resets_license_id", "license_resets", ["license_id"])
    op.create_index("ix_license_resets_oauth_user_id", "license_resets", ["oauth_user_id"])

    op.create_table(
        "logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user", sa.String(100), nullable=True),
        sa.Column("action", sa.String(255), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(50), nullable=True),
        sa.Column("endpoint", sa.String(255), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_logs_id", "logs", ["id"])


def downgrade():
    op.drop_table("logs")
    op.drop_table("license_resets")
    if op.get_bind().dialect.name in PARTIAL_INDEX_DIALECTS:
        op.drop_index("uq_activations_one_active", table_name="activations")
    op.drop_table("activations")
    op.drop_table("oauth_users")
    op.drop_table("licenses")
    sa.Enum(name="binding_mode").drop(op.get_bind(), checkfirst=True)
