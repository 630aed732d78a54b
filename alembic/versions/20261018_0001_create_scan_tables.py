"""create shops, insights, scan_runs, digest_settings, product_price_snapshots

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    # ---------------------------------------------------------------------------
    # shops
    # No foreign keys. Created first; all other tables reference it.
    # ---------------------------------------------------------------------------
    op.create_table(
        "shops",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "shop_domain",
            sa.String(length=255),
            nullable=False,
            comment="Normalised *.myshopify.com host",
        ),
        sa.Column("access_token", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_shops"),
        sa.UniqueConstraint("shop_domain", name="uq_shops_shop_domain"),
    )

    # ---------------------------------------------------------------------------
    # insights
    # FK → shops.id ON DELETE CASCADE; one row per (shop_id, type)
    # ---------------------------------------------------------------------------
    op.create_table(
        "insights",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("shop_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("suggested_action", sa.Text(), nullable=False),
        sa.Column("confidence", sa.String(length=16), nullable=False),
        sa.Column(
            "data_snapshot",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="evidence, metrics, items_preview, evaluated_at and the raw candidate",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["shop_id"],
            ["shops.id"],
            name="fk_insights_shop_id_shops",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_insights"),
        sa.UniqueConstraint("shop_id", "type", name="uq_insights_shop_type"),
    )
    op.create_index(
        "ix_insights_shop_type_created_at",
        "insights",
        ["shop_id", "type", "created_at"],
    )

    # ---------------------------------------------------------------------------
    # scan_runs
    # PK = FK → shops.id; rolling snapshot
    # ---------------------------------------------------------------------------
    op.create_table(
        "scan_runs",
        sa.Column("shop_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("last_scan_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_scan_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_scan_status", sa.String(length=16), nullable=False),
        sa.Column(
            "last_scan_summary",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["shop_id"],
            ["shops.id"],
            name="fk_scan_runs_shop_id_shops",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("shop_id", name="pk_scan_runs"),
    )
    op.create_index("ix_scan_runs_next_scan_at", "scan_runs", ["next_scan_at"])

    # ---------------------------------------------------------------------------
    # digest_settings
    # ---------------------------------------------------------------------------
    op.create_table(
        "digest_settings",
        sa.Column("shop_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("daily_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("weekly_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["shop_id"],
            ["shops.id"],
            name="fk_digest_settings_shop_id_shops",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("shop_id", name="pk_digest_settings"),
    )

    # ---------------------------------------------------------------------------
    # product_price_snapshots
    # ---------------------------------------------------------------------------
    op.create_table(
        "product_price_snapshots",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("shop_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "captured_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["shop_id"],
            ["shops.id"],
            name="fk_product_price_snapshots_shop_id_shops",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_product_price_snapshots"),
    )
    op.create_index(
        "ix_price_snapshots_shop_product_captured",
        "product_price_snapshots",
        ["shop_id", "product_id", "captured_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_price_snapshots_shop_product_captured", table_name="product_price_snapshots")
    op.drop_table("product_price_snapshots")
    op.drop_table("digest_settings")
    op.drop_index("ix_scan_runs_next_scan_at", table_name="scan_runs")
    op.drop_table("scan_runs")
    op.drop_index("ix_insights_shop_type_created_at", table_name="insights")
    op.drop_table("insights")
    op.drop_table("shops")
