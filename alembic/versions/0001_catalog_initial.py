"""catalog initial schema

Revision ID: 0001_catalog_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "0001_catalog_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "canonical_styles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("style_number", sa.Text(), nullable=False, unique=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "supplier_product_links",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "canonical_style_id",
            sa.Uuid(),
            sa.ForeignKey("canonical_styles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("supplier", sa.Text(), nullable=False),
        sa.Column("supplier_part_id", sa.Text(), nullable=False),
        sa.Column("metadata", JSONType, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("supplier", "supplier_part_id", name="uq_supplier_product_links_supplier_part"),
    )
    op.create_index("ix_supplier_product_links_canonical_style_id", "supplier_product_links", ["canonical_style_id"])
    op.create_index("ix_supplier_product_links_supplier_part_id", "supplier_product_links", ["supplier_part_id"])

    op.create_table(
        "supplier_link_audit",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("supplier", sa.Text(), nullable=False),
        sa.Column("supplier_part_id", sa.Text(), nullable=False),
        sa.Column("from_style_number", sa.Text(), nullable=True),
        sa.Column("to_style_number", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("supplier", sa.Text(), nullable=False),
        sa.Column("supplier_part_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("default_color", sa.Text(), nullable=True),
        sa.Column("description", JSONType, nullable=True),
        sa.Column("attributes", JSONType, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("supplier", "supplier_part_id", name="uq_products_supplier_part"),
    )
    op.create_index("ix_products_supplier_part_id", "products", ["supplier_part_id"])

    op.create_table(
        "product_colors",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("color_code", sa.Text(), nullable=False),
        sa.Column("color_name", sa.Text(), nullable=False),
        sa.Column("supplier_variant_id", sa.Text(), nullable=True),
        sa.Column("swatch_url", sa.Text(), nullable=True),
        sa.UniqueConstraint("product_id", "color_code", name="uq_product_colors_product_color"),
    )
    op.create_table(
        "product_sizes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("size_code", sa.Text(), nullable=False),
        sa.Column("display", sa.Text(), nullable=False),
        sa.Column("sort", sa.Integer(), nullable=True),
        sa.UniqueConstraint("product_id", "size_code", name="uq_product_sizes_product_size"),
    )
    op.create_table(
        "product_media",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("color_code", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "product_skus",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("color_code", sa.Text(), nullable=False),
        sa.Column("size_code", sa.Text(), nullable=False),
        sa.Column("supplier_sku", sa.Text(), nullable=False),
        sa.UniqueConstraint("product_id", "color_code", "size_code", name="uq_product_skus_product_color_size"),
    )

    op.create_table(
        "product_inventory",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("supplier", sa.Text(), nullable=False),
        sa.Column("supplier_part_id", sa.Text(), nullable=False),
        sa.Column("color_code", sa.Text(), nullable=False),
        sa.Column("size_code", sa.Text(), nullable=False),
        sa.Column("total_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("warehouses", JSONType, nullable=True),
        sa.Column("fetched_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "supplier", "supplier_part_id", "color_code", "size_code",
            name="uq_product_inventory_supplier_part_color_size",
        ),
    )
    op.create_index("ix_product_inventory_supplier", "product_inventory", ["supplier"])
    op.create_index("ix_product_inventory_supplier_part_id", "product_inventory", ["supplier_part_id"])

    op.create_table(
        "import_runs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("supplier", sa.Text(), nullable=False),
        sa.Column("job_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="running"),
        sa.Column("params", JSONType, nullable=True),
        sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("import_runs")
    op.drop_index("ix_product_inventory_supplier_part_id", table_name="product_inventory")
    op.drop_index("ix_product_inventory_supplier", table_name="product_inventory")
    op.drop_table("product_inventory")
    op.drop_table("product_skus")
    op.drop_table("product_media")
    op.drop_table("product_sizes")
    op.drop_table("product_colors")
    op.drop_index("ix_products_supplier_part_id", table_name="products")
    op.drop_table("products")
    op.drop_table("supplier_link_audit")
    op.drop_index("ix_supplier_product_links_supplier_part_id", table_name="supplier_product_links")
    op.drop_index("ix_supplier_product_links_canonical_style_id", table_name="supplier_product_links")
    op.drop_table("supplier_product_links")
    op.drop_table("canonical_styles")
