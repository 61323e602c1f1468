from typing import Any
from datetime import datetime
import uuid

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class CatalogBase(DeclarativeBase):
    pass


class CanonicalStyle(CatalogBase):
    """
    Supplier-agnostic style identity. One or more supplier parts link to it.
    Never deleted by the engine; orphaned styles stay until an operator removes them.
    """
    __tablename__ = "canonical_styles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    style_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    supplier_links: Mapped[list["SupplierProductLink"]] = relationship(
        back_populates="canonical_style",
        order_by="SupplierProductLink.supplier_part_id",
    )


class SupplierProductLink(CatalogBase):
    __tablename__ = "supplier_product_links"
    __table_args__ = (
        UniqueConstraint("supplier", "supplier_part_id", name="uq_supplier_product_links_supplier_part"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    canonical_style_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("canonical_styles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    supplier: Mapped[str] = mapped_column(Text, nullable=False)
    supplier_part_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    link_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    canonical_style: Mapped[CanonicalStyle] = relationship(back_populates="supplier_links")


class SupplierLinkAudit(CatalogBase):
    """
    One row per re-link: a supplier part moved from one canonical style to another.
    """
    __tablename__ = "supplier_link_audit"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier: Mapped[str] = mapped_column(Text, nullable=False)
    supplier_part_id: Mapped[str] = mapped_column(Text, nullable=False)
    from_style_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    to_style_number: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Product(CatalogBase):
    """
    Stored supplier catalog record. Child collections are fully replaced on re-import.
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("supplier", "supplier_part_id", name="uq_products_supplier_part"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier: Mapped[str] = mapped_column(Text, nullable=False)
    supplier_part_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_color: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    attributes: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    colors: Mapped[list["ProductColor"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", order_by="ProductColor.color_code"
    )
    sizes: Mapped[list["ProductSize"]] = relationship(back_populates="product", cascade="all, delete-orphan")
    media: Mapped[list["ProductMedia"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", order_by="ProductMedia.position"
    )
    skus: Mapped[list["ProductSku"]] = relationship(back_populates="product", cascade="all, delete-orphan")


class ProductColor(CatalogBase):
    __tablename__ = "product_colors"
    __table_args__ = (
        UniqueConstraint("product_id", "color_code", name="uq_product_colors_product_color"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    color_code: Mapped[str] = mapped_column(Text, nullable=False)
    color_name: Mapped[str] = mapped_column(Text, nullable=False)
    supplier_variant_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    swatch_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    product: Mapped[Product] = relationship(back_populates="colors")


class ProductSize(CatalogBase):
    __tablename__ = "product_sizes"
    __table_args__ = (
        UniqueConstraint("product_id", "size_code", name="uq_product_sizes_product_size"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    size_code: Mapped[str] = mapped_column(Text, nullable=False)
    display: Mapped[str] = mapped_column(Text, nullable=False)
    sort: Mapped[int | None] = mapped_column(Integer, nullable=True)

    product: Mapped[Product] = relationship(back_populates="sizes")


class ProductMedia(CatalogBase):
    __tablename__ = "product_media"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    color_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped[Product] = relationship(back_populates="media")


class ProductSku(CatalogBase):
    __tablename__ = "product_skus"
    __table_args__ = (
        UniqueConstraint("product_id", "color_code", "size_code", name="uq_product_skus_product_color_size"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    color_code: Mapped[str] = mapped_column(Text, nullable=False)
    size_code: Mapped[str] = mapped_column(Text, nullable=False)
    supplier_sku: Mapped[str] = mapped_column(Text, nullable=False)

    product: Mapped[Product] = relationship(back_populates="skus")


class ProductInventory(CatalogBase):
    """
    Inventory snapshot per supplier part, color and size.

    warehouses holds a list of {warehouseId, warehouseName, quantity}; the sum of the
    quantities is expected to equal total_qty. Rows are replaced per import run.
    """
    __tablename__ = "product_inventory"
    __table_args__ = (
        UniqueConstraint(
            "supplier", "supplier_part_id", "color_code", "size_code",
            name="uq_product_inventory_supplier_part_color_size",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    supplier_part_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    color_code: Mapped[str] = mapped_column(Text, nullable=False)
    size_code: Mapped[str] = mapped_column(Text, nullable=False)
    total_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warehouses: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ImportRun(CatalogBase):
    __tablename__ = "import_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier: Mapped[str] = mapped_column(Text, nullable=False)
    job_type: Mapped[str] = mapped_column(Text, nullable=False)  # catalog, inventory
    status: Mapped[str] = mapped_column(Text, nullable=False, default="running")  # running, success, partial, fail, dry_run
    params: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
