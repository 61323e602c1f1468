"""
Store access for supplier products and inventory rows.

Reads map ORM rows into ProductRecord; writes implement the full-replace semantics the
importers rely on. Callers own commit/rollback.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Literal, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from apparel_catalog.models import (
    Product,
    ProductColor,
    ProductInventory,
    ProductMedia,
    ProductSize,
    ProductSku,
)
from apparel_catalog.schemas.product import (
    InventorySummary,
    ProductColorway,
    ProductMediaGroup,
    ProductRecord,
    ProductSizeEntry,
    ProductSkuEntry,
    SupplierInventory,
    WarehouseQuantity,
    parse_warehouses,
)
from apparel_catalog.services.inventory_matrix import SIZE_DISPLAY_ORDER
from apparel_catalog.suppliers import Supplier, parse_supplier

logger = logging.getLogger(__name__)

UNKNOWN_SIZE_SORT = 999

_COLOR_WORDS = {"VTG": "Vintage", "HTHR": "Heather", "DK": "Dark", "LT": "Light"}


def format_color_name(color_code: str) -> str:
    """"VTG_RED" -> "Vintage Red", "HTHR_NAVY" -> "Heather Navy"."""
    words = [word for word in re.split(r"[_\s]+", color_code) if word]
    return " ".join(_COLOR_WORDS.get(word.upper(), word.capitalize()) for word in words)


def summarize_inventory(rows: Iterable[InventorySummary]) -> SupplierInventory:
    """Inventory rows plus a directory of every warehouse seen, quantities zeroed."""
    rows = list(rows)
    directory: Dict[str, WarehouseQuantity] = {}
    for row in rows:
        for warehouse in row.warehouses or []:
            if warehouse.warehouse_id not in directory:
                directory[warehouse.warehouse_id] = WarehouseQuantity(
                    warehouse_id=warehouse.warehouse_id,
                    warehouse_name=warehouse.warehouse_name,
                    quantity=0,
                )
    return SupplierInventory(rows=rows, warehouses=list(directory.values()))


def derive_colors(colors: Sequence[ProductColorway], inventory: Iterable[InventorySummary]) -> List[ProductColorway]:
    merged: Dict[str, ProductColorway] = {color.color_code.upper(): color for color in colors}
    for row in inventory:
        code = row.color_code.upper()
        if code not in merged:
            merged[code] = ProductColorway(color_code=row.color_code, color_name=format_color_name(row.color_code))
    return sorted(merged.values(), key=lambda color: color.color_code)


def derive_sizes(sizes: Sequence[ProductSizeEntry], inventory: Iterable[InventorySummary]) -> List[ProductSizeEntry]:
    merged: Dict[str, ProductSizeEntry] = {size.size_code.upper(): size for size in sizes}
    for row in inventory:
        code = row.size_code.upper()
        if code not in merged:
            sort = SIZE_DISPLAY_ORDER.index(code) if code in SIZE_DISPLAY_ORDER else UNKNOWN_SIZE_SORT
            merged[code] = ProductSizeEntry(size_code=row.size_code, display=row.size_code, sort=sort)
    return sorted(
        merged.values(),
        key=lambda size: (size.sort if size.sort is not None else UNKNOWN_SIZE_SORT, size.size_code),
    )


def _inventory_summary(row: ProductInventory) -> InventorySummary:
    return InventorySummary(
        color_code=row.color_code,
        size_code=row.size_code,
        total_qty=row.total_qty,
        warehouses=parse_warehouses(row.warehouses),
        fetched_at=row.fetched_at,
    )


def map_product(product: Product, inventory: Optional[List[InventorySummary]] = None) -> ProductRecord:
    colors = [
        ProductColorway(
            color_code=color.color_code,
            color_name=color.color_name or color.color_code,
            supplier_variant_id=color.supplier_variant_id,
            swatch_url=color.swatch_url,
        )
        for color in product.colors
    ]
    sizes = sorted(
        (
            ProductSizeEntry(size_code=size.size_code, display=size.display or size.size_code, sort=size.sort or 0)
            for size in product.sizes
        ),
        key=lambda size: (size.sort, size.size_code),
    )

    media: Dict[str, ProductMediaGroup] = {}
    for item in product.media:
        color_code = item.color_code or product.default_color or "DEFAULT"
        group = media.setdefault(color_code, ProductMediaGroup(color_code=color_code))
        if item.url not in group.urls:
            group.urls.append(item.url)

    if inventory:
        colors = derive_colors(colors, inventory)
        sizes = derive_sizes(sizes, inventory)

    return ProductRecord(
        supplier=parse_supplier(product.supplier),
        supplier_part_id=product.supplier_part_id,
        name=product.name,
        brand=product.brand,
        default_color=product.default_color or (colors[0].color_code if colors else "DEFAULT"),
        description=product.description if isinstance(product.description, list) else [],
        attributes=product.attributes or {},
        colors=colors,
        sizes=sizes,
        media=list(media.values()),
        sku_map=[
            ProductSkuEntry(color_code=sku.color_code, size_code=sku.size_code, supplier_sku=sku.supplier_sku)
            for sku in product.skus
        ],
        inventory=inventory,
    )


class CatalogRepository:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------ reads

    def _load_product(self, supplier: Supplier, supplier_part_id: str) -> Optional[Product]:
        return self.session.scalars(
            select(Product)
            .options(
                selectinload(Product.colors),
                selectinload(Product.sizes),
                selectinload(Product.media),
                selectinload(Product.skus),
            )
            .where(Product.supplier == supplier.value, Product.supplier_part_id == supplier_part_id)
        ).first()

    def list_inventory(self, supplier: Supplier | str, supplier_part_id: str) -> List[InventorySummary]:
        supplier = parse_supplier(supplier)
        rows = self.session.scalars(
            select(ProductInventory)
            .where(
                ProductInventory.supplier == supplier.value,
                ProductInventory.supplier_part_id == supplier_part_id.strip().upper(),
            )
            .order_by(ProductInventory.color_code, ProductInventory.size_code)
        )
        return [_inventory_summary(row) for row in rows]

    def get_inventory(self, supplier: Supplier | str, supplier_part_id: str) -> SupplierInventory:
        return summarize_inventory(self.list_inventory(supplier, supplier_part_id))

    def get_product(self, supplier: Supplier | str, supplier_part_id: str) -> Optional[ProductRecord]:
        """
        Stored product with its inventory. A part that only exists in the inventory
        feed gets a synthesized record whose colors and sizes come from the rows.
        """
        supplier = parse_supplier(supplier)
        part = supplier_part_id.strip().upper()
        inventory = self.list_inventory(supplier, part)
        product = self._load_product(supplier, part)
        if product is not None:
            return map_product(product, inventory)
        if not inventory:
            return None

        colors = derive_colors([], inventory)
        return ProductRecord(
            supplier=supplier,
            supplier_part_id=part,
            name=part,
            default_color=colors[0].color_code if colors else "DEFAULT",
            colors=colors,
            sizes=derive_sizes([], inventory),
            inventory=inventory,
        )

    def list_part_ids(self, supplier: Supplier | str, brands: Optional[Iterable[str]] = None) -> List[str]:
        supplier = parse_supplier(supplier)
        stmt = select(Product.supplier_part_id, Product.brand).where(Product.supplier == supplier.value)
        wanted = {brand.strip().upper() for brand in brands} if brands else None
        part_ids = []
        for part_id, brand in self.session.execute(stmt.order_by(Product.supplier_part_id)):
            if wanted and (brand or "").strip().upper() not in wanted:
                continue
            part_ids.append(part_id)
        return part_ids

    def color_catalog(self, supplier: Supplier | str, part_ids: Iterable[str]) -> Dict[str, List[ProductColor]]:
        """Catalog colors per part, used to reconcile inventory color names."""
        supplier = parse_supplier(supplier)
        part_ids = list(part_ids)
        if not part_ids:
            return {}
        products = self.session.scalars(
            select(Product)
            .options(selectinload(Product.colors))
            .where(Product.supplier == supplier.value, Product.supplier_part_id.in_(part_ids))
        )
        return {product.supplier_part_id: list(product.colors) for product in products}

    # ------------------------------------------------------------------ writes

    def upsert_product(self, record: ProductRecord) -> Literal["created", "updated"]:
        """Insert or update a product; child collections are replaced wholesale."""
        product = self._load_product(record.supplier, record.supplier_part_id)
        outcome: Literal["created", "updated"] = "updated"
        if product is None:
            product = Product(supplier=record.supplier.value, supplier_part_id=record.supplier_part_id)
            self.session.add(product)
            outcome = "created"

        product.name = record.name
        product.brand = record.brand
        product.default_color = record.default_color
        product.description = record.description or None
        product.attributes = record.attributes or None

        if outcome == "updated":
            # flush the orphan deletes before re-inserting rows under the same unique keys
            product.colors.clear()
            product.sizes.clear()
            product.media.clear()
            product.skus.clear()
            self.session.flush()

        product.colors.extend(
            ProductColor(
                color_code=color.color_code,
                color_name=color.color_name,
                supplier_variant_id=color.supplier_variant_id,
                swatch_url=color.swatch_url,
            )
            for color in record.colors
        )
        product.sizes.extend(
            ProductSize(size_code=size.size_code, display=size.display, sort=size.sort) for size in record.sizes
        )
        position = 0
        for group in record.media:
            for url in group.urls:
                product.media.append(
                    ProductMedia(
                        color_code=None if group.color_code == "GLOBAL" else group.color_code,
                        url=url,
                        position=position,
                    )
                )
                position += 1
        product.skus.extend(
            ProductSku(color_code=sku.color_code, size_code=sku.size_code, supplier_sku=sku.supplier_sku)
            for sku in record.sku_map
        )
        self.session.flush()
        return outcome

    def replace_inventory(
        self,
        supplier: Supplier | str,
        rows: Dict[str, List[InventorySummary]],
        scope_part_ids: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Delete the supplier's inventory scope (all parts, or only scope_part_ids) and
        insert the given rows keyed by part id. Runs inside the caller's transaction.
        """
        supplier = parse_supplier(supplier)
        stmt = delete(ProductInventory).where(ProductInventory.supplier == supplier.value)
        if scope_part_ids is not None:
            stmt = stmt.where(ProductInventory.supplier_part_id.in_(list(scope_part_ids)))
        self.session.execute(stmt)

        fetched_at = datetime.now(timezone.utc)
        created = 0
        for part_id, summaries in rows.items():
            for summary in summaries:
                self.session.add(self._inventory_row(supplier, part_id, summary, fetched_at))
                created += 1
        self.session.flush()
        return created

    def upsert_inventory(self, supplier: Supplier | str, part_id: str, rows: List[InventorySummary]) -> int:
        """
        Upsert a part's rows keyed by (color, size); keys no longer reported are removed
        so the end state matches a full replace.
        """
        supplier = parse_supplier(supplier)
        existing = {
            (row.color_code, row.size_code): row
            for row in self.session.scalars(
                select(ProductInventory).where(
                    ProductInventory.supplier == supplier.value,
                    ProductInventory.supplier_part_id == part_id,
                )
            )
        }
        fetched_at = datetime.now(timezone.utc)
        seen = set()
        for summary in rows:
            key = (summary.color_code, summary.size_code)
            seen.add(key)
            current = existing.get(key)
            if current is None:
                self.session.add(self._inventory_row(supplier, part_id, summary, fetched_at))
                continue
            current.total_qty = summary.total_qty
            current.warehouses = [w.to_storage() for w in summary.warehouses] if summary.warehouses else None
            current.fetched_at = fetched_at

        for key, row in existing.items():
            if key not in seen:
                self.session.delete(row)
        self.session.flush()
        return len(rows)

    @staticmethod
    def _inventory_row(
        supplier: Supplier, part_id: str, summary: InventorySummary, fetched_at: datetime
    ) -> ProductInventory:
        return ProductInventory(
            supplier=supplier.value,
            supplier_part_id=part_id,
            color_code=summary.color_code,
            size_code=summary.size_code,
            total_qty=summary.total_qty,
            warehouses=[w.to_storage() for w in summary.warehouses] if summary.warehouses else None,
            fetched_at=fetched_at,
        )
