"""
Warehouse x size inventory grid.

Rows are grouped by warehouse display name, never by raw id, so the same physical
warehouse reported as "1" and "DAL" collapses into one row. Directory warehouses with
no stock still get a zero row.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from apparel_catalog.schemas.product import InventorySummary, SupplierProductBundle, WarehouseQuantity
from apparel_catalog.services.warehouse_names import WarehouseNameResolver, default_resolver
from apparel_catalog.suppliers import Supplier

SIZE_DISPLAY_ORDER = ("XXS", "XS", "S", "M", "L", "XL", "2XL", "3XL", "4XL", "5XL", "6XL")
_SIZE_PRIORITY = {code: index for index, code in enumerate(SIZE_DISPLAY_ORDER)}
_DIGITS = re.compile(r"(\d+)")


@dataclass(frozen=True)
class FlatInventoryRow:
    warehouse_id: str
    size_code: str
    quantity: int
    warehouse_name: Optional[str] = None


@dataclass
class WarehouseRow:
    warehouse_id: str
    warehouse_name: Optional[str]
    display_name: str
    size_cells: Dict[str, int] = field(default_factory=dict)
    total_qty: int = 0


@dataclass
class InventoryMatrix:
    warehouses: List[WarehouseRow]
    sizes: List[str]
    totals_by_size: Dict[str, int]
    grand_total: int

    def cell(self, display_name: str, size_code: str) -> int:
        for row in self.warehouses:
            if row.display_name == display_name:
                return row.size_cells.get(size_code, 0)
        return 0


def _natural_key(code: str) -> list:
    # "10" after "2"; case-insensitive
    parts = _DIGITS.split(code.lower())
    return [int(part) if index % 2 else part for index, part in enumerate(parts)]


def sort_size_codes(size_codes: Iterable[str]) -> List[str]:
    """Known apparel sizes first in display order, everything else in natural order."""
    unique = list(dict.fromkeys(size_codes))
    return sorted(
        unique,
        key=lambda code: (_SIZE_PRIORITY.get(code.upper(), len(SIZE_DISPLAY_ORDER)), _natural_key(code)),
    )


def extract_sizes(product_sizes: Iterable[str] = (), inventory_rows: Iterable[InventorySummary] = ()) -> List[str]:
    codes = list(product_sizes)
    codes.extend(row.size_code for row in inventory_rows)
    return sort_size_codes(codes)


def flatten_inventory_rows(
    rows: Iterable[InventorySummary],
    warehouse_directory: Iterable[WarehouseQuantity] = (),
) -> List[FlatInventoryRow]:
    """
    Explode per-SKU inventory rows into per-warehouse rows. Rows without a warehouse
    breakdown carry no location and are skipped.
    """
    directory = {entry.warehouse_id: entry for entry in warehouse_directory}
    flattened: List[FlatInventoryRow] = []
    for row in rows:
        if not row.warehouses:
            continue
        for warehouse in row.warehouses:
            known = directory.get(warehouse.warehouse_id)
            flattened.append(
                FlatInventoryRow(
                    warehouse_id=warehouse.warehouse_id,
                    warehouse_name=warehouse.warehouse_name or (known.warehouse_name if known else None),
                    size_code=row.size_code,
                    quantity=warehouse.quantity,
                )
            )
    return flattened


class InventoryMatrixBuilder:
    def __init__(self, resolver: WarehouseNameResolver | None = None):
        self.resolver = resolver or default_resolver

    def build(
        self,
        rows: Iterable[FlatInventoryRow],
        size_order: Sequence[str] = (),
        supplier: Supplier | str | None = None,
        directory: Iterable[WarehouseQuantity] = (),
    ) -> InventoryMatrix:
        by_display_name: Dict[str, WarehouseRow] = {}
        totals_by_size: Dict[str, int] = {}
        grand_total = 0

        for row in rows:
            display_name = self.resolver.resolve(row.warehouse_id, row.warehouse_name, supplier)
            warehouse = by_display_name.get(display_name)
            if warehouse is None:
                # first raw id seen for a display name is kept on the row
                warehouse = WarehouseRow(
                    warehouse_id=row.warehouse_id,
                    warehouse_name=row.warehouse_name,
                    display_name=display_name,
                )
                by_display_name[display_name] = warehouse

            warehouse.size_cells[row.size_code] = warehouse.size_cells.get(row.size_code, 0) + row.quantity
            warehouse.total_qty += row.quantity
            totals_by_size[row.size_code] = totals_by_size.get(row.size_code, 0) + row.quantity
            grand_total += row.quantity

        for entry in directory:
            display_name = self.resolver.resolve(entry.warehouse_id, entry.warehouse_name, supplier)
            if display_name not in by_display_name:
                by_display_name[display_name] = WarehouseRow(
                    warehouse_id=entry.warehouse_id,
                    warehouse_name=entry.warehouse_name,
                    display_name=display_name,
                )

        sizes = sort_size_codes([*size_order, *totals_by_size.keys()])
        for size in sizes:
            totals_by_size.setdefault(size, 0)
        warehouses = sorted(by_display_name.values(), key=lambda w: w.display_name.casefold())
        for warehouse in warehouses:
            for size in sizes:
                warehouse.size_cells.setdefault(size, 0)

        return InventoryMatrix(
            warehouses=warehouses,
            sizes=sizes,
            totals_by_size=totals_by_size,
            grand_total=grand_total,
        )

    def build_from_inventory(
        self,
        inventory: Iterable[InventorySummary],
        size_order: Sequence[str] = (),
        supplier: Supplier | str | None = None,
        directory: Iterable[WarehouseQuantity] = (),
    ) -> InventoryMatrix:
        directory = list(directory)
        return self.build(flatten_inventory_rows(inventory, directory), size_order, supplier, directory)

    def build_for_bundle(
        self,
        bundle: SupplierProductBundle,
        supplier: Supplier,
        color_code: Optional[str] = None,
    ) -> Optional[InventoryMatrix]:
        """Grid for one supplier of a loaded bundle, optionally narrowed to one color."""
        inventory = bundle.inventory.get(supplier)
        if inventory is None:
            return None
        rows = inventory.rows
        if color_code:
            wanted = color_code.strip().upper()
            rows = [row for row in rows if row.color_code.upper() == wanted]
        product = bundle.products.get(supplier)
        size_order = extract_sizes([size.size_code for size in product.sizes] if product else [], rows)
        return self.build_from_inventory(rows, size_order, supplier, inventory.warehouses)
