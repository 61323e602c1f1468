import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from apparel_catalog.suppliers import Supplier

logger = logging.getLogger(__name__)


class WarehouseQuantity(BaseModel):
    """Per-warehouse stock entry stored inside an inventory row."""
    warehouse_id: str = Field(alias="warehouseId", min_length=1)
    warehouse_name: Optional[str] = Field(default=None, alias="warehouseName")
    quantity: int = Field(ge=0)

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("warehouse_name")
    @classmethod
    def blank_name_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def parse_warehouses(raw: Any) -> Optional[List[WarehouseQuantity]]:
    """
    Validate a stored warehouse breakdown. Entries that do not validate are dropped
    with a warning; anything that is not a list means "no breakdown".
    """
    if not isinstance(raw, list):
        return None

    parsed: List[WarehouseQuantity] = []
    for entry in raw:
        try:
            parsed.append(WarehouseQuantity.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"[INVENTORY] Dropping invalid warehouse entry {entry!r}: {e.error_count()} errors")
    return parsed


class InventorySummary(BaseModel):
    color_code: str
    size_code: str
    total_qty: int
    warehouses: Optional[List[WarehouseQuantity]] = None
    fetched_at: Optional[datetime] = None


class ProductColorway(BaseModel):
    color_code: str
    color_name: str
    supplier_variant_id: Optional[str] = None
    swatch_url: Optional[str] = None


class ProductSizeEntry(BaseModel):
    size_code: str
    display: str
    sort: Optional[int] = None


class ProductMediaGroup(BaseModel):
    color_code: str
    urls: List[str] = []


class ProductSkuEntry(BaseModel):
    color_code: str
    size_code: str
    supplier_sku: str


class ProductRecord(BaseModel):
    """Supplier product as consumed by loaders and search. Same shape for stored and live data."""
    supplier: Supplier
    supplier_part_id: str
    name: str
    brand: Optional[str] = None
    default_color: Optional[str] = None
    description: List[str] = []
    attributes: Dict[str, Any] = {}
    colors: List[ProductColorway] = []
    sizes: List[ProductSizeEntry] = []
    media: List[ProductMediaGroup] = []
    sku_map: List[ProductSkuEntry] = []
    inventory: Optional[List[InventorySummary]] = None


class SupplierInventory(BaseModel):
    """Inventory rows for one supplier plus the zero-quantity warehouse directory."""
    rows: List[InventorySummary] = []
    warehouses: List[WarehouseQuantity] = []


class SupplierFetchMetadata(BaseModel):
    source: Literal["cached", "live"]
    fetched_at: Optional[datetime] = None
    warnings: List[str] = []


class CanonicalStyleSummary(BaseModel):
    id: Optional[uuid.UUID] = None
    style_number: str
    display_name: str
    brand: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SupplierProductBundle(BaseModel):
    identifier: str
    canonical_style: Optional[CanonicalStyleSummary] = None
    products: Dict[Supplier, ProductRecord] = {}
    inventory: Dict[Supplier, SupplierInventory] = {}
    metadata: Dict[Supplier, SupplierFetchMetadata] = {}
    primary_supplier: Optional[Supplier] = None
    primary_product: Optional[ProductRecord] = None

    @property
    def is_empty(self) -> bool:
        return self.canonical_style is None and not self.products
