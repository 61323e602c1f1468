from typing import List, Literal, Optional
import uuid

from pydantic import BaseModel, Field, field_validator

from apparel_catalog.suppliers import Supplier

SearchSort = Literal["relevance", "supplier", "price", "stock"]


class SearchOptions(BaseModel):
    query: str
    suppliers: Optional[List[Supplier]] = None
    sort: SearchSort = "relevance"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    in_stock_only: bool = False

    @field_validator("query")
    @classmethod
    def normalize_query(cls, v: str) -> str:
        return v.strip().upper()


class SupplierSearchSummary(BaseModel):
    supplier: Supplier
    supplier_part_id: str
    price: Optional[float] = None
    in_stock: bool = False
    total_quantity: int = 0


class ColorPreview(BaseModel):
    color_code: str
    color_name: str
    swatch_url: Optional[str] = None


class PriceRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    currency: str = "USD"


class Availability(BaseModel):
    suppliers_in_stock: int = 0
    total_suppliers: int = 0
    total_quantity: int = 0


class CanonicalSearchResult(BaseModel):
    canonical_style_id: uuid.UUID
    style_number: str
    display_name: str
    brand: Optional[str] = None
    primary_supplier: Optional[Supplier] = None
    primary_supplier_part_id: Optional[str] = None
    primary_supplier_in_stock: bool = False
    suppliers: List[SupplierSearchSummary] = []
    colors: List[ColorPreview] = []
    price: PriceRange = PriceRange()
    availability: Availability = Availability()
    score: int = 0


class SearchPage(BaseModel):
    items: List[CanonicalSearchResult] = []
    total: int = 0
