"""
S&S Activewear REST payload -> ProductRecord / InventorySummary.

The REST API returns one product object per SKU (style x color x size). Colors are
keyed by the sanitized color name so they line up with SanMar codes when media is
merged across suppliers; S&S's own colorCode is kept as the supplier variant id.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from bs4 import BeautifulSoup

from apparel_catalog.schemas.product import (
    InventorySummary,
    ProductColorway,
    ProductMediaGroup,
    ProductRecord,
    ProductSizeEntry,
    ProductSkuEntry,
    WarehouseQuantity,
)
from apparel_catalog.ssactivewear_client import RestBundle
from apparel_catalog.suppliers import Supplier

logger = logging.getLogger(__name__)

CDN_BASE_URL = "https://cdn.ssactivewear.com/"
IMAGE_FIELDS = ("colorFrontImage", "colorBackImage", "colorSideImage", "colorDirectSideImage")
PRICE_FIELDS = ("customerPrice", "salePrice", "piecePrice", "mapPrice")

_B_PREFIX_STYLE = re.compile(r"^B\d{5}$")
_DIGITS_ONLY = re.compile(r"^\d+$")
_INVALID_CODE_CHARS = re.compile(r"[^A-Z0-9_-]")


def to_ssa_product_id(product_id: str) -> str:
    """"60" -> "B00060"; "B00060" and lettered styles like "A230" pass through."""
    normalized = (product_id or "").strip().upper()
    if not normalized:
        raise ValueError("Product ID is required")
    if _B_PREFIX_STYLE.match(normalized):
        return normalized
    if _DIGITS_ONLY.match(normalized):
        return f"B{normalized.zfill(5)}"
    return normalized


def to_style_number(product_id: str) -> str:
    normalized = (product_id or "").strip().upper()
    if _B_PREFIX_STYLE.match(normalized):
        return normalized[1:]
    return normalized


def is_ssactivewear_part(identifier: str) -> bool:
    """Cheap plausibility check before spending a live call on a direct lookup."""
    normalized = (identifier or "").strip().upper()
    return (normalized.startswith("B") and len(normalized) > 1) or bool(re.fullmatch(r"\d{4,}", normalized))


def sanitize_color_code(value: str, fallback: str) -> str:
    return _INVALID_CODE_CHARS.sub("_", (value or "").strip().upper()) or fallback


def normalize_image_url(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    if re.match(r"^https?://", raw, re.IGNORECASE):
        return raw
    return CDN_BASE_URL + raw.lstrip("/")


def html_to_lines(html: Optional[str]) -> List[str]:
    if not html:
        return []
    text = BeautifulSoup(html, "html.parser").get_text("\n")
    return [line.strip() for line in text.splitlines() if line.strip()]


def to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r"[^0-9.]", "", value)
        try:
            return float(cleaned) if cleaned else None
        except ValueError:
            return None
    return None


def to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def price_candidate(product: Dict[str, Any]) -> Optional[float]:
    # first populated field wins, even if it does not parse
    for key in PRICE_FIELDS:
        if product.get(key) is not None:
            return to_number(product[key])
    return None


def color_code_for(product: Dict[str, Any], part_id: str) -> str:
    return sanitize_color_code(product.get("colorName") or "Default", f"{part_id}_COLOR")


def size_code_for(product: Dict[str, Any]) -> str:
    return sanitize_color_code(product.get("sizeName") or "OSFA", "OSFA")


def merge_warehouses(raw_warehouses: Iterable[Dict[str, Any]]) -> List[WarehouseQuantity]:
    """Sum duplicate warehouse ids inside one SKU, preserving first-seen order."""
    merged: Dict[str, int] = {}
    for entry in raw_warehouses:
        warehouse_id = str(entry.get("warehouseAbbr") or "").strip().upper()
        if not warehouse_id:
            continue
        merged[warehouse_id] = merged.get(warehouse_id, 0) + max(to_int(entry.get("qty")), 0)
    return [WarehouseQuantity(warehouse_id=wid, quantity=qty) for wid, qty in merged.items()]


def aggregate_inventory(part_id: str, products: Iterable[Dict[str, Any]]) -> List[InventorySummary]:
    """
    One row per color/size. With a warehouse breakdown the total is the sum of the
    merged warehouses, otherwise the flat qty field.
    """
    totals: Dict[tuple, int] = {}
    warehouses: Dict[tuple, Dict[str, int]] = {}
    for product in products:
        key = (color_code_for(product, part_id), size_code_for(product))
        raw_warehouses = product.get("warehouses")
        if isinstance(raw_warehouses, list):
            bucket = warehouses.setdefault(key, {})
            for entry in merge_warehouses(raw_warehouses):
                bucket[entry.warehouse_id] = bucket.get(entry.warehouse_id, 0) + entry.quantity
            totals[key] = sum(bucket.values())
        else:
            totals[key] = totals.get(key, 0) + max(to_int(product.get("qty")), 0)

    return [
        InventorySummary(
            color_code=color_code,
            size_code=size_code,
            total_qty=total,
            warehouses=(
                [WarehouseQuantity(warehouse_id=wid, quantity=qty) for wid, qty in warehouses[(color_code, size_code)].items()]
                if (color_code, size_code) in warehouses
                else None
            ),
        )
        for (color_code, size_code), total in totals.items()
    ]


def build_product_from_rest(part_id: str, bundle: RestBundle, include_inventory: bool = True) -> ProductRecord:
    if not bundle.products:
        raise ValueError(f"No S&S REST product data available for {part_id}")

    colors: Dict[str, ProductColorway] = {}
    sizes: Dict[str, ProductSizeEntry] = {}
    skus: Dict[tuple, ProductSkuEntry] = {}
    media: Dict[str, List[str]] = {}
    prices: List[float] = []

    first = bundle.products[0]
    style = bundle.style or {}

    for product in bundle.products:
        color_name = product.get("colorName") or "Default"
        color_code = color_code_for(product, part_id)
        if color_code not in colors:
            colors[color_code] = ProductColorway(
                color_code=color_code,
                color_name=color_name,
                supplier_variant_id=product.get("colorCode") or None,
                swatch_url=normalize_image_url(product.get("colorSwatchImage")),
            )

        size_code = size_code_for(product)
        if size_code not in sizes:
            sizes[size_code] = ProductSizeEntry(
                size_code=size_code,
                display=product.get("sizeName") or "OSFA",
                sort=to_int(product.get("sizeOrder")),
            )

        key = (color_code, size_code)
        if key not in skus:
            skus[key] = ProductSkuEntry(
                color_code=color_code,
                size_code=size_code,
                supplier_sku=product.get("sku") or f"{part_id}_{color_code}_{size_code}",
            )

        urls = media.setdefault(color_code, [])
        for field in IMAGE_FIELDS:
            url = normalize_image_url(product.get(field))
            if url and url not in urls:
                urls.append(url)

        price = price_candidate(product)
        if price is not None:
            prices.append(price)

    attributes: Dict[str, Any] = {}
    if prices:
        attributes["piecePrice"] = min(prices)
        if max(prices) != min(prices):
            attributes["maxPiecePrice"] = max(prices)
    if style.get("baseCategory"):
        attributes["baseCategory"] = style["baseCategory"]

    return ProductRecord(
        supplier=Supplier.SSACTIVEWEAR,
        supplier_part_id=part_id,
        name=style.get("title") or first.get("styleName") or part_id,
        brand=style.get("brandName") or first.get("brandName") or None,
        default_color=next(iter(colors), "DEFAULT"),
        description=html_to_lines(style.get("description")),
        attributes=attributes,
        colors=list(colors.values()),
        sizes=list(sizes.values()),
        media=[ProductMediaGroup(color_code=code, urls=urls) for code, urls in media.items()],
        sku_map=list(skus.values()),
        inventory=aggregate_inventory(part_id, bundle.products) if include_inventory else None,
    )
