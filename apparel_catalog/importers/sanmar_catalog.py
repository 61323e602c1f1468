"""
SanMar SDL product data import (comma-separated, one row per style/color/size).

Rows are grouped per style into a ProductRecord, upserted with full child replacement
and linked to a canonical style.
"""
import csv
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from apparel_catalog.exceptions import CatalogImportError
from apparel_catalog.importers.run_history import ImportCounters, ImportJobResult, ImportRunRecorder
from apparel_catalog.schemas.product import (
    ProductColorway,
    ProductMediaGroup,
    ProductRecord,
    ProductSizeEntry,
    ProductSkuEntry,
)
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.services.color_keys import sanitize_code
from apparel_catalog.suppliers import Supplier

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"-?[0-9]+(?:\.[0-9]+)?")

# (column, color specific)
MEDIA_COLUMNS = (
    ("COLOR_PRODUCT_IMAGE", True),
    ("COLOR_PRODUCT_IMAGE_THUMBNAIL", True),
    ("PRODUCT_IMAGE", False),
    ("FRONT_MODEL_IMAGE_URL", True),
    ("BACK_MODEL_IMAGE_URL", True),
    ("FRONT_FLAT_IMAGE_URL", True),
    ("BACK_FLAT_IMAGE_URL", True),
)
TEXT_ATTRIBUTES = {
    "PRICE_TEXT": "priceText",
    "SUGGESTED_PRICE": "suggestedPrice",
    "PRICE_GROUP": "priceGroup",
    "PRODUCT_STATUS": "productStatus",
    "MSRP": "msrp",
    "MAP_PRICING": "mapPricing",
    "COMPANION_STYLE": "companionStyles",
    "AVAILABLE_SIZES": "availableSizes",
    "PMS_COLOR": "pmsColor",
}
DECIMAL_ATTRIBUTES = {
    "PIECE_PRICE": "piecePrice",
    "DOZENS_PRICE": "dozensPrice",
    "CASE_PRICE": "casePrice",
    "PIECE_WEIGHT": "pieceWeight",
}


def parse_decimal(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    cleaned = re.sub(r"[^0-9.,-]", "", value).replace(",", "")
    match = _NUMBER.search(cleaned)
    return float(match.group(0)) if match else None


def split_description(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    cleaned = re.sub(r"\s+", " ", raw.replace("\r", " ").replace("\n", " ")).strip()
    return [entry.strip() for entry in cleaned.split("|") if entry.strip()]


def build_attributes(record: Dict[str, str]) -> Dict[str, Any]:
    attributes: Dict[str, Any] = {}
    for column, key in TEXT_ATTRIBUTES.items():
        if record.get(column):
            attributes[key] = record[column]
    for column, key in DECIMAL_ATTRIBUTES.items():
        value = parse_decimal(record.get(column))
        if value is not None:
            attributes[key] = value
    case_size = parse_decimal(record.get("CASE_SIZE"))
    if case_size is not None:
        attributes["caseSize"] = int(case_size)
    return attributes


@dataclass
class _StyleAccumulator:
    part_id: str
    name: str
    brand: Optional[str]
    default_color: str
    description: List[str]
    attributes: Dict[str, Any]
    colors: Dict[str, ProductColorway] = field(default_factory=dict)
    sizes: Dict[str, ProductSizeEntry] = field(default_factory=dict)
    media: Dict[str, List[str]] = field(default_factory=dict)
    skus: Dict[tuple, ProductSkuEntry] = field(default_factory=dict)

    def to_record(self) -> ProductRecord:
        return ProductRecord(
            supplier=Supplier.SANMAR,
            supplier_part_id=self.part_id,
            name=self.name,
            brand=self.brand,
            default_color=self.default_color,
            description=self.description,
            attributes=self.attributes,
            colors=list(self.colors.values()),
            sizes=list(self.sizes.values()),
            media=[ProductMediaGroup(color_code=code, urls=urls) for code, urls in self.media.items()],
            sku_map=list(self.skus.values()),
        )


def accumulate(accumulators: Dict[str, _StyleAccumulator], record: Dict[str, str]) -> bool:
    style = record.get("STYLE#", "")
    if not style:
        return False

    part_id = style.upper()
    color_name = record.get("COLOR_NAME", "")
    size_raw = record.get("SIZE", "")
    color_code = sanitize_code(color_name, f"{part_id}_DEFAULT") if color_name else f"{part_id}_DEFAULT"
    size_code = sanitize_code(size_raw, "OSFA") if size_raw else "OSFA"

    acc = accumulators.get(part_id)
    if acc is None:
        acc = _StyleAccumulator(
            part_id=part_id,
            name=record.get("PRODUCT_TITLE") or part_id,
            brand=record.get("MILL") or None,
            default_color=color_code,
            description=split_description(record.get("PRODUCT_DESCRIPTION")),
            attributes={},
        )
        accumulators[part_id] = acc
    if not acc.description:
        acc.description = split_description(record.get("PRODUCT_DESCRIPTION"))
    acc.attributes.update(build_attributes(record))

    if color_name and color_code not in acc.colors:
        acc.colors[color_code] = ProductColorway(
            color_code=color_code,
            color_name=color_name,
            supplier_variant_id=record.get("SANMAR_MAINFRAME_COLOR") or None,
            swatch_url=record.get("COLOR_SQUARE_IMAGE") or None,
        )

    if size_code not in acc.sizes:
        sort = parse_decimal(record.get("SIZE_INDEX"))
        acc.sizes[size_code] = ProductSizeEntry(
            size_code=size_code, display=size_raw or "OSFA", sort=int(sort) if sort is not None else None
        )

    for column, color_specific in MEDIA_COLUMNS:
        url = record.get(column)
        if not url:
            continue
        urls = acc.media.setdefault(color_code if color_specific else "GLOBAL", [])
        if url not in urls:
            urls.append(url)

    if (color_code, size_code) not in acc.skus:
        acc.skus[(color_code, size_code)] = ProductSkuEntry(
            color_code=color_code,
            size_code=size_code,
            supplier_sku=record.get("GTIN") or f"{part_id}_{color_code}_{size_code}",
        )
    return True


class SanmarCatalogImporter:
    def __init__(
        self,
        session: Session,
        registry: CanonicalStyleRegistry,
        repository: Optional[CatalogRepository] = None,
    ):
        self.session = session
        self.registry = registry
        self.repository = repository or CatalogRepository(session)

    def read_styles(self, lines: Iterable[str], limit: Optional[int] = None) -> Dict[str, _StyleAccumulator]:
        accumulators: Dict[str, _StyleAccumulator] = {}
        reader = csv.DictReader(lines)
        if not reader.fieldnames or "STYLE#" not in [name.strip().upper() for name in reader.fieldnames]:
            raise CatalogImportError("SDL header is missing the STYLE# column", supplier=Supplier.SANMAR.value)
        reader.fieldnames = [name.strip().upper() for name in reader.fieldnames]

        rows = 0
        for raw in reader:
            if limit and rows >= limit:
                break
            rows += 1
            record = {key: (value or "").strip() for key, value in raw.items() if key}
            accumulate(accumulators, record)
        return accumulators

    def run(self, sdl_path: str | Path, limit: Optional[int] = None, dry_run: bool = False) -> ImportJobResult:
        path = Path(sdl_path)
        if not path.exists():
            raise CatalogImportError(f"SDL file not found: {path}", supplier=Supplier.SANMAR.value, source=str(path))

        recorder = ImportRunRecorder(self.session, Supplier.SANMAR.value, "catalog")
        recorder.start({"path": str(path), "limit": limit, "dry_run": dry_run})
        counters = ImportCounters()

        try:
            with path.open("r", encoding="utf-8-sig", newline="") as handle:
                styles = self.read_styles(handle, limit)
        except Exception as e:
            recorder.fail(e)
            raise

        for acc in styles.values():
            counters.processed += 1
            if dry_run:
                continue
            try:
                record = acc.to_record()
                outcome = self.repository.upsert_product(record)
                self.registry.ensure_link(
                    Supplier.SANMAR,
                    record.supplier_part_id,
                    display_name=record.name,
                    brand=record.brand,
                )
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                logger.error(f"[SANMAR] Failed to import style {acc.part_id}: {e}")
                counters.record_error(acc.part_id, e)
                continue
            if outcome == "created":
                counters.created += 1
            else:
                counters.updated += 1

        result = counters.freeze(dry_run=dry_run)
        recorder.finish(result)
        return result
