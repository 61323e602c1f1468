"""
SanMar DIP inventory file import.

The DIP file is pipe-delimited with one row per style/color/size/warehouse. Rows are
aggregated in memory, color names are reconciled against the stored SanMar catalog
colors, and the supplier's inventory scope is replaced in a single transaction.
Running it twice on the same file leaves the same rows behind.
"""
import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from apparel_catalog.exceptions import CatalogImportError
from apparel_catalog.importers.run_history import ImportJobResult, ImportRunRecorder
from apparel_catalog.schemas.product import InventorySummary, WarehouseQuantity
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.services.color_keys import ColorKeyNormalizer, default_normalizer, sanitize_code
from apparel_catalog.services.warehouse_names import WarehouseNameResolver, default_resolver
from apparel_catalog.suppliers import Supplier

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("catalog_no", "catalog_color", "size", "whse_no", "quantity")


@dataclass(frozen=True)
class DipRow:
    part_id: str
    color_name: str
    size_code: str
    warehouse_id: str
    warehouse_name: Optional[str]
    quantity: int


@dataclass(frozen=True)
class DipImportResult:
    processed: int
    created: int
    skipped: int
    matched_styles: Tuple[str, ...] = ()
    missing_styles: Tuple[str, ...] = ()
    dry_run: bool = False


@dataclass
class _Aggregate:
    color_name: str
    warehouses: Dict[str, List] = field(default_factory=dict)  # id -> [name, qty]

    def add(self, warehouse_id: str, warehouse_name: Optional[str], quantity: int) -> None:
        entry = self.warehouses.setdefault(warehouse_id, [warehouse_name, 0])
        entry[0] = entry[0] or warehouse_name
        entry[1] += quantity


class SanmarDipImporter:
    def __init__(
        self,
        session: Session,
        repository: Optional[CatalogRepository] = None,
        resolver: Optional[WarehouseNameResolver] = None,
        normalizer: Optional[ColorKeyNormalizer] = None,
    ):
        self.session = session
        self.repository = repository or CatalogRepository(session)
        self.resolver = resolver or default_resolver
        self.normalizer = normalizer or default_normalizer
        self.skipped = 0

    def read_rows(self, lines: Iterable[str]) -> Iterator[DipRow]:
        """Parse DIP lines, skipping (and counting) rows with missing fields or a bad quantity."""
        reader = csv.DictReader(lines, delimiter="|")
        if not reader.fieldnames:
            raise CatalogImportError("DIP file has no header row", supplier=Supplier.SANMAR.value)
        reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
        missing = [column for column in REQUIRED_COLUMNS if column not in reader.fieldnames]
        if missing:
            raise CatalogImportError(
                f"DIP header is missing columns: {', '.join(missing)}", supplier=Supplier.SANMAR.value
            )

        for line_no, record in enumerate(reader, start=2):
            values = {key: (value or "").strip() for key, value in record.items() if key}
            if not all(values.get(column) for column in REQUIRED_COLUMNS):
                self.skipped += 1
                logger.debug(f"[DIP] Line {line_no}: missing fields, skipped")
                continue
            try:
                quantity = int(values["quantity"])
            except ValueError:
                self.skipped += 1
                logger.debug(f"[DIP] Line {line_no}: bad quantity {values['quantity']!r}, skipped")
                continue
            if quantity < 0:
                self.skipped += 1
                continue

            warehouse_id, warehouse_name = self.resolver.normalize(
                values["whse_no"], values.get("whse_name"), Supplier.SANMAR
            )
            if not warehouse_id:
                self.skipped += 1
                continue

            yield DipRow(
                part_id=values["catalog_no"].upper(),
                color_name=values["catalog_color"],
                size_code=values["size"].upper(),
                warehouse_id=warehouse_id,
                warehouse_name=warehouse_name,
                quantity=quantity,
            )

    def aggregate(
        self, rows: Iterable[DipRow], style_filter: Optional[set] = None
    ) -> Tuple[int, Dict[Tuple[str, str, str], _Aggregate]]:
        processed = 0
        aggregated: Dict[Tuple[str, str, str], _Aggregate] = {}
        for row in rows:
            if style_filter and row.part_id not in style_filter:
                continue
            processed += 1
            key = (row.part_id, sanitize_code(row.color_name, "DEFAULT"), row.size_code)
            bucket = aggregated.setdefault(key, _Aggregate(color_name=row.color_name))
            bucket.add(row.warehouse_id, row.warehouse_name, row.quantity)
        return processed, aggregated

    def reconcile_colors(
        self, aggregated: Dict[Tuple[str, str, str], _Aggregate]
    ) -> Dict[str, List[InventorySummary]]:
        """Map inventory color names onto catalog color codes and merge what collapses together."""
        part_ids = sorted({part_id for part_id, _, _ in aggregated})
        catalog = self.repository.color_catalog(Supplier.SANMAR, part_ids)
        lookups = {part_id: self.normalizer.build_lookup(colors) for part_id, colors in catalog.items()}

        merged: Dict[Tuple[str, str, str], Dict[str, List]] = {}
        for (part_id, fallback_code, size_code), bucket in aggregated.items():
            color_code = self.normalizer.resolve(bucket.color_name, lookups.get(part_id), fallback=fallback_code)
            target = merged.setdefault((part_id, color_code, size_code), {})
            for warehouse_id, (name, quantity) in bucket.warehouses.items():
                entry = target.setdefault(warehouse_id, [name, 0])
                entry[0] = entry[0] or name
                entry[1] += quantity

        by_part: Dict[str, List[InventorySummary]] = {}
        for (part_id, color_code, size_code), warehouses in sorted(merged.items()):
            entries = [
                WarehouseQuantity(warehouse_id=warehouse_id, warehouse_name=name, quantity=quantity)
                for warehouse_id, (name, quantity) in warehouses.items()
            ]
            by_part.setdefault(part_id, []).append(
                InventorySummary(
                    color_code=color_code,
                    size_code=size_code,
                    total_qty=sum(entry.quantity for entry in entries),
                    warehouses=entries,
                )
            )
        return by_part

    def run(
        self,
        dip_path: str | Path,
        style_filter: Optional[Iterable[str]] = None,
        dry_run: bool = False,
    ) -> DipImportResult:
        path = Path(dip_path)
        if not path.exists():
            raise CatalogImportError(f"DIP file not found: {path}", supplier=Supplier.SANMAR.value, source=str(path))

        styles = {style.strip().upper() for style in style_filter or [] if style and style.strip()} or None
        recorder = ImportRunRecorder(self.session, Supplier.SANMAR.value, "inventory")
        recorder.start({"path": str(path), "styles": sorted(styles) if styles else None, "dry_run": dry_run})
        self.skipped = 0

        try:
            with path.open("r", encoding="utf-8-sig", newline="") as handle:
                processed, aggregated = self.aggregate(self.read_rows(handle), styles)
            rows_by_part = self.reconcile_colors(aggregated)
            created = sum(len(rows) for rows in rows_by_part.values())

            seen = set(rows_by_part)
            matched = tuple(sorted(seen))
            missing = tuple(sorted(styles - seen)) if styles else ()
            if missing:
                logger.warning(f"[DIP] Styles not present in file: {', '.join(missing)}")

            if not dry_run:
                try:
                    self.repository.replace_inventory(Supplier.SANMAR, rows_by_part, scope_part_ids=styles)
                    self.session.commit()
                except Exception as e:
                    self.session.rollback()
                    raise CatalogImportError(
                        f"Inventory replace failed, scope left untouched: {e}",
                        supplier=Supplier.SANMAR.value,
                        source=str(path),
                    ) from e
        except Exception as e:
            recorder.fail(e)
            raise

        result = DipImportResult(
            processed=processed,
            created=created,
            skipped=self.skipped,
            matched_styles=matched,
            missing_styles=missing,
            dry_run=dry_run,
        )
        recorder.finish(
            ImportJobResult(processed=processed, created=created, skipped=self.skipped, dry_run=dry_run)
        )
        logger.info(
            f"[DIP] {'Dry run' if dry_run else 'Import'} complete: {processed} rows, "
            f"{created} inventory rows, {self.skipped} skipped, {len(matched)} styles"
        )
        return result
