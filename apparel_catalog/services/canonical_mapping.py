"""
Static canonical mapping table (data/canonical_mapping.json).

A hand-maintained list of canonical SKUs with aliases and per-supplier style numbers.
Integrity problems are fatal at load time: silently picking a winner would corrupt
the catalog in a way nobody would notice.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from apparel_catalog.exceptions import CanonicalMappingError

logger = logging.getLogger(__name__)


class SupplierStyleMapping(BaseModel):
    style: str

    @field_validator("style")
    @classmethod
    def upper(cls, v: str) -> str:
        return v.strip().upper()


class CanonicalMappingRecord(BaseModel):
    canonical_sku: str = Field(alias="canonicalSku")
    name: str
    brand: Optional[str] = None
    aliases: List[str] = []
    suppliers: Dict[str, SupplierStyleMapping] = {}

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("canonical_sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("aliases")
    @classmethod
    def normalize_aliases(cls, v: List[str]) -> List[str]:
        return [alias.strip().upper() for alias in v if alias and alias.strip()]

    @field_validator("suppliers", mode="before")
    @classmethod
    def normalize_suppliers(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        # entries without a style are ignored
        return {
            key.strip().upper(): mapping
            for key, mapping in v.items()
            if isinstance(mapping, dict) and mapping.get("style")
        }


@dataclass
class ResolvedSearchTerm:
    exact_match: Optional[CanonicalMappingRecord] = None
    candidates: List[CanonicalMappingRecord] = field(default_factory=list)


class CanonicalMappingTable:
    def __init__(self, records: Iterable[CanonicalMappingRecord]):
        self.records: List[CanonicalMappingRecord] = []
        self._by_sku: Dict[str, CanonicalMappingRecord] = {}
        self._by_alias: Dict[str, CanonicalMappingRecord] = {}
        self._by_supplier_style: Dict[str, CanonicalMappingRecord] = {}

        for record in records:
            self._register(record)

        logger.info(f"[CANONICAL] Loaded {len(self.records)} canonical mapping records")

    @classmethod
    def from_records(cls, raw_records: Iterable[Dict[str, Any]]) -> "CanonicalMappingTable":
        return cls(CanonicalMappingRecord.model_validate(raw) for raw in raw_records)

    @classmethod
    def load(cls, path: str | Path) -> "CanonicalMappingTable":
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CanonicalMappingError(f"Unable to read canonical mapping file {path}: {e}") from e
        if not isinstance(raw, list):
            raise CanonicalMappingError(f"Canonical mapping file {path} must contain a JSON array")
        return cls.from_records(raw)

    def _register(self, record: CanonicalMappingRecord) -> None:
        sku = record.canonical_sku
        if sku in self._by_sku:
            raise CanonicalMappingError(
                f"Duplicate canonicalSku {sku} in canonical mapping",
                canonical_sku=sku,
                conflict_with=sku,
                key=sku,
            )

        unique_aliases: List[str] = []
        for alias in record.aliases:
            if alias in unique_aliases:
                logger.warning(f"[CANONICAL] Duplicate alias {alias} within {sku}; keeping one")
                continue
            unique_aliases.append(alias)
        record.aliases = unique_aliases

        # the canonical SKU itself is also an alias
        for alias in (sku, *unique_aliases):
            owner = self._by_alias.get(alias)
            if owner is not None and owner.canonical_sku != sku:
                raise CanonicalMappingError(
                    f"Alias {alias} claimed by both {owner.canonical_sku} and {sku}",
                    canonical_sku=sku,
                    conflict_with=owner.canonical_sku,
                    key=alias,
                )

        for supplier, mapping in record.suppliers.items():
            key = f"{supplier}:{mapping.style}"
            owner = self._by_supplier_style.get(key)
            if owner is not None and owner.canonical_sku != sku:
                raise CanonicalMappingError(
                    f"Supplier style {key} claimed by both {owner.canonical_sku} and {sku}",
                    canonical_sku=sku,
                    conflict_with=owner.canonical_sku,
                    key=key,
                )

        self.records.append(record)
        self._by_sku[sku] = record
        for alias in (sku, *unique_aliases):
            self._by_alias.setdefault(alias, record)
        for supplier, mapping in record.suppliers.items():
            self._by_supplier_style[f"{supplier}:{mapping.style}"] = record

    def __len__(self) -> int:
        return len(self.records)

    def find_by_sku(self, canonical_sku: str) -> Optional[CanonicalMappingRecord]:
        return self._by_sku.get(canonical_sku.strip().upper())

    def find_by_alias(self, value: str) -> Optional[CanonicalMappingRecord]:
        return self._by_alias.get(value.strip().upper())

    def find_supplier_style(self, supplier: str, style: str) -> Optional[CanonicalMappingRecord]:
        supplier_key = str(getattr(supplier, "value", supplier)).strip().upper()
        return self._by_supplier_style.get(f"{supplier_key}:{style.strip().upper()}")

    def resolve_search_term(self, term: str) -> ResolvedSearchTerm:
        normalized = term.strip().upper()
        if not normalized:
            return ResolvedSearchTerm()

        exact = self.find_by_alias(normalized)
        if exact:
            return ResolvedSearchTerm(exact_match=exact, candidates=[exact])

        candidates = [
            record
            for record in self.records
            if normalized in record.canonical_sku or any(normalized in alias for alias in record.aliases)
        ]
        return ResolvedSearchTerm(candidates=candidates)


def load_canonical_mapping(path: str | Path) -> Optional[CanonicalMappingTable]:
    """Load the mapping if the file exists. A missing file means "no static mapping"."""
    path = Path(path)
    if not path.exists():
        logger.info(f"[CANONICAL] No canonical mapping at {path}; using heuristics only")
        return None
    return CanonicalMappingTable.load(path)
