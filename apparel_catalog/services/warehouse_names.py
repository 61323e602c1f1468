"""
Warehouse name canonicalization.

One physical warehouse shows up under a numeric code in one SanMar feed path and an
alphabetic abbreviation in another. Aggregating by raw id double-counts stock, so
everything downstream keys off the canonical id or display name produced here.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from apparel_catalog.suppliers import Supplier


@dataclass(frozen=True)
class WarehouseDefinition:
    canonical_id: str
    display_name: str
    aliases: Tuple[str, ...] = ()


SANMAR_WAREHOUSES: Tuple[WarehouseDefinition, ...] = (
    WarehouseDefinition("DAL", "Dallas, TX", ("1", "DAL")),
    WarehouseDefinition("CIN", "Cincinnati, OH", ("2", "CIN")),
    WarehouseDefinition("PHX", "Phoenix, AZ", ("3", "PHX")),
    WarehouseDefinition("RNO", "Reno, NV", ("4", "RNO")),
    WarehouseDefinition("ATL", "Atlanta, GA", ("5", "ATL")),
    WarehouseDefinition("CHI", "Chicago, IL", ("6", "CHI")),
    WarehouseDefinition("LAX", "Los Angeles, CA", ("7", "LAX")),
    WarehouseDefinition("SEA", "Seattle, WA", ("12", "SEA")),
    WarehouseDefinition("JAX", "Jacksonville, FL", ("31", "JAX")),
)


@dataclass
class WarehouseNameResolver:
    """Static alias tables, one per supplier whose warehouse codes are known."""
    tables: Dict[Supplier, Iterable[WarehouseDefinition]] = field(
        default_factory=lambda: {Supplier.SANMAR: SANMAR_WAREHOUSES}
    )

    def __post_init__(self) -> None:
        self._lookup: Dict[Supplier, Dict[str, WarehouseDefinition]] = {}
        for supplier, definitions in self.tables.items():
            aliases: Dict[str, WarehouseDefinition] = {}
            for definition in definitions:
                for alias in (*definition.aliases, definition.canonical_id):
                    trimmed = alias.strip()
                    aliases[trimmed] = definition
                    aliases[trimmed.upper()] = definition
            self._lookup[supplier] = aliases

    def _find(self, supplier: Optional[Supplier | str], warehouse_id: str) -> Optional[WarehouseDefinition]:
        if not supplier or not warehouse_id:
            return None
        try:
            supplier = Supplier(str(getattr(supplier, "value", supplier)).strip().upper())
        except ValueError:
            return None
        aliases = self._lookup.get(supplier)
        if not aliases:
            return None
        return aliases.get(warehouse_id) or aliases.get(warehouse_id.strip().upper())

    def resolve(
        self,
        warehouse_id: str,
        warehouse_name: Optional[str] = None,
        supplier: Optional[Supplier | str] = None,
    ) -> str:
        """
        Display name for a warehouse. An explicit upstream name always wins over the
        local alias table; an unknown id is returned unchanged.
        """
        if warehouse_name and warehouse_name.strip():
            return warehouse_name

        definition = self._find(supplier, warehouse_id)
        if definition:
            return definition.display_name
        return warehouse_id

    def normalize(
        self,
        warehouse_id: str,
        warehouse_name: Optional[str] = None,
        supplier: Supplier | str = Supplier.SANMAR,
    ) -> Tuple[str, Optional[str]]:
        """Rewrite a raw id into (canonical_id, canonical_name) before storage."""
        trimmed_id = (warehouse_id or "").strip()
        trimmed_name = (warehouse_name or "").strip() or None
        if not trimmed_id:
            return "", trimmed_name

        definition = self._find(supplier, trimmed_id)
        if definition:
            return definition.canonical_id, trimmed_name or definition.display_name
        return trimmed_id.upper(), trimmed_name


default_resolver = WarehouseNameResolver()
