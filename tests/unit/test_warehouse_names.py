import pytest

from apparel_catalog.services.warehouse_names import (
    SANMAR_WAREHOUSES,
    WarehouseDefinition,
    WarehouseNameResolver,
    default_resolver,
)
from apparel_catalog.suppliers import Supplier


@pytest.mark.unit
class TestWarehouseNameResolver:
    def test_numeric_and_alpha_ids_share_display_name(self):
        assert default_resolver.resolve("1", None, Supplier.SANMAR) == "Dallas, TX"
        assert default_resolver.resolve("DAL", None, Supplier.SANMAR) == "Dallas, TX"
        assert default_resolver.resolve(" dal ", None, "sanmar") == "Dallas, TX"

    def test_every_known_warehouse_resolves(self):
        for definition in SANMAR_WAREHOUSES:
            for alias in definition.aliases:
                assert default_resolver.resolve(alias, None, Supplier.SANMAR) == definition.display_name

    def test_explicit_name_wins(self):
        assert default_resolver.resolve("1", "Dallas Overflow", Supplier.SANMAR) == "Dallas Overflow"

    def test_unknown_id_passes_through(self):
        assert default_resolver.resolve("99", None, Supplier.SANMAR) == "99"

    def test_other_supplier_has_no_table(self):
        assert default_resolver.resolve("1", None, Supplier.SSACTIVEWEAR) == "1"
        assert default_resolver.resolve("1", None, None) == "1"

    def test_normalize_rewrites_to_canonical_id(self):
        assert default_resolver.normalize("12") == ("SEA", "Seattle, WA")
        assert default_resolver.normalize("jax", None) == ("JAX", "Jacksonville, FL")
        assert default_resolver.normalize("31", "Custom") == ("JAX", "Custom")

    def test_normalize_unknown_and_blank(self):
        assert default_resolver.normalize("ks", None) == ("KS", None)
        assert default_resolver.normalize("  ", "Name") == ("", "Name")

    def test_custom_table(self):
        resolver = WarehouseNameResolver(
            tables={Supplier.SSACTIVEWEAR: (WarehouseDefinition("IL", "Lockport, IL", ("IL", "2")),)}
        )
        assert resolver.resolve("2", None, Supplier.SSACTIVEWEAR) == "Lockport, IL"
        assert resolver.resolve("2", None, Supplier.SANMAR) == "2"
