import pytest

from apparel_catalog.exceptions import SupplierUnavailableError
from apparel_catalog.schemas.product import (
    InventorySummary,
    ProductColorway,
    ProductMediaGroup,
    ProductRecord,
    SupplierFetchMetadata,
    WarehouseQuantity,
)
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.services.supplier_product_loader import (
    FetchOutcome,
    StoreFetchStrategy,
    SupplierProductLoader,
    merge_media,
)
from apparel_catalog.suppliers import Supplier


class FakeLiveStrategy:
    supplier = Supplier.SSACTIVEWEAR

    def __init__(self, products=None, error=None, direct=True):
        self.products = products or {}
        self.error = error
        self.direct = direct
        self.calls = []

    async def fetch(self, part_id):
        self.calls.append(part_id)
        if self.error is not None:
            raise self.error
        product = self.products.get(part_id)
        if product is None:
            return None
        return FetchOutcome(product=product, metadata=SupplierFetchMetadata(source="live"))

    def accepts_direct(self, identifier):
        return self.direct


def sanmar_record(part="G500"):
    return ProductRecord(
        supplier=Supplier.SANMAR,
        supplier_part_id=part,
        name="Gildan Heavy Cotton",
        brand="Gildan",
        default_color="RED",
        attributes={"piecePrice": 3.1},
        colors=[ProductColorway(color_code="RED", color_name="Red"), ProductColorway(color_code="NAVY", color_name="Navy")],
        media=[ProductMediaGroup(color_code="RED", urls=["https://sanmar/red.jpg"])],
    )


def ssa_record(part="B00060"):
    return ProductRecord(
        supplier=Supplier.SSACTIVEWEAR,
        supplier_part_id=part,
        name="Heavy Cotton T-Shirt",
        brand="Gildan",
        default_color="NAVY",
        colors=[ProductColorway(color_code="NAVY", color_name="Navy")],
        media=[ProductMediaGroup(color_code="NAVY", urls=["https://ssa/navy.jpg"])],
        inventory=[
            InventorySummary(
                color_code="NAVY",
                size_code="M",
                total_qty=9,
                warehouses=[WarehouseQuantity(warehouse_id="IL", quantity=9)],
            )
        ],
    )


@pytest.fixture
def catalog(db_session):
    registry = CanonicalStyleRegistry(db_session)
    repository = CatalogRepository(db_session)
    return registry, repository


def link_both(registry):
    registry.ensure_link(Supplier.SANMAR, "G500", style_number="5000", display_name="Heavy Cotton Tee", brand="Gildan")
    registry.ensure_link(Supplier.SSACTIVEWEAR, "B00060", style_number="5000")


@pytest.mark.unit
class TestMergeMedia:
    def test_offered_colors_borrow_sibling_media(self):
        merged = merge_media({Supplier.SANMAR: sanmar_record(), Supplier.SSACTIVEWEAR: ssa_record()})

        sanmar_media = {g.color_code: g.urls for g in merged[Supplier.SANMAR].media}
        assert sanmar_media == {"RED": ["https://sanmar/red.jpg"], "NAVY": ["https://ssa/navy.jpg"]}
        # S&S does not offer RED so it does not get SanMar's red images
        ssa_media = {g.color_code: g.urls for g in merged[Supplier.SSACTIVEWEAR].media}
        assert ssa_media == {"NAVY": ["https://ssa/navy.jpg"]}

    def test_single_supplier_unchanged(self):
        merged = merge_media({Supplier.SANMAR: sanmar_record()})
        assert [g.color_code for g in merged[Supplier.SANMAR].media] == ["RED"]


@pytest.mark.unit
class TestSupplierProductLoader:
    @pytest.mark.asyncio
    async def test_loads_all_linked_suppliers(self, catalog):
        registry, repository = catalog
        link_both(registry)
        repository.upsert_product(sanmar_record())
        live = FakeLiveStrategy({"B00060": ssa_record()})
        loader = SupplierProductLoader(registry, [StoreFetchStrategy(repository), live])

        bundle = await loader.load("g500")

        assert bundle.identifier == "G500"
        assert bundle.canonical_style.style_number == "5000"
        assert set(bundle.products) == {Supplier.SANMAR, Supplier.SSACTIVEWEAR}
        assert bundle.primary_supplier == Supplier.SANMAR
        assert bundle.primary_product.supplier_part_id == "G500"
        assert live.calls == ["B00060"]
        assert bundle.metadata[Supplier.SSACTIVEWEAR].source == "live"
        assert Supplier.SANMAR not in bundle.metadata
        assert bundle.inventory[Supplier.SSACTIVEWEAR].rows[0].total_qty == 9
        assert [w.quantity for w in bundle.inventory[Supplier.SSACTIVEWEAR].warehouses] == [0]
        navy = next(g for g in bundle.products[Supplier.SANMAR].media if g.color_code == "NAVY")
        assert navy.urls == ["https://ssa/navy.jpg"]

    @pytest.mark.asyncio
    async def test_style_number_resolves_too(self, catalog):
        registry, repository = catalog
        link_both(registry)
        repository.upsert_product(sanmar_record())
        loader = SupplierProductLoader(registry, [StoreFetchStrategy(repository), FakeLiveStrategy({"B00060": ssa_record()})])

        bundle = await loader.load("5000")

        assert bundle.canonical_style.display_name == "Heavy Cotton Tee"
        assert len(bundle.products) == 2

    @pytest.mark.asyncio
    async def test_failing_supplier_means_no_data(self, catalog):
        registry, repository = catalog
        link_both(registry)
        live = FakeLiveStrategy(error=SupplierUnavailableError("down", supplier="SSACTIVEWEAR"))
        loader = SupplierProductLoader(registry, [StoreFetchStrategy(repository), live])
        repository.upsert_product(sanmar_record())

        bundle = await loader.load("5000")

        assert list(bundle.products) == [Supplier.SANMAR]
        # linked supplier failed; no direct retry with the style number
        assert live.calls == ["B00060"]

    @pytest.mark.asyncio
    async def test_primary_falls_back_when_sanmar_missing(self, catalog):
        registry, repository = catalog
        link_both(registry)
        loader = SupplierProductLoader(registry, [StoreFetchStrategy(repository), FakeLiveStrategy({"B00060": ssa_record()})])

        bundle = await loader.load("B00060")

        assert bundle.primary_supplier == Supplier.SSACTIVEWEAR
        assert bundle.canonical_style.style_number == "5000"

    @pytest.mark.asyncio
    async def test_cold_start_direct_lookup(self, catalog):
        registry, repository = catalog
        live = FakeLiveStrategy({"B00060": ssa_record()})
        loader = SupplierProductLoader(registry, [StoreFetchStrategy(repository), live])

        bundle = await loader.load("B00060")

        assert bundle.canonical_style.id is None
        assert bundle.canonical_style.style_number == "B00060"
        assert bundle.canonical_style.display_name == "Heavy Cotton T-Shirt"
        assert bundle.primary_supplier == Supplier.SSACTIVEWEAR
        assert live.calls == ["B00060"]

    @pytest.mark.asyncio
    async def test_store_only_direct_lookup(self, catalog):
        registry, repository = catalog
        repository.upsert_product(sanmar_record("PC54"))
        live = FakeLiveStrategy(direct=False)
        loader = SupplierProductLoader(registry, [StoreFetchStrategy(repository), live])

        bundle = await loader.load("PC54")

        assert bundle.primary_supplier == Supplier.SANMAR
        assert live.calls == []

    @pytest.mark.asyncio
    async def test_unknown_identifier_is_empty(self, catalog):
        registry, repository = catalog
        loader = SupplierProductLoader(registry, [StoreFetchStrategy(repository), FakeLiveStrategy()])

        bundle = await loader.load("NOPE")
        assert bundle.is_empty
        assert bundle.primary_supplier is None

        blank = await loader.load("   ")
        assert blank.identifier == ""
        assert blank.is_empty
