import pytest
from fastapi.testclient import TestClient

from apparel_catalog.api.deps import get_shared_resources
from apparel_catalog.db import get_session
from apparel_catalog.main import app
from apparel_catalog.schemas.product import (
    InventorySummary,
    ProductColorway,
    ProductRecord,
    ProductSizeEntry,
    WarehouseQuantity,
)
from apparel_catalog.services.background import BackgroundRefresher
from apparel_catalog.services.cache import InMemoryTTLCache
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry
from apparel_catalog.services.catalog_context import SharedResources
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.suppliers import Supplier


@pytest.fixture
def client(db_session):
    registry = CanonicalStyleRegistry(db_session)
    repository = CatalogRepository(db_session)
    registry.ensure_link(Supplier.SANMAR, "PC54", style_number="PC54", display_name="Core Cotton Tee", brand="Port & Company")
    repository.upsert_product(
        ProductRecord(
            supplier=Supplier.SANMAR,
            supplier_part_id="PC54",
            name="Core Cotton Tee",
            brand="Port & Company",
            attributes={"piecePrice": 3.5},
            colors=[ProductColorway(color_code="RED", color_name="Red")],
            sizes=[ProductSizeEntry(size_code="S", display="S", sort=1), ProductSizeEntry(size_code="M", display="M", sort=2)],
        )
    )
    repository.replace_inventory(
        Supplier.SANMAR,
        {
            "PC54": [
                InventorySummary(
                    color_code="RED",
                    size_code="M",
                    total_qty=8,
                    warehouses=[WarehouseQuantity(warehouse_id="DAL", warehouse_name="Dallas, TX", quantity=8)],
                )
            ]
        },
    )
    db_session.commit()

    shared = SharedResources(
        cache=InMemoryTTLCache(),
        refresher=BackgroundRefresher("test"),
        client=None,
        mapping=None,
    )

    def override_session():
        yield db_session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_shared_resources] = lambda: shared
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.mark.unit
class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "ok"
        assert body["liveSuppliers"] == []
        assert body["refresh"]["failed"] == 0


@pytest.mark.unit
class TestCatalogEndpoints:
    def test_search(self, client):
        response = client.get("/api/catalog/search", params={"q": "pc5", "inStockOnly": "true"})
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["style_number"] == "PC54"
        assert body["items"][0]["availability"]["total_quantity"] == 8

    def test_search_rejects_bad_input(self, client):
        assert client.get("/api/catalog/search", params={"q": "pc", "suppliers": "ACME"}).status_code == 422
        assert client.get("/api/catalog/search", params={"q": "pc", "sort": "name"}).status_code == 422
        assert client.get("/api/catalog/search", params={"q": "pc", "limit": 0}).status_code == 422

    def test_search_supplier_list(self, client):
        response = client.get("/api/catalog/search", params={"q": "pc54", "suppliers": "sanmar,ssactivewear"})
        assert response.status_code == 200
        assert len(response.json()["items"]) == 1

    def test_exact_match(self, client):
        assert client.get("/api/catalog/exact", params={"q": "pc54"}).json()["style_number"] == "PC54"
        assert client.get("/api/catalog/exact", params={"q": "pc5"}).status_code == 404

    def test_product_bundle(self, client):
        response = client.get("/api/products/PC54")
        assert response.status_code == 200
        body = response.json()
        assert body["primary_supplier"] == "SANMAR"
        assert body["canonical_style"]["display_name"] == "Core Cotton Tee"
        assert body["products"]["SANMAR"]["attributes"]["piecePrice"] == 3.5

        assert client.get("/api/products/NOPE").status_code == 404

    def test_inventory_matrix(self, client):
        response = client.get("/api/products/PC54/inventory/sanmar")
        assert response.status_code == 200
        body = response.json()
        assert body["sizes"] == ["S", "M"]
        assert body["grand_total"] == 8
        assert body["warehouses"][0]["display_name"] == "Dallas, TX"
        assert body["warehouses"][0]["size_cells"] == {"S": 0, "M": 8}

    def test_inventory_matrix_color_filter_keeps_directory(self, client):
        body = client.get("/api/products/PC54/inventory/SANMAR", params={"color": "navy"}).json()
        assert body["grand_total"] == 0
        assert [row["warehouse_id"] for row in body["warehouses"]] == ["DAL"]

    def test_inventory_matrix_unknown_supplier(self, client):
        assert client.get("/api/products/PC54/inventory/acme").status_code == 404
        assert client.get("/api/products/PC54/inventory/ssactivewear").status_code == 404
