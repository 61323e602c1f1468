import pytest
from sqlalchemy import func, select

from apparel_catalog.exceptions import CatalogImportError
from apparel_catalog.importers.sanmar_dip import SanmarDipImporter
from apparel_catalog.models import ImportRun, ProductInventory
from apparel_catalog.schemas.product import ProductColorway, ProductRecord
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.suppliers import Supplier

DIP_CONTENT = """catalog_no|catalog_color|size|whse_no|whse_name|quantity
PC54|Athletic Hthr|M|1||5
PC54|Athletic Hthr|M|DAL||10
PC54|Athletic Hthr|M|12|Seattle|3
PC54|Navy|L|2||x
PC54|Navy|L|2||-1
|Navy|L|2||4
DT6000|Black|S|3||7
"""


@pytest.fixture
def dip_file(tmp_path):
    path = tmp_path / "sanmar_dip.txt"
    path.write_text(DIP_CONTENT, encoding="utf-8")
    return path


@pytest.fixture
def importer(db_session):
    repository = CatalogRepository(db_session)
    repository.upsert_product(
        ProductRecord(
            supplier=Supplier.SANMAR,
            supplier_part_id="PC54",
            name="Core Cotton Tee",
            colors=[ProductColorway(color_code="ATH_HEATHER", color_name="Athletic Heather")],
        )
    )
    db_session.commit()
    return SanmarDipImporter(db_session, repository=repository)


def inventory_rows(session, part_id=None):
    stmt = select(ProductInventory).where(ProductInventory.supplier == Supplier.SANMAR.value)
    if part_id:
        stmt = stmt.where(ProductInventory.supplier_part_id == part_id)
    return list(session.scalars(stmt.order_by(ProductInventory.supplier_part_id)))


@pytest.mark.unit
class TestSanmarDipImporter:
    def test_import_aggregates_and_reconciles(self, importer, dip_file, db_session):
        result = importer.run(dip_file)

        assert result.processed == 4
        assert result.created == 2
        assert result.skipped == 3
        assert result.matched_styles == ("DT6000", "PC54")

        (pc54,) = inventory_rows(db_session, "PC54")
        assert pc54.color_code == "ATH_HEATHER"
        assert pc54.size_code == "M"
        assert pc54.total_qty == 18
        assert pc54.warehouses == [
            {"warehouseId": "DAL", "warehouseName": "Dallas, TX", "quantity": 15},
            {"warehouseId": "SEA", "warehouseName": "Seattle", "quantity": 3},
        ]

        (dt6000,) = inventory_rows(db_session, "DT6000")
        assert dt6000.color_code == "BLACK"
        assert dt6000.total_qty == 7

        run = db_session.scalars(select(ImportRun)).one()
        assert run.status == "success"
        assert run.job_type == "inventory"
        assert run.created == 2

    def test_rerun_is_idempotent(self, importer, dip_file, db_session):
        importer.run(dip_file)
        importer.run(dip_file)

        rows = inventory_rows(db_session)
        assert len(rows) == 2
        assert sum(row.total_qty for row in rows) == 25

    def test_style_filter_only_replaces_scope(self, importer, dip_file, db_session):
        importer.run(dip_file)
        dip_file.write_text(
            "catalog_no|catalog_color|size|whse_no|quantity\nPC54|Athletic Heather|M|1|2\nDT6000|Black|S|3|99\n",
            encoding="utf-8",
        )

        result = importer.run(dip_file, style_filter=["pc54", "MISSING"])

        assert result.processed == 1
        assert result.matched_styles == ("PC54",)
        assert result.missing_styles == ("MISSING",)
        assert inventory_rows(db_session, "PC54")[0].total_qty == 2
        assert inventory_rows(db_session, "DT6000")[0].total_qty == 7

    def test_dry_run_writes_nothing(self, importer, dip_file, db_session):
        result = importer.run(dip_file, dry_run=True)

        assert result.dry_run is True
        assert result.created == 2
        assert inventory_rows(db_session) == []
        assert db_session.scalars(select(ImportRun.status)).one() == "dry_run"

    def test_missing_file(self, importer, tmp_path):
        with pytest.raises(CatalogImportError, match="not found"):
            importer.run(tmp_path / "nope.txt")

    def test_bad_header_fails_run(self, importer, tmp_path, db_session):
        path = tmp_path / "bad.txt"
        path.write_text("style|color\nPC54|Red\n", encoding="utf-8")

        with pytest.raises(CatalogImportError, match="missing columns"):
            importer.run(path)

        run = db_session.scalars(select(ImportRun)).one()
        assert run.status == "fail"
        assert "missing columns" in run.last_error
        assert db_session.scalar(select(func.count()).select_from(ProductInventory)) == 0
