import pytest
from sqlalchemy import select

from apparel_catalog.exceptions import CatalogImportError
from apparel_catalog.importers.sanmar_catalog import (
    SanmarCatalogImporter,
    build_attributes,
    parse_decimal,
    split_description,
)
from apparel_catalog.models import ImportRun
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry
from apparel_catalog.services.catalog_repository import CatalogRepository
from apparel_catalog.suppliers import Supplier

SDL_CONTENT = (
    "STYLE#,PRODUCT_TITLE,MILL,COLOR_NAME,SIZE,SIZE_INDEX,PIECE_PRICE,PRODUCT_DESCRIPTION,"
    "COLOR_PRODUCT_IMAGE,PRODUCT_IMAGE,SANMAR_MAINFRAME_COLOR,GTIN\n"
    "PC54,Core Cotton Tee,Port & Company,Athletic Heather,S,1,$3.50,5.4-ounce|Tear away label,"
    "https://img/pc54-ath.jpg,https://img/pc54.jpg,ATH,001\n"
    "PC54,Core Cotton Tee,Port & Company,Athletic Heather,M,2,$3.50,5.4-ounce|Tear away label,"
    "https://img/pc54-ath.jpg,https://img/pc54.jpg,ATH,002\n"
    "PC54,Core Cotton Tee,Port & Company,Navy,M,2,$3.75,5.4-ounce|Tear away label,"
    "https://img/pc54-navy.jpg,https://img/pc54.jpg,NVY,003\n"
    "dt6000,Very Important Tee,District,Black,XL,5,4.00,,,,BLK,\n"
)


@pytest.fixture
def sdl_file(tmp_path):
    path = tmp_path / "SanMar_SDL_N.csv"
    path.write_text(SDL_CONTENT, encoding="utf-8")
    return path


@pytest.fixture
def importer(db_session):
    return SanmarCatalogImporter(db_session, CanonicalStyleRegistry(db_session))


@pytest.mark.unit
class TestSdlHelpers:
    def test_parse_decimal(self):
        assert parse_decimal("$1,234.50") == 1234.5
        assert parse_decimal("4") == 4.0
        assert parse_decimal("n/a") is None
        assert parse_decimal(None) is None

    def test_split_description(self):
        assert split_description("Soft\ncotton | Taped neck||") == ["Soft cotton", "Taped neck"]
        assert split_description("") == []

    def test_build_attributes(self):
        attributes = build_attributes({"PIECE_PRICE": "$3.50", "PRODUCT_STATUS": "Active", "CASE_SIZE": "72"})
        assert attributes == {"piecePrice": 3.5, "productStatus": "Active", "caseSize": 72}


@pytest.mark.unit
class TestSanmarCatalogImporter:
    def test_read_styles_groups_rows(self, importer, sdl_file):
        with sdl_file.open(encoding="utf-8") as handle:
            styles = importer.read_styles(handle)

        assert list(styles) == ["PC54", "DT6000"]
        record = styles["PC54"].to_record()
        assert [c.color_code for c in record.colors] == ["ATHLETIC_HEATHER", "NAVY"]
        assert record.colors[1].supplier_variant_id == "NVY"
        assert [(s.size_code, s.sort) for s in record.sizes] == [("S", 1), ("M", 2)]
        assert record.description == ["5.4-ounce", "Tear away label"]
        media = {group.color_code: group.urls for group in record.media}
        assert media["GLOBAL"] == ["https://img/pc54.jpg"]
        assert media["NAVY"] == ["https://img/pc54-navy.jpg"]
        assert [sku.supplier_sku for sku in record.sku_map] == ["001", "002", "003"]

        dt = styles["DT6000"].to_record()
        assert dt.sku_map[0].supplier_sku == "DT6000_BLACK_XL"
        assert dt.media == []

    def test_limit_counts_rows(self, importer, sdl_file):
        with sdl_file.open(encoding="utf-8") as handle:
            styles = importer.read_styles(handle, limit=1)
        assert len(styles["PC54"].to_record().sku_map) == 1

    def test_run_upserts_and_links(self, importer, sdl_file, db_session):
        result = importer.run(sdl_file)

        assert (result.processed, result.created, result.updated, result.errors) == (2, 2, 0, 0)
        product = CatalogRepository(db_session).get_product(Supplier.SANMAR, "PC54")
        assert product.brand == "Port & Company"
        assert len(product.sku_map) == 3

        style = importer.registry.get_by_supplier_part(Supplier.SANMAR, "PC54")
        assert style.style_number == "POR-PC54"
        assert style.display_name == "Core Cotton Tee"
        assert importer.registry.get_by_supplier_part(Supplier.SANMAR, "DT6000").style_number == "DIS-DT6000"

    def test_rerun_updates(self, importer, sdl_file, db_session):
        importer.run(sdl_file)
        result = importer.run(sdl_file)

        assert (result.created, result.updated) == (0, 2)
        assert importer.registry.count_styles() == 2
        assert importer.registry.count_links() == 2
        statuses = list(db_session.scalars(select(ImportRun.status)))
        assert statuses == ["success", "success"]

    def test_dry_run(self, importer, sdl_file, db_session):
        result = importer.run(sdl_file, dry_run=True)

        assert result.processed == 2
        assert result.dry_run
        assert importer.registry.count_styles() == 0

    def test_missing_style_column(self, importer, tmp_path, db_session):
        path = tmp_path / "bad.csv"
        path.write_text("NAME,COLOR\nTee,Red\n", encoding="utf-8")

        with pytest.raises(CatalogImportError, match="STYLE#"):
            importer.run(path)
        assert db_session.scalars(select(ImportRun.status)).one() == "fail"

    def test_missing_file(self, importer, tmp_path):
        with pytest.raises(CatalogImportError):
            importer.run(tmp_path / "missing.csv")
