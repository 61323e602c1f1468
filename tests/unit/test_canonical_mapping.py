import json
from pathlib import Path

import pytest

from apparel_catalog.exceptions import CanonicalMappingError, ErrorSeverity
from apparel_catalog.services.canonical_mapping import CanonicalMappingTable, load_canonical_mapping


def record(sku, aliases=(), suppliers=None, name=None):
    return {
        "canonicalSku": sku,
        "name": name or f"Style {sku}",
        "aliases": list(aliases),
        "suppliers": suppliers or {},
    }


@pytest.mark.unit
class TestCanonicalMappingTable:
    @pytest.fixture
    def table(self):
        return CanonicalMappingTable.from_records(
            [
                record("pc54", ["54", "core cotton tee"], {"sanmar": {"style": "pc54"}}),
                record("5000", ["G500"], {"SANMAR": {"style": "G500"}, "SSACTIVEWEAR": {"style": "B00060"}}),
            ]
        )

    def test_values_are_upper_cased(self, table):
        assert table.find_by_sku("PC54").aliases == ["54", "CORE COTTON TEE"]
        assert table.find_supplier_style("SANMAR", "pc54").canonical_sku == "PC54"

    def test_lookups(self, table):
        assert table.find_by_alias("g500").canonical_sku == "5000"
        assert table.find_by_alias("5000").canonical_sku == "5000"
        assert table.find_supplier_style("SSACTIVEWEAR", "b00060").canonical_sku == "5000"
        assert table.find_supplier_style("SSACTIVEWEAR", "PC54") is None
        assert len(table) == 2

    def test_resolve_search_term(self, table):
        exact = table.resolve_search_term("core cotton tee")
        assert exact.exact_match.canonical_sku == "PC54"

        partial = table.resolve_search_term("COTTON")
        assert partial.exact_match is None
        assert [r.canonical_sku for r in partial.candidates] == ["PC54"]

        assert table.resolve_search_term("  ").candidates == []

    def test_supplier_entries_without_style_ignored(self):
        table = CanonicalMappingTable.from_records([record("A1", suppliers={"SANMAR": {"style": ""}})])
        assert table.find_by_sku("A1").suppliers == {}

    def test_duplicate_sku_is_fatal(self):
        with pytest.raises(CanonicalMappingError) as excinfo:
            CanonicalMappingTable.from_records([record("PC54"), record("pc54")])
        assert excinfo.value.context["key"] == "PC54"
        assert excinfo.value.severity == ErrorSeverity.CRITICAL
        assert excinfo.value.recoverable is False

    def test_alias_claimed_twice_is_fatal(self):
        with pytest.raises(CanonicalMappingError) as excinfo:
            CanonicalMappingTable.from_records([record("PC54", ["TEE"]), record("PC61", ["tee"])])
        assert excinfo.value.context == {"canonical_sku": "PC61", "conflict_with": "PC54", "key": "TEE"}

    def test_alias_equal_to_other_sku_is_fatal(self):
        with pytest.raises(CanonicalMappingError):
            CanonicalMappingTable.from_records([record("PC54"), record("PC61", ["PC54"])])

    def test_supplier_style_claimed_twice_is_fatal(self):
        with pytest.raises(CanonicalMappingError) as excinfo:
            CanonicalMappingTable.from_records(
                [
                    record("PC54", suppliers={"SANMAR": {"style": "PC54"}}),
                    record("PC54X", suppliers={"SANMAR": {"style": "pc54"}}),
                ]
            )
        assert excinfo.value.context["key"] == "SANMAR:PC54"

    def test_duplicate_alias_within_record_is_deduplicated(self):
        table = CanonicalMappingTable.from_records([record("PC54", ["TEE", "tee", "PC54"])])
        assert table.find_by_sku("PC54").aliases == ["TEE", "PC54"]


@pytest.mark.unit
class TestLoadCanonicalMapping:
    def test_missing_file_means_no_mapping(self, tmp_path):
        assert load_canonical_mapping(tmp_path / "missing.json") is None

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "mapping.json"
        path.write_text(json.dumps([record("PC54", ["54"])]), encoding="utf-8")
        table = load_canonical_mapping(path)
        assert table.find_by_alias("54").canonical_sku == "PC54"

    def test_invalid_json_is_fatal(self, tmp_path):
        path = tmp_path / "mapping.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CanonicalMappingError):
            load_canonical_mapping(path)

    def test_non_array_is_fatal(self, tmp_path):
        path = tmp_path / "mapping.json"
        path.write_text(json.dumps({"canonicalSku": "PC54"}), encoding="utf-8")
        with pytest.raises(CanonicalMappingError):
            load_canonical_mapping(path)

    def test_shipped_mapping_is_valid(self):
        table = CanonicalMappingTable.load(Path(__file__).resolve().parents[2] / "data" / "canonical_mapping.json")
        assert table.find_supplier_style("SSACTIVEWEAR", "B00060").canonical_sku == "5000"
