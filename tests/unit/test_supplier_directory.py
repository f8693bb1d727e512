"""
Unit tests for the supplier directory and requirement catalog.
"""
import pytest

from engine.linkage import LinkageGraph
from engine.requirement_catalog import RequirementCatalog
from engine.store import ItemStore
from engine.supplier_directory import SupplierDirectory
from models.supplier import Supplier


@pytest.mark.unit
class TestSupplierDirectory:
    """Tests for supplier loading and lookup."""

    def test_load_from_csv(self, suppliers):
        assert len(suppliers.suppliers) == 3
        brooklyn = suppliers.get("SUP-002")
        assert brooklyn.currency == "USD"
        assert brooklyn.aliases == ["BK Lighting", "Brooklyn Lights"]

    def test_blank_currency_defaults_to_cad(self, suppliers):
        assert suppliers.currency_for("SUP-003") == "CAD"

    def test_unknown_supplier(self, suppliers):
        assert suppliers.get("SUP-404") is None
        assert suppliers.currency_for(None) is None

    def test_missing_csv_gives_empty_directory(self, temp_dir):
        directory = SupplierDirectory.from_csv(temp_dir / "nope.csv")
        assert directory.suppliers == []

    def test_exact_alias_match(self, suppliers):
        assert suppliers.match_name("bk lighting").id == "SUP-002"

    def test_fuzzy_match(self, suppliers):
        assert suppliers.match_name("Maple Furniture Company").id == "SUP-001"

    def test_no_match_below_threshold(self, suppliers):
        assert suppliers.match_name("Completely Different Vendor") is None
        assert suppliers.match_name("") is None

    def test_add(self):
        directory = SupplierDirectory()
        directory.add(Supplier(id="SUP-9", name="Nordic Rugs", currency="EUR"))
        assert directory.currency_for("SUP-9") == "EUR"


@pytest.mark.unit
class TestRequirementCatalog:
    """Tests for requirement loading and the room tree."""

    def test_load_from_json(self, catalog):
        assert len(catalog) == 4
        assert catalog.get("REQ-SOFA").child_names == ["Cushions"]
        assert catalog.get(None) is None

    def test_missing_file_gives_empty_catalog(self, temp_dir):
        assert len(RequirementCatalog.from_json(temp_dir / "missing.json")) == 0

    def test_room_tree_groups_by_section(self, catalog, make_item):
        store = ItemStore()
        graph = LinkageGraph(store)
        for req_id in ("REQ-SOFA", "REQ-SOFA", "REQ-PENDANT"):
            store.add(make_item(ffe_requirement_id=req_id))

        tree = catalog.room_tree("ROOM-LIV", graph)

        assert [s.section_name for s in tree] == ["Seating", "Lighting"]
        seating = {r.requirement.id: r for r in tree[0].requirements}
        assert seating["REQ-SOFA"].linked_specs_count == 2
        assert seating["REQ-SOFA"].has_linked_specs is True
        assert seating["REQ-CHAIR"].has_linked_specs is False
        assert tree[1].requirements[0].linked_specs_count == 1

    def test_room_tree_for_unknown_room(self, catalog):
        assert catalog.room_tree("ROOM-NONE", LinkageGraph(ItemStore())) == []
