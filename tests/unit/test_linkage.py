"""
Unit tests for requirement linkage, option numbering and grouping.
"""
import pytest

from engine.errors import ArchivedItemError, GroupingError
from engine.linkage import LinkageGraph
from engine.store import ItemStore
from models.requirement import Requirement
from models.spec_item import FlaggedAnnotation, RequirementLink
from models.status import SpecStatus


@pytest.fixture
def store():
    return ItemStore()


@pytest.fixture
def graph(store):
    return LinkageGraph(store)


@pytest.mark.unit
class TestLinks:
    """Tests for linking items to requirements."""

    def test_linked_requirement_prefers_link_records(self, make_item):
        item = make_item(
            ffe_requirement_id="REQ-LEGACY",
            links=[RequirementLink(link_id="L1", requirement_id="REQ-SOFA")],
        )
        assert LinkageGraph.linked_requirement(item) == "REQ-SOFA"

    def test_linked_requirement_falls_back_to_legacy(self, make_item):
        item = make_item(ffe_requirement_id="REQ-LEGACY")
        assert LinkageGraph.linked_requirement(item) == "REQ-LEGACY"
        assert LinkageGraph.linked_requirement(make_item()) is None

    def test_first_link_is_not_an_option(self, store, graph, make_item):
        item = make_item()
        store.add(item)
        result = graph.link_to_requirement(item, "REQ-SOFA")

        assert result.option_number == 1
        assert result.is_option is False
        assert graph.has_linked_specs("REQ-SOFA") is True
        assert graph.linked_specs_count("REQ-SOFA") == 1

    def test_second_link_is_advised_as_option_two(self, store, graph, make_item):
        a, b = make_item(), make_item()
        store.add(a)
        store.add(b)
        graph.link_to_requirement(a, "REQ-SOFA")
        result = graph.link_to_requirement(b, "REQ-SOFA")

        assert result.option_number == 2
        assert result.is_option is True

    def test_relinking_same_requirement_is_idempotent(self, store, graph, make_item):
        item = make_item()
        store.add(item)
        first = graph.link_to_requirement(item, "REQ-SOFA")
        second = graph.link_to_requirement(item, "REQ-SOFA")

        assert second.already_linked is True
        assert second.link == first.link
        assert len(item.links) == 1
        assert graph.linked_specs_count("REQ-SOFA") == 1

    def test_cannot_link_archived_item(self, store, graph, make_item):
        item = make_item(status=SpecStatus.ARCHIVED)
        store.add(item)
        with pytest.raises(ArchivedItemError):
            graph.link_to_requirement(item, "REQ-SOFA")
        assert item.links == []

    def test_counts_follow_unlink(self, store, graph, make_item):
        item = make_item(ffe_requirement_id="REQ-SOFA")
        store.add(item)
        assert graph.linked_specs_count("REQ-SOFA") == 1

        patch = graph.unlink(item, "REQ-SOFA")

        assert patch == {"links": [], "ffe_requirement_id": None}
        assert graph.has_linked_specs("REQ-SOFA") is False
        assert graph.linked_specs_count("REQ-SOFA") == 0

    def test_many_to_many_counts(self, store, graph, make_item):
        item = make_item()
        store.add(item)
        graph.link_to_requirement(item, "REQ-SOFA")
        graph.link_to_requirement(item, "REQ-CHAIR")

        assert graph.linked_specs_count("REQ-SOFA") == 1
        assert graph.linked_specs_count("REQ-CHAIR") == 1
        assert LinkageGraph.linked_requirement(item) == "REQ-SOFA"


@pytest.mark.unit
class TestOptions:
    """Tests for option groups and numbering."""

    def test_option_numbers_follow_creation_order(self, store, graph, make_item):
        a = make_item(name="Sofa A", ffe_requirement_id="REQ-SOFA")
        b = make_item(name="Sofa B", ffe_requirement_id="REQ-SOFA")
        store.add(a)
        store.add(b)

        assert graph.option_number(a) == 1
        assert graph.option_number(b) == 2

    def test_reordering_display_does_not_renumber(self, store, graph, make_item):
        a = make_item(ffe_requirement_id="REQ-SOFA", sort_order=0)
        b = make_item(ffe_requirement_id="REQ-SOFA", sort_order=1)
        store.add(a)
        store.add(b)

        a.sort_order, b.sort_order = 5, 0
        assert [i.id for i in store.in_display_order()] == [b.id, a.id]
        assert graph.option_number(a) == 1
        assert graph.option_number(b) == 2

    def test_option_groups_only_include_multi_member_partitions(self, store, graph, make_item):
        a = make_item(ffe_requirement_id="REQ-SOFA")
        b = make_item(ffe_requirement_id="REQ-SOFA")
        c = make_item(ffe_requirement_id="REQ-CHAIR")
        for item in (a, b, c):
            store.add(item)

        groups = graph.option_groups()

        assert list(groups) == ["REQ-SOFA"]
        assert [i.id for i in groups["REQ-SOFA"]] == [a.id, b.id]
        assert graph.is_option(a) is True
        assert graph.is_option(c) is False

    def test_partition_uses_primary_requirement(self, store, graph, make_item):
        """A secondary link counts towards a requirement but not its option group."""
        a = make_item(ffe_requirement_id="REQ-SOFA")
        b = make_item(links=[
            RequirementLink(link_id="L1", requirement_id="REQ-CHAIR"),
            RequirementLink(link_id="L2", requirement_id="REQ-SOFA"),
        ])
        store.add(a)
        store.add(b)

        assert graph.linked_specs_count("REQ-SOFA") == 2
        assert "REQ-SOFA" not in graph.option_groups()
        assert graph.option_number(b) == 1

    def test_unlinked_item_has_no_option_number(self, store, graph, make_item):
        item = make_item()
        store.add(item)
        assert graph.option_number(item) is None


@pytest.mark.unit
class TestGrouping:
    """Tests for parent/child grouping."""

    def test_group_sets_both_annotations(self, store, graph, make_item):
        parent = make_item(name="Sofa")
        child = make_item(name="Cushions")
        store.add(parent)
        store.add(child)

        patches = graph.group(child, parent)

        assert set(patches) == {parent.id, child.id}
        assert child.is_grouped_item is True
        assert child.group_child.parent_id == parent.id
        assert child.group_child.parent_name == "Sofa"
        assert parent.has_children is True
        assert parent.group_parent.child_names == ["Cushions"]
        assert [c.id for c in graph.children_of(parent)] == [child.id]

    def test_duplicate_child_name_rejected(self, store, graph, make_item):
        parent = make_item(name="Sofa")
        first = make_item(name="Cushions")
        second = make_item(name="cushions")
        for item in (parent, first, second):
            store.add(item)
        graph.group(first, parent)

        with pytest.raises(GroupingError):
            graph.group(second, parent)
        assert second.group_child is None

    def test_cannot_group_under_itself(self, store, graph, make_item):
        item = make_item()
        store.add(item)
        with pytest.raises(GroupingError):
            graph.group(item, item)

    def test_long_child_name_rejected(self, store, graph, make_item):
        parent = make_item()
        child = make_item(name="x" * 201)
        store.add(parent)
        store.add(child)
        with pytest.raises(GroupingError):
            graph.group(child, parent)

    def test_ungroup_child_keeps_links_and_flag(self, store, graph, make_item):
        parent = make_item(name="Sofa")
        child = make_item(
            name="Cushions",
            ffe_requirement_id="REQ-SOFA",
            annotations=[FlaggedAnnotation(color="red", note="check fabric")],
        )
        store.add(parent)
        store.add(child)
        graph.group(child, parent)

        patches = graph.ungroup(child)

        assert set(patches) == {parent.id, child.id}
        assert child.group_child is None
        assert child.flag.color == "red"
        assert child.ffe_requirement_id == "REQ-SOFA"
        assert graph.linked_specs_count("REQ-SOFA") == 1
        assert parent.group_parent is None
        assert graph.children_of(parent) == []

    def test_ungroup_parent_releases_children(self, store, graph, make_item):
        parent = make_item(name="Vanity")
        c1, c2 = make_item(name="Faucet"), make_item(name="Mirror")
        for item in (parent, c1, c2):
            store.add(item)
        graph.group(c1, parent)
        graph.group(c2, parent)

        patches = graph.ungroup(parent)

        assert set(patches) == {parent.id, c1.id, c2.id}
        assert parent.group_parent is None
        assert c1.group_child is None and c2.group_child is None

    def test_ungroup_plain_item_is_noop(self, store, graph, make_item):
        item = make_item()
        store.add(item)
        assert graph.ungroup(item) == {}

    def test_declared_children_not_yet_covered(self, store, graph, make_item):
        requirement = Requirement(id="REQ-SOFA", name="Sofa", child_names=["Cushions", "Throw"])
        parent = make_item(name="Sofa", ffe_requirement_id="REQ-SOFA")
        child = make_item(name="Cushions")
        store.add(parent)
        store.add(child)
        graph.group(child, parent)

        assert graph.declared_children(requirement) == ["Throw"]

    def test_relink_reports_position_for_requested_requirement(self, store, graph, make_item):
        """Option number of an existing link follows the requirement asked for."""
        first = make_item(ffe_requirement_id="REQ-SOFA")
        item = make_item(links=[
            RequirementLink(link_id="L1", requirement_id="REQ-CHAIR"),
            RequirementLink(link_id="L2", requirement_id="REQ-SOFA"),
        ])
        store.add(first)
        store.add(item)

        result = graph.link_to_requirement(item, "REQ-SOFA")

        assert result.already_linked is True
        assert result.option_number == 2
        assert result.is_option is True


@pytest.mark.unit
class TestRename:
    """Tests for carrying renames through grouping."""

    @pytest.fixture
    def grouped(self, store, graph, make_item):
        parent = make_item(name="Sofa")
        child = make_item(name="Cushions")
        other = make_item(name="Throw")
        for item in (parent, child, other):
            store.add(item)
        graph.group(child, parent)
        graph.group(other, parent)
        return parent, child, other

    def test_child_rename_updates_parent_list(self, graph, grouped):
        parent, child, _ = grouped

        patches = graph.rename(child, "Bolsters")
        child.name = "Bolsters"

        assert set(patches) == {parent.id}
        assert parent.group_parent.child_names == ["Bolsters", "Throw"]

    def test_ungroup_after_rename_leaves_no_stale_name(self, graph, grouped):
        parent, child, _ = grouped
        graph.rename(child, "Bolsters")
        child.name = "Bolsters"

        graph.ungroup(child)

        assert parent.group_parent.child_names == ["Throw"]

    def test_child_rename_to_sibling_name_rejected(self, graph, grouped):
        parent, child, _ = grouped
        with pytest.raises(GroupingError):
            graph.rename(child, "throw")
        assert parent.group_parent.child_names == ["Cushions", "Throw"]

    def test_parent_rename_updates_children(self, graph, grouped):
        parent, child, other = grouped

        patches = graph.rename(parent, "Sectional")

        assert set(patches) == {child.id, other.id}
        assert child.group_child.parent_name == "Sectional"
        assert other.group_child.parent_name == "Sectional"
        assert [c.id for c in graph.children_of(parent)] == [child.id, other.id]

    def test_ungrouped_item_rename_changes_nothing(self, store, graph, make_item):
        item = make_item()
        store.add(item)
        assert graph.rename(item, "Anything") == {}
