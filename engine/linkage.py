"""
Spec item <-> FFE requirement linkage, option groups and parent/child grouping.

Links
  An item may carry many RequirementLink records plus the legacy single
  ffe_requirement_id.  Its *primary* requirement is the first link record,
  falling back to the legacy field.

Options
  Items sharing a primary requirement are alternatives ("options").  Option
  numbers follow creation order in the store, so changing sort_order (the
  display order) never renumbers them.

Grouping
  Independent of options: an item may be a group parent (carrying the
  display names of its sub-items) or a grouped child pointing at its parent.
  ungroup() removes grouping annotations only and never touches links.

All counts are read from the store's requirement index, never stored.
"""
import logging
import uuid
from typing import Optional

from models.requirement import Requirement
from models.result import LinkResult
from models.spec_item import (
    GroupChildAnnotation,
    GroupParentAnnotation,
    RequirementLink,
    SpecItem,
)
from models.status import SpecStatus
from .errors import ArchivedItemError, GroupingError
from .store import ItemStore

logger = logging.getLogger(__name__)

MAX_CHILD_NAME_LENGTH = 200


class LinkageGraph:

    def __init__(self, store: ItemStore):
        self.store = store

    # ------------------------------------------------------------------
    # Requirement links
    # ------------------------------------------------------------------

    @staticmethod
    def linked_requirement(item: SpecItem) -> Optional[str]:
        if item.links:
            return item.links[0].requirement_id
        return item.ffe_requirement_id

    def linked_items(self, requirement_id: str) -> list[SpecItem]:
        return [self.store.get(i) for i in self.store.item_ids_for_requirement(requirement_id)]

    def linked_specs_count(self, requirement_id: str) -> int:
        return len(self.store.item_ids_for_requirement(requirement_id))

    def has_linked_specs(self, requirement_id: str) -> bool:
        return self.linked_specs_count(requirement_id) > 0

    def link_to_requirement(self, item: SpecItem, requirement_id: str) -> LinkResult:
        """
        Add a many-to-many link.  The returned option number is advisory:
        N items already linked makes this item option N+1.
        """
        if item.status == SpecStatus.ARCHIVED:
            raise ArchivedItemError(item.id)

        existing = next((l for l in item.links if l.requirement_id == requirement_id), None)
        if existing is not None:
            linked = self.store.item_ids_for_requirement(requirement_id)
            return LinkResult(
                item_id=item.id,
                requirement_id=requirement_id,
                link=existing,
                option_number=linked.index(item.id) + 1 if item.id in linked else 1,
                is_option=len(linked) > 1,
                already_linked=True,
            )

        already = [i for i in self.store.item_ids_for_requirement(requirement_id) if i != item.id]
        link = RequirementLink(link_id=uuid.uuid4().hex, requirement_id=requirement_id)
        item.links = item.links + [link]
        if item.id in self.store:
            self.store.reindex(item)

        option_number = len(already) + 1
        logger.info(
            "Linked %s -> requirement %s%s",
            item.id, requirement_id,
            f" as option #{option_number}" if already else "",
        )
        return LinkResult(
            item_id=item.id,
            requirement_id=requirement_id,
            link=link,
            option_number=option_number,
            is_option=bool(already),
        )

    def unlink(self, item: SpecItem, requirement_id: str) -> dict:
        """Remove every link (and a matching legacy link) to one requirement."""
        item.links = [l for l in item.links if l.requirement_id != requirement_id]
        patch: dict = {"links": item.links}
        if item.ffe_requirement_id == requirement_id:
            item.ffe_requirement_id = None
            patch["ffe_requirement_id"] = None
        if item.id in self.store:
            self.store.reindex(item)
        logger.info("Unlinked %s from requirement %s", item.id, requirement_id)
        return patch

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def _partition(self, requirement_id: str) -> list[SpecItem]:
        """Items whose *primary* requirement is requirement_id, in creation order."""
        return [
            item for item in self.linked_items(requirement_id)
            if self.linked_requirement(item) == requirement_id
        ]

    def option_groups(self) -> dict[str, list[SpecItem]]:
        """Requirement id -> its items, for requirements with more than one item."""
        groups: dict[str, list[SpecItem]] = {}
        for req_id in self.store.requirement_ids():
            members = self._partition(req_id)
            if len(members) > 1:
                groups[req_id] = members
        return groups

    def option_number(self, item: SpecItem) -> Optional[int]:
        """1-based position of the item within its option group, or None if not linked."""
        req_id = self.linked_requirement(item)
        if req_id is None:
            return None
        members = self._partition(req_id)
        for index, member in enumerate(members, start=1):
            if member.id == item.id:
                return index
        return None

    def is_option(self, item: SpecItem) -> bool:
        req_id = self.linked_requirement(item)
        return req_id is not None and len(self._partition(req_id)) > 1

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def children_of(self, parent: SpecItem) -> list[SpecItem]:
        return [self.store.get(i) for i in self.store.child_ids(parent.id)]

    def group(self, child: SpecItem, parent: SpecItem) -> dict[str, dict]:
        """
        Make child a grouped sub-item of parent.

        Returns {item_id: patch} for both items.
        """
        if child.id == parent.id:
            raise GroupingError("An item cannot be grouped under itself")
        if parent.group_child is not None:
            raise GroupingError(f"Item {parent.id} is itself a grouped item")
        if child.group_parent is not None and child.group_parent.child_names:
            raise GroupingError(f"Item {child.id} already has grouped items of its own")

        name = child.name.strip()
        if not name:
            raise GroupingError("Grouped item name is required and must be non-empty")
        if len(name) > MAX_CHILD_NAME_LENGTH:
            raise GroupingError(
                f"Grouped item name must be {MAX_CHILD_NAME_LENGTH} characters or less"
            )

        current = parent.group_parent.child_names if parent.group_parent else []
        siblings = [c for c in self.children_of(parent) if c.id != child.id]
        if any(s.name.strip().lower() == name.lower() for s in siblings):
            raise GroupingError(f'A grouped item named "{name}" already exists under this parent')

        patches: dict[str, dict] = {}
        if child.group_child is not None and child.group_child.parent_id != parent.id:
            patches.update(self._detach_child(child))

        child.clear_annotation("group_parent")
        child.set_annotation(GroupChildAnnotation(parent_id=parent.id, parent_name=parent.name))
        names = current if name in current else current + [name]
        parent.set_annotation(GroupParentAnnotation(child_names=names))

        for item in (child, parent):
            if item.id in self.store:
                self.store.reindex(item)
        patches[child.id] = {"annotations": child.annotations}
        patches[parent.id] = {"annotations": parent.annotations}
        logger.info("Grouped %s under %s", child.id, parent.id)
        return patches

    def _detach_child(self, child: SpecItem) -> dict[str, dict]:
        """Drop child's name from its current parent's list."""
        annotation = child.group_child
        parent = self.store.find(annotation.parent_id) if annotation else None
        if parent is None or parent.group_parent is None:
            return {}
        names = [n for n in parent.group_parent.child_names if n != child.name.strip()]
        if names:
            parent.set_annotation(GroupParentAnnotation(child_names=names))
        else:
            parent.clear_annotation("group_parent")
        return {parent.id: {"annotations": parent.annotations}}

    def ungroup(self, item: SpecItem) -> dict[str, dict]:
        """
        Clear grouping annotations.  For a child, it leaves its parent's list;
        for a parent, every child is released too.  Links are not touched.

        Returns {item_id: patch} for every item that changed.
        """
        patches: dict[str, dict] = {}
        if item.group_child is not None:
            patches.update(self._detach_child(item))
            item.clear_annotation("group_child")
            patches[item.id] = {"annotations": item.annotations}
        if item.group_parent is not None:
            for child in self.children_of(item):
                child.clear_annotation("group_child")
                self.store.reindex(child)
                patches[child.id] = {"annotations": child.annotations}
            item.clear_annotation("group_parent")
            patches[item.id] = {"annotations": item.annotations}
        if item.id in self.store:
            self.store.reindex(item)
        if patches:
            logger.info("Ungrouped %s (%d item(s) changed)", item.id, len(patches))
        return patches

    def rename(self, item: SpecItem, new_name: str) -> dict[str, dict]:
        """
        Carry a rename through the grouping it takes part in, before the item
        itself is renamed.  A child's new name replaces the old one in its
        parent's list; a parent's new name is copied onto every child.

        Returns {item_id: patch} for the related items that changed.
        """
        patches: dict[str, dict] = {}
        name = new_name.strip()
        old = item.name.strip()

        annotation = item.group_child
        parent = self.store.find(annotation.parent_id) if annotation else None
        if parent is not None and parent.group_parent is not None and name != old:
            if not name:
                raise GroupingError("Grouped item name is required and must be non-empty")
            if len(name) > MAX_CHILD_NAME_LENGTH:
                raise GroupingError(
                    f"Grouped item name must be {MAX_CHILD_NAME_LENGTH} characters or less"
                )
            siblings = [c for c in self.children_of(parent) if c.id != item.id]
            if any(s.name.strip().lower() == name.lower() for s in siblings):
                raise GroupingError(f'A grouped item named "{name}" already exists under this parent')
            names = [name if n == old else n for n in parent.group_parent.child_names]
            if name not in names:
                names.append(name)
            parent.set_annotation(GroupParentAnnotation(child_names=names))
            patches[parent.id] = {"annotations": parent.annotations}

        if item.group_parent is not None:
            for child in self.children_of(item):
                child.set_annotation(GroupChildAnnotation(parent_id=item.id, parent_name=new_name))
                patches[child.id] = {"annotations": child.annotations}

        if patches:
            logger.info("Rename of %s updated grouping on %d item(s)", item.id, len(patches))
        return patches

    def declared_children(self, requirement: Requirement) -> list[str]:
        """Child names declared on the requirement that no linked item covers yet."""
        covered = {
            name.lower()
            for item in self.linked_items(requirement.id)
            if item.group_parent
            for name in item.group_parent.child_names
        }
        return [n for n in requirement.child_names if n.lower() not in covered]
