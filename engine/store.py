"""
In-memory spec item collection with secondary indices.

Items are keyed by id; every item gets a monotonic creation sequence when it
first enters the store, which is what option numbering is based on.  The
requirement and parent indices are updated per item on every link or
grouping mutation (call reindex()), so reads never scan the whole collection.
"""
import logging
from typing import Iterator, Optional

from models.spec_item import SpecItem
from .errors import ItemNotFoundError

logger = logging.getLogger(__name__)


class ItemStore:

    def __init__(self) -> None:
        self._items: dict[str, SpecItem] = {}
        self._seq: dict[str, int] = {}
        self._next_seq = 0

        # requirement id -> item ids (any link, legacy or many-to-many)
        self._by_requirement: dict[str, list[str]] = {}
        # parent item id -> grouped child item ids
        self._by_parent: dict[str, list[str]] = {}

        # What each item is currently indexed under, for incremental removal
        self._req_keys: dict[str, list[str]] = {}
        self._parent_key: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def add(self, item: SpecItem) -> None:
        if item.id in self._items:
            raise ValueError(f"Item {item.id} is already in the store")
        self._items[item.id] = item
        self._seq[item.id] = self._next_seq
        self._next_seq += 1
        self.reindex(item)

    def replace(self, item: SpecItem) -> None:
        """Swap in a fresh copy (e.g. after a re-fetch), keeping its creation sequence."""
        if item.id not in self._items:
            self.add(item)
            return
        self._items[item.id] = item
        self.reindex(item)

    def remove(self, item_id: str) -> SpecItem:
        item = self.get(item_id)
        self._unindex(item_id)
        del self._items[item_id]
        del self._seq[item_id]
        return item

    def get(self, item_id: str) -> SpecItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFoundError(item_id) from None

    def find(self, item_id: str) -> Optional[SpecItem]:
        return self._items.get(item_id)

    def creation_index(self, item_id: str) -> int:
        return self._seq[item_id]

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[SpecItem]:
        """Iterate in creation order."""
        return iter(sorted(self._items.values(), key=lambda i: self._seq[i.id]))

    def in_display_order(self) -> list[SpecItem]:
        """Items by persisted sort_order, ties broken by creation order."""
        return sorted(self._items.values(), key=lambda i: (i.sort_order, self._seq[i.id]))

    # ------------------------------------------------------------------
    # Indices
    # ------------------------------------------------------------------

    def reindex(self, item: SpecItem) -> None:
        """Re-derive this one item's index entries from its current fields."""
        self._unindex(item.id)

        req_ids = item.requirement_ids
        for req_id in req_ids:
            self._by_requirement.setdefault(req_id, []).append(item.id)
        self._req_keys[item.id] = req_ids

        child = item.group_child
        if child is not None:
            self._by_parent.setdefault(child.parent_id, []).append(item.id)
            self._parent_key[item.id] = child.parent_id

    def _unindex(self, item_id: str) -> None:
        for req_id in self._req_keys.pop(item_id, []):
            bucket = self._by_requirement.get(req_id, [])
            if item_id in bucket:
                bucket.remove(item_id)
            if not bucket:
                self._by_requirement.pop(req_id, None)

        parent_id = self._parent_key.pop(item_id, None)
        if parent_id is not None:
            bucket = self._by_parent.get(parent_id, [])
            if item_id in bucket:
                bucket.remove(item_id)
            if not bucket:
                self._by_parent.pop(parent_id, None)

    def item_ids_for_requirement(self, requirement_id: str) -> list[str]:
        """Ids of items linked to a requirement, in creation order."""
        ids = self._by_requirement.get(requirement_id, [])
        return sorted(ids, key=self._seq.__getitem__)

    def child_ids(self, parent_id: str) -> list[str]:
        ids = self._by_parent.get(parent_id, [])
        return sorted(ids, key=self._seq.__getitem__)

    def requirement_ids(self) -> list[str]:
        return list(self._by_requirement)
