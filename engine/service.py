"""
Caller-facing command surface for spec items.

SpecItemService ties the store, workflow, linkage graph, pricing and
aggregation together.  Every command:

  1. validates (raising before anything changes),
  2. applies the patch to the in-memory item and reindexes it,
  3. makes one persistence call per changed item.

If step 3 fails the in-memory change stays in place but the item id is
recorded in `unconfirmed`; callers should refresh(item_id) to re-fetch the
stored state instead of trusting the local copy.  Writes are last-write-wins.
"""
import logging
import sqlite3
import uuid
from typing import Any, Callable, Iterable, Optional, Union

from config import Config
from models.requirement import RoomSection
from models.result import AggregateFilter, Aggregates, LinkResult, StatusSyncResult
from models.spec_item import SpecItem
from models.status import SpecStatus
from .aggregation import AggregationEngine
from .database import Database
from .errors import ArchivedItemError, DuplicateDocCodeError, PersistenceError, SpecEngineError
from .linkage import LinkageGraph
from .pricing import PricingEngine
from .requirement_catalog import RequirementCatalog
from .status_workflow import StatusWorkflow
from .store import ItemStore
from .supplier_directory import SupplierDirectory

logger = logging.getLogger(__name__)

# Plain descriptive fields that may be edited directly; prices, status,
# links, grouping and doc codes go through their own commands.
DETAIL_FIELDS = {
    "name", "sku", "model", "brand", "room_id", "section_id",
    "quantity", "unit_type", "supplier_id", "components",
}


class SpecItemService:

    def __init__(
        self,
        config: Optional[Config] = None,
        db: Optional[Database] = None,
        suppliers: Optional[SupplierDirectory] = None,
        catalog: Optional[RequirementCatalog] = None,
        actor: str = "system",
    ):
        self.config = config or Config()
        if db is None:
            self.config.ensure_output_dir()
            db = Database(self.config.db_path)
        self.db = db
        self.suppliers = suppliers if suppliers is not None else SupplierDirectory.from_csv(
            self.config.suppliers_csv, self.config.supplier_fuzzy_threshold
        )
        self.catalog = catalog if catalog is not None else RequirementCatalog.from_json(
            self.config.requirements_json
        )
        self.actor = actor

        self.store = ItemStore()
        self.workflow = StatusWorkflow(self.config)
        self.graph = LinkageGraph(self.store)
        self.pricing = PricingEngine(self.config, self.suppliers)
        self.aggregation = AggregationEngine(self.config, self.pricing)

        self.unconfirmed: set[str] = set()

    # ------------------------------------------------------------------
    # Loading / persistence plumbing
    # ------------------------------------------------------------------

    def load_project(self, project_id: str) -> int:
        """Replace the in-memory collection with every stored item of a project."""
        self.store = ItemStore()
        self.graph.store = self.store
        for item in self.db.list_items(project_id):
            self.workflow.reconcile_loaded(item)
            self.store.add(item)
        self.unconfirmed.clear()
        logger.info("Loaded %d spec item(s) for project %s", len(self.store), project_id)
        return len(self.store)

    def _persist(self, item_id: str, call: Callable[[], Any]) -> None:
        try:
            found = call()
        except sqlite3.Error as exc:
            self.unconfirmed.add(item_id)
            logger.warning("Write for %s not confirmed: %s", item_id, exc)
            raise PersistenceError(f"Failed to persist item {item_id}: {exc}", item_id) from exc
        if found is False:
            self.unconfirmed.add(item_id)
            logger.warning("Write for %s not confirmed: item missing from store", item_id)
            raise PersistenceError(f"Item {item_id} no longer exists in the store", item_id)
        self.unconfirmed.discard(item_id)

    def _write(self, item_id: str, patch: dict) -> None:
        if patch:
            self._persist(item_id, lambda: self.db.update_item(item_id, patch, actor=self.actor))

    def refresh(self, item_id: str) -> Optional[SpecItem]:
        """Re-fetch one item from the store, replacing the local copy."""
        fresh = self.db.get_item(item_id)
        if fresh is None:
            if item_id in self.store:
                self.store.remove(item_id)
        else:
            self.workflow.reconcile_loaded(fresh)
            self.store.replace(fresh)
        self.unconfirmed.discard(item_id)
        return fresh

    def get(self, item_id: str) -> SpecItem:
        return self.store.get(item_id)

    def items(self) -> list[SpecItem]:
        return list(self.store)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_item(
        self,
        project_id: str,
        name: str,
        requirement_id: Optional[str] = None,
        **fields: Any,
    ) -> tuple[SpecItem, Optional[LinkResult]]:
        """Create an item, optionally linked to one requirement."""
        item = SpecItem(id=fields.pop("id", None) or uuid.uuid4().hex,
                        project_id=project_id, name=name, **fields)
        self.workflow.check_new(item)
        if requirement_id and item.status == SpecStatus.ARCHIVED:
            raise ArchivedItemError(item.id)
        if item.doc_code:
            item.doc_code = item.doc_code.strip() or None
            self._check_doc_code(item, item.doc_code)

        self.store.add(item)
        link_result = None
        if requirement_id:
            try:
                link_result = self.graph.link_to_requirement(item, requirement_id)
            except SpecEngineError:
                self.store.remove(item.id)
                raise
        self._persist(item.id, lambda: self.db.create_item(item, actor=self.actor))
        return item, link_result

    def delete_item(self, item_id: str) -> None:
        """Delete an item, releasing any grouping it takes part in."""
        item = self.store.get(item_id)
        for changed_id, patch in self.graph.ungroup(item).items():
            if changed_id != item_id:
                self._write_grouping(changed_id, patch)
        self.store.remove(item_id)
        self._persist(item_id, lambda: self.db.delete_item(item_id, actor=self.actor))

    def update_details(self, item_id: str, **fields: Any) -> dict:
        unknown = set(fields) - DETAIL_FIELDS
        if unknown:
            raise ValueError(f"Invalid field(s) {sorted(unknown)}. Must be among {sorted(DETAIL_FIELDS)}")
        item = self.store.get(item_id)
        updated = SpecItem.model_validate({**item.model_dump(), **fields})
        patch = {k: getattr(updated, k) for k in fields}
        related: dict[str, dict] = {}
        if "name" in patch and patch["name"] != item.name:
            related = self.graph.rename(item, patch["name"])
        for key, value in patch.items():
            setattr(item, key, value)
        self._write(item_id, patch)
        for changed_id, grouping_patch in related.items():
            self._write(changed_id, grouping_patch)
        return patch

    def reorder(self, ordered_ids: Iterable[str]) -> None:
        """Persist a new display order.  Option numbers are unaffected."""
        for position, item_id in enumerate(ordered_ids):
            item = self.store.get(item_id)
            if item.sort_order != position:
                item.sort_order = position
                self._write(item_id, {"sort_order": position})

    # ------------------------------------------------------------------
    # Status workflow
    # ------------------------------------------------------------------

    def set_status(self, item_id: str, status: Union[SpecStatus, str]) -> dict:
        item = self.store.get(item_id)
        patch = self.workflow.set_status(item, status)
        if patch.get("status") == SpecStatus.ARCHIVED:
            self.store.reindex(item)
            self._persist(item_id, lambda: self.db.archive_item(item_id, actor=self.actor))
        else:
            self._write(item_id, patch)
        return patch

    def set_approval(self, item_id: str, approved: bool) -> dict:
        item = self.store.get(item_id)
        patch = self.workflow.set_approval(item, approved)
        self._write(item_id, patch)
        return patch

    def archive(self, item_id: str) -> dict:
        item = self.store.get(item_id)
        patch = self.workflow.archive(item)
        self.store.reindex(item)
        self._persist(item_id, lambda: self.db.archive_item(item_id, actor=self.actor))
        return patch

    def sync_status(self, item_id: str, trigger: str) -> StatusSyncResult:
        item = self.store.get(item_id)
        result, patch = self.workflow.sync_from_event(item, trigger)
        self._write(item_id, patch)
        return result

    def sync_statuses(self, item_ids: Iterable[str], trigger: str) -> list[StatusSyncResult]:
        return [self.sync_status(item_id, trigger) for item_id in item_ids]

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def set_price(self, item_id: str, field: str, value: Optional[float]) -> dict:
        item = self.store.get(item_id)
        patch = self.pricing.set_price(item, field, value)
        self._write(item_id, patch)
        return patch

    def set_currency(self, item_id: str, field: str, code: str) -> dict:
        item = self.store.get(item_id)
        patch = self.pricing.set_currency(item, field, code)
        self._write(item_id, patch)
        return patch

    # ------------------------------------------------------------------
    # Doc codes
    # ------------------------------------------------------------------

    def _check_doc_code(self, item: SpecItem, doc_code: str) -> None:
        wanted = doc_code.lower()
        for other in self.store:
            if (
                other.id != item.id
                and other.project_id == item.project_id
                and other.status != SpecStatus.ARCHIVED
                and other.doc_code
                and other.doc_code.strip().lower() == wanted
            ):
                raise DuplicateDocCodeError(doc_code, other.id)

    def set_doc_code(self, item_id: str, doc_code: Optional[str]) -> dict:
        item = self.store.get(item_id)
        value = (doc_code or "").strip() or None
        if value:
            self._check_doc_code(item, value)
        item.doc_code = value
        patch = {"doc_code": value}
        self._write(item_id, patch)
        return patch

    # ------------------------------------------------------------------
    # Linkage and grouping
    # ------------------------------------------------------------------

    def link_to_requirement(self, item_id: str, requirement_id: str) -> LinkResult:
        item = self.store.get(item_id)
        if len(self.catalog) and self.catalog.get(requirement_id) is None:
            logger.warning("Linking %s to requirement %s not in the catalog", item_id, requirement_id)
        result = self.graph.link_to_requirement(item, requirement_id)
        if not result.already_linked:
            self._write(item_id, {"links": item.links})
        return result

    def unlink(self, item_id: str, requirement_id: str) -> dict:
        item = self.store.get(item_id)
        patch = self.graph.unlink(item, requirement_id)
        self._write(item_id, patch)
        return patch

    def option_number(self, item_id: str) -> Optional[int]:
        return self.graph.option_number(self.store.get(item_id))

    def option_groups(self) -> dict[str, list[SpecItem]]:
        return self.graph.option_groups()

    def group(self, child_id: str, parent_id: str) -> None:
        patches = self.graph.group(self.store.get(child_id), self.store.get(parent_id))
        for changed_id, patch in patches.items():
            self._write(changed_id, patch)

    def _write_grouping(self, item_id: str, patch: dict) -> None:
        item = self.store.get(item_id)
        if item.group_parent is None and item.group_child is None:
            self._persist(item_id, lambda: self.db.ungroup_item(item_id, actor=self.actor))
        else:
            self._write(item_id, patch)

    def ungroup(self, item_id: str) -> list[str]:
        """Clear grouping for an item (and its children or parent list). Returns changed ids."""
        patches = self.graph.ungroup(self.store.get(item_id))
        for changed_id, patch in patches.items():
            self._write_grouping(changed_id, patch)
        return list(patches)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def compute_aggregates(self, flt: Optional[AggregateFilter] = None) -> Aggregates:
        return self.aggregation.compute(self.store, flt)

    def requirement_tree(self, room_id: str) -> list[RoomSection]:
        return self.catalog.room_tree(room_id, self.graph)
