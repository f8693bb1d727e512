from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from .status import SpecStatus


class RequirementLink(BaseModel):
    """One many-to-many link between a spec item and an FFE requirement."""
    link_id: str
    requirement_id: str


class FlaggedAnnotation(BaseModel):
    kind: Literal["flagged"] = "flagged"
    color: str
    note: Optional[str] = None


class GroupParentAnnotation(BaseModel):
    """The item represents a parent line with grouped sub-items."""
    kind: Literal["group_parent"] = "group_parent"
    child_names: List[str] = Field(default_factory=list)


class GroupChildAnnotation(BaseModel):
    """The item is a grouped sub-item of another item."""
    kind: Literal["group_child"] = "group_child"
    parent_id: str
    parent_name: Optional[str] = None


Annotation = Annotated[
    Union[FlaggedAnnotation, GroupParentAnnotation, GroupChildAnnotation],
    Field(discriminator="kind"),
]


class PriceComponent(BaseModel):
    """A separately priced sub-component (e.g. fabric, finish) of a spec item."""
    name: str
    price: float
    quantity: float = 1


class SpecItem(BaseModel):
    """
    A concrete product chosen to fulfil an FFE requirement.

    Prices are stored per field with their own currency; the effective
    currency is resolved by the PricingEngine (a linked supplier wins).
    """
    id: str
    project_id: str
    name: str
    sku: Optional[str] = None
    model: Optional[str] = None
    doc_code: Optional[str] = None
    brand: Optional[str] = None

    # --- Placement ---
    room_id: Optional[str] = None
    section_id: Optional[str] = None
    sort_order: float = 0

    # --- Commercial ---
    quantity: float = 1
    unit_type: Optional[str] = None     # e.g. "ea", "lf", "sqft"
    trade_price: Optional[float] = None
    trade_price_currency: Optional[str] = None
    rrp: Optional[float] = None
    rrp_currency: Optional[str] = None
    markup_percent: Optional[float] = None
    trade_discount_percent: Optional[float] = None
    supplier_id: Optional[str] = None
    components: List[PriceComponent] = Field(default_factory=list)

    # --- Workflow ---
    status: SpecStatus = SpecStatus.SELECTED
    client_approved: bool = False
    raw_status: Optional[str] = None    # stored legacy string, if any

    # --- Linkage ---
    ffe_requirement_id: Optional[str] = None    # legacy single link
    links: List[RequirementLink] = Field(default_factory=list)

    annotations: List[Annotation] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_annotations(self) -> "SpecItem":
        kinds = [a.kind for a in self.annotations]
        if len(kinds) != len(set(kinds)):
            raise ValueError("at most one annotation of each kind is allowed")
        if "group_parent" in kinds and "group_child" in kinds:
            raise ValueError("an item cannot be both a group parent and a group child")
        return self

    # ------------------------------------------------------------------
    # Annotation accessors
    # ------------------------------------------------------------------

    def _annotation(self, kind: str):
        return next((a for a in self.annotations if a.kind == kind), None)

    @property
    def flag(self) -> Optional[FlaggedAnnotation]:
        return self._annotation("flagged")

    @property
    def group_parent(self) -> Optional[GroupParentAnnotation]:
        return self._annotation("group_parent")

    @property
    def group_child(self) -> Optional[GroupChildAnnotation]:
        return self._annotation("group_child")

    @property
    def is_grouped_item(self) -> bool:
        return self.group_child is not None

    @property
    def has_children(self) -> bool:
        parent = self.group_parent
        return bool(parent and parent.child_names)

    def set_annotation(self, annotation) -> None:
        """Replace any annotation of the same kind."""
        self.annotations = [a for a in self.annotations if a.kind != annotation.kind]
        self.annotations.append(annotation)

    def clear_annotation(self, kind: str) -> bool:
        before = len(self.annotations)
        self.annotations = [a for a in self.annotations if a.kind != kind]
        return len(self.annotations) != before

    @property
    def requirement_ids(self) -> List[str]:
        """Every requirement this item is linked to (many-to-many first, then legacy)."""
        ids = [link.requirement_id for link in self.links]
        if self.ffe_requirement_id and self.ffe_requirement_id not in ids:
            ids.append(self.ffe_requirement_id)
        return ids
