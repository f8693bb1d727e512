from pydantic import BaseModel, Field
from typing import Optional, Dict, List, Set

from .spec_item import RequirementLink
from .status import SpecStatus


class LinkResult(BaseModel):
    """
    Outcome of linking a spec item to a requirement.

    option_number / is_option are advisory: they tell the caller the item
    became another alternative for a requirement that already had specs.
    """
    item_id: str
    requirement_id: str
    link: RequirementLink
    option_number: int = 1
    is_option: bool = False
    already_linked: bool = False


class StatusSyncResult(BaseModel):
    """Result of applying a procurement event to one item's status."""
    item_id: str
    previous_status: SpecStatus
    new_status: SpecStatus
    changed: bool
    reason: Optional[str] = None


class AggregateFilter(BaseModel):
    """Selection of spec items to roll up. Unset fields do not filter."""
    room_id: Optional[str] = None
    section_id: Optional[str] = None
    statuses: Optional[Set[SpecStatus]] = None
    currency: Optional[str] = None      # matches effective trade or RRP currency
    search: Optional[str] = None        # case-insensitive substring
    include_archived: bool = False


class Aggregates(BaseModel):
    """
    Read-side financial projection of a filtered item set.
    Totals are kept per currency and never summed across currencies.
    """
    item_count: int = 0
    trade_totals: Dict[str, float] = Field(default_factory=dict)
    rrp_totals: Dict[str, float] = Field(default_factory=dict)
    primary_currency: str
    average_discount_percent: Optional[float] = None
    not_approved_count: int = 0
    missing_rrp_count: int = 0
    item_ids: List[str] = Field(default_factory=list)
