from .status import SpecStatus, REQUIRES_APPROVAL, LEGACY_STATUS_ALIASES, normalise_status
from .spec_item import (
    SpecItem, RequirementLink, PriceComponent,
    FlaggedAnnotation, GroupParentAnnotation, GroupChildAnnotation,
)
from .requirement import Requirement, RequirementSummary, RoomSection
from .supplier import Supplier
from .result import LinkResult, StatusSyncResult, AggregateFilter, Aggregates

__all__ = [
    "SpecStatus", "REQUIRES_APPROVAL", "LEGACY_STATUS_ALIASES", "normalise_status",
    "SpecItem", "RequirementLink", "PriceComponent",
    "FlaggedAnnotation", "GroupParentAnnotation", "GroupChildAnnotation",
    "Requirement", "RequirementSummary", "RoomSection",
    "Supplier",
    "LinkResult", "StatusSyncResult", "AggregateFilter", "Aggregates",
]
