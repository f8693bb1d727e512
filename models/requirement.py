from pydantic import BaseModel, Field
from typing import Optional, List


class Requirement(BaseModel):
    """
    An FFE requirement (design need) from the requirement catalog.
    Linked-spec counts are not stored here; see RequirementSummary.
    """
    id: str
    name: str
    room_id: Optional[str] = None
    section_id: Optional[str] = None
    section_name: Optional[str] = None
    child_names: List[str] = Field(default_factory=list)   # declared sub-items


class RequirementSummary(BaseModel):
    """A requirement together with counts derived from the current link set."""
    requirement: Requirement
    has_linked_specs: bool = False
    linked_specs_count: int = 0
    linked_item_ids: List[str] = Field(default_factory=list)


class RoomSection(BaseModel):
    """One section of a room's requirement tree."""
    section_id: Optional[str] = None
    section_name: Optional[str] = None
    requirements: List[RequirementSummary] = Field(default_factory=list)
