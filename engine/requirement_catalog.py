"""
FFE requirement catalog.

Holds requirement records (loaded from JSON or supplied directly) and builds
the per-room requirement tree with linked-spec counts taken from the
LinkageGraph at call time.

JSON format (requirements.json):
  [
    {"id": "...", "name": "Living Room Sofa", "room_id": "...",
     "section_id": "...", "section_name": "Seating", "child_names": ["Cushions"]},
    ...
  ]
"""
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from models.requirement import Requirement, RequirementSummary, RoomSection
from .linkage import LinkageGraph

logger = logging.getLogger(__name__)


class RequirementCatalog:

    def __init__(self, requirements: Iterable[Requirement] = ()):
        self._by_id: dict[str, Requirement] = {r.id: r for r in requirements}

    @classmethod
    def from_json(cls, path: str | Path) -> "RequirementCatalog":
        path = Path(path)
        if not path.exists():
            logger.warning("Requirements file not found: %s — catalog is empty", path)
            return cls()
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        catalog = cls(Requirement(**r) for r in raw)
        logger.info("Loaded %d requirements from %s", len(catalog), path.name)
        return catalog

    def __len__(self) -> int:
        return len(self._by_id)

    def add(self, requirement: Requirement) -> None:
        self._by_id[requirement.id] = requirement

    def get(self, requirement_id: Optional[str]) -> Optional[Requirement]:
        if not requirement_id:
            return None
        return self._by_id.get(requirement_id)

    def summarise(self, requirement: Requirement, graph: LinkageGraph) -> RequirementSummary:
        items = graph.linked_items(requirement.id)
        return RequirementSummary(
            requirement=requirement,
            has_linked_specs=bool(items),
            linked_specs_count=len(items),
            linked_item_ids=[i.id for i in items],
        )

    def room_tree(self, room_id: str, graph: LinkageGraph) -> list[RoomSection]:
        """Requirements of one room grouped by section, in catalog order."""
        sections: dict[Optional[str], RoomSection] = {}
        for req in self._by_id.values():
            if req.room_id != room_id:
                continue
            section = sections.get(req.section_id)
            if section is None:
                section = RoomSection(section_id=req.section_id, section_name=req.section_name)
                sections[req.section_id] = section
            section.requirements.append(self.summarise(req, graph))
        return list(sections.values())
