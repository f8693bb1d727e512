"""
Supplier directory.

Loads the supplier master list from CSV and answers two questions for the
engine: which currency a supplier bills in, and which supplier a free-typed
vendor name most likely refers to.  Name lookup tries, in order:
  1. Name / alias exact match (case-insensitive)
  2. Fuzzy name match (using rapidfuzz)
"""
import csv
import logging
from pathlib import Path
from typing import Iterable, Optional

from rapidfuzz import fuzz

from models.supplier import Supplier

logger = logging.getLogger(__name__)

# Minimum fuzzy score (0-100) to accept a name match
FUZZY_THRESHOLD = 80


class SupplierDirectory:
    """
    CSV format (suppliers.csv):
      id, name, currency, email, website, aliases
      aliases: pipe-separated alternative names, e.g. "ACME Corp|ACME Pty Ltd"
    """

    def __init__(
        self,
        suppliers: Iterable[Supplier] = (),
        fuzzy_threshold: int = FUZZY_THRESHOLD,
    ):
        self.fuzzy_threshold = fuzzy_threshold
        self._by_id: dict[str, Supplier] = {s.id: s for s in suppliers}

    @classmethod
    def from_csv(cls, path: str | Path, fuzzy_threshold: int = FUZZY_THRESHOLD) -> "SupplierDirectory":
        directory = cls(fuzzy_threshold=fuzzy_threshold)
        directory._load(Path(path))
        return directory

    def _load(self, path: Path) -> None:
        if not path.exists():
            logger.warning("Suppliers CSV not found: %s — supplier currencies disabled", path)
            return
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            for row in reader:
                aliases_raw = row.get("aliases") or ""
                aliases = [a.strip() for a in aliases_raw.split("|") if a.strip()]
                supplier = Supplier(
                    id=row["id"].strip(),
                    name=row["name"].strip(),
                    currency=(row.get("currency") or "CAD").strip().upper() or "CAD",
                    email=(row.get("email") or "").strip() or None,
                    website=(row.get("website") or "").strip() or None,
                    aliases=aliases,
                )
                self._by_id[supplier.id] = supplier
        logger.info("Loaded %d suppliers from %s", len(self._by_id), path.name)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def suppliers(self) -> list[Supplier]:
        return list(self._by_id.values())

    def add(self, supplier: Supplier) -> None:
        self._by_id[supplier.id] = supplier

    def get(self, supplier_id: Optional[str]) -> Optional[Supplier]:
        if not supplier_id:
            return None
        return self._by_id.get(supplier_id)

    def currency_for(self, supplier_id: Optional[str]) -> Optional[str]:
        supplier = self.get(supplier_id)
        return supplier.currency if supplier else None

    def match_name(self, name: Optional[str]) -> Optional[Supplier]:
        """Return the supplier a vendor name refers to, or None."""
        query = (name or "").strip().lower()
        if not query or not self._by_id:
            return None

        for s in self._by_id.values():
            if any(n.lower() == query for n in s.all_names):
                logger.debug("Supplier matched by exact name: %s", s.name)
                return s

        best_score = 0.0
        best_supplier: Optional[Supplier] = None
        for s in self._by_id.values():
            for candidate_name in s.all_names:
                score = fuzz.token_sort_ratio(query, candidate_name.lower())
                if score > best_score:
                    best_score = score
                    best_supplier = s

        if best_supplier and best_score >= self.fuzzy_threshold:
            logger.info(
                "Supplier fuzzy matched: '%s' -> '%s' (score=%d)",
                name, best_supplier.name, best_score,
            )
            return best_supplier
        return None
