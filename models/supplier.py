from pydantic import BaseModel
from typing import Optional, List


class Supplier(BaseModel):
    """
    A known supplier from the supplier directory.
    currency is the supplier's billing currency; it overrides the currency
    stored on any spec item that references this supplier.
    """
    id: str
    name: str
    currency: str = "CAD"
    email: Optional[str] = None
    website: Optional[str] = None
    aliases: List[str] = []            # Alternative names / trading names

    @property
    def all_names(self) -> List[str]:
        """Return the canonical name plus all aliases for matching."""
        return [self.name] + self.aliases
