"""
Exceptions raised by the spec-item engine.

Validation errors leave the in-memory item untouched; PersistenceError means
the in-memory change was applied but not confirmed by the store.
"""
from typing import Optional


class SpecEngineError(Exception):
    """Base class for all engine errors."""


class ApprovalRequiredError(SpecEngineError):
    def __init__(self, item_id: str, status: str):
        self.item_id = item_id
        self.status = status
        super().__init__(
            f"Item {item_id} needs client approval before it can move to {status}"
        )


class DuplicateDocCodeError(SpecEngineError):
    def __init__(self, doc_code: str, existing_item_id: str):
        self.doc_code = doc_code
        self.existing_item_id = existing_item_id
        super().__init__(
            f"Doc code {doc_code!r} is already used by item {existing_item_id}"
        )


class ArchivedItemError(SpecEngineError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} is archived; restore its status before linking")


class GroupingError(SpecEngineError, ValueError):
    pass


class InvalidPriceError(SpecEngineError, ValueError):
    pass


class ItemNotFoundError(SpecEngineError, KeyError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Spec item not found: {item_id}")

    def __str__(self) -> str:
        return self.args[0]


class PersistenceError(SpecEngineError):
    """The store rejected or failed a write; re-fetch before trusting local state."""

    def __init__(self, message: str, item_id: Optional[str] = None):
        self.item_id = item_id
        super().__init__(message)
