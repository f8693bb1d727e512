from .errors import (
    SpecEngineError, ApprovalRequiredError, DuplicateDocCodeError, ArchivedItemError,
    GroupingError, InvalidPriceError, ItemNotFoundError, PersistenceError,
)
from .store import ItemStore
from .status_workflow import StatusWorkflow
from .linkage import LinkageGraph
from .pricing import PricingEngine
from .aggregation import AggregationEngine
from .supplier_directory import SupplierDirectory
from .requirement_catalog import RequirementCatalog
from .database import Database
from .service import SpecItemService

__all__ = [
    "SpecEngineError", "ApprovalRequiredError", "DuplicateDocCodeError", "ArchivedItemError",
    "GroupingError", "InvalidPriceError", "ItemNotFoundError", "PersistenceError",
    "ItemStore", "StatusWorkflow", "LinkageGraph", "PricingEngine", "AggregationEngine",
    "SupplierDirectory", "RequirementCatalog", "Database", "SpecItemService",
]
