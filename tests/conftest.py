"""
Pytest configuration and shared fixtures for the spec-item engine test suite.
"""
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

PROJECT_ID = "PROJ-1"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="specline_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> "Config":
    """Provide a test configuration with isolated paths and fixed currencies."""
    from config import Config

    config = Config()
    config.db_path = temp_dir / "output" / "specs.db"
    config.suppliers_csv = temp_dir / "data" / "suppliers.csv"
    config.requirements_json = temp_dir / "data" / "requirements.json"
    config.default_currency = "CAD"
    config.primary_currency = "CAD"
    config.approval_fallback_status = "QUOTE_APPROVED"
    config.resolved_statuses = {"CLIENT_TO_ORDER", "CONTRACTOR_TO_ORDER"}

    config.suppliers_csv.parent.mkdir(parents=True, exist_ok=True)
    return config


@pytest.fixture
def sample_suppliers_csv(temp_dir: Path) -> Path:
    """Create a sample suppliers CSV file."""
    csv_path = temp_dir / "suppliers.csv"
    content = """id,name,currency,email,website,aliases
SUP-001,Maple Furniture Co,CAD,orders@maple.ca,maple.ca,
SUP-002,Brooklyn Lighting Inc,USD,sales@bklight.com,,BK Lighting|Brooklyn Lights
SUP-003,Atelier Textiles,,,,"""
    csv_path.write_text(content)
    return csv_path


@pytest.fixture
def sample_requirements() -> list[dict]:
    return [
        {"id": "REQ-SOFA", "name": "Living Room Sofa", "room_id": "ROOM-LIV",
         "section_id": "SEC-SEAT", "section_name": "Seating", "child_names": ["Cushions"]},
        {"id": "REQ-CHAIR", "name": "Accent Chair", "room_id": "ROOM-LIV",
         "section_id": "SEC-SEAT", "section_name": "Seating"},
        {"id": "REQ-PENDANT", "name": "Pendant Light", "room_id": "ROOM-LIV",
         "section_id": "SEC-LIGHT", "section_name": "Lighting"},
        {"id": "REQ-VANITY", "name": "Vanity", "room_id": "ROOM-BATH",
         "section_id": "SEC-BATH", "section_name": "Millwork"},
    ]


@pytest.fixture
def sample_requirements_json(temp_dir: Path, sample_requirements) -> Path:
    path = temp_dir / "requirements.json"
    path.write_text(json.dumps(sample_requirements))
    return path


@pytest.fixture
def suppliers(sample_suppliers_csv):
    from engine.supplier_directory import SupplierDirectory
    return SupplierDirectory.from_csv(sample_suppliers_csv)


@pytest.fixture
def catalog(sample_requirements_json):
    from engine.requirement_catalog import RequirementCatalog
    return RequirementCatalog.from_json(sample_requirements_json)


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from engine.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def service(test_config, test_db, suppliers, catalog) -> "SpecItemService":
    """A service wired to an empty temp database."""
    from engine.service import SpecItemService
    return SpecItemService(test_config, db=test_db, suppliers=suppliers, catalog=catalog)


@pytest.fixture
def make_item():
    """Factory for in-memory SpecItem instances with sensible defaults."""
    from models.spec_item import SpecItem

    counter = {"n": 0}

    def _make(**fields) -> SpecItem:
        counter["n"] += 1
        fields.setdefault("id", f"ITEM-{counter['n']}")
        fields.setdefault("project_id", PROJECT_ID)
        fields.setdefault("name", f"Item {counter['n']}")
        return SpecItem(**fields)

    return _make


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
