"""
Central configuration for the spec-item lifecycle engine.

All paths, currencies and workflow settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/engine_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_SUPPLIERS_CSV     = PROJECT_ROOT / "data" / "suppliers.csv"
DEFAULT_REQUIREMENTS_JSON = PROJECT_ROOT / "data" / "requirements.json"
DEFAULT_OUTPUT_DIR        = PROJECT_ROOT / "output"
DEFAULT_DB_PATH           = DEFAULT_OUTPUT_DIR / "specs.db"


def _csv_env(name: str, default: str) -> set[str]:
    return {s.strip().upper() for s in os.getenv(name, default).split(",") if s.strip()}


@dataclass
class Config:
    # --- Data source paths ---
    suppliers_csv:     Path = field(default_factory=lambda: DEFAULT_SUPPLIERS_CSV)
    requirements_json: Path = field(default_factory=lambda: DEFAULT_REQUIREMENTS_JSON)

    # --- Persistence ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("SPEC_DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- Currencies ---
    default_currency: str = field(
        default_factory=lambda: os.getenv("DEFAULT_CURRENCY", "CAD").upper()
    )
    # Currency bucket the average discount is computed over.
    primary_currency: str = field(
        default_factory=lambda: os.getenv("PRIMARY_CURRENCY", "CAD").upper()
    )

    # --- Workflow ---
    # Status an item falls back to when client approval is withdrawn while it
    # sits in an approval-gated status ("needs ordering").
    approval_fallback_status: str = field(
        default_factory=lambda: os.getenv("APPROVAL_FALLBACK_STATUS", "QUOTE_APPROVED").upper()
    )
    # Statuses treated as complete without a price or client approval.
    resolved_statuses: set[str] = field(
        default_factory=lambda: _csv_env("RESOLVED_STATUSES", "CLIENT_TO_ORDER,CONTRACTOR_TO_ORDER")
    )

    # --- Supplier lookup ---
    supplier_fuzzy_threshold: int = 80    # Minimum rapidfuzz score (0-100)

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from engine_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "engine_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "default_currency":          str,
            "primary_currency":          str,
            "approval_fallback_status":  str,
            "supplier_fuzzy_threshold":  int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key == "resolved_statuses":
                    self.resolved_statuses = {str(s).upper() for s in val}
                elif key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load engine_settings.json: %s", exc)

    def ensure_output_dir(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
