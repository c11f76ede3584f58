"""checklist_etl.config

Runtime settings, optionally loaded from a YAML file.

Precedence (lowest to highest): built-in defaults, YAML file,
CHECKLIST_DATA_DIR environment variable, CLI flags.

Example config/checklist.yml:

    data_dir: ./data
    rejects_path: ./artifacts/rejects/checklist_rejects.csv
    reports_dir: ./artifacts/reports
    max_concurrent_rows: 32
    page_size: 50
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

DATA_DIR_ENV = "CHECKLIST_DATA_DIR"

PATH_KEYS = frozenset({"data_dir", "rejects_path", "reports_dir"})
POSITIVE_INT_KEYS = frozenset({"max_concurrent_rows", "page_size"})


class SettingsValidationError(ValueError):
    """Raised when a settings file fails validation."""


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path("./data")
    rejects_path: Path = Path("./artifacts/rejects/checklist_rejects.csv")
    reports_dir: Path = Path("./artifacts/reports")
    max_concurrent_rows: int = 32
    page_size: int = 50

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with every non-None override applied."""
        clean = {k: v for k, v in overrides.items() if v is not None}
        for key in PATH_KEYS & clean.keys():
            clean[key] = Path(clean[key])
        return replace(self, **clean)


def validate_settings(data: Any) -> None:
    """Raise SettingsValidationError if data is not a valid settings mapping."""
    if not isinstance(data, dict):
        raise SettingsValidationError("YAML root must be a mapping.")

    known = {f.name for f in fields(Settings)}
    unknown = set(data.keys()) - known
    if unknown:
        raise SettingsValidationError(f"Unknown settings keys: {sorted(unknown)}")

    for key in PATH_KEYS & data.keys():
        if not isinstance(data[key], str) or not data[key].strip():
            raise SettingsValidationError(f"'{key}' must be a non-empty path string.")

    for key in POSITIVE_INT_KEYS & data.keys():
        val = data[key]
        if isinstance(val, bool) or not isinstance(val, int):
            raise SettingsValidationError(f"'{key}' value '{val}' is not an integer.")
        if val < 1:
            raise SettingsValidationError(f"'{key}' value {val} must be >= 1.")


def load_settings(yaml_path: Path | None = None) -> Settings:
    """Build Settings from defaults, an optional YAML file, and the environment.

    Raises:
        SettingsValidationError: If the YAML content is invalid.
        FileNotFoundError: If yaml_path is given but does not exist.
    """
    settings = Settings()
    if yaml_path is not None:
        raw = Path(yaml_path).read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
        if data is None:
            data = {}
        validate_settings(data)
        settings = settings.with_overrides(**data)

    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        settings = settings.with_overrides(data_dir=env_dir)
    return settings
