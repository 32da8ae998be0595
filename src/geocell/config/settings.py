# src/geocell/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/geocell/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `GEOCELL_CONFIG_PATH`
- environment variables (`GEOCELL_LOG_LEVEL`, `GEOCELL_DEFAULT_LEVEL`, `GEOCELL_MAX_CONCURRENCY`)

Design rule:
- Covering and search knobs live in YAML, not hard-coded in the planner or the orchestrator.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal
from geocell.core.env import load_dotenv_if_present, resolve_project_path

import yaml
from pydantic import BaseModel, Field, model_validator


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `geocell.config`."""
    text = resources.files("geocell.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "GeoCell"
    log_level: str = "INFO"


class GridSettings(BaseModel):
    default_level: int = Field(16, ge=0, le=30)


class CoveringSettings(BaseModel):
    default_max_cells: int = Field(100, ge=1)
    absolute_max_cells: int = Field(500, ge=1)
    # Target cell edge as a fraction of the search radius when the level is chosen automatically.
    cell_width_fraction: float = Field(0.5, gt=0)
    sample_grid_size: int = Field(8, ge=1, le=64)
    polar_warning_latitude: float = Field(85.0, ge=0, le=90)
    polar_warning_level: int = Field(14, ge=0, le=30)

    @model_validator(mode="after")
    def _validate_caps(self) -> "CoveringSettings":
        if self.default_max_cells > self.absolute_max_cells:
            raise ValueError("covering.default_max_cells must not exceed covering.absolute_max_cells")
        return self


class QuerySettings(BaseModel):
    max_concurrency: int = Field(8, ge=1, le=256)
    timeout_seconds: float | None = Field(default=None, gt=0)
    distance_unit: Literal["meters", "kilometers", "miles"] = "kilometers"
    token_attribute: str = "s2_cell"
    # Per-request limit passed to the range-query collaborator (None lets the store decide).
    request_page_size: int | None = Field(default=None, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    grid: GridSettings = Field(default_factory=GridSettings)
    covering: CoveringSettings = Field(default_factory=CoveringSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload."""
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("GEOCELL_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    default_level = os.getenv("GEOCELL_DEFAULT_LEVEL")
    if default_level:
        data.setdefault("grid", {})["default_level"] = int(default_level)

    max_concurrency = os.getenv("GEOCELL_MAX_CONCURRENCY")
    if max_concurrency:
        data.setdefault("query", {})["max_concurrency"] = int(max_concurrency)

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("GEOCELL_CONFIG_PATH")
    raw = _read_yaml_file(resolve_project_path(config_path)) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
