from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

try:
    import yaml
except Exception:  # pragma: no cover
    yaml = cast(Any, None)

from .errors import ConfigError
from .models import ImportOptions

CONFIG_DEFAULT = "bcf_import.config.yaml"

DEFAULT_STATUSES = ["Open", "In Progress", "Resolved", "Closed"]
DEFAULT_PRIORITIES = ["Low", "Normal", "High", "Critical"]


@dataclass
class ImportConfig:
    version: int
    base_dir: Path
    project_id: str
    actor_id: str
    options: ImportOptions
    # Reference directory / license backends
    directory_users: list[dict[str, Any]] = field(default_factory=list)
    license_seats: int | None = None
    license_fail_fast: bool = True
    # Tracker vocabularies (None disables the check)
    statuses: list[str] | None = None
    priorities: list[str] | None = None
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Concurrency configuration
    concurrency_enabled: bool = False
    concurrency_max_workers: int = 4
    # Output
    summary_json: str = "bcf_import_summary.json"
    index_file: str = ".bcfimport/index.json"

    @property
    def index_path(self) -> Path:
        return self.base_dir / self.index_file

    @property
    def summary_path(self) -> Path:
        return self.base_dir / self.summary_json


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith("$"):
        return os.getenv(value[1:], value)
    return value


def _optional_list(value: Any, default: list[str]) -> list[str] | None:
    if value is None:
        return list(default)
    if value is False:
        return None
    if not isinstance(value, list):
        raise ConfigError(f"Expected a list, got {type(value).__name__}")
    return [str(v) for v in value]


def load_config(path: str | Path) -> ImportConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    if yaml is None:
        raise ConfigError("PyYAML not installed; pip install PyYAML")
    try:
        raw_any: Any = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f"Configuration root must be a mapping: {p}")
    raw = cast(dict[str, Any], raw_any)
    project = cast(dict[str, Any], raw.get("project", {}) or {})
    actor = cast(dict[str, Any], raw.get("actor", {}) or {})
    import_opts = cast(dict[str, Any], raw.get("import", {}) or {})
    directory = cast(dict[str, Any], raw.get("directory", {}) or {})
    license_cfg = cast(dict[str, Any], raw.get("license", {}) or {})
    tracker = cast(dict[str, Any], raw.get("tracker", {}) or {})
    logging_config = cast(dict[str, Any], raw.get("logging", {}) or {})
    concurrency_config = cast(dict[str, Any], raw.get("concurrency", {}) or {})
    out = cast(dict[str, Any], raw.get("output", {}) or {})

    project_id = _resolve_env_var(project.get("id"))
    if not project_id:
        raise ConfigError("project.id is required")
    seats = license_cfg.get("seats")

    return ImportConfig(
        version=int(raw.get("version", 1)),
        base_dir=p.parent,
        project_id=str(project_id),
        actor_id=str(_resolve_env_var(actor.get("id", "admin"))),
        options=ImportOptions.from_mapping(import_opts),
        directory_users=list(directory.get("users", []) or []),
        license_seats=int(seats) if seats is not None else None,
        license_fail_fast=bool(license_cfg.get("fail_fast", True)),
        statuses=_optional_list(tracker.get("statuses"), DEFAULT_STATUSES),
        priorities=_optional_list(tracker.get("priorities"), DEFAULT_PRIORITIES),
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=logging_config.get("level", "INFO"),
        concurrency_enabled=bool(concurrency_config.get("enabled", False)),
        concurrency_max_workers=int(concurrency_config.get("max_workers", 4)),
        summary_json=out.get("summary_json", "bcf_import_summary.json"),
        index_file=out.get("index_file", ".bcfimport/index.json"),
    )


__all__ = ["CONFIG_DEFAULT", "ConfigError", "ImportConfig", "load_config"]
