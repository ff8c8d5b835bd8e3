from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (default ``config/import.yml``)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults for optional keys
- Resolve workbook / directory paths relative to the config file's parent
  directory's parent (the project root when the file lives in ``config/``)
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

DEFAULT_CONFIG_PATH = Path("config/import.yml")
DEFAULT_ENV_FILE = ".env.local"
DEFAULT_UNIT = "Nos"
DEFAULT_CATEGORY = "General"
DEFAULT_GST_RATE = 18.0
POLICY_DROP = "drop"
POLICY_FAIL_INVOICE = "fail_invoice"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Fallback connection values; environment variables take precedence."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class MastersConfig:
    workbook: Path
    materials_sheet: str = "Materials"
    suppliers_sheet: str = "Suppliers"
    default_unit: str = DEFAULT_UNIT
    default_category: str = DEFAULT_CATEGORY


@dataclass(frozen=True)
class GrnConfig:
    workbook: Path
    site_name_pattern: str
    sheet: str = "Consolidated Invoice Data"
    data_start_row: int = 2  # two header rows
    gst_rate: float = DEFAULT_GST_RATE
    default_unit: str = DEFAULT_UNIT
    unresolved_material_policy: str = POLICY_DROP


@dataclass(frozen=True)
class DocumentsConfig:
    source_directory: Path
    storage_root: Path
    site_name_pattern: str | None = None
    special_mappings: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportConfig:
    env_file: Path
    logs_directory: Path
    database: DatabaseConfig
    masters: MastersConfig | None = None
    grn: GrnConfig | None = None
    documents: DocumentsConfig | None = None


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _resolve(base: Path, value: str) -> Path:
    p = Path(value)
    return p if p.is_absolute() else base / p


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    # config/import.yml -> project root
    base = path.resolve().parent
    if base.name == "config":
        base = base.parent

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    masters = None
    if "masters" in data:
        m = data["masters"]
        masters = MastersConfig(
            workbook=_resolve(base, m["workbook"]),
            materials_sheet=m.get("materials_sheet", "Materials"),
            suppliers_sheet=m.get("suppliers_sheet", "Suppliers"),
            default_unit=m.get("default_unit", DEFAULT_UNIT),
            default_category=m.get("default_category", DEFAULT_CATEGORY),
        )

    grn = None
    if "grn" in data:
        g = data["grn"]
        grn = GrnConfig(
            workbook=_resolve(base, g["workbook"]),
            site_name_pattern=g["site_name_pattern"],
            sheet=g.get("sheet", "Consolidated Invoice Data"),
            data_start_row=g.get("data_start_row", 2),
            gst_rate=float(g.get("gst_rate", DEFAULT_GST_RATE)),
            default_unit=g.get("default_unit", DEFAULT_UNIT),
            unresolved_material_policy=g.get("unresolved_material_policy", POLICY_DROP),
        )

    documents = None
    if "documents" in data:
        d = data["documents"]
        pattern = d.get("site_name_pattern") or (grn.site_name_pattern if grn else None)
        documents = DocumentsConfig(
            source_directory=_resolve(base, d["source_directory"]),
            storage_root=_resolve(base, d["storage_root"]),
            site_name_pattern=pattern,
            special_mappings=dict(d.get("special_mappings") or {}),
        )

    return ImportConfig(
        env_file=_resolve(base, data.get("env_file", DEFAULT_ENV_FILE)),
        logs_directory=_resolve(base, data.get("logs_directory", "logs")),
        database=db,
        masters=masters,
        grn=grn,
        documents=documents,
    )
