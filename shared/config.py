"""Configuration file discovery and layering shared by `baas` and `api`.

One file, `catalog.config.yaml`, holds a section per package:

```yaml
baas:
  url: https://your-project.supabase.co
  anon_key: your-anon-key
  storage_bucket: product-files
  refresh_threshold: 300

api:
  database_url: null
  site_url: http://localhost:8000
  moderator_emails:
    - moderator@example.com
```

Each package's `load_config()` layers, lowest priority first: defaults,
this file, `CATALOG_*` environment variables, explicit keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

CONFIG_FILENAME = "catalog.config.yaml"

SECTIONS = ("baas", "api")


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Walk up from `start_path` (default: cwd) looking for catalog.config.yaml."""
    start = Path(start_path) if start_path else Path.cwd()
    for directory in (start, *start.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_yaml_file(config_file: str | Path) -> dict[str, Any]:
    """Parse a YAML file; a missing or empty file gives `{}`."""
    path = Path(config_file)
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def load_section(config_file: str | Path | None, section: str) -> dict[str, Any]:
    """Values for one package from the YAML config.

    An explicit file may use the sectioned layout or hold a flat mapping
    for that package alone. Without a file, catalog.config.yaml is
    discovered from the cwd and must be sectioned.
    """
    if config_file is None:
        discovered = find_config_file()
        data = load_yaml_file(discovered) if discovered else {}
    else:
        data = load_yaml_file(config_file)
        if not any(name in data for name in SECTIONS):
            return data

    value = data.get(section)
    return value if isinstance(value, dict) else {}


def read_env(mapping: Mapping[str, str]) -> dict[str, str]:
    """Non-empty environment variables, keyed by config field name."""
    return {key: value for key, env_var in mapping.items() if (value := os.getenv(env_var))}


def layered(
    config_file: str | Path | None,
    section: str,
    env_mapping: Mapping[str, str],
    overrides: Mapping[str, Any],
) -> dict[str, Any]:
    """Merge YAML section < env vars < overrides; None overrides are skipped."""
    config = load_section(config_file, section)
    config.update(read_env(env_mapping))
    config.update({k: v for k, v in overrides.items() if v is not None})
    return config


def parse_bool(value: Any) -> bool:
    """Interpret env-style boolean strings."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")
