"""Backend client configuration with support for environment variables and YAML files.

Configuration priority (highest to lowest):
1. Explicit kwargs passed to load_config()
2. Environment variables (CATALOG_*)
3. YAML config file (section `baas`, explicit or auto-discovered)
4. Default values
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shared.config import layered, parse_bool

ENV_VARS = {
    "url": "CATALOG_BAAS_URL",
    "anon_key": "CATALOG_BAAS_ANON_KEY",
    "storage_bucket": "CATALOG_STORAGE_BUCKET",
    "http_timeout": "CATALOG_HTTP_TIMEOUT",
    "refresh_threshold": "CATALOG_REFRESH_THRESHOLD",
    "auto_refresh_session": "CATALOG_AUTO_REFRESH_SESSION",
}


@dataclass
class BaasConfig:
    """Configuration for the hosted backend client.

    Attributes:
        url: Project URL of the hosted backend. Must be configured (no default).
        anon_key: Public anon key sent as `apikey` on every request.
        storage_bucket: Object storage bucket for product files.
        http_timeout: Seconds before an HTTP request times out (default: 10.0).
        refresh_threshold: Seconds before token expiry at which the session
            is refreshed proactively (default: 300).
        auto_refresh_session: Enable the proactive refresh (default: True).
    """

    url: str | None = None
    anon_key: str | None = None
    storage_bucket: str = "product-files"
    http_timeout: float = 10.0
    refresh_threshold: int = 300
    auto_refresh_session: bool = True


def load_config(
    config_file: str | Path | None = None,
    **overrides: Any,
) -> BaasConfig:
    """Load client configuration with priority: overrides > env vars > yaml > defaults.

    Args:
        config_file: Optional path to YAML config file.
        **overrides: Direct config overrides (highest priority).

    Returns:
        BaasConfig instance.

    Example:
        # From environment variables
        config = load_config()

        # From YAML file with overrides
        config = load_config("catalog.config.yaml", anon_key="override-key")

        # Explicit configuration
        config = load_config(url="https://abc.supabase.co", anon_key="key")
    """
    config = layered(config_file, "baas", ENV_VARS, overrides)

    # Type conversions
    if "http_timeout" in config:
        config["http_timeout"] = float(config["http_timeout"])
    if "refresh_threshold" in config:
        config["refresh_threshold"] = int(config["refresh_threshold"])
    if "auto_refresh_session" in config:
        config["auto_refresh_session"] = parse_bool(config["auto_refresh_session"])
    if config.get("url"):
        config["url"] = str(config["url"]).rstrip("/")

    return BaasConfig(**config)
