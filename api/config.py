"""API server configuration with support for environment variables and YAML files.

Configuration priority (highest to lowest):
1. Explicit kwargs passed to load_config()
2. Environment variables (CATALOG_*)
3. YAML config file (section `api`, explicit or auto-discovered)
4. Default values
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shared.config import layered, parse_bool

ENV_VARS = {
    "database_url": "CATALOG_DATABASE_URL",
    "host": "CATALOG_HOST",
    "port": "CATALOG_PORT",
    "debug": "CATALOG_DEBUG",
    "require_auth": "CATALOG_REQUIRE_AUTH",
    "login_path": "CATALOG_LOGIN_PATH",
    "home_path": "CATALOG_HOME_PATH",
    "site_url": "CATALOG_SITE_URL",
    "cookie_secure": "CATALOG_COOKIE_SECURE",
    "auto_create_tables": "CATALOG_AUTO_CREATE_TABLES",
    "moderator_emails": "CATALOG_MODERATOR_EMAILS",
    "max_upload_bytes": "CATALOG_MAX_UPLOAD_BYTES",
}


@dataclass
class APIConfig:
    """API server configuration.

    Attributes:
        database_url: Direct database connection URL. When unset (default) the
            catalog is read and written through the hosted backend's REST API.
        host: Server bind address (default: 0.0.0.0).
        port: Server port (default: 8000).
        debug: Enable debug mode (default: False).
        require_auth: Redirect signed-out users to the login page (default: True).
        login_path: Login page path (default: /login).
        home_path: Landing page after login (default: /).
        site_url: Public origin used in email and OAuth redirect links.
        cookie_secure: Mark session cookies Secure (default: False).
        auto_create_tables: Create tables on startup in direct database mode.
        moderator_emails: Users allowed to approve or reject GPSR submissions.
        max_upload_bytes: Largest accepted product file (default: 50 MiB).
    """

    database_url: str | None = None
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    require_auth: bool = True
    login_path: str = "/login"
    home_path: str = "/"
    site_url: str = "http://localhost:8000"
    cookie_secure: bool = False
    auto_create_tables: bool = False
    moderator_emails: list[str] = field(default_factory=list)
    max_upload_bytes: int = 50 * 1024 * 1024


def load_config(
    config_file: str | Path | None = None,
    **overrides: Any,
) -> APIConfig:
    """Load API configuration with priority: overrides > env vars > yaml > defaults.

    Args:
        config_file: Optional path to YAML config file.
        **overrides: Direct config overrides (highest priority).

    Returns:
        APIConfig instance.

    Example:
        # From environment variables
        config = load_config()

        # From YAML file
        config = load_config("catalog.config.yaml")

        # For local development against SQLite
        config = load_config(database_url="sqlite+aiosqlite:///./catalog.db")
    """
    config = layered(config_file, "api", ENV_VARS, overrides)

    # Type conversions
    if "port" in config:
        config["port"] = int(config["port"])
    if "max_upload_bytes" in config:
        config["max_upload_bytes"] = int(config["max_upload_bytes"])
    for key in ("debug", "require_auth", "cookie_secure", "auto_create_tables"):
        if key in config:
            config[key] = parse_bool(config[key])
    if isinstance(config.get("moderator_emails"), str):
        config["moderator_emails"] = [
            e.strip() for e in config["moderator_emails"].split(",") if e.strip()
        ]
    if config.get("site_url"):
        config["site_url"] = str(config["site_url"]).rstrip("/")

    return APIConfig(**config)
