"""Tests for API configuration."""

import os
from unittest import mock

import pytest

from api.config import APIConfig, load_config

SECTIONED_YAML = """
baas:
  url: https://example.supabase.co
api:
  database_url: sqlite+aiosqlite:///./yaml.db
  host: localhost
  port: 8888
  debug: true
  moderator_emails:
    - mod@example.com
"""


@pytest.fixture
def yaml_file(tmp_path):
    """Write YAML text to a temporary config file and return its path."""

    def _write(content: str) -> str:
        path = tmp_path / "catalog.yaml"
        path.write_text(content)
        return str(path)

    return _write


class TestAPIConfig:
    """Tests for APIConfig dataclass."""

    def test_default_values(self) -> None:
        config = APIConfig()
        assert config.database_url is None
        assert config.host == "0.0.0.0"
        assert config.port == 8000
        assert config.debug is False
        assert config.require_auth is True
        assert config.login_path == "/login"
        assert config.home_path == "/"
        assert config.moderator_emails == []
        assert config.max_upload_bytes == 50 * 1024 * 1024

    def test_moderator_lists_are_independent(self) -> None:
        """Each config gets its own moderator list."""
        first = APIConfig()
        first.moderator_emails.append("a@example.com")
        assert APIConfig().moderator_emails == []


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults_with_no_args(self) -> None:
        config = load_config()
        assert config.database_url is None
        assert config.port == 8000

    def test_env_var_override(self) -> None:
        """CATALOG_* variables override defaults."""
        env = {
            "CATALOG_DATABASE_URL": "postgresql+asyncpg://prod:5432/catalog",
            "CATALOG_HOST": "127.0.0.1",
            "CATALOG_PORT": "9000",
            "CATALOG_SITE_URL": "https://shop.example.com/",
            "CATALOG_MAX_UPLOAD_BYTES": "1024",
        }
        with mock.patch.dict(os.environ, env, clear=False):
            config = load_config()

        assert config.database_url == "postgresql+asyncpg://prod:5432/catalog"
        assert config.host == "127.0.0.1"
        assert config.port == 9000
        assert config.max_upload_bytes == 1024
        # Trailing slash dropped so paths can be appended to build links
        assert config.site_url == "https://shop.example.com"

    def test_api_section_of_yaml(self, yaml_file) -> None:
        config = load_config(config_file=yaml_file(SECTIONED_YAML))

        assert config.database_url == "sqlite+aiosqlite:///./yaml.db"
        assert config.host == "localhost"
        assert config.port == 8888
        assert config.debug is True
        assert config.moderator_emails == ["mod@example.com"]

    def test_flat_yaml(self, yaml_file) -> None:
        """A YAML file without sections is read as the api section."""
        assert load_config(config_file=yaml_file("port: 8181\n")).port == 8181

    def test_priority(self, yaml_file) -> None:
        """kwargs > env vars > YAML; None kwargs are ignored."""
        path = yaml_file(SECTIONED_YAML)
        with mock.patch.dict(os.environ, {"CATALOG_PORT": "9999"}, clear=False):
            from_env = load_config(config_file=path, port=None)
            from_kwargs = load_config(config_file=path, port=7000)

        assert from_env.port == 9999
        assert from_env.host == "localhost"
        assert from_kwargs.port == 7000

    def test_nonexistent_yaml_file_ignored(self) -> None:
        assert load_config(config_file="/nonexistent/path.yaml").port == 8000

    def test_moderator_emails_from_env(self) -> None:
        """Comma separated moderator list is split and trimmed."""
        env = {"CATALOG_MODERATOR_EMAILS": "a@example.com, b@example.com ,"}
        with mock.patch.dict(os.environ, env, clear=False):
            config = load_config()

        assert config.moderator_emails == ["a@example.com", "b@example.com"]

    @pytest.mark.parametrize(
        "value,expected",
        [("true", True), ("YES", True), ("1", True), ("false", False), ("no", False), ("0", False)],
    )
    def test_boolean_parsing(self, value: str, expected: bool) -> None:
        env = {
            "CATALOG_DEBUG": value,
            "CATALOG_REQUIRE_AUTH": value,
            "CATALOG_COOKIE_SECURE": value,
        }
        with mock.patch.dict(os.environ, env, clear=False):
            config = load_config()

        assert config.debug is expected
        assert config.require_auth is expected
        assert config.cookie_secure is expected


class TestConfigImports:
    def test_importable_from_api(self) -> None:
        from api import APIConfig, load_config

        assert APIConfig is not None
        assert load_config is not None
