"""Catalog API backend."""

from .config import APIConfig, load_config
from .database import close_db, get_session, init_db, is_initialized
from .main import create_app
from .models import Base
from .routes import router
from .store import CatalogStore, RestCatalogStore, SqlCatalogStore
from .tree import (
    build_category_tree,
    category_options,
    category_path,
    creates_cycle,
    descendant_ids,
    flatten_tree,
    valid_parents,
)

__all__ = [
    # Configuration
    "APIConfig",
    "load_config",
    # Database
    "init_db",
    "get_session",
    "close_db",
    "is_initialized",
    "Base",
    # Stores
    "CatalogStore",
    "RestCatalogStore",
    "SqlCatalogStore",
    # Category tree
    "build_category_tree",
    "category_options",
    "category_path",
    "creates_cycle",
    "descendant_ids",
    "flatten_tree",
    "valid_parents",
    # Application
    "create_app",
    "router",
]
