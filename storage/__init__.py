"""
Storage Module
Database engine, ORM models, catalog and scored-item repositories.
"""
from .db_engine import get_engine, set_engine, reset_engine, init_db, get_session
from .catalog import CatalogStore, InMemoryCatalogStore, SqlCatalogStore
from .items import ItemStore, InMemoryItemStore, SqlItemStore

__all__ = [
    "get_engine",
    "set_engine",
    "reset_engine",
    "init_db",
    "get_session",
    "CatalogStore",
    "InMemoryCatalogStore",
    "SqlCatalogStore",
    "ItemStore",
    "InMemoryItemStore",
    "SqlItemStore",
]
