"""
Feed Catalog Store
Repositories for subscribable feed catalog entries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
import logging
from threading import Lock
from typing import Dict, List, Optional

from sqlalchemy import select

from core import FeedCatalogEntry

from .db_engine import get_session
from .orm_models import FeedCatalogORM, apply_catalog_model, catalog_orm_to_model

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogStore(ABC):
    """Catalog repository interface."""

    @abstractmethod
    def add(self, entry: FeedCatalogEntry) -> FeedCatalogEntry:
        """Insert a new entry."""
        pass

    @abstractmethod
    def get(self, entry_id: str) -> Optional[FeedCatalogEntry]:
        pass

    @abstractmethod
    def get_by_url(self, url: str) -> Optional[FeedCatalogEntry]:
        pass

    @abstractmethod
    def save(self, entry: FeedCatalogEntry) -> FeedCatalogEntry:
        """Persist every field of an existing entry."""
        pass

    @abstractmethod
    def list_entries(self) -> List[FeedCatalogEntry]:
        pass

    def list_active(self) -> List[FeedCatalogEntry]:
        """Active, approved entries due for regular ingestion."""
        return [
            entry
            for entry in self.list_entries()
            if entry.active and entry.approval_status == "approved"
        ]

    def list_degraded(self, threshold: int) -> List[FeedCatalogEntry]:
        """Entries whose consecutive failures reached ``threshold``, deactivated ones included."""
        return [entry for entry in self.list_entries() if entry.consecutive_failures >= max(1, int(threshold))]


class InMemoryCatalogStore(CatalogStore):
    """Thread-safe dict-backed catalog."""

    def __init__(self) -> None:
        self._entries: Dict[str, FeedCatalogEntry] = {}
        self._lock = Lock()

    def add(self, entry: FeedCatalogEntry) -> FeedCatalogEntry:
        with self._lock:
            self._entries[entry.id] = entry.model_copy(deep=True)
            return entry.model_copy(deep=True)

    def get(self, entry_id: str) -> Optional[FeedCatalogEntry]:
        with self._lock:
            entry = self._entries.get(entry_id)
            return entry.model_copy(deep=True) if entry else None

    def get_by_url(self, url: str) -> Optional[FeedCatalogEntry]:
        target = str(url or "").strip()
        with self._lock:
            for entry in self._entries.values():
                if entry.url == target:
                    return entry.model_copy(deep=True)
        return None

    def save(self, entry: FeedCatalogEntry) -> FeedCatalogEntry:
        updated = entry.model_copy(update={"updated_at": _utcnow()}, deep=True)
        with self._lock:
            self._entries[entry.id] = updated
        return updated.model_copy(deep=True)

    def list_entries(self) -> List[FeedCatalogEntry]:
        with self._lock:
            return [entry.model_copy(deep=True) for entry in self._entries.values()]


class SqlCatalogStore(CatalogStore):
    """SQLAlchemy-backed catalog."""

    def add(self, entry: FeedCatalogEntry) -> FeedCatalogEntry:
        with get_session() as session:
            session.add(apply_catalog_model(FeedCatalogORM(), entry))
        logger.info("Catalog entry added: %s (%s)", entry.name, entry.url)
        return entry.model_copy(deep=True)

    def get(self, entry_id: str) -> Optional[FeedCatalogEntry]:
        with get_session() as session:
            orm = session.get(FeedCatalogORM, entry_id)
            return catalog_orm_to_model(orm) if orm else None

    def get_by_url(self, url: str) -> Optional[FeedCatalogEntry]:
        with get_session() as session:
            orm = session.scalars(
                select(FeedCatalogORM).where(FeedCatalogORM.url == str(url or "").strip())
            ).first()
            return catalog_orm_to_model(orm) if orm else None

    def save(self, entry: FeedCatalogEntry) -> FeedCatalogEntry:
        updated = entry.model_copy(update={"updated_at": _utcnow()}, deep=True)
        with get_session() as session:
            orm = session.get(FeedCatalogORM, entry.id) or FeedCatalogORM()
            session.add(apply_catalog_model(orm, updated))
        return updated

    def list_entries(self) -> List[FeedCatalogEntry]:
        with get_session() as session:
            rows = session.scalars(select(FeedCatalogORM).order_by(FeedCatalogORM.created_at)).all()
            return [catalog_orm_to_model(row) for row in rows]
