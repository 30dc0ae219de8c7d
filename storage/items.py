"""
Scored Item Store
Enriched items persisted with their metrics bundle and score breakdown.
Upserts are keyed by dedupe hash, so re-running enrichment overwrites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from threading import Lock
from typing import Dict, List, Optional

from sqlalchemy import func, select

from core import EnrichedItem

from .db_engine import get_session
from .orm_models import ScoredItemORM, apply_scored_item, scored_item_orm_to_model

logger = logging.getLogger(__name__)


class ItemStore(ABC):
    @abstractmethod
    def upsert(self, item: EnrichedItem) -> str:
        """Insert or overwrite; returns the dedupe hash."""
        pass

    @abstractmethod
    def get(self, item_hash: str) -> Optional[EnrichedItem]:
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    def upsert_many(self, items: List[EnrichedItem]) -> List[str]:
        return [self.upsert(item) for item in items]


class InMemoryItemStore(ItemStore):
    def __init__(self) -> None:
        self._items: Dict[str, EnrichedItem] = {}
        self._lock = Lock()

    def upsert(self, item: EnrichedItem) -> str:
        key = item.resolved_hash()
        with self._lock:
            self._items[key] = item.model_copy(update={"dedupe_hash": key}, deep=True)
        return key

    def get(self, item_hash: str) -> Optional[EnrichedItem]:
        with self._lock:
            item = self._items.get(item_hash)
            return item.model_copy(deep=True) if item else None

    def count(self) -> int:
        with self._lock:
            return len(self._items)


class SqlItemStore(ItemStore):
    def upsert(self, item: EnrichedItem) -> str:
        key = item.resolved_hash()
        stored = item.model_copy(update={"dedupe_hash": key})
        with get_session() as session:
            orm = session.get(ScoredItemORM, key) or ScoredItemORM()
            session.add(apply_scored_item(orm, stored))
        logger.debug("Stored scored item %s (score=%s)", key[:12], stored.score)
        return key

    def get(self, item_hash: str) -> Optional[EnrichedItem]:
        with get_session() as session:
            orm = session.get(ScoredItemORM, item_hash)
            return scored_item_orm_to_model(orm) if orm else None

    def count(self) -> int:
        with get_session() as session:
            return int(session.scalar(select(func.count()).select_from(ScoredItemORM)) or 0)
