"""
SQLAlchemy ORM models.

These models are internal to the database layer. The public interface uses
the pydantic contracts from ``core``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, JSON, String, Text, TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from core import (
    EnrichedItem,
    EnrichmentCapabilities,
    FeedCatalogEntry,
    Job,
    JobStatus,
    SourceType,
)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, returns aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class JobORM(Base):
    """SQLAlchemy model for the jobs table."""

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    type: Mapped[str] = mapped_column(String(64), index=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(16), default=JobStatus.PENDING.value)
    priority: Mapped[int] = mapped_column(Integer, default=5)
    retries: Mapped[int] = mapped_column(Integer, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, default=5)
    next_run_at: Mapped[datetime] = mapped_column(UTCDateTime)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_started_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)

    __table_args__ = (Index("ix_jobs_claim", "status", "priority", "next_run_at"),)


class FeedCatalogORM(Base):
    """SQLAlchemy model for the feed catalog."""

    __tablename__ = "feed_catalog"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(Text)
    url: Mapped[str] = mapped_column(Text, unique=True)
    source_type: Mapped[str] = mapped_column(String(32))
    topics: Mapped[List[str]] = mapped_column(JSON, default=list)
    approval_status: Mapped[str] = mapped_column(String(16), default="pending")
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0)
    last_successful_fetch: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    discovery_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    capabilities: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    metadata_json: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)


class ScoredItemORM(Base):
    """Enriched and scored items, keyed by dedupe hash."""

    __tablename__ = "scored_items"

    dedupe_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    feed_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    title: Mapped[str] = mapped_column(Text, default="")
    url: Mapped[str] = mapped_column(Text, default="")
    source_type: Mapped[str] = mapped_column(String(32))
    published_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    item: Mapped[Dict[str, Any]] = mapped_column(JSON)
    metrics: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    breakdown: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)


def job_orm_to_model(orm: JobORM) -> Job:
    return Job(
        id=orm.id,
        type=orm.type,
        payload=dict(orm.payload or {}),
        status=JobStatus(orm.status),
        priority=orm.priority,
        retries=orm.retries or 0,
        max_retries=orm.max_retries,
        next_run_at=orm.next_run_at,
        last_error=orm.last_error,
        processing_started_at=orm.processing_started_at,
        completed_at=orm.completed_at,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def job_model_to_orm(job: Job) -> JobORM:
    return JobORM(
        id=job.id,
        type=job.type,
        payload=dict(job.payload),
        status=job.status.value,
        priority=job.priority,
        retries=job.retries,
        max_retries=job.max_retries,
        next_run_at=job.next_run_at,
        last_error=job.last_error,
        processing_started_at=job.processing_started_at,
        completed_at=job.completed_at,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def catalog_orm_to_model(orm: FeedCatalogORM) -> FeedCatalogEntry:
    return FeedCatalogEntry(
        id=orm.id,
        name=orm.name,
        url=orm.url,
        source_type=SourceType(orm.source_type),
        topics=list(orm.topics or []),
        approval_status=orm.approval_status,
        active=bool(orm.active),
        consecutive_failures=orm.consecutive_failures or 0,
        last_successful_fetch=orm.last_successful_fetch,
        last_error=orm.last_error,
        discovery_method=orm.discovery_method,
        capabilities=EnrichmentCapabilities(**(orm.capabilities or {})),
        metadata=dict(orm.metadata_json or {}),
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def apply_catalog_model(orm: FeedCatalogORM, entry: FeedCatalogEntry) -> FeedCatalogORM:
    """Copy every mutable field of ``entry`` onto ``orm``."""
    orm.id = entry.id
    orm.name = entry.name
    orm.url = entry.url
    orm.source_type = entry.source_type.value
    orm.topics = list(entry.topics)
    orm.approval_status = entry.approval_status
    orm.active = entry.active
    orm.consecutive_failures = entry.consecutive_failures
    orm.last_successful_fetch = entry.last_successful_fetch
    orm.last_error = entry.last_error
    orm.discovery_method = entry.discovery_method
    orm.capabilities = entry.capabilities.model_dump()
    orm.metadata_json = dict(entry.model_dump(mode="json")["metadata"])
    orm.created_at = entry.created_at
    orm.updated_at = entry.updated_at
    return orm


def apply_scored_item(orm: ScoredItemORM, item: EnrichedItem) -> ScoredItemORM:
    payload = item.model_dump(mode="json")
    orm.dedupe_hash = item.resolved_hash()
    orm.feed_id = item.feed_id
    orm.title = item.title
    orm.url = item.url
    orm.source_type = item.source_type.value
    orm.published_at = item.published_at
    orm.score = item.score
    orm.item = payload
    orm.metrics = payload.get("metrics") or {}
    orm.breakdown = payload.get("score_breakdown")
    orm.updated_at = datetime.now(timezone.utc)
    return orm


def scored_item_orm_to_model(orm: ScoredItemORM) -> EnrichedItem:
    return EnrichedItem(**dict(orm.item or {}))
