from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from config import Settings
from storage import init_db, reset_engine, set_engine


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    set_engine(engine)
    init_db(engine)
    yield engine
    reset_engine()


@pytest.fixture
def settings() -> Settings:
    settings = Settings()
    settings.enrichment.batch_pause = 0.0
    settings.enrichment.opml_batch_pause = 0.0
    settings.enrichment.llm_backoff_base = 0.0
    return settings
