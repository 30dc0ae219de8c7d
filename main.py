"""CLI entrypoint: worker, job queue, feed validation, discovery, OPML import and scheduling."""

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone
import json
import logging
from pathlib import Path

from config import get_settings
from core import FeedItem, JobStatus, QualityMetrics, SourceType
from discovery import FeedDiscoveryEngine
from orchestrator import JobWorker, get_default_queue, schedule_discovery, schedule_ingestion
from orchestrator.sql_store import SqlJobStore
from pipeline import FeedJobHandlers, register_handlers, score
from sources.catalog import ingest_feed
from sources.feeds import validate_feed
from sources.opml import import_opml
from storage import SqlCatalogStore, SqlItemStore, init_db
from utils.logger import configure_root_logging


def _json(text: str):
    raw = str(text or "").strip()
    if not raw:
        return {}
    return json.loads(raw)


def _print(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, default=str))


async def _run_worker(drain: bool) -> None:
    settings = get_settings()
    catalog = SqlCatalogStore()
    worker = JobWorker(SqlJobStore(), settings.worker)
    handlers = FeedJobHandlers(catalog, SqlItemStore(), settings=settings)
    register_handlers(worker, handlers)
    try:
        if drain:
            processed = await worker.drain()
            _print({"processed": processed})
        else:
            await worker.start()
    finally:
        await handlers.enricher.aclose()


def _score_demo() -> dict:
    now = datetime.now(timezone.utc)
    item = FeedItem(
        title="Time-restricted eating and metabolic health: a randomized trial",
        url="https://doi.org/10.1000/demo.2024.001",
        source_type=SourceType.ACADEMIC_JOURNAL,
        published_at=now - timedelta(days=10),
        ingested_at=now,
        doi="10.1000/demo.2024.001",
    )
    metrics = QualityMetrics(
        citation_count=120,
        influential_citation_count=40,
        author_h_index=35,
        # lifetime author citations; without them the author blend stops at the h-index half
        author_citation_count=20000,
    )
    return score(item, metrics, as_of=now).model_dump()


def main() -> None:
    parser = argparse.ArgumentParser(description="Feed ingestion, enrichment and scoring pipeline")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None, help="also write logs to logs/<name>")
    sub = parser.add_subparsers(dest="command", required=True)

    worker = sub.add_parser("worker")
    worker.add_argument("--drain", action="store_true", help="Process eligible jobs, then exit")

    enq = sub.add_parser("enqueue")
    enq.add_argument("--type", required=True)
    enq.add_argument("--payload-json", default="{}")
    enq.add_argument("--priority", type=int, default=None)
    enq.add_argument("--max-retries", type=int, default=None)

    status = sub.add_parser("status")
    status.add_argument("--job-id", required=True)

    jobs = sub.add_parser("jobs")
    jobs.add_argument("--status", default="", choices=["", *[s.value for s in JobStatus]])
    jobs.add_argument("--limit", type=int, default=50)

    validate = sub.add_parser("validate")
    validate.add_argument("--url", required=True)

    add = sub.add_parser("add-feed")
    add.add_argument("--url", required=True)
    add.add_argument("--name", default="")
    add.add_argument("--auto-approve", action="store_true")

    discover = sub.add_parser("discover")
    discover.add_argument("--feed-id", required=True)

    opml = sub.add_parser("import-opml")
    opml.add_argument("--file", required=True)

    sub.add_parser("schedule")
    sub.add_parser("score-demo")

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    configure_root_logging(getattr(logging, str(args.log_level).upper(), logging.INFO), log_file=args.log_file)
    settings = get_settings()

    if args.command == "worker":
        init_db()
        asyncio.run(_run_worker(args.drain))
        return

    if args.command == "enqueue":
        job_id = get_default_queue().enqueue(
            args.type,
            _json(args.payload_json),
            priority=args.priority,
            max_retries=args.max_retries,
        )
        _print({"job_id": job_id})
        return

    if args.command == "status":
        job = get_default_queue().get_status(args.job_id)
        _print(job.model_dump(mode="json") if job else {"job_id": args.job_id, "found": False})
        return

    if args.command == "jobs":
        filter_status = JobStatus(args.status) if args.status else None
        listed = get_default_queue().list_jobs(status=filter_status, limit=args.limit)
        _print([job.model_dump(mode="json") for job in listed])
        return

    if args.command == "validate":
        result = asyncio.run(validate_feed(args.url, settings=settings))
        _print(result.model_dump(mode="json"))
        return

    if args.command == "add-feed":
        init_db()
        result = asyncio.run(
            ingest_feed(
                args.url,
                SqlCatalogStore(),
                name=args.name or None,
                auto_approve=args.auto_approve,
                settings=settings,
            )
        )
        _print(result.model_dump(mode="json"))
        return

    if args.command == "discover":
        init_db()
        entry = SqlCatalogStore().get(args.feed_id)
        if entry is None:
            _print({"feed_id": args.feed_id, "found": False})
            return
        candidate = asyncio.run(FeedDiscoveryEngine(settings=settings).discover_alternative(entry))
        _print(candidate.model_dump(mode="json") if candidate else {"feed_id": args.feed_id, "alternative": None})
        return

    if args.command == "import-opml":
        text = Path(args.file).read_text(encoding="utf-8")
        job_ids = asyncio.run(import_opml(text, get_default_queue().enqueue, settings=settings))
        _print({"queued": len(job_ids), "job_ids": job_ids})
        return

    if args.command == "schedule":
        init_db()
        catalog = SqlCatalogStore()
        queue = get_default_queue()
        ingest_ids = schedule_ingestion(catalog, queue.enqueue)
        discover_ids = schedule_discovery(catalog, queue.enqueue, settings.catalog.discovery_failure_threshold)
        _print({"ingest": ingest_ids, "discover": discover_ids})
        return

    if args.command == "score-demo":
        _print(_score_demo())
        return

    if args.command == "serve":
        import uvicorn

        uvicorn.run("webapp.app:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
