"""Caller-side orchestration: backends from config, logging, summary JSON.

The importer returns fatal failures as data; this layer is the one that logs
them (message, classification and the full cause chain) before handing the
result back to the CLI.
"""

from __future__ import annotations

import json
import traceback
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypedDict

from .archive import ArchiveSource
from .concurrency import ConcurrencyConfig
from .config import ImportConfig
from .directory import InMemoryDirectory, SeatLicense
from .errors import classify_error, redact
from .importer import ImportResult, TopicImporter
from .index_store import load_index_document, persist_index_document
from .logging import StructuredLogger, get_logger
from .models import ImportOptions, ImportSummary
from .tracker import InMemoryTracker


class Totals(TypedDict):
    topics: int
    saved: int
    failed: int


class OutcomeEntry(TypedDict, total=False):
    entry: str
    uuid: str
    saved: bool
    errors: list[str]
    issue: dict[str, Any]


class EnrichedSummary(TypedDict, total=False):
    generated_at: str
    archive: str
    project: str
    state: str
    totals: Totals
    outcomes: list[OutcomeEntry]
    invited: list[str]
    last_error: dict[str, Any]


def build_importer(
    cfg: ImportConfig,
    source: ArchiveSource,
    *,
    logger: StructuredLogger | None = None,
) -> tuple[TopicImporter, InMemoryTracker]:
    directory = InMemoryDirectory.from_config(cfg.directory_users)
    licensing = SeatLicense(directory, seats=cfg.license_seats, fail_fast=cfg.license_fail_fast)
    index = load_index_document(cfg.index_path)
    tracker = InMemoryTracker(
        directory,
        statuses=cfg.statuses,
        priorities=cfg.priorities,
        known_numbers=index.numbers(),
    )
    importer = TopicImporter(
        source,
        cfg.project_id,
        actor_id=cfg.actor_id,
        directory=directory,
        licensing=licensing,
        materializer=tracker,
        concurrency=ConcurrencyConfig(
            enabled=cfg.concurrency_enabled, max_workers=cfg.concurrency_max_workers
        ),
        logger=logger,
    )
    return importer, tracker


def log_failure(logger: StructuredLogger, result: ImportResult) -> dict[str, Any] | None:
    if result.failure is None:
        return None
    cause = result.failure.cause
    info = classify_error(cause)
    chain = "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))
    logger.log_error(
        str(result.failure),
        error=info.message,
        category=info.category,
        original_type=info.original_type,
        stage=result.failure.stage.value,
        traceback=redact(chain),
    )
    return {
        "category": info.category,
        "transient": info.transient,
        "original_type": info.original_type,
        "message": info.message,
        "stage": result.failure.stage.value,
    }


def _outcome_entry(outcome: Any) -> OutcomeEntry:
    entry = OutcomeEntry(
        entry=outcome.entry_name,
        uuid=outcome.uuid,
        saved=outcome.ok,
        errors=list(outcome.errors),
    )
    to_dict = getattr(outcome.issue, "to_dict", None)
    if callable(to_dict):
        entry["issue"] = to_dict()
    return entry


def summarize(cfg: ImportConfig, result: ImportResult) -> EnrichedSummary:
    summary = EnrichedSummary(
        generated_at=datetime.now(timezone.utc).isoformat(),
        archive=result.archive,
        project=cfg.project_id,
        state=result.state.value,
        invited=[u.mail for u in result.invited],
    )
    if result.outcomes is not None:
        totals = ImportSummary(outcomes=result.outcomes).totals
        summary["totals"] = Totals(
            topics=totals["topics"], saved=totals["saved"], failed=totals["failed"]
        )
        summary["outcomes"] = [_outcome_entry(o) for o in result.outcomes]
    return summary


def run_import(
    cfg: ImportConfig,
    source: ArchiveSource,
    *,
    options: ImportOptions | None = None,
    summary_path: Path | None = None,
    logger: StructuredLogger | None = None,
) -> tuple[ImportResult, EnrichedSummary]:
    logger = logger or get_logger()
    importer, tracker = build_importer(cfg, source, logger=logger)
    with logger.timed_operation("bcf_import", project=cfg.project_id):
        result = importer.import_topics(options or cfg.options)
    summary = summarize(cfg, result)
    last_error = log_failure(logger, result)
    if last_error is not None:
        summary["last_error"] = last_error
    # Issues saved before an abort stay saved, so their numbers are kept too.
    mapping = tracker.mapping(cfg.project_id)
    if mapping:
        index = load_index_document(cfg.index_path)
        for uuid, number in mapping.items():
            index.entries[uuid] = {"issue": number}
        index.project = cfg.project_id
        persist_index_document(cfg.index_path, index)
    target = summary_path or cfg.summary_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(summary, indent=2) + "\n", encoding="utf-8")
    return result, summary


def preview(cfg: ImportConfig, source: ArchiveSource) -> dict[str, Any]:
    """Derived participant sets of an archive without importing anything."""
    importer, _ = build_importer(cfg, source)
    return importer.reconciler.sets.as_dict()


def listing(cfg: ImportConfig, source: ArchiveSource) -> list[dict[str, Any]]:
    importer, _ = build_importer(cfg, source)
    return [asdict(summary) for summary in importer.listing()]


__all__ = ["EnrichedSummary", "build_importer", "listing", "log_failure", "preview", "run_import", "summarize"]
