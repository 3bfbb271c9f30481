"""Signed on-disk index of imported topics (topic uuid -> issue number)."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def compute_signature(entries: dict[str, Any]) -> str:
    canonical = json.dumps(entries, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


@dataclass
class IndexDocument:
    entries: dict[str, dict[str, Any]]
    project: str | None = None
    version: int = 1
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    signature: str = ""

    def ensure_signature(self) -> None:
        self.signature = compute_signature(self.entries)

    def numbers(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for uuid, payload in self.entries.items():
            try:
                out[uuid] = int(payload["issue"])
            except (KeyError, TypeError, ValueError):
                logger.debug("skipping index entry without issue number: %s", uuid)
        return out


def persist_index_document(path: Path, document: IndexDocument) -> None:
    document.ensure_signature()
    payload = {
        "version": document.version,
        "generated_at": document.generated_at,
        "project": document.project,
        "entries": document.entries,
        "signature": document.signature,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


def load_index_document(path: Path) -> IndexDocument:
    if not path.exists():
        return IndexDocument(entries={})
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.debug("Failed to read index document %s: %s", path, exc)
        return IndexDocument(entries={})
    if not isinstance(raw, dict):
        return IndexDocument(entries={})
    entries: dict[str, dict[str, Any]] = {}
    entries_raw = raw.get("entries")
    if isinstance(entries_raw, dict):
        for uuid, payload in entries_raw.items():
            if isinstance(payload, dict):
                entries[str(uuid)] = {str(k): v for k, v in payload.items()}
    doc = IndexDocument(
        entries=entries,
        project=raw.get("project") if isinstance(raw.get("project"), str) else None,
        version=int(raw.get("version") or 1),
        generated_at=str(raw.get("generated_at") or datetime.now(timezone.utc).isoformat()),
        signature=str(raw.get("signature") or ""),
    )
    if doc.signature and doc.signature != compute_signature(doc.entries):
        logger.warning("Index signature mismatch detected at %s; ignoring entries", path)
        return IndexDocument(entries={}, project=doc.project, version=doc.version)
    return doc


__all__ = ["IndexDocument", "compute_signature", "load_index_document", "persist_index_document"]
