"""Issue materialization contract and an in-memory tracker backend.

The importer hands every extracted :class:`TopicRecord` to an
:class:`IssueMaterializer`, which returns an issue object exposing an
``errors`` list, and asks it to ``save`` the issue when that list is empty.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Protocol

from .directory import UserDirectory
from .models import DirectoryUser, TopicRecord


class IssueMaterializer(Protocol):
    def build(self, record: TopicRecord, *, project_id: str, actor_id: str) -> Any: ...  # pragma: no cover

    def save(self, issue: Any) -> bool: ...  # pragma: no cover


@dataclass
class TrackedIssue:
    uuid: str
    project_id: str
    title: str | None
    status: str | None = None
    priority: str | None = None
    description: str | None = None
    due_date: date | None = None
    author_id: str | None = None
    assignee_id: str | None = None
    number: int | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "uuid": self.uuid,
            "number": self.number,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "author_id": self.author_id,
            "assignee_id": self.assignee_id,
        }


def parse_due_date(raw: str | None) -> date | None:
    """Parse BCF due dates (``YYYY-MM-DD`` or an ISO timestamp, optionally ``Z``)."""
    if not raw:
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return date.fromisoformat(text)


def _pick(options: Iterable[str] | None, value: str | None) -> tuple[str | None, bool]:
    """Return the canonical spelling of ``value`` in ``options`` and whether it matched."""
    if value is None or options is None:
        return value, True
    for option in options:
        if option.lower() == value.lower():
            return option, True
    return value, False


class InMemoryTracker:
    """Tracker keyed by ``(project_id, topic uuid)``.

    Re-importing a topic whose uuid is already tracked updates that issue
    instead of creating a new one. Issue numbers are allocated per project
    under a lock.
    """

    def __init__(
        self,
        directory: UserDirectory,
        *,
        statuses: Iterable[str] | None = None,
        priorities: Iterable[str] | None = None,
        known_numbers: dict[str, int] | None = None,
    ) -> None:
        self.directory = directory
        self.statuses = list(statuses) if statuses is not None else None
        self.priorities = list(priorities) if priorities is not None else None
        self._lock = threading.Lock()
        self._issues: dict[tuple[str, str], TrackedIssue] = {}
        self._counters: dict[str, int] = {}
        self._known_numbers = dict(known_numbers or {})

    def _resolve(self, token: str | None) -> DirectoryUser | None:
        if not token:
            return None
        matches = self.directory.find_by_mails([token])
        return matches[0] if matches else None

    def build(self, record: TopicRecord, *, project_id: str, actor_id: str) -> TrackedIssue:
        existing = self._issues.get((project_id, record.uuid))
        base = replace(existing, errors=[]) if existing else TrackedIssue(
            uuid=record.uuid, project_id=project_id, title=None
        )
        errors: list[str] = []
        title = (record.title or "").strip()
        if not title:
            errors.append("Title can't be blank.")
        status, ok = _pick(self.statuses, record.status)
        if not ok:
            errors.append(f"Status '{record.status}' is not valid.")
        priority, ok = _pick(self.priorities, record.priority)
        if not ok:
            errors.append(f"Priority '{record.priority}' is not valid.")
        due: date | None = None
        try:
            due = parse_due_date(record.due_date)
        except ValueError:
            errors.append(f"Due date '{record.due_date}' is not a valid date.")

        author = self._resolve(record.author)
        assignee = self._resolve(record.assignee)
        if assignee is not None and not assignee.is_member_of(project_id):
            assignee = None
        issue = replace(
            base,
            title=title or None,
            status=status,
            priority=priority,
            description=record.description,
            due_date=due,
            author_id=author.id if author else base.author_id or actor_id,
            assignee_id=assignee.id if assignee else None,
            errors=errors,
        )
        if issue.number is None and record.uuid in self._known_numbers:
            issue.number = self._known_numbers[record.uuid]
        return issue

    def save(self, issue: TrackedIssue) -> bool:
        if issue.errors:
            return False
        with self._lock:
            if issue.number is None:
                counter = max(
                    self._counters.get(issue.project_id, 0),
                    max(self._known_numbers.values(), default=0),
                ) + 1
                self._counters[issue.project_id] = counter
                issue.number = counter
            self._issues[(issue.project_id, issue.uuid)] = issue
        return True

    def issues(self, project_id: str) -> list[TrackedIssue]:
        return [i for (pid, _), i in self._issues.items() if pid == project_id]

    def mapping(self, project_id: str) -> dict[str, int]:
        return {i.uuid: i.number for i in self.issues(project_id) if i.number is not None}


__all__ = ["InMemoryTracker", "IssueMaterializer", "TrackedIssue", "parse_due_date"]
