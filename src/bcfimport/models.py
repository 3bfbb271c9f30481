from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TopicEntry:
    """One archive entry whose name ends in the topic descriptor suffix."""

    name: str
    size: int = 0


@dataclass(frozen=True)
class TopicRecord:
    """Typed fields extracted from one topic descriptor.

    ``people`` keeps every participant token in extraction order (duplicates
    allowed); ``mail_addresses`` is the subset that qualified as a mail address.
    """

    uuid: str
    title: str | None
    priority: str | None = None
    status: str | None = None
    description: str | None = None
    author: str | None = None
    assignee: str | None = None
    modified_author: str | None = None
    due_date: str | None = None
    viewpoint_count: int = 0
    comments_count: int = 0
    people: tuple[str, ...] = ()
    mail_addresses: tuple[str, ...] = ()


# Listing rows carry exactly the record fields.
TopicSummary = TopicRecord


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    mail: str
    admin: bool = False
    project_ids: frozenset[str] = frozenset()

    def is_member_of(self, project_id: str) -> bool:
        return project_id in self.project_ids


@dataclass(frozen=True)
class ImportOptions:
    unknown_mails_action: str | None = None
    unknown_mails_invite_role_ids: tuple[str, ...] = ()

    @property
    def invite_requested(self) -> bool:
        return self.unknown_mails_action == "invite" and len(self.unknown_mails_invite_role_ids) > 0

    @classmethod
    def from_mapping(cls, raw: dict[str, Any] | None) -> ImportOptions:
        raw = raw or {}
        roles: Sequence[Any] = raw.get("unknown_mails_invite_role_ids") or ()
        return cls(
            unknown_mails_action=raw.get("unknown_mails_action"),
            unknown_mails_invite_role_ids=tuple(str(r) for r in roles),
        )


@dataclass
class ImportOutcome:
    entry_name: str
    uuid: str
    issue: Any
    errors: tuple[str, ...] = ()
    saved: bool = False

    @property
    def ok(self) -> bool:
        return self.saved and not self.errors


@dataclass
class ImportSummary:
    """Aggregated counters over a finished import."""

    outcomes: list[ImportOutcome] = field(default_factory=list)

    @property
    def totals(self) -> dict[str, int]:
        saved = sum(1 for o in self.outcomes if o.ok)
        return {"topics": len(self.outcomes), "saved": saved, "failed": len(self.outcomes) - saved}


__all__ = [
    "DirectoryUser",
    "ImportOptions",
    "ImportOutcome",
    "ImportSummary",
    "TopicEntry",
    "TopicRecord",
    "TopicSummary",
]
