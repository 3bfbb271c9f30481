"""Participant reconciliation.

Derives, from the topic summaries of one archive, which referenced people are
directory users, which mail addresses are unknown, and which tokens never
qualified as mail addresses:

* ``all_people``     every participant token (token equality)
* ``all_mails``      every mail address token
* ``known_users``    directory users whose mail matches ``all_mails`` (case-insensitive)
* ``unknown_mails``  lower-cased ``all_mails`` without a known user
* ``members``        known users already in the target project
* ``non_members``    known users outside the target project
* ``invalid_people`` ``all_people - all_mails``

Each set is computed lazily once per :class:`ParticipantSets` value. After a
directory mutation callers ask for :meth:`ParticipantSets.refreshed` (or
:meth:`ParticipantReconciler.clear_cache`) instead of patching fields.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from functools import cached_property
from typing import Any

from .directory import UserDirectory
from .models import DirectoryUser, TopicSummary


class ParticipantSets:
    def __init__(
        self,
        summaries: Sequence[TopicSummary],
        directory: UserDirectory,
        project_id: str,
    ) -> None:
        self.summaries = tuple(summaries)
        self.directory = directory
        self.project_id = project_id

    def refreshed(self) -> ParticipantSets:
        return ParticipantSets(self.summaries, self.directory, self.project_id)

    @cached_property
    def all_people(self) -> frozenset[str]:
        return frozenset(p for s in self.summaries for p in s.people)

    @cached_property
    def all_mails(self) -> frozenset[str]:
        return frozenset(m for s in self.summaries for m in s.mail_addresses)

    @cached_property
    def known_users(self) -> tuple[DirectoryUser, ...]:
        if not self.all_mails:
            return ()
        wanted = {m.lower() for m in self.all_mails}
        # Backends may match loosely; keep only exact case-insensitive hits.
        found = self.directory.find_by_mails(sorted(self.all_mails))
        return tuple(u for u in found if u.mail.lower() in wanted)

    @cached_property
    def unknown_mails(self) -> frozenset[str]:
        known = {u.mail.lower() for u in self.known_users}
        return frozenset(m.lower() for m in self.all_mails) - known

    @cached_property
    def members(self) -> tuple[DirectoryUser, ...]:
        return tuple(u for u in self.known_users if u.is_member_of(self.project_id))

    @cached_property
    def non_members(self) -> tuple[DirectoryUser, ...]:
        return tuple(u for u in self.known_users if not u.is_member_of(self.project_id))

    @cached_property
    def invalid_people(self) -> frozenset[str]:
        return self.all_people - self.all_mails

    def as_dict(self) -> dict[str, Any]:
        def _user(u: DirectoryUser) -> dict[str, Any]:
            return {"id": u.id, "mail": u.mail}

        return {
            "all_people": sorted(self.all_people),
            "all_mails": sorted(self.all_mails),
            "known_users": [_user(u) for u in self.known_users],
            "unknown_mails": sorted(self.unknown_mails),
            "members": [_user(u) for u in self.members],
            "non_members": [_user(u) for u in self.non_members],
            "invalid_people": sorted(self.invalid_people),
        }


class ParticipantReconciler:
    """Accessor facade over the current :class:`ParticipantSets` value.

    ``load_summaries`` is called at most once; clearing the cache only drops
    the derived sets since the archive does not change during one scope.
    """

    def __init__(
        self,
        load_summaries: Callable[[], Sequence[TopicSummary]],
        directory: UserDirectory,
        project_id: str,
    ) -> None:
        self._load_summaries = load_summaries
        self._directory = directory
        self._project_id = project_id
        self._sets: ParticipantSets | None = None

    @property
    def sets(self) -> ParticipantSets:
        if self._sets is None:
            self._sets = ParticipantSets(self._load_summaries(), self._directory, self._project_id)
        return self._sets

    def clear_cache(self) -> None:
        if self._sets is not None:
            self._sets = self._sets.refreshed()

    def all_people(self) -> frozenset[str]:
        return self.sets.all_people

    def all_mails(self) -> frozenset[str]:
        return self.sets.all_mails

    def known_users(self) -> tuple[DirectoryUser, ...]:
        return self.sets.known_users

    def unknown_mails(self) -> frozenset[str]:
        return self.sets.unknown_mails

    def members(self) -> tuple[DirectoryUser, ...]:
        return self.sets.members

    def non_members(self) -> tuple[DirectoryUser, ...]:
        return self.sets.non_members

    def invalid_people(self) -> frozenset[str]:
        return self.sets.invalid_people


__all__ = ["ParticipantReconciler", "ParticipantSets"]
