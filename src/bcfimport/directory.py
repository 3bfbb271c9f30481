"""User directory / licensing contracts and in-memory reference backends.

The importer talks to the host system only through :class:`UserDirectory`
and :class:`LicenseService`. The in-memory classes back the CLI and the test
suite; a host integration supplies its own implementations.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Any, Protocol

from .models import DirectoryUser


class UserDirectory(Protocol):
    def find_by_mails(self, mails: Iterable[str]) -> list[DirectoryUser]: ...  # pragma: no cover

    def get(self, user_id: str) -> DirectoryUser | None: ...  # pragma: no cover

    def invite(self, mail: str) -> DirectoryUser: ...  # pragma: no cover

    def add_membership(
        self, user_id: str, project_id: str, role_ids: Sequence[str]
    ) -> DirectoryUser: ...  # pragma: no cover


class LicenseService(Protocol):
    def user_limit_reached(self) -> bool: ...  # pragma: no cover

    def fail_fast(self) -> bool: ...  # pragma: no cover


class InMemoryDirectory:
    """Thread-safe dictionary backed directory.

    Mail lookups are case-insensitive; memberships are resolved eagerly onto
    the returned :class:`DirectoryUser` values.
    """

    def __init__(self, users: Iterable[DirectoryUser] = ()) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, DirectoryUser] = {}
        self._roles: dict[tuple[str, str], tuple[str, ...]] = {}
        self._next_id = 1
        for user in users:
            self._users[user.id] = user

    @classmethod
    def from_config(cls, raw_users: Iterable[dict[str, Any]]) -> InMemoryDirectory:
        users = []
        for idx, raw in enumerate(raw_users, start=1):
            users.append(
                DirectoryUser(
                    id=str(raw.get("id") or f"user-{idx}"),
                    mail=str(raw["mail"]),
                    admin=bool(raw.get("admin", False)),
                    project_ids=frozenset(str(p) for p in raw.get("projects", []) or []),
                )
            )
        return cls(users)

    def __len__(self) -> int:
        return len(self._users)

    def find_by_mails(self, mails: Iterable[str]) -> list[DirectoryUser]:
        wanted = {m.lower() for m in mails}
        with self._lock:
            return [u for u in self._users.values() if u.mail.lower() in wanted]

    def get(self, user_id: str) -> DirectoryUser | None:
        return self._users.get(user_id)

    def invite(self, mail: str) -> DirectoryUser:
        with self._lock:
            if any(u.mail.lower() == mail.lower() for u in self._users.values()):
                raise ValueError(f"A user with mail {mail} already exists")
            while f"invited-{self._next_id}" in self._users:
                self._next_id += 1
            user = DirectoryUser(id=f"invited-{self._next_id}", mail=mail)
            self._next_id += 1
            self._users[user.id] = user
            return user

    def add_membership(
        self, user_id: str, project_id: str, role_ids: Sequence[str]
    ) -> DirectoryUser:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise KeyError(f"Unknown user {user_id}")
            updated = replace(user, project_ids=user.project_ids | {project_id})
            self._users[user_id] = updated
            self._roles[(user_id, project_id)] = tuple(role_ids)
            return updated

    def roles_for(self, user_id: str, project_id: str) -> tuple[str, ...]:
        return self._roles.get((user_id, project_id), ())


class SeatLicense:
    """Seat counter over a directory; ``seats=None`` means unlimited."""

    def __init__(self, directory: InMemoryDirectory, seats: int | None = None, fail_fast: bool = True) -> None:
        self._directory = directory
        self.seats = seats
        self._fail_fast = fail_fast

    def user_limit_reached(self) -> bool:
        return self.seats is not None and len(self._directory) >= self.seats

    def fail_fast(self) -> bool:
        return self._fail_fast


__all__ = ["InMemoryDirectory", "LicenseService", "SeatLicense", "UserDirectory"]
