"""Read-only access to BCF zip archives.

An archive is opened for exactly one operation (a listing or an import) and
closed on every exit path. Only entries whose name ends in ``markup.bcf`` are
topic descriptors; documents, viewpoints and snippets are skipped here.
"""

from __future__ import annotations

import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, BinaryIO

from .errors import ArchiveUnreadable
from .models import TopicEntry

TOPIC_SUFFIX = "markup.bcf"

ArchiveSource = str | Path | BinaryIO


def describe_source(source: ArchiveSource) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", "<stream>"))


class ArchiveHandle:
    def __init__(self, zf: zipfile.ZipFile, name: str) -> None:
        self._zip: zipfile.ZipFile | None = zf
        self.name = name

    @property
    def closed(self) -> bool:
        return self._zip is None

    def _require_open(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveUnreadable(self.name, "archive already closed")
        return self._zip

    def topic_entries(self) -> list[TopicEntry]:
        return [
            TopicEntry(name=info.filename, size=info.file_size)
            for info in self._require_open().infolist()
            if info.filename.endswith(TOPIC_SUFFIX)
        ]

    @contextmanager
    def open(self, entry: TopicEntry) -> Iterator[IO[bytes]]:
        with self._require_open().open(entry.name) as fh:
            yield fh

    def read(self, entry: TopicEntry) -> bytes:
        try:
            with self.open(entry) as fh:
                return fh.read()
        except (zipfile.BadZipFile, KeyError, OSError) as exc:
            raise ArchiveUnreadable(self.name, f"cannot read {entry.name}: {exc}") from exc

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None


@contextmanager
def open_archive(source: ArchiveSource) -> Iterator[ArchiveHandle]:
    name = describe_source(source)
    try:
        zf = zipfile.ZipFile(source)
    except (zipfile.BadZipFile, OSError, ValueError) as exc:
        raise ArchiveUnreadable(name, str(exc) or exc.__class__.__name__) from exc
    handle = ArchiveHandle(zf, name)
    try:
        yield handle
    finally:
        handle.close()


def list_topic_entries(handle: ArchiveHandle) -> list[TopicEntry]:
    return handle.topic_entries()


__all__ = [
    "TOPIC_SUFFIX",
    "ArchiveHandle",
    "ArchiveSource",
    "describe_source",
    "list_topic_entries",
    "open_archive",
]
