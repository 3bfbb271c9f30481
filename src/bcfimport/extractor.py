"""Entry extraction contract and the default BCF markup extractor.

The importer only depends on :class:`EntryExtractor`; hosts with their own
markup parser plug it in there. :class:`MarkupExtractor` reads the topic
header, comments and viewpoint references of a ``markup.bcf`` document and
nothing else (viewpoint files themselves are not parsed).
"""

from __future__ import annotations

import re
from typing import Protocol
from xml.etree import (  # nosec B405 - only markup entries of a local archive are parsed
    ElementTree,
)

from .models import TopicEntry, TopicRecord

# Same shape as the usual mailto address grammar: local part, then dot separated labels.
MAIL_RE = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)


class MarkupError(ValueError):
    pass


class EntryExtractor(Protocol):
    def extract(self, entry: TopicEntry, data: bytes) -> TopicRecord: ...  # pragma: no cover


def is_mail_address(token: str) -> bool:
    return bool(MAIL_RE.match(token))


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ElementTree.Element, name: str) -> ElementTree.Element | None:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _text(element: ElementTree.Element | None, name: str) -> str | None:
    if element is None:
        return None
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def _comments(root: ElementTree.Element) -> list[ElementTree.Element]:
    # BCF 2.x keeps comments beside the topic, 3.0 nests them in Topic/Comments.
    # The comment body is also tagged "Comment" but carries no Guid.
    return [el for el in root.iter() if _local(el.tag) == "Comment" and el.get("Guid")]


def _viewpoint_count(root: ElementTree.Element) -> int:
    return sum(
        1
        for el in root.iter()
        if _local(el.tag) in {"Viewpoints", "ViewPoint"} and el.get("Guid")
    )


def _unique(tokens: list[str | None]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for token in tokens:
        if token and token not in seen:
            seen[token] = None
    return tuple(seen)


class MarkupExtractor:
    """Default :class:`EntryExtractor` for BCF 2.1 / 3.0 markup files."""

    def extract(self, entry: TopicEntry, data: bytes) -> TopicRecord:
        try:
            root = ElementTree.fromstring(data)  # nosec B314
        except ElementTree.ParseError as exc:
            raise MarkupError(f"{entry.name}: malformed markup ({exc})") from exc
        topic = _child(root, "Topic")
        if topic is None:
            raise MarkupError(f"{entry.name}: no Topic element")
        uuid = topic.get("Guid")
        if not uuid:
            raise MarkupError(f"{entry.name}: Topic has no Guid")

        comments = _comments(root)
        author = _text(topic, "CreationAuthor")
        modified_author = _text(topic, "ModifiedAuthor")
        assignee = _text(topic, "AssignedTo")
        people = _unique(
            [author, modified_author, assignee]
            + [_text(c, "Author") for c in comments]
            + [_text(c, "ModifiedAuthor") for c in comments]
        )
        return TopicRecord(
            uuid=uuid,
            title=_text(topic, "Title"),
            priority=_text(topic, "Priority"),
            status=topic.get("TopicStatus"),
            description=_text(topic, "Description"),
            author=author,
            assignee=assignee,
            modified_author=modified_author,
            due_date=_text(topic, "DueDate"),
            viewpoint_count=_viewpoint_count(root),
            comments_count=len(comments),
            people=people,
            mail_addresses=tuple(p for p in people if is_mail_address(p)),
        )


__all__ = ["EntryExtractor", "MAIL_RE", "MarkupError", "MarkupExtractor", "is_mail_address"]
