"""Pytest configuration for bcfimport tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and provides factories that build BCF
archives in a temporary directory.
"""

from __future__ import annotations

import sys
import zipfile
from collections.abc import Callable
from pathlib import Path
from xml.sax.saxutils import escape

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def render_markup(
    uuid: str,
    title: str | None = "Topic",
    *,
    status: str = "Open",
    priority: str | None = "Normal",
    author: str | None = None,
    assignee: str | None = None,
    modified_author: str | None = None,
    due_date: str | None = None,
    comments: list[str] | None = None,
    viewpoints: int = 0,
) -> str:
    def tag(name: str, value: str | None) -> str:
        return f"<{name}>{escape(value)}</{name}>" if value is not None else ""

    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        "<Markup>",
        f'<Topic Guid="{uuid}" TopicType="Issue" TopicStatus="{status}">',
        tag("Title", title),
        tag("Priority", priority),
        tag("CreationAuthor", author),
        tag("ModifiedAuthor", modified_author),
        tag("AssignedTo", assignee),
        tag("Description", f"Description of {uuid}"),
        tag("DueDate", due_date),
        "</Topic>",
    ]
    for idx, comment_author in enumerate(comments or []):
        parts.append(
            f'<Comment Guid="{uuid}-c{idx}"><Date>2024-01-01T00:00:00Z</Date>'
            f"{tag('Author', comment_author)}<Comment>note {idx}</Comment></Comment>"
        )
    for idx in range(viewpoints):
        parts.append(f'<Viewpoints Guid="{uuid}-v{idx}"><Viewpoint>v{idx}.bcfv</Viewpoint></Viewpoints>')
    parts.append("</Markup>")
    return "\n".join(parts)


@pytest.fixture
def markup() -> Callable[..., str]:
    return render_markup


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    counter = {"n": 0}

    def _make(entries: dict[str, str | bytes], name: str | None = None) -> Path:
        counter["n"] += 1
        path = tmp_path / (name or f"archive-{counter['n']}.bcfzip")
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("bcf.version", '<Version VersionId="2.1" />')
            for entry_name, content in entries.items():
                zf.writestr(entry_name, content)
        return path

    return _make


@pytest.fixture(autouse=True)
def _fresh_global_logger(monkeypatch: pytest.MonkeyPatch) -> None:
    # The process-wide logger binds sys.stdout at creation; capture swaps it per test.
    import bcfimport.logging as bcf_logging

    monkeypatch.setattr(bcf_logging, "_GLOBAL", None)
