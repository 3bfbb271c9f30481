from __future__ import annotations

import pytest

from bcfimport.extractor import MarkupError, MarkupExtractor, is_mail_address
from bcfimport.models import TopicEntry


def _extract(xml: str):
    return MarkupExtractor().extract(TopicEntry("t/markup.bcf"), xml.encode("utf-8"))


def test_extracts_topic_fields(markup):
    record = _extract(
        markup(
            "guid-1",
            "Clash in level 2",
            status="Active",
            priority="High",
            author="alice@example.com",
            assignee="bob@example.com",
            modified_author="Carl Planner",
            due_date="2024-05-01",
            comments=["alice@example.com", "dora@example.com"],
            viewpoints=2,
        )
    )
    assert record.uuid == "guid-1"
    assert record.title == "Clash in level 2"
    assert record.status == "Active"
    assert record.priority == "High"
    assert record.author == "alice@example.com"
    assert record.assignee == "bob@example.com"
    assert record.modified_author == "Carl Planner"
    assert record.due_date == "2024-05-01"
    assert record.viewpoint_count == 2
    assert record.comments_count == 2
    assert record.people == (
        "alice@example.com",
        "Carl Planner",
        "bob@example.com",
        "dora@example.com",
    )
    assert record.mail_addresses == ("alice@example.com", "bob@example.com", "dora@example.com")


def test_namespaced_markup(markup):
    xml = markup("guid-ns", author="x@example.com").replace(
        "<Markup>", '<Markup xmlns="http://www.buildingsmart-tech.org/bcf">'
    )
    record = _extract(xml)
    assert record.uuid == "guid-ns"
    assert record.mail_addresses == ("x@example.com",)


def test_malformed_markup_raises():
    with pytest.raises(MarkupError):
        _extract("<Markup><Topic>")


def test_topic_without_guid_raises():
    with pytest.raises(MarkupError):
        _extract("<Markup><Topic><Title>x</Title></Topic></Markup>")


@pytest.mark.parametrize(
    "token,expected",
    [
        ("a@example.com", True),
        ("Foo.Bar+tag@sub.example.org", True),
        ("John Doe", False),
        ("john@", False),
        ("@example.com", False),
    ],
)
def test_is_mail_address(token, expected):
    assert is_mail_address(token) is expected
