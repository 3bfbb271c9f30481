from __future__ import annotations

from bcfimport.errors import (
    ArchiveUnreadable,
    ExtractionFailed,
    SeatLimitExceeded,
    Unauthorized,
    classify_error,
    redact,
)


def test_classify_taxonomy():
    assert classify_error(ArchiveUnreadable("a.bcfzip", "bad zip")).category == "archive"
    info = classify_error(ExtractionFailed("t/markup.bcf", ValueError("x")))
    assert info.category == "extraction"
    assert info.details == {"entry": "t/markup.bcf"}
    assert classify_error(Unauthorized("no")).category == "authorization"
    assert classify_error(SeatLimitExceeded("full")).category == "license"


def test_classify_network():
    info = classify_error(ConnectionError("Connection reset by peer"))
    assert info.category == "network"
    assert info.transient is True


def test_classify_generic():
    info = classify_error(ValueError("Some other problem"))
    assert info.category == "generic"
    assert info.original_type == "ValueError"


def test_redact_mail_addresses():
    out = redact("A user with mail Foo.Bar@example.com already exists")
    assert "example.com" not in out
    assert "<redacted>" in out


def test_classify_redacts_message():
    info = classify_error(RuntimeError("cannot invite bob@example.com"))
    assert "bob@" not in info.message
