from __future__ import annotations

import pytest

from bcfimport.config import DEFAULT_STATUSES, load_config
from bcfimport.errors import ConfigError

FULL = """
version: 1
project:
  id: tower-b
actor:
  id: $BCF_ACTOR
import:
  unknown_mails_action: invite
  unknown_mails_invite_role_ids: [3, 5]
directory:
  users:
    - {id: admin, mail: admin@x.org, admin: true, projects: [tower-b]}
license:
  seats: 25
  fail_fast: false
tracker:
  statuses: [Open, Closed]
  priorities: false
logging:
  json_enabled: true
  level: DEBUG
concurrency:
  enabled: true
  max_workers: 8
output:
  summary_json: out/summary.json
"""


def test_load_full_config(tmp_path, monkeypatch):
    monkeypatch.setenv("BCF_ACTOR", "admin")
    path = tmp_path / "bcf_import.config.yaml"
    path.write_text(FULL)
    cfg = load_config(path)
    assert cfg.project_id == "tower-b"
    assert cfg.actor_id == "admin"
    assert cfg.options.invite_requested
    assert cfg.options.unknown_mails_invite_role_ids == ("3", "5")
    assert cfg.directory_users[0]["mail"] == "admin@x.org"
    assert cfg.license_seats == 25
    assert cfg.license_fail_fast is False
    assert cfg.statuses == ["Open", "Closed"]
    assert cfg.priorities is None
    assert cfg.logging_json_enabled is True
    assert cfg.concurrency_max_workers == 8
    assert cfg.summary_path == tmp_path / "out" / "summary.json"
    assert cfg.index_path == tmp_path / ".bcfimport" / "index.json"


def test_defaults(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("project: {id: p}\n")
    cfg = load_config(path)
    assert cfg.actor_id == "admin"
    assert not cfg.options.invite_requested
    assert cfg.statuses == DEFAULT_STATUSES
    assert cfg.license_seats is None
    assert cfg.concurrency_enabled is False


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


def test_project_required(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("version: 1\n")
    with pytest.raises(ConfigError, match="project.id"):
        load_config(path)


def test_invalid_yaml(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("project: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(path)
