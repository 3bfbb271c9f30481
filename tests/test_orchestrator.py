from __future__ import annotations

import json

from bcfimport.config import load_config
from bcfimport.importer import ImportState
from bcfimport.logging import StructuredLogger
from bcfimport.orchestrator import listing, preview, run_import

CONFIG = """
project: {id: tower-b}
actor: {id: admin}
directory:
  users:
    - {id: admin, mail: admin@x.org, admin: true, projects: [tower-b]}
    - {id: eng, mail: Eng@x.org, projects: [other]}
tracker:
  statuses: [Open, Closed]
output:
  summary_json: summary.json
"""


def _config(tmp_path, extra=""):
    path = tmp_path / "bcf_import.config.yaml"
    path.write_text(CONFIG + extra)
    return load_config(path)


def _archive(make_archive, markup):
    return make_archive(
        {
            "t1/markup.bcf": markup("t1", "Duct clash", author="admin@x.org", assignee="eng@x.org"),
            "t2/markup.bcf": markup("t2", "Wrong status", status="Parked", author="new@x.org"),
            "t3/markup.bcf": markup("t3", "Slab opening", author="Site Team"),
        }
    )


def test_preview_reports_sets(tmp_path, make_archive, markup):
    cfg = _config(tmp_path)
    data = preview(cfg, _archive(make_archive, markup))
    assert data["unknown_mails"] == ["new@x.org"]
    assert [u["id"] for u in data["members"]] == ["admin"]
    assert [u["id"] for u in data["non_members"]] == ["eng"]
    assert data["invalid_people"] == ["Site Team"]


def test_listing_rows(tmp_path, make_archive, markup):
    rows = listing(_config(tmp_path), _archive(make_archive, markup))
    assert [r["uuid"] for r in rows] == ["t1", "t2", "t3"]
    assert set(rows[0]) >= {"uuid", "title", "people", "mail_addresses", "viewpoint_count", "comments_count"}


def test_run_import_writes_summary_and_index(tmp_path, make_archive, markup):
    cfg = _config(tmp_path)
    result, summary = run_import(cfg, _archive(make_archive, markup))
    assert result.state is ImportState.DONE
    assert summary["totals"] == {"topics": 3, "saved": 2, "failed": 1}
    failed = [o for o in summary["outcomes"] if not o["saved"]]
    assert failed[0]["uuid"] == "t2"
    assert failed[0]["errors"] == ["Status 'Parked' is not valid."]

    written = json.loads((tmp_path / "summary.json").read_text())
    assert written["totals"] == summary["totals"]
    index = json.loads((tmp_path / ".bcfimport" / "index.json").read_text())
    assert index["entries"] == {"t1": {"issue": 1}, "t3": {"issue": 2}}


def test_run_import_keeps_numbers_across_runs(tmp_path, make_archive, markup):
    cfg = _config(tmp_path)
    archive = _archive(make_archive, markup)
    run_import(cfg, archive)
    _, summary = run_import(cfg, archive)
    numbers = {o["uuid"]: o["issue"]["number"] for o in summary["outcomes"] if o["saved"]}
    assert numbers == {"t1": 1, "t3": 2}


def test_run_import_failure_is_logged_and_summarized(tmp_path, make_archive, markup, capsys):
    cfg = _config(tmp_path, "import:\n  unknown_mails_action: invite\n  unknown_mails_invite_role_ids: [member]\n")
    cfg.actor_id = "eng"
    logger = StructuredLogger(name="test-orchestrator")
    result, summary = run_import(cfg, _archive(make_archive, markup), logger=logger)
    assert not result.ok
    assert summary["state"] == "aborted"
    assert summary["last_error"]["category"] == "authorization"
    assert summary["last_error"]["stage"] == "archive_open"
    assert "totals" not in summary
    assert "admin privileges" in capsys.readouterr().out


def test_run_import_invites_when_admin(tmp_path, make_archive, markup):
    cfg = _config(tmp_path, "import:\n  unknown_mails_action: invite\n  unknown_mails_invite_role_ids: [member]\n")
    result, summary = run_import(cfg, _archive(make_archive, markup))
    assert result.ok
    assert summary["invited"] == ["new@x.org"]


def test_run_import_failure_logs_cause_chain_at_error_level(tmp_path, make_archive, markup, capsys):
    cfg = _config(tmp_path, "import:\n  unknown_mails_action: invite\n  unknown_mails_invite_role_ids: [member]\n")
    cfg.actor_id = "eng"
    logger = StructuredLogger(name="test-orchestrator-json", json_logging=True, level="INFO")
    run_import(cfg, _archive(make_archive, markup), logger=logger)
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]
    (error,) = [line for line in lines if line["level"] == "ERROR"]
    assert error["category"] == "authorization"
    assert "Traceback" in error["traceback"]
    assert "Unauthorized" in error["traceback"]
    assert "admin@x.org" not in error["traceback"]
