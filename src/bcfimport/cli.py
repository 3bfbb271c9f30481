"""bcfimport CLI.

Subcommands:
  list     -> topic summaries of an archive as JSON
  preview  -> reconciled participant sets (known / unknown / invalid people)
  import   -> synchronize every topic into the tracker (summary JSON)

Exit codes for ``import``: 0 all topics saved, 2 some topics rejected,
1 fatal failure (nothing or only part of the archive was imported).
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from bcfimport.config import CONFIG_DEFAULT, ImportConfig, load_config
from bcfimport.errors import BcfImportError
from bcfimport.logging import configure_logging
from bcfimport.models import ImportOptions
from bcfimport.observability import configure_telemetry
from bcfimport.orchestrator import listing, preview, run_import

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("archive", help="Path to the .bcf / .bcfzip archive")
    p.add_argument("--config", default=CONFIG_DEFAULT)
    p.add_argument("--project", help="Override target project id")
    p.add_argument("--actor", help="Override acting user id")


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(prog="bcfimport", description="Import BCF topics into a project")
    p.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit structured JSON log lines (env: BCFIMPORT_JSON_LOGS=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pl = sub.add_parser("list", help="List topics contained in the archive")
    _add_common(pl)
    pl.add_argument("--output")

    pp = sub.add_parser("preview", help="Show known, unknown and invalid participants")
    _add_common(pp)
    pp.add_argument("--output")

    pi = sub.add_parser("import", help="Import topics into the project")
    _add_common(pi)
    pi.add_argument(
        "--invite-role",
        action="append",
        dest="invite_roles",
        metavar="ROLE_ID",
        help="Invite unknown mail addresses with this role (repeatable)",
    )
    pi.add_argument("--summary-json")
    return p


def prepare_config(args: argparse.Namespace) -> ImportConfig:
    cfg = load_config(args.config)
    if getattr(args, "project", None):
        cfg.project_id = args.project
    if getattr(args, "actor", None):
        cfg.actor_id = args.actor
    if getattr(args, "invite_roles", None):
        cfg.options = replace(
            cfg.options,
            unknown_mails_action="invite",
            unknown_mails_invite_role_ids=tuple(args.invite_roles),
        )
    return cfg


def _emit(payload: Any, output: str | None) -> None:
    text = json.dumps(payload, indent=2, default=str)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def _cmd_list(args: argparse.Namespace, cfg: ImportConfig) -> int:
    _emit(listing(cfg, Path(args.archive)), args.output)
    return 0


def _cmd_preview(args: argparse.Namespace, cfg: ImportConfig) -> int:
    _emit(preview(cfg, Path(args.archive)), args.output)
    return 0


def _cmd_import(args: argparse.Namespace, cfg: ImportConfig) -> int:
    summary_path = Path(args.summary_json) if args.summary_json else None
    options: ImportOptions = cfg.options
    result, summary = run_import(cfg, Path(args.archive), options=options, summary_path=summary_path)
    if not result.ok:
        print(f"[bcfimport] {result.failure}", file=sys.stderr)
        return 1
    totals = summary.get("totals", {"topics": 0, "saved": 0, "failed": 0})
    print(
        f"[bcfimport] topics={totals['topics']} saved={totals['saved']} failed={totals['failed']}"
        f" invited={len(summary.get('invited', []))}"
    )
    return 2 if totals["failed"] else 0


_HANDLERS: dict[str, Callable[[argparse.Namespace, ImportConfig], int]] = {
    "list": _cmd_list,
    "preview": _cmd_preview,
    "import": _cmd_import,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    exporter = os.environ.get("BCFIMPORT_OTEL_EXPORTER")
    if exporter:
        configure_telemetry(
            service_name=os.environ.get("BCFIMPORT_SERVICE_NAME", "bcfimport-cli"),
            exporter="otlp" if exporter.lower() == "otlp" else "console",
            endpoint=os.environ.get("BCFIMPORT_OTEL_ENDPOINT"),
        )
    try:
        cfg = prepare_config(args)
    except BcfImportError as exc:
        print(f"[bcfimport] {exc}", file=sys.stderr)
        return 1
    json_logs = args.json_logs or os.environ.get("BCFIMPORT_JSON_LOGS") == "1"
    configure_logging(
        json_logging=json_logs or cfg.logging_json_enabled,
        level=cfg.logging_level,
        stream=sys.stderr,
    )
    handler = _HANDLERS.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    try:
        return handler(args, cfg)
    except BcfImportError as exc:
        print(f"[bcfimport] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
