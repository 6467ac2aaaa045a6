from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sheet_tracker import __version__ as TOOL_VERSION
from sheet_tracker.columns import classify_headers, describe_roles
from sheet_tracker.config import DEFAULT_CONFIG_PATH, TrackerConfig, from_mapping, load_config, starter_config_text
from sheet_tracker.contracts import build_contract, build_run_summary
from sheet_tracker.errors import MalformedInput, TrackerError, TransportFailure
from sheet_tracker.parser import parse_csv
from sheet_tracker.pipeline import Dashboard, build_dashboard
from sheet_tracker.report import dashboard_to_dict, export_csv, export_workbook, render_text
from sheet_tracker.sources import load_text

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_TRANSPORT_FAILED = 3

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SheetTrackerArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("SHEET_TRACKER_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir() -> Path:
    return Path.cwd() / "sheet-tracker-output" / timestamp_token()


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("sheet_tracker")
    if not verbose:
        return
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, TransportFailure):
        return EXIT_TRANSPORT_FAILED
    if isinstance(exc, (MalformedInput, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def resolve_config(args: argparse.Namespace) -> TrackerConfig:
    config = load_config(args.config)
    overrides: dict[str, Any] = {}
    if args.shape:
        overrides["shape"] = args.shape
    if args.vocabulary:
        overrides["vocabulary"] = args.vocabulary
    if getattr(args, "source", None):
        overrides["source"] = args.source
    config = from_mapping(overrides, config)
    if not config.source:
        raise CliError("No source given. Pass a CSV path or URL, or set 'source' in the config.")
    return config


def read_source(config: TrackerConfig) -> str:
    return load_text(
        config.source,
        proxy_url=config.proxy_url,
        timeout=config.timeout_seconds,
        max_bytes=config.max_bytes,
    )


def load_dashboard(args: argparse.Namespace) -> tuple[TrackerConfig, Dashboard]:
    config = resolve_config(args)
    dashboard = build_dashboard(read_source(config), config, strict=args.strict)
    notes = dashboard.project.notes
    if args.verbose:
        emit_human(
            f"Shape: {config.shape} | rows skipped: {notes.rows_skipped} | defaults applied: {notes.defaults_applied}",
            quiet=args.quiet,
        )
    return config, dashboard


def run_summary(args: argparse.Namespace) -> int:
    config, dashboard = load_dashboard(args)
    payload = dashboard_to_dict(dashboard, source=config.source, vocabulary=config.status_vocabulary)
    if args.output:
        write_json(Path(args.output), payload)
        emit_human(f"Summary written: {args.output}", quiet=args.quiet)
    if args.json:
        sys.stdout.write(json_dumps(payload) + "\n")
    else:
        sys.stdout.write(render_text(dashboard))
    return EXIT_SUCCESS


def run_columns(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    table = parse_csv(read_source(config), strict=args.strict)
    roles = describe_roles(classify_headers(table))
    if args.json:
        sys.stdout.write(json_dumps({"columns": roles}) + "\n")
        return EXIT_SUCCESS
    for entry in roles:
        print(f"{entry['index']:>3}  {entry['role']:<14} {entry['header']}")
    return EXIT_SUCCESS


def run_export(args: argparse.Namespace) -> int:
    config, dashboard = load_dashboard(args)
    if args.output:
        output_path = Path(args.output)
    else:
        out_dir = Path(args.out_dir) if args.out_dir else default_output_dir()
        output_path = out_dir / f"progress.{args.format}"
    if args.format == "csv":
        export_csv(dashboard, output_path, config.status_vocabulary)
    else:
        export_workbook(dashboard, output_path, config.status_vocabulary)
    emit_human(f"Export written: {output_path}", quiet=args.quiet)

    if args.json:
        contract = build_contract("sheet_tracker.export_summary")
        summary = dashboard.summary
        payload = {
            "contract": contract,
            "schema_version": contract["version"],
            "tool_version": TOOL_VERSION,
            "format": args.format,
            "run_summary": build_run_summary(
                command="export",
                source=config.source,
                shape=config.shape,
                output_path=str(output_path),
                metrics={
                    "categories": summary.category_count,
                    "total_steps": summary.total_steps,
                    "overall_progress": summary.overall_progress,
                },
            ),
        }
        sys.stdout.write(json_dumps(payload) + "\n")
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, starter_config_text())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", nargs="?", default=None, help="CSV path or sheet URL (defaults to config 'source')")
    parser.add_argument("--config", default=None, help=f"JSON config path (default: ./{DEFAULT_CONFIG_PATH} if present)")
    parser.add_argument("--shape", choices=["long", "wide"], default=None, help="Sheet layout")
    parser.add_argument("--vocabulary", choices=["english", "korean"], default=None, help="Status wire values")
    parser.add_argument("--strict", action="store_true", help="Fail instead of returning an empty dashboard on input without data rows")
    parser.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="More human logs")


def build_parser() -> argparse.ArgumentParser:
    parser = SheetTrackerArgumentParser(prog="sheet-tracker", description="Rollout progress from a shared sheet export.")
    subparsers = parser.add_subparsers(dest="command", required=True, parser_class=SheetTrackerArgumentParser)

    summary = subparsers.add_parser("summary", help="Print progress for every category and country.")
    add_common_arguments(summary)
    summary.add_argument("--output", help="Also write the JSON summary to this path")

    columns = subparsers.add_parser("columns", help="Show how each header of a wide sheet is classified.")
    add_common_arguments(columns)

    export = subparsers.add_parser("export", help="Write the step table as .xlsx or .csv.")
    add_common_arguments(export)
    export.add_argument("--format", choices=["xlsx", "csv"], default="xlsx", help="Export format")
    export.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    export.add_argument("--output", help="Explicit output path")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True, parser_class=SheetTrackerArgumentParser)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_PATH, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "version":
            return run_version()
        if args.command == "config":
            return run_config_init(args)
        configure_logging(args.verbose)
        if args.command == "summary":
            return run_summary(args)
        if args.command == "columns":
            return run_columns(args)
        if args.command == "export":
            return run_export(args)
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except (CliError, TrackerError, OSError, UnicodeDecodeError) as exc:
        eprint(str(exc))
        return classify_exception(exc)


if __name__ == "__main__":
    raise SystemExit(main())
