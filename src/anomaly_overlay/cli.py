"""Command line interface for Anomaly Overlay."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Sequence

from . import __version__
from .config import validate_view_config_file
from .controller import ViewController, open_fixture_view
from .export import export_view
from .logging_utils import configure_logging
from .modes import ModeInputs, resolve_view_state
from .notifications import RecordingNotifier
from .reporting import render_view_report, write_view_report
from .service import create_app


def _print_result(result: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result, indent=2, default=str))
    else:
        print(result)


async def _settle(args: argparse.Namespace) -> ViewController:
    notifier = RecordingNotifier()
    controller = await open_fixture_view(args.fixture, notifier=notifier)
    if getattr(args, "dimension", None):
        await controller.select_dimension(args.dimension)
    if getattr(args, "rule", None):
        rule = next((r for r in controller.rule_options if r.name == args.rule), None)
        if rule is None:
            raise SystemExit(f"Unknown rule '{args.rule}'. Options: {[r.name for r in controller.rule_options]}")
        await controller.select_rule(rule)
    if getattr(args, "baseline", None):
        await controller.select_baseline(args.baseline)
    if controller.model.fetch_errored:
        raise SystemExit("; ".join(notifier.messages) or "Fetching anomalies failed")
    return controller


def _open_view(args: argparse.Namespace) -> ViewController:
    try:
        return asyncio.run(_settle(args))
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc))


def _add_view_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("fixture", type=Path, help="Fixture document (YAML or JSON) with view settings and data")
    parser.add_argument("--dimension", help="Select a dimension label after loading")
    parser.add_argument("--rule", help="Select a detector rule by name after loading")
    parser.add_argument("--baseline", help="Select a baseline offset after loading")
    parser.add_argument("--json", action="store_true", help="Emit result as JSON")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="anomaly-overlay",
        description="Resolve anomaly views and reconcile anomalies against metric time series.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs")

    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Load a view and print its chart series")
    _add_view_arguments(render)

    stats = subparsers.add_parser("stats", help="Load a view and print its quality statistics")
    _add_view_arguments(stats)

    table = subparsers.add_parser("table", help="Load a view and print its anomaly table")
    _add_view_arguments(table)

    state = subparsers.add_parser("state", help="Resolve the view state for a set of flags")
    state.add_argument("--preview", action="store_true", help="Preview mode")
    state.add_argument("--edit", action="store_true", help="Edit mode")
    state.add_argument("--has-old", action="store_true", help="Old anomalies are loaded")
    state.add_argument("--has-new", action="store_true", help="New anomalies are loaded")
    state.add_argument("--errored", action="store_true", help="The last fetch failed")

    validate = subparsers.add_parser("validate", help="Validate a view configuration file")
    validate.add_argument("config", type=Path, help="Path to configuration file")
    validate.add_argument("--json", action="store_true", help="Emit validation result as JSON")

    report = subparsers.add_parser("report", help="Generate a Markdown report for a view")
    _add_view_arguments(report)
    report.add_argument("--output", type=Path, help="Optional path for the generated report")

    export = subparsers.add_parser("export", help="Export chart series and anomaly rows")
    _add_view_arguments(export)
    export.add_argument("output_dir", type=Path, help="Destination directory")
    export.add_argument("--formats", nargs="+", default=["csv"], help="Export formats (csv, json)")

    serve = subparsers.add_parser("serve", help="Run FastAPI service")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--fixture-dir", type=Path, help="Base directory for relative fixture paths")

    subparsers.add_parser("version", help="Display the installed version")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_logs=args.json_logs)

    if args.command == "render":
        controller = _open_view(args)
        if args.json:
            _print_result(controller.summary(), as_json=True)
        else:
            print(f"state={controller.state.value} metric={controller.model.metric_urn}")
            for name, series in controller.chart_series.items():
                present = sum(1 for v in series.values if v is not None)
                print(f"  {name}: {series.type} {present}/{len(series.values)}")
    elif args.command == "stats":
        stats = _open_view(args).stats
        if args.json:
            _print_result(stats.as_dict(), as_json=True)
        else:
            for card in stats.cards():
                print(f"{card.title}: {card.value}")
    elif args.command == "table":
        controller = _open_view(args)
        rows = [row.model_dump() for row in controller.table_rows]
        if args.json:
            _print_result({"columns": controller.table_columns, "rows": rows}, as_json=True)
        else:
            properties = [column["property"] for column in controller.table_columns]
            for row in rows:
                print(" | ".join(str(row.get(p, "")) for p in properties))
    elif args.command == "state":
        inputs = ModeInputs(
            is_preview_mode=args.preview,
            is_edit_mode=args.edit,
            has_old_anomalies=args.has_old,
            has_new_anomalies=args.has_new,
            fetch_errored=args.errored,
        )
        print(resolve_view_state(inputs).value)
    elif args.command == "validate":
        result = validate_view_config_file(args.config)
        _print_result(result.as_dict(), as_json=args.json)
    elif args.command == "report":
        controller = _open_view(args)
        rows = [row.model_dump() for row in controller.table_rows]
        if args.output:
            path = write_view_report(controller.summary(), args.output, rows)
            if args.json:
                _print_result({"report": str(path)}, as_json=True)
            else:
                print(f"Generated report at {path}")
        else:
            print(render_view_report(controller.summary(), rows))
    elif args.command == "export":
        controller = _open_view(args)
        written = export_view(controller.chart_series, controller.table_rows, args.output_dir, args.formats)
        if args.json:
            _print_result({"files": [str(p) for p in written]}, as_json=True)
        else:
            print(f"Wrote {len(written)} files to {args.output_dir}")
    elif args.command == "serve":
        app = create_app(fixture_dir=args.fixture_dir)
        import uvicorn

        uvicorn.run(app, host=args.host, port=args.port)
    elif args.command == "version":
        print(__version__)


if __name__ == "__main__":
    main()
