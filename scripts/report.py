"""CLI wrapper to generate a Markdown report for a view."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from anomaly_overlay import open_fixture_view
from anomaly_overlay.reporting import write_view_report


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a Markdown report for a fixture-backed view")
    parser.add_argument("fixture", type=Path, help="Fixture document (YAML or JSON)")
    parser.add_argument("output", type=Path, help="Path for the generated report")
    args = parser.parse_args()

    controller = asyncio.run(open_fixture_view(args.fixture))
    rows = [row.model_dump() for row in controller.table_rows]
    report_path = write_view_report(controller.summary(), args.output, rows)
    print(f"Generated report at {report_path}")


if __name__ == "__main__":
    main()
