"""CLI wrapper to load a fixture-backed view and print its settled state."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from anomaly_overlay import open_fixture_view


def main() -> None:
    parser = argparse.ArgumentParser(description="Render an anomaly view from a fixture document")
    parser.add_argument("fixture", type=Path, help="Fixture document (YAML or JSON)")
    args = parser.parse_args()

    controller = asyncio.run(open_fixture_view(args.fixture))
    print(f"state={controller.state.value} series={', '.join(controller.chart_series) or '(none)'}")


if __name__ == "__main__":
    main()
