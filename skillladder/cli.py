"""Command line entry point for skill ladder runs.

Usage:
    # Everything from a config file
    skillladder --config ladder.yaml

    # Config file with overrides
    skillladder --config ladder.yaml --players 3 --iterations 2 --seed 7

    # No config file
    skillladder --game Nim --player flat_mc --players 2 --start-budget 10 \\
        --multiplier 3 --iterations 2 --matchups 100

Ctrl-C stops the ladder at the next match boundary and prints the results
gathered so far.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any

from prometheus_client import start_http_server

from .config.ladder_config import build_config, load_config
from .core.logging_config import configure_third_party_loggers, setup_logging
from .errors import ResourceError, SkillLadderError
from .tournament.skill_ladder import LadderReport, SkillLadder

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skillladder",
        description="Measure how agent strength scales with budget",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", type=str, help="YAML or JSON run configuration")
    parser.add_argument("--log-dir", type=str, help="Also write logs to this directory")
    parser.add_argument(
        "--log-format", type=str, default="default",
        choices=["default", "compact", "detailed", "structured"],
        help="Log line format",
    )
    parser.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")
    parser.add_argument("--report-json", type=str, help="Write the ladder report to this file")

    ladder = parser.add_argument_group("ladder options (override the config file)")
    ladder.add_argument("--game", type=str, help="Registered game name")
    ladder.add_argument("--player", type=str, help="Agent type for untuned rungs and the baseline")
    ladder.add_argument("--players", dest="n_players", type=int, help="Number of players")
    ladder.add_argument("--player-range", type=str, help="'all' or 'min-max'")
    ladder.add_argument("--start-budget", type=int, help="Budget of the first rung")
    ladder.add_argument("--multiplier", type=float, help="Budget multiplier between rungs")
    ladder.add_argument("--iterations", type=int, help="Rungs above the first")
    ladder.add_argument("--matchups", type=int, help="Games per confirmatory tournament")
    ladder.add_argument("--ntbea-budget", type=int, help="Games spent tuning each rung (0 = no tuning)")
    ladder.add_argument("--search-space", type=str, help="Search space description file")
    ladder.add_argument("--start-settings", type=str, help="Digit string for the first rung")
    ladder.add_argument("--dest-dir", type=str, help="Output directory")
    ladder.add_argument("--listener", action="append", help="Result listener (repeatable)")
    ladder.add_argument("--grid", action="store_true", default=None, help="Play every earlier rung")
    ladder.add_argument("--grid-start", type=int, help="First budget evaluated")
    ladder.add_argument("--grid-minor-start", type=int, help="Lowest opponent budget at grid start")
    ladder.add_argument("--seed", type=int, help="Random seed")
    ladder.add_argument("--workers", type=int, help="Match worker threads")
    ladder.add_argument(
        "--skip-failed-matches", action="store_true", default=None,
        help="Log and skip matches that fail instead of aborting",
    )
    return parser


_OVERRIDES = (
    "game", "player", "n_players", "player_range", "start_budget", "multiplier",
    "iterations", "matchups", "ntbea_budget", "search_space", "start_settings",
    "dest_dir", "listener", "grid", "grid_start", "grid_minor_start", "seed",
    "workers", "skip_failed_matches",
)


def collect_overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        key: getattr(args, key)
        for key in _OVERRIDES
        if getattr(args, key, None) is not None
    }


def write_report(report: LadderReport, path: str | Path) -> None:
    """Write ``report`` as JSON.

    Raises:
        ResourceError: The file cannot be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.to_dict(), indent=2))
    except OSError as e:
        raise ResourceError(f"Cannot write report {path}: {e}") from e
    logger.info("Report written to %s", path)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = create_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(
        "skillladder", level=level, log_dir=args.log_dir, format_style=args.log_format
    )
    configure_third_party_loggers()

    cancel = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Received signal %s, stopping after current matches", signum)
        cancel.set()

    try:
        overrides = collect_overrides(args)
        config = load_config(args.config, overrides) if args.config else build_config(overrides)

        if args.metrics_port:
            start_http_server(args.metrics_port)
            logger.info("Prometheus metrics on port %d", args.metrics_port)

        previous = signal.signal(signal.SIGINT, handle_signal)
        try:
            report = SkillLadder(config, cancel_event=cancel).run()
        finally:
            signal.signal(signal.SIGINT, previous)
    except SkillLadderError as e:
        logger.error("Skill ladder failed: %s", e)
        return 1

    if args.report_json:
        try:
            write_report(report, args.report_json)
        except ResourceError as e:
            logger.error("Skill ladder failed: %s", e)
            return 1

    if not report.complete:
        logger.warning("Ladder incomplete")
        return 130 if cancel.is_set() else 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
