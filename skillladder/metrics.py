"""Prometheus metrics for skill ladder runs.

This module centralises counters and histograms so that the tournament
runner, the NTBEA optimizer and the ladder driver can record lightweight
telemetry without each component managing its own metric instances. The
metrics are labeled by game and player count so they can be filtered in a
local Prometheus setup when several ladders run side by side.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Gauge, Histogram


MATCHES_PLAYED: Final[Counter] = Counter(
    "skillladder_matches_played_total",
    "Total completed matches, labeled by game and num_players.",
    labelnames=("game", "num_players"),
)

MATCH_FAILURES: Final[Counter] = Counter(
    "skillladder_match_failures_total",
    (
        "Total matches aborted by a rules engine or agent error, labeled by "
        "game, num_players and whether the failure was skipped."
    ),
    labelnames=("game", "num_players", "skipped"),
)

MATCH_MOVES: Final[Histogram] = Histogram(
    "skillladder_match_moves",
    "Number of actions applied per match.",
    labelnames=("game", "num_players"),
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000),
)

TOURNAMENT_DURATION_SECONDS: Final[Histogram] = Histogram(
    "skillladder_tournament_duration_seconds",
    "Wall-clock duration of tournaments in seconds.",
    labelnames=("game", "num_players", "mode"),
    buckets=(0.1, 1, 5, 30, 60, 300, 1800, 7200),
)

NTBEA_ITERATIONS: Final[Counter] = Counter(
    "skillladder_ntbea_iterations_total",
    "Total NTBEA iterations (candidate evaluations), labeled by game.",
    labelnames=("game", "num_players"),
)

NTBEA_BEST_ESTIMATE: Final[Gauge] = Gauge(
    "skillladder_ntbea_best_estimate",
    "Model estimate of the current best configuration in the latest run.",
    labelnames=("game", "num_players"),
)

LADDER_RUNGS: Final[Gauge] = Gauge(
    "skillladder_ladder_rungs",
    "Number of rungs produced so far, labeled by game and num_players.",
    labelnames=("game", "num_players"),
)
