"""Tournament scheduling, execution and result sinks.

The ladder driver lives in :mod:`skillladder.tournament.skill_ladder`.
"""

from .listeners import (
    GameListener,
    MatchLogListener,
    TournamentResultsFile,
    TournamentSummaryListener,
    create_listener,
)
from .results import (
    MatchResult,
    TournamentOutcome,
    TournamentResult,
    format_summary_line,
    ordinal_ranks,
)
from .runner import TournamentRunner, play_match, run_tournament
from .scheduler import round_robin_groups, schedule_matches

__all__ = [
    "GameListener",
    "MatchLogListener",
    "MatchResult",
    "TournamentOutcome",
    "TournamentResult",
    "TournamentResultsFile",
    "TournamentRunner",
    "TournamentSummaryListener",
    "create_listener",
    "format_summary_line",
    "ordinal_ranks",
    "play_match",
    "round_robin_groups",
    "run_tournament",
    "schedule_matches",
]
