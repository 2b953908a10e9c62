"""Tournament outcome records and derived statistics.

Per-agent totals are kept with exact rational arithmetic so that the final
aggregate never depends on the order in which match outcomes arrive; this is
what allows matches to complete on worker threads in any order.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any

from ..errors import InvalidStateError

# Reported error bars are this many standard errors (~95% under a normal
# approximation).
CONFIDENCE_MULTIPLIER = 2


def ordinal_ranks(positions: Sequence[int]) -> tuple[list[Fraction], list[Fraction]]:
    """Convert finishing positions into averaged ordinal ranks and win shares.

    Players are ordered by position; each tied group receives the average of
    the ordinal slots it occupies, and the best group splits one win.
    Works for both competition (``[1, 2, 2]``) and dense (``[1, 2, 2, 3]``)
    position schemes.

    >>> ordinal_ranks([2, 1, 2])
    ([Fraction(5, 2), Fraction(1, 1), Fraction(5, 2)], [Fraction(0, 1), Fraction(1, 1), Fraction(0, 1)])
    """
    order = sorted(range(len(positions)), key=lambda p: positions[p])
    ranks: list[Fraction] = [Fraction(0)] * len(positions)
    slot = 1
    i = 0
    while i < len(order):
        j = i
        while j < len(order) and positions[order[j]] == positions[order[i]]:
            j += 1
        tied = j - i
        average = Fraction(2 * slot + tied - 1, 2)
        for k in range(i, j):
            ranks[order[k]] = average
        slot += tied
        i = j

    best = min(positions)
    winners = sum(1 for p in positions if p == best)
    shares = [Fraction(1, winners) if p == best else Fraction(0) for p in positions]
    return ranks, shares


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a single match.

    Attributes:
        match_index: Position of the match in the tournament schedule.
        seats: Agent slot occupying each seat.
        positions: Finishing positions reported by the rules engine.
        ranks: Averaged ordinal rank per seat.
        win_shares: Share of the win per seat (sums to 1).
        moves: Number of actions applied.
        truncated: True if the match hit the move limit.
    """

    match_index: int
    seats: tuple[int, ...]
    positions: tuple[int, ...]
    ranks: tuple[Fraction, ...]
    win_shares: tuple[Fraction, ...]
    moves: int = 0
    truncated: bool = False

    def seats_of(self, slot: int) -> list[int]:
        return [seat for seat, s in enumerate(self.seats) if s == slot]

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_index": self.match_index,
            "seats": list(self.seats),
            "positions": list(self.positions),
            "ranks": [float(r) for r in self.ranks],
            "win_shares": [float(w) for w in self.win_shares],
            "moves": self.moves,
            "truncated": self.truncated,
        }


@dataclass
class TournamentResult:
    """Aggregate outcome of one agent slot."""

    name: str = ""
    games: int = 0
    wins: Fraction = field(default_factory=Fraction)
    win_sq_sum: Fraction = field(default_factory=Fraction)
    rank_sum: Fraction = field(default_factory=Fraction)
    rank_sq_sum: Fraction = field(default_factory=Fraction)
    closed: bool = field(default=False, repr=False)

    def record(self, rank: Fraction | int, win_share: Fraction | int) -> None:
        if self.closed:
            raise InvalidStateError(
                "Cannot record into a completed tournament result",
                context={"name": self.name},
            )
        rank = Fraction(rank)
        win_share = Fraction(win_share)
        self.games += 1
        self.wins += win_share
        self.win_sq_sum += win_share * win_share
        self.rank_sum += rank
        self.rank_sq_sum += rank * rank

    def close(self) -> None:
        self.closed = True

    @property
    def win_rate(self) -> float:
        if self.games == 0:
            return 0.0
        return float(self.wins / self.games)

    @property
    def win_std_err(self) -> float:
        """Standard error of the win rate.

        Equals ``sqrt(win_rate * (1 - win_rate) / games)`` when every win is
        whole, and is exactly 0 after a single game.
        """
        if self.games == 0:
            return 0.0
        mean = self.wins / self.games
        variance = self.win_sq_sum / self.games - mean * mean
        return math.sqrt(max(float(variance), 0.0) / self.games)

    @property
    def mean_rank(self) -> float:
        if self.games == 0:
            return 0.0
        return float(self.rank_sum / self.games)

    @property
    def rank_std_err(self) -> float:
        if self.games == 0:
            return 0.0
        mean = self.rank_sum / self.games
        variance = self.rank_sq_sum / self.games - mean * mean
        return math.sqrt(max(float(variance), 0.0) / self.games)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "games": self.games,
            "wins": float(self.wins),
            "win_rate": self.win_rate,
            "win_std_err": self.win_std_err,
            "mean_rank": self.mean_rank,
            "rank_std_err": self.rank_std_err,
        }


def aggregate(
    matches: Iterable[MatchResult],
    n_agents: int,
    names: Sequence[str] | None = None,
) -> dict[int, TournamentResult]:
    """Fold match outcomes into one :class:`TournamentResult` per slot."""
    results = {
        slot: TournamentResult(name=names[slot] if names else str(slot))
        for slot in range(n_agents)
    }
    for match in matches:
        for seat, slot in enumerate(match.seats):
            results[slot].record(match.ranks[seat], match.win_shares[seat])
    return results


@dataclass
class TournamentOutcome:
    """Everything a tournament run produced.

    Attributes:
        results: Per-slot aggregates, closed once the run finished.
        matches: Completed matches in schedule order.
        agent_names: Display name per slot.
        elapsed_seconds: Wall-clock duration.
        complete: False if the run was cancelled or matches were skipped.
        failed: Number of matches skipped after a simulation error.
    """

    results: dict[int, TournamentResult]
    matches: list[MatchResult]
    agent_names: list[str]
    elapsed_seconds: float = 0.0
    complete: bool = True
    failed: int = 0

    @property
    def games(self) -> int:
        return len(self.matches)

    def win_rate(self, slot: int) -> float:
        return self.results[slot].win_rate

    def win_std_err(self, slot: int) -> float:
        return self.results[slot].win_std_err

    def mean_rank(self, slot: int) -> float:
        return self.results[slot].mean_rank

    def rank_std_err(self, slot: int) -> float:
        return self.results[slot].rank_std_err

    def best_slot(self) -> int:
        """Slot with the highest win rate, then lowest mean rank, then lowest index."""
        return min(
            self.results,
            key=lambda s: (-self.results[s].wins / max(self.results[s].games, 1),
                           self.results[s].rank_sum / max(self.results[s].games, 1),
                           s),
        )


def format_summary_line(
    games: int,
    elapsed_seconds: float,
    budget: int,
    result: TournamentResult,
    other_budget: int,
    other_result: TournamentResult,
) -> str:
    """One-line report of a two-sided budget comparison."""
    m = CONFIDENCE_MULTIPLIER
    return (
        "%d games in %3d minutes\t"
        "Budget %5d win rate: %.1f%% +/- %.1f%%, mean rank %.1f +/- %.1f\t"
        "vs Budget %5d win rate: %.1f%% +/- %.1f%%, mean rank %.1f +/- %.1f"
    ) % (
        games, int(elapsed_seconds // 60),
        budget,
        result.win_rate * 100, result.win_std_err * 100 * m,
        result.mean_rank, result.rank_std_err * m,
        other_budget,
        other_result.win_rate * 100, other_result.win_std_err * 100 * m,
        other_result.mean_rank, other_result.rank_std_err * m,
    )
