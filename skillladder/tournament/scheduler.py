"""Seat assignment for tournament matches.

A schedule is a list of seat tuples: ``schedule[m][seat]`` is the agent slot
playing in ``seat`` of match ``m``. Seats are rotated across matches so that
every agent spends an equal share of its games in each position, which
cancels first-player advantage.
"""

from __future__ import annotations

import itertools

from ..errors import ConfigurationError
from ..models import SeatingMode


def _rotate(group: tuple[int, ...], shift: int) -> tuple[int, ...]:
    shift %= len(group)
    return group[shift:] + group[:shift]


def round_robin_groups(n_agents: int, n_players: int) -> list[tuple[int, ...]]:
    """Every unordered group of ``n_players`` distinct slots.

    With fewer agents than seats a single group cycles through the slots
    (e.g. ``(0, 1, 0)`` for two agents and three seats).
    """
    if n_agents >= n_players:
        return list(itertools.combinations(range(n_agents), n_players))
    return [tuple(i % n_agents for i in range(n_players))]


def schedule_matches(
    n_agents: int,
    n_players: int,
    matches: int,
    mode: SeatingMode = SeatingMode.ROUND_ROBIN,
    seat_offset: int = 0,
) -> list[tuple[int, ...]]:
    """Build the seat assignment for ``matches`` matches.

    Round robin:
        Matches cycle through :func:`round_robin_groups`; after each full
        pass the seating of every group rotates by one seat. With
        ``matches = k * n_players * len(groups)`` each agent occupies every
        seat equally often.

    One vs all:
        Slot 0 is the subject. Its seat advances by one every match while the
        remaining seats cycle through the other slots, so with
        ``matches = k * n_players`` the subject plays every seat ``k`` times.

    Args:
        seat_offset: Starting rotation, used to vary seating between
            consecutive short tournaments.
    """
    if n_agents < 2:
        raise ConfigurationError(
            "A tournament needs at least two agents",
            context={"n_agents": n_agents},
        )
    if n_players < 2:
        raise ConfigurationError(
            "A tournament needs at least two players per match",
            context={"n_players": n_players},
        )
    if matches < 0:
        raise ConfigurationError("Match count must not be negative", context={"matches": matches})

    try:
        mode = SeatingMode(mode)
    except ValueError:
        raise ConfigurationError(f"Unknown seating mode {mode!r}") from None

    schedule: list[tuple[int, ...]] = []
    if mode is SeatingMode.ROUND_ROBIN:
        groups = round_robin_groups(n_agents, n_players)
        for m in range(matches):
            group = groups[m % len(groups)]
            schedule.append(_rotate(group, m // len(groups) + seat_offset))
    elif mode is SeatingMode.ONE_VS_ALL:
        opponents = list(range(1, n_agents))
        for m in range(matches):
            subject_seat = (m + seat_offset) % n_players
            others = [opponents[(m + j) % len(opponents)] for j in range(n_players - 1)]
            others.insert(subject_seat, 0)
            schedule.append(tuple(others))
    return schedule
