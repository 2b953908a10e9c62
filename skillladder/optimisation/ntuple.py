"""N-tuple bandit model over a discrete search space.

The model decomposes every configuration into low-dimensional projections
(n-tuples: subsets of dimensions) and keeps one running statistic per
projected value assignment. Information therefore generalises across
configurations that share partial assignments: after observing
``(0, 2, 1)`` the model already knows something about ``(0, 2, 0)``.

Each statistic is an online (Welford) mean/variance, so no raw history is
stored. Candidates are ranked by averaging the per-tuple means that have
been observed, plus an averaged UCB exploration term in which never-visited
tuples contribute a very large bound.
"""

from __future__ import annotations

import itertools
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

DEFAULT_EXPLORATION = 2.0
# Added to visit counts; zero-visit tuples get a huge but finite bound.
EPSILON = 1e-6


@dataclass
class NTupleStatistic:
    """Running count, mean and sum of squared deviations."""

    n: int = 0
    mean: float = 0.0
    m2: float = 0.0

    def add(self, value: float) -> None:
        self.n += 1
        delta = value - self.mean
        self.mean += delta / self.n
        self.m2 += delta * (value - self.mean)

    def merge(self, other: NTupleStatistic) -> None:
        """Fold ``other`` into this statistic (pairwise combination)."""
        if other.n == 0:
            return
        if self.n == 0:
            self.n, self.mean, self.m2 = other.n, other.mean, other.m2
            return
        n = self.n + other.n
        delta = other.mean - self.mean
        self.mean += delta * other.n / n
        self.m2 += other.m2 + delta * delta * self.n * other.n / n
        self.n = n

    @property
    def variance(self) -> float:
        if self.n < 2:
            return 0.0
        return max(self.m2 / (self.n - 1), 0.0)

    @property
    def std_err(self) -> float:
        if self.n == 0:
            return 0.0
        return math.sqrt(self.variance / self.n)


def exploration_bonus(visits: int, total_visits: int, exploration: float) -> float:
    return exploration * math.sqrt(math.log(total_visits + 1) / (visits + EPSILON))


@dataclass
class NTuple:
    """Statistics for one projection (a fixed subset of dimensions)."""

    dims: tuple[int, ...]
    stats: dict[tuple[int, ...], NTupleStatistic] = field(default_factory=dict)

    def key(self, config: Sequence[int]) -> tuple[int, ...]:
        return tuple(config[d] for d in self.dims)

    def get(self, config: Sequence[int]) -> NTupleStatistic | None:
        return self.stats.get(self.key(config))


class NTupleModel:
    """Bandit model over all configured n-tuples of a search space.

    Args:
        dimensions: Dimensionality of the search space.
        tuple_sizes: Projection sizes to track. Size 1 is always included;
            each size ``k`` tracks every ``k``-subset of dimensions, so the
            size equal to ``dimensions`` is the full configuration.
            Defaults to ``(1, 2, dimensions)``.
        exploration: UCB exploration constant.
    """

    def __init__(
        self,
        dimensions: int,
        tuple_sizes: Iterable[int] | None = None,
        exploration: float = DEFAULT_EXPLORATION,
    ):
        if dimensions < 1:
            raise ValueError("NTupleModel needs at least one dimension")
        sizes = set(tuple_sizes) if tuple_sizes is not None else {2, dimensions}
        sizes = {s for s in sizes if 1 <= s <= dimensions} | {1}
        self.dimensions = dimensions
        self.tuple_sizes = tuple(sorted(sizes))
        self.exploration = exploration
        self.tuples: list[NTuple] = [
            NTuple(dims)
            for size in self.tuple_sizes
            for dims in itertools.combinations(range(dimensions), size)
        ]
        self.total_visits = 0

    def update(self, config: Sequence[int], score: float) -> None:
        self.update_batch(config, [score])

    def update_batch(self, config: Sequence[int], scores: Iterable[float]) -> None:
        """Record several scores for ``config`` with a single merge per tuple."""
        local = NTupleStatistic()
        for score in scores:
            local.add(float(score))
        if local.n == 0:
            return
        for ntuple in self.tuples:
            key = ntuple.key(config)
            stat = ntuple.stats.get(key)
            if stat is None:
                stat = ntuple.stats[key] = NTupleStatistic()
            stat.merge(local)
        self.total_visits += local.n

    def value(self, config: Sequence[int]) -> float:
        """Mean of the observed tuple means (exploitation term only)."""
        means = [s.mean for s in (t.get(config) for t in self.tuples) if s is not None and s.n > 0]
        if not means:
            return 0.0
        return sum(means) / len(means)

    def estimate(self, config: Sequence[int]) -> tuple[float, float]:
        """Return ``(mean, upper_confidence_bound)`` for ``config``."""
        mean = self.value(config)
        bonus = 0.0
        for ntuple in self.tuples:
            stat = ntuple.get(config)
            bonus += exploration_bonus(
                stat.n if stat is not None else 0,
                self.total_visits,
                self.exploration,
            )
        return mean, mean + bonus / len(self.tuples)

    def visits(self, config: Sequence[int]) -> int:
        """Sum of visit counts across all tuples of ``config``."""
        return sum(s.n for s in (t.get(config) for t in self.tuples) if s is not None)

    def full_statistic(self, config: Sequence[int]) -> NTupleStatistic | None:
        """Statistic of the full-length tuple, if it is tracked and visited."""
        if self.tuple_sizes[-1] != self.dimensions:
            return None
        return self.tuples[-1].get(config)

    def std_err(self, config: Sequence[int]) -> float:
        stat = self.full_statistic(config)
        return stat.std_err if stat is not None else 0.0
