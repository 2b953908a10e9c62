"""Parameter search: discrete search spaces, the n-tuple bandit model and NTBEA."""

from .ntbea import NTBEA, EliteSet, NTBEAParameters, NTBEAPhase, RunSummary
from .ntuple import NTupleModel, NTupleStatistic
from .search_space import Configuration, Dimension, SearchSpace

__all__ = [
    "NTBEA",
    "Configuration",
    "Dimension",
    "EliteSet",
    "NTBEAParameters",
    "NTBEAPhase",
    "NTupleModel",
    "NTupleStatistic",
    "RunSummary",
    "SearchSpace",
]
