"""Skill ladder experiments: NTBEA tuning and tournament evaluation of agents
under escalating resource budgets."""

__version__ = "0.1.0"
