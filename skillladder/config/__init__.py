"""Run configuration loading and validation."""

from .ladder_config import SkillLadderConfig, build_config, load_config, resolve_player_counts

__all__ = ["SkillLadderConfig", "build_config", "load_config", "resolve_player_counts"]
