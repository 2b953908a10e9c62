"""Shared infrastructure (logging)."""

from .logging_config import configure_third_party_loggers, setup_logging

__all__ = ["configure_third_party_loggers", "setup_logging"]
