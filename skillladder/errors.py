"""
Skill Ladder Error Hierarchy

Unified exception hierarchy for the tuning and evaluation pipeline.
All custom exceptions inherit from SkillLadderError for easy catching and
filtering at orchestration boundaries (tournament run, optimizer run, rung).

Usage:
    from skillladder.errors import ConfigurationError, SimulationError

    try:
        runner.run(agents)
    except SimulationError as e:
        logger.warning(f"Match failed: {e.message}, match: {e.context}")
"""

from typing import Any

__all__ = [
    # Base error
    "SkillLadderError",
    # Validation errors
    "ValidationError",
    "ConfigurationError",
    "InvalidConfigurationError",
    "InvalidConfiguration",
    # Simulation errors
    "SimulationError",
    "InvalidStateError",
    # Resource errors
    "ResourceError",
]


class SkillLadderError(Exception):
    """Base exception for all skill ladder errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "SKILL_LADDER_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(SkillLadderError):
    """Base class for validation errors."""
    code: str = "VALIDATION_ERROR"


class ConfigurationError(ValidationError):
    """Missing or invalid run setting.

    Raised before any simulation work starts: unknown game, player count
    outside the game's supported range, empty opponent set or search space,
    non-positive iteration or budget values.
    """
    code: str = "CONFIGURATION_ERROR"


class InvalidConfigurationError(ValidationError):
    """Search-space index vector with wrong length or out-of-range index.

    Always a defect in proposal generation; never recovered.

    Attributes:
        configuration: The offending index vector
    """
    code: str = "INVALID_CONFIGURATION"

    def __init__(
        self,
        message: str,
        configuration: tuple[int, ...] | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.configuration = configuration
        if configuration is not None:
            self.context["configuration"] = list(configuration)


# =============================================================================
# Simulation Errors
# =============================================================================


class SimulationError(SkillLadderError):
    """Rules engine or agent failure in the middle of a match.

    Not retried. Propagates to the enclosing tournament, optimizer run or
    rung, which decides whether to abort.
    """
    code: str = "SIMULATION_ERROR"

    def __init__(
        self,
        message: str,
        match_index: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.match_index = match_index
        if match_index is not None:
            self.context["match_index"] = match_index


class InvalidStateError(SkillLadderError):
    """Unexpected phase transition or internal state.

    Raised when a state machine is driven through a transition that is not
    part of its closed set of phases.
    """
    code: str = "INVALID_STATE"


# =============================================================================
# Resource Errors
# =============================================================================


class ResourceError(SkillLadderError):
    """Output directory or file cannot be created or written.

    Statistics already computed in memory stay valid.
    """
    code: str = "RESOURCE_ERROR"


# Alias matching the search-space vocabulary
InvalidConfiguration = InvalidConfigurationError
