"""Tests for skillladder/errors.py - error hierarchy."""

import pytest

from skillladder.errors import (
    ConfigurationError,
    InvalidConfiguration,
    InvalidConfigurationError,
    InvalidStateError,
    ResourceError,
    SimulationError,
    SkillLadderError,
    ValidationError,
)


class TestHierarchy:
    """All errors are catchable at one orchestration boundary."""

    @pytest.mark.parametrize(
        "error_cls",
        [
            ConfigurationError,
            InvalidConfigurationError,
            SimulationError,
            InvalidStateError,
            ResourceError,
        ],
    )
    def test_subclass_of_base(self, error_cls):
        """Every error derives from SkillLadderError."""
        assert issubclass(error_cls, SkillLadderError)

    def test_configuration_errors_are_validation_errors(self):
        """Configuration problems are validation errors."""
        assert issubclass(ConfigurationError, ValidationError)
        assert issubclass(InvalidConfigurationError, ValidationError)

    def test_alias(self):
        assert InvalidConfiguration is InvalidConfigurationError


class TestFormatting:
    def test_str_without_context(self):
        """Message is prefixed with the error code."""
        err = ConfigurationError("No game provided")
        assert str(err) == "[CONFIGURATION_ERROR] No game provided"

    def test_str_with_context(self):
        """Context entries are appended as key=value pairs."""
        err = ResourceError("Cannot write", context={"path": "out"})
        assert str(err) == "[RESOURCE_ERROR] Cannot write (path=out)"

    def test_custom_code(self):
        """A per-instance code overrides the class code."""
        err = SkillLadderError("x", code="CUSTOM")
        assert err.code == "CUSTOM"
        assert SkillLadderError.code == "SKILL_LADDER_ERROR"

    def test_to_dict(self):
        """to_dict gives a JSON-friendly record."""
        err = SimulationError("Match failed", match_index=4)
        assert err.to_dict() == {
            "code": "SIMULATION_ERROR",
            "message": "Match failed",
            "context": {"match_index": 4},
        }


class TestInvalidConfigurationError:
    def test_records_configuration(self):
        """The offending configuration is kept and added to the context."""
        err = InvalidConfigurationError("bad", configuration=(0, 7))
        assert err.configuration == (0, 7)
        assert err.context["configuration"] == [0, 7]

    def test_keeps_extra_context(self):
        """"""
        err = InvalidConfigurationError("bad", configuration=(1,), context={"dimension": 0})
        assert err.context == {"dimension": 0, "configuration": [1]}
