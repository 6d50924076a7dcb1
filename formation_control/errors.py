"""Exception and warning types for the formation control agent."""


class FormationControlError(Exception):
    """Base class for errors raised by the formation control package."""


class ConfigurationError(FormationControlError, ValueError):
    """Invalid agent configuration or an unsolvable control law.

    Fatal: the agent must not keep running with a control law it cannot solve.
    """


class DimensionMismatchError(FormationControlError, ValueError):
    """A statistics vector does not have exactly STATS_DIMENSION elements."""


class MessageError(FormationControlError, ValueError):
    """A wire message could not be decoded."""


class StaleDataWarning(UserWarning):
    """A received batch was overwritten before any consensus step used it."""


class UnknownNeighborWarning(UserWarning):
    """An observation arrived from an agent outside the neighbor set."""
