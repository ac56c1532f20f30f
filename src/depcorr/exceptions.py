"""Exception types raised at the caller boundary."""

__all__ = ['InvalidInputError']


class InvalidInputError(ValueError):
    """Raised when gene lists or analysis parameters are rejected before a run."""
    pass
