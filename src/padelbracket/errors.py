"""Exceptions raised by the bracket engine and its service layer."""


class BracketError(Exception):
    """Base exception for all padelbracket errors."""

    pass


# ========== Input Errors ==========


class InvalidInput(BracketError):
    """Raised for malformed team lists or configs, before any state change."""

    pass


class InsufficientTeams(InvalidInput):
    """Raised when a bracket is generated with fewer than 2 teams."""

    pass


class InvalidGroupConfig(InvalidInput):
    """Raised when a groups configuration does not fit the teams supplied."""

    pass


class ValidationFailed(BracketError):
    """Raised when a submitted score violates the scoring rules."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# ========== State Errors ==========


class NotFound(BracketError):
    """Raised when a referenced bracket or match does not exist."""

    pass


class IllegalTransition(BracketError):
    """Raised when an operation is not allowed in the current state."""

    pass


class ConcurrencyConflict(IllegalTransition):
    """Raised when a match row changed since it was read."""

    pass
