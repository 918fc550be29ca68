"""
IterDAO Exceptions

Custom exception classes for the governance engine.

Every governance failure derives from GovernanceError and falls into one of
five categories: validation, authorization, state, arithmetic and timing.
The category classes also inherit the closest builtin so callers outside the
engine can catch them generically.
"""


class IterDAOException(Exception):
    """Base exception for IterDAO."""
    pass


class ConfigurationError(IterDAOException):
    """Configuration error."""
    pass


class GovernanceError(IterDAOException):
    """Base governance exception."""
    pass


class ValidationError(GovernanceError, ValueError):
    """Malformed parameters (threshold, delay, instructions, voting period)."""
    pass


class AuthorizationError(GovernanceError, PermissionError):
    """Caller is not the authority, the proposer, or a registered voter."""
    pass


class StateError(GovernanceError):
    """Operation attempted from a disallowed lifecycle state."""
    pass


class DuplicateVoterError(StateError):
    """Voter identity already present in the roster."""
    pass


class DuplicateVoteError(StateError):
    """A vote record already exists for this (proposal, voter) pair."""
    pass


class GovernanceArithmeticError(GovernanceError, ArithmeticError):
    """Checked addition or subtraction left its integer domain."""
    pass


class TimingError(GovernanceError):
    """Action attempted before its time gate opened."""
    pass
