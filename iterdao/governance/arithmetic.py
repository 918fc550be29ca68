"""
Checked integer arithmetic for tallies and timestamps.

Python integers never overflow, so the fixed-width domains the engine
guarantees (u64 weights and counters, i64 timestamps and delays) are
enforced explicitly here. Every helper raises GovernanceArithmeticError
when a result leaves its domain.
"""

from ..constants import I64_MAX, I64_MIN, U64_MAX
from ..exceptions import GovernanceArithmeticError, ValidationError


def checked_add_u64(a: int, b: int) -> int:
    result = a + b
    if result > U64_MAX:
        raise GovernanceArithmeticError(f"u64 overflow: {a} + {b}")
    return result


def checked_sub_u64(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise GovernanceArithmeticError(f"u64 underflow: {a} - {b}")
    return result


def checked_add_i64(a: int, b: int) -> int:
    result = a + b
    if result > I64_MAX or result < I64_MIN:
        raise GovernanceArithmeticError(f"i64 overflow: {a} + {b}")
    return result


def percent_floor(part: int, total: int) -> int:
    """
    floor(part * 100 / total).

    The multiplication happens in the widened (u128) domain, so any pair of
    u64 inputs is accepted.
    """
    if total <= 0:
        raise GovernanceArithmeticError("Percentage of an empty total")
    return (part * 100) // total


def require_u64(value: int, name: str) -> int:
    """Reject anything that is not an integer in [0, U64_MAX]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer (got {value!r})")
    if value < 0 or value > U64_MAX:
        raise ValidationError(f"{name} {value} outside u64 range")
    return value


def require_i64(value: int, name: str) -> int:
    """Reject anything that is not an integer in [I64_MIN, I64_MAX]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer (got {value!r})")
    if value < I64_MIN or value > I64_MAX:
        raise ValidationError(f"{name} {value} outside i64 range")
    return value
