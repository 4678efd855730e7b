"""
u64 arithmetic helpers.

Two families, deliberately kept apart:

- checked_*     value-bearing counters (stake, tallies, points). Crossing the
                u64 bound raises Overflow / Underflow and aborts the command.
- saturating_*  soft scores (reputation, forfeiture). Results clamp to
                [0, ceiling] and never raise.
"""

from __future__ import annotations

from .errors import OVERFLOW, UNDERFLOW, error_for

U64_MAX: int = 2**64 - 1


def require_u64(value: int) -> int:
    v = int(value)
    if v < 0:
        raise error_for(UNDERFLOW, f"{v} is negative")
    if v > U64_MAX:
        raise error_for(OVERFLOW, f"{v} exceeds u64")
    return v


def checked_add(a: int, b: int) -> int:
    out = require_u64(a) + require_u64(b)
    if out > U64_MAX:
        raise error_for(OVERFLOW)
    return out


def checked_sub(a: int, b: int) -> int:
    out = require_u64(a) - require_u64(b)
    if out < 0:
        raise error_for(UNDERFLOW)
    return out


def saturating_add(a: int, b: int, ceiling: int = U64_MAX) -> int:
    return min(int(a) + max(0, int(b)), ceiling, U64_MAX)


def saturating_sub(a: int, b: int) -> int:
    return max(0, int(a) - max(0, int(b)))
