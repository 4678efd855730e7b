# stakedao_node/dao_runtime/errors.py
from __future__ import annotations

"""
Error taxonomy for the governance runtime.

Every failure raised by the runtime is a DaoError carrying a stable string
`code` (the same strings surface as HTTP `detail` values). Codes are grouped
into categories, one exception class per category, so callers can catch a
whole family (e.g. every arithmetic bound violation) or inspect `.code`.

Nothing here is retried: all of these are business-rule or arithmetic-bound
violations, never transient faults.
"""

from typing import Dict, Optional, Type

# Arithmetic
OVERFLOW = "Overflow"
UNDERFLOW = "Underflow"

# State
INVALID_PROPOSAL_STATUS = "InvalidProposalStatus"
EXPIRED = "Expired"

# Validation
INVALID_NAME = "InvalidName"
INVALID_GIST = "InvalidGist"
INVALID_VOTE_AMOUNT = "InvalidVoteAmount"
INVALID_QUORUM = "InvalidQuorum"
INVALID_EXPIRY = "InvalidExpiry"
INVALID_PROPOSAL_SEED = "InvalidProposalSeed"

# Authorization
PAYEE_MISMATCH = "PayeeMismatch"
INVALID_AUTHORITY = "InvalidAuthority"

# Resource
ACCOUNTS_OPEN = "AccountsOpen"
INVALID_SLOT = "InvalidSlot"
INSUFFICIENT_STAKE = "InsufficientStake"
STAKE_NOT_EMPTY = "StakeNotEmpty"
MAX_SUPPLY_EXCEEDED = "MaxSupplyExceeded"
INSUFFICIENT_REPUTATION = "InsufficientReputation"
INSUFFICIENT_FUNDS = "InsufficientFunds"

# Storage
ALREADY_EXISTS = "AlreadyExists"
NOT_FOUND = "NotFound"


class DaoError(RuntimeError):
    category = "dao"

    def __init__(self, code: str, detail: Optional[str] = None) -> None:
        self.code = code
        self.detail = detail
        super().__init__(f"{code}: {detail}" if detail else code)


class ArithmeticViolation(DaoError):
    category = "arithmetic"


class StateViolation(DaoError):
    category = "state"


class ValidationFailure(DaoError):
    category = "validation"


class AuthorizationFailure(DaoError):
    category = "authorization"


class ResourceConflict(DaoError):
    category = "resource"


class StorageError(DaoError):
    category = "storage"


_CODE_TO_CLASS: Dict[str, Type[DaoError]] = {
    OVERFLOW: ArithmeticViolation,
    UNDERFLOW: ArithmeticViolation,
    INVALID_PROPOSAL_STATUS: StateViolation,
    EXPIRED: StateViolation,
    INVALID_NAME: ValidationFailure,
    INVALID_GIST: ValidationFailure,
    INVALID_VOTE_AMOUNT: ValidationFailure,
    INVALID_QUORUM: ValidationFailure,
    INVALID_EXPIRY: ValidationFailure,
    INVALID_PROPOSAL_SEED: ValidationFailure,
    PAYEE_MISMATCH: AuthorizationFailure,
    INVALID_AUTHORITY: AuthorizationFailure,
    ACCOUNTS_OPEN: ResourceConflict,
    INVALID_SLOT: ResourceConflict,
    INSUFFICIENT_STAKE: ResourceConflict,
    STAKE_NOT_EMPTY: ResourceConflict,
    MAX_SUPPLY_EXCEEDED: ResourceConflict,
    INSUFFICIENT_REPUTATION: ResourceConflict,
    INSUFFICIENT_FUNDS: ResourceConflict,
    ALREADY_EXISTS: StorageError,
    NOT_FOUND: StorageError,
}


def error_for(code: str, detail: Optional[str] = None) -> DaoError:
    """Build the exception instance matching `code`'s category."""
    cls = _CODE_TO_CLASS.get(code, DaoError)
    return cls(code, detail)


def require(cond: bool, code: str, detail: Optional[str] = None) -> None:
    if not cond:
        raise error_for(code, detail)
