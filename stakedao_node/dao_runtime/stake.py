from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from .arith import checked_add, checked_sub
from .errors import ACCOUNTS_OPEN, INSUFFICIENT_STAKE, INVALID_SLOT, require


@dataclass
class StakeLedger:
    """
    Per-member staked balance and count of open voting commitments.

    - `amount` is the voting power; it only moves through deposit/withdraw.
    - `accounts` counts vote records still holding a reservation. While it is
      non-zero the stake is locked.
    - `updated` is the tick of the last deposit/withdraw. Withdrawing in the
      same tick as the last update is rejected so stake cannot be pumped and
      dumped around a vote inside one slot.
    """

    KIND = "stake"

    owner: str
    amount: int = 0
    accounts: int = 0
    updated: int = 0

    @classmethod
    def open(cls, owner: str, tick: int) -> "StakeLedger":
        return cls(owner=owner, amount=0, accounts=0, updated=int(tick))

    def deposit(self, amount: int, tick: int) -> None:
        self.amount = checked_add(self.amount, amount)
        self.updated = int(tick)

    def withdraw(self, amount: int, tick: int) -> None:
        require(self.accounts == 0, ACCOUNTS_OPEN, f"{self.accounts} open vote(s)")
        require(self.updated < int(tick), INVALID_SLOT)
        self.amount = checked_sub(self.amount, amount)
        self.updated = int(tick)

    def reserve_for_vote(self) -> None:
        self.accounts = checked_add(self.accounts, 1)

    def release_from_vote(self) -> None:
        self.accounts = checked_sub(self.accounts, 1)

    def require_positive_stake(self) -> None:
        require(self.amount > 0, INSUFFICIENT_STAKE)

    def require_stake_at_least(self, amount: int) -> None:
        require(self.amount >= int(amount), INSUFFICIENT_STAKE, f"{self.amount} < {amount}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakeLedger":
        return cls(**data)
