from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class VoteChoice(str, Enum):
    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


@dataclass
class VoteRecord:
    """
    One member's committed stake and choice against one proposal.

    The proposal is not stored here: the record's key is derived from
    (proposal key, owner), which is also what makes it unique. Business
    rules are enforced by the caller before open() is reached.
    """

    KIND = "vote"

    owner: str
    amount: int
    choice: VoteChoice

    @classmethod
    def open(cls, owner: str, amount: int, choice: VoteChoice) -> "VoteRecord":
        return cls(owner=owner, amount=int(amount), choice=VoteChoice(choice))

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "amount": self.amount, "choice": self.choice.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteRecord":
        return cls(owner=data["owner"], amount=int(data["amount"]), choice=VoteChoice(data["choice"]))
