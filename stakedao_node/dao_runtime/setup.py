# stakedao_node/dao_runtime/setup.py
"""
Organization configuration record.

Parameters are fixed at initialization. The only mutable fields are the
proposal counter (register_new_proposal) and the issued token supply
(record_issue). Both move strictly forward.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from .arith import checked_add, require_u64
from .errors import (
    INVALID_EXPIRY,
    INVALID_PROPOSAL_SEED,
    INVALID_QUORUM,
    MAX_SUPPLY_EXCEEDED,
    require,
)


@dataclass
class OrgConfig:
    KIND = "config"

    seed: int
    issue_price: int
    issue_amount: int
    proposal_fee: int
    max_supply: int
    min_quorum: int
    max_expiry: int
    proposal_count: int = 0
    issued_supply: int = 0
    min_reputation_for_proposal: int = 0

    # Access-control discriminators
    authority_key: str = ""
    config_key: str = ""
    mint_key: str = ""
    treasury_key: str = ""

    @classmethod
    def initialize(
        cls,
        *,
        seed: int,
        issue_price: int,
        issue_amount: int,
        proposal_fee: int,
        max_supply: int,
        min_quorum: int,
        max_expiry: int,
        authority_key: str,
        config_key: str,
        mint_key: str,
        treasury_key: str,
        min_reputation_for_proposal: int = 0,
    ) -> "OrgConfig":
        return cls(
            seed=require_u64(seed),
            issue_price=require_u64(issue_price),
            issue_amount=require_u64(issue_amount),
            proposal_fee=require_u64(proposal_fee),
            max_supply=require_u64(max_supply),
            min_quorum=require_u64(min_quorum),
            max_expiry=require_u64(max_expiry),
            proposal_count=0,
            issued_supply=0,
            min_reputation_for_proposal=require_u64(min_reputation_for_proposal),
            authority_key=authority_key,
            config_key=config_key,
            mint_key=mint_key,
            treasury_key=treasury_key,
        )

    def register_new_proposal(self, proposal_id: int) -> None:
        """
        Increment the counter and require the declared id to equal it.
        Ids therefore run 1, 2, 3, ... with no gaps or reuse.
        """
        count = checked_add(self.proposal_count, 1)
        require(count == int(proposal_id), INVALID_PROPOSAL_SEED, f"expected id {count}, got {proposal_id}")
        self.proposal_count = count

    def validate_quorum(self, quorum: int) -> None:
        require(self.min_quorum <= int(quorum), INVALID_QUORUM, f"quorum below {self.min_quorum}")

    def validate_expiry(self, expiry: int) -> None:
        require(self.max_expiry >= int(expiry), INVALID_EXPIRY, f"expiry above {self.max_expiry}")

    def record_issue(self) -> int:
        """Account for one issuance of `issue_amount` tokens; returns the amount."""
        issued = checked_add(self.issued_supply, self.issue_amount)
        require(issued <= self.max_supply, MAX_SUPPLY_EXCEEDED, f"{issued} > {self.max_supply}")
        self.issued_supply = issued
        return self.issue_amount

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrgConfig":
        return cls(**data)
