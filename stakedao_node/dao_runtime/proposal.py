# stakedao_node/dao_runtime/proposal.py
"""
Proposal state machine.

    Open ──┬──> Succeeded   (terminal)
           └──> Failed      (terminal)

Finalization is lazy. Nothing polls the clock; instead try_finalize() is a
pure projection over (tallies, quorum, expiry, tick) that every
status-sensitive entry point runs first. Calling it any number of times
gives the same answer and never moves a terminal proposal.

Resolution order:
    1. decided = yes + no >= quorum
         -> Succeeded if yes > no, else Failed
    2. not decided and tick >= expiry -> Failed (insufficient participation)
    3. otherwise                      -> Open

Abstain votes are tallied (votes == yes + no + abstain at all times) but
never influence direction.

Payloads form a closed union (ValuePayout | ExecutableStub | OpinionPoll).
Execution dispatch lives with the executor, which owns the transfer
collaborator; this module only describes and validates them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

from .arith import checked_add, checked_sub, require_u64
from .errors import (
    EXPIRED,
    INVALID_GIST,
    INVALID_NAME,
    INVALID_PROPOSAL_STATUS,
    INVALID_VOTE_AMOUNT,
    require,
)
from .params import MAX_GIST_LENGTH, MAX_NAME_LENGTH
from .vote import VoteChoice


class ProposalStatus(str, Enum):
    OPEN = "open"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValuePayout:
    """Pay `amount` of native value from the treasury to `target`."""

    target: str
    amount: int


@dataclass(frozen=True)
class ExecutableStub:
    """Placeholder for future instruction dispatch; executes as a no-op."""


@dataclass(frozen=True)
class OpinionPoll:
    """Sentiment only; no value moves."""


Payload = Union[ValuePayout, ExecutableStub, OpinionPoll]


def payload_to_dict(payload: Payload) -> Dict[str, Any]:
    if isinstance(payload, ValuePayout):
        return {"type": "value_payout", "target": payload.target, "amount": payload.amount}
    if isinstance(payload, ExecutableStub):
        return {"type": "executable"}
    if isinstance(payload, OpinionPoll):
        return {"type": "opinion_poll"}
    raise TypeError(f"unknown payload {payload!r}")


def payload_from_dict(data: Dict[str, Any]) -> Payload:
    kind = data.get("type")
    if kind == "value_payout":
        return ValuePayout(target=str(data["target"]), amount=require_u64(data["amount"]))
    if kind == "executable":
        return ExecutableStub()
    if kind == "opinion_poll":
        return OpinionPoll()
    raise ValueError(f"unknown payload type {kind!r}")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProposalResults:
    yes: int
    no: int
    abstain: int
    total: int
    quorum: int
    status: ProposalStatus


def resolve_outcome(yes: int, no: int, quorum: int, expiry: int, tick: int) -> ProposalStatus:
    if yes + no >= quorum:
        return ProposalStatus.SUCCEEDED if yes > no else ProposalStatus.FAILED
    if tick >= expiry:
        return ProposalStatus.FAILED
    return ProposalStatus.OPEN


# ---------------------------------------------------------------------------
# Proposal
# ---------------------------------------------------------------------------


@dataclass
class Proposal:
    KIND = "proposal"

    id: int
    name: str
    gist: str
    payload: Payload
    quorum: int
    expiry: int
    owner: str
    status: ProposalStatus = ProposalStatus.OPEN
    votes: int = 0
    yes_votes: int = 0
    no_votes: int = 0
    abstain_votes: int = 0
    # set once the proposal has been executed or cleaned up
    settled: bool = False

    @classmethod
    def open(
        cls,
        *,
        proposal_id: int,
        name: str,
        gist: str,
        payload: Payload,
        quorum: int,
        expiry_duration: int,
        owner: str,
        tick: int,
    ) -> "Proposal":
        require(len(name) <= MAX_NAME_LENGTH, INVALID_NAME, f"name longer than {MAX_NAME_LENGTH}")
        require(len(gist) <= MAX_GIST_LENGTH, INVALID_GIST, f"gist longer than {MAX_GIST_LENGTH}")
        return cls(
            id=int(proposal_id),
            name=name,
            gist=gist,
            payload=payload,
            quorum=require_u64(quorum),
            expiry=checked_add(tick, expiry_duration),
            owner=owner,
        )

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def has_expired(self, tick: int) -> bool:
        return int(tick) >= self.expiry

    def check_expiry(self, tick: int) -> None:
        require(not self.has_expired(tick), EXPIRED)

    def assert_open(self) -> None:
        require(self.status == ProposalStatus.OPEN, INVALID_PROPOSAL_STATUS, self.status.value)

    def assert_succeeded(self) -> None:
        require(self.status == ProposalStatus.SUCCEEDED, INVALID_PROPOSAL_STATUS, self.status.value)

    def assert_failed(self) -> None:
        require(self.status == ProposalStatus.FAILED, INVALID_PROPOSAL_STATUS, self.status.value)

    # ------------------------------------------------------------------
    # Tallies
    # ------------------------------------------------------------------

    def _tally_field(self, choice: VoteChoice) -> str:
        return {
            VoteChoice.YES: "yes_votes",
            VoteChoice.NO: "no_votes",
            VoteChoice.ABSTAIN: "abstain_votes",
        }[VoteChoice(choice)]

    def cast_vote(self, amount: int, choice: VoteChoice, tick: int) -> ProposalStatus:
        self.assert_open()
        self.check_expiry(tick)
        require(int(amount) > 0, INVALID_VOTE_AMOUNT)
        field_name = self._tally_field(choice)
        total = checked_add(self.votes, amount)
        tally = checked_add(getattr(self, field_name), amount)
        self.votes = total
        setattr(self, field_name, tally)
        return self.try_finalize(tick)

    def retract_vote(self, amount: int, choice: VoteChoice, tick: int) -> None:
        self.assert_open()
        self.check_expiry(tick)
        field_name = self._tally_field(choice)
        total = checked_sub(self.votes, amount)
        tally = checked_sub(getattr(self, field_name), amount)
        self.votes = total
        setattr(self, field_name, tally)

    def try_finalize(self, tick: int) -> ProposalStatus:
        if self.status != ProposalStatus.OPEN:
            return self.status
        self.status = resolve_outcome(self.yes_votes, self.no_votes, self.quorum, self.expiry, tick)
        return self.status

    def results(self) -> ProposalResults:
        return ProposalResults(
            yes=self.yes_votes,
            no=self.no_votes,
            abstain=self.abstain_votes,
            total=self.votes,
            quorum=self.quorum,
            status=self.status,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "gist": self.gist,
            "payload": payload_to_dict(self.payload),
            "quorum": self.quorum,
            "expiry": self.expiry,
            "owner": self.owner,
            "status": self.status.value,
            "votes": self.votes,
            "yes_votes": self.yes_votes,
            "no_votes": self.no_votes,
            "abstain_votes": self.abstain_votes,
            "settled": self.settled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        fields = dict(data)
        fields["payload"] = payload_from_dict(fields["payload"])
        fields["status"] = ProposalStatus(fields["status"])
        return cls(**fields)
