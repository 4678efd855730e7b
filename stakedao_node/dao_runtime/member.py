# stakedao_node/dao_runtime/member.py
from __future__ import annotations

"""
Member profile: reward points + reputation.

Point counters are value-like and use checked arithmetic. `reward_points`
is never written directly; every mutation ends with _recompute(), so

    reward_points == base + bonus + creation + success

holds after any sequence of operations. `forfeited_points` is an audit
counter for deductions that could not be taken because the base counter
had already run dry; it is not part of reward_points.

Reputation is a soft score: saturating in both directions, clamped to
[0, ceiling], and decayed geometrically over wall time.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

from .arith import U64_MAX, checked_add, saturating_add, saturating_sub


@dataclass(frozen=True)
class MemberProfileView:
    identity: str
    reward_points: int
    base_voting_points: int
    bonus_voting_points: int
    proposal_creation_points: int
    proposal_success_points: int
    forfeited_points: int
    total_votes_cast: int
    proposals_created: int
    successful_proposals: int
    join_date: int
    reputation_score: int


@dataclass
class MemberProfile:
    KIND = "member"

    identity: str
    base_voting_points: int = 0
    bonus_voting_points: int = 0
    proposal_creation_points: int = 0
    proposal_success_points: int = 0
    forfeited_points: int = 0
    reward_points: int = 0
    total_votes_cast: int = 0
    proposals_created: int = 0
    successful_proposals: int = 0
    join_date: int = 0
    reputation_score: int = 0
    last_decay_at: int = 0

    @classmethod
    def initialize(cls, identity: str, now: int) -> "MemberProfile":
        return cls(identity=identity, join_date=int(now), last_decay_at=int(now))

    def _recompute(self) -> None:
        total = 0
        for part in (
            self.base_voting_points,
            self.bonus_voting_points,
            self.proposal_creation_points,
            self.proposal_success_points,
        ):
            total = saturating_add(total, part)
        self.reward_points = total

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------

    def record_vote(self, points: int) -> None:
        base = checked_add(self.base_voting_points, points)
        votes = checked_add(self.total_votes_cast, 1)
        self.base_voting_points, self.total_votes_cast = base, votes
        self._recompute()

    def record_bonus_vote(self, points: int) -> None:
        self.bonus_voting_points = checked_add(self.bonus_voting_points, points)
        self._recompute()

    def record_proposal_creation(self, points: int) -> None:
        creation = checked_add(self.proposal_creation_points, points)
        created = checked_add(self.proposals_created, 1)
        self.proposal_creation_points, self.proposals_created = creation, created
        self._recompute()

    def record_proposal_success(self, points: int) -> None:
        success = checked_add(self.proposal_success_points, points)
        count = checked_add(self.successful_proposals, 1)
        self.proposal_success_points, self.successful_proposals = success, count
        self._recompute()

    def forfeit_vote_points(self, points: int) -> None:
        points = max(0, int(points))
        shortfall = max(0, points - self.base_voting_points)
        self.base_voting_points = saturating_sub(self.base_voting_points, points)
        self.forfeited_points = saturating_add(self.forfeited_points, shortfall)
        self._recompute()

    # ------------------------------------------------------------------
    # Reputation
    # ------------------------------------------------------------------

    def adjust_reputation(self, delta: int, ceiling: int = U64_MAX) -> int:
        if delta >= 0:
            self.reputation_score = saturating_add(self.reputation_score, delta, ceiling)
        else:
            self.reputation_score = saturating_sub(self.reputation_score, -delta)
        return self.reputation_score

    def apply_reputation_decay(self, now: int, factor: float, interval: int) -> int:
        """
        Apply one decay step per whole `interval` elapsed since the last
        decay. Partial intervals carry over to the next call.
        """
        if interval <= 0:
            return self.reputation_score
        if self.last_decay_at <= 0:
            self.last_decay_at = int(now)
            return self.reputation_score
        periods = (int(now) - self.last_decay_at) // interval
        if periods <= 0:
            return self.reputation_score
        self.reputation_score = max(0, int(self.reputation_score * (factor ** periods)))
        self.last_decay_at += periods * interval
        return self.reputation_score

    def snapshot(self) -> MemberProfileView:
        return MemberProfileView(
            identity=self.identity,
            reward_points=self.reward_points,
            base_voting_points=self.base_voting_points,
            bonus_voting_points=self.bonus_voting_points,
            proposal_creation_points=self.proposal_creation_points,
            proposal_success_points=self.proposal_success_points,
            forfeited_points=self.forfeited_points,
            total_votes_cast=self.total_votes_cast,
            proposals_created=self.proposals_created,
            successful_proposals=self.successful_proposals,
            join_date=self.join_date,
            reputation_score=self.reputation_score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemberProfile":
        return cls(**data)
