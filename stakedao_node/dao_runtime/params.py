# stakedao_node/dao_runtime/params.py
from __future__ import annotations

"""
Runtime reward/reputation defaults for the DAO.

This module centralizes the "knobs" used by the executor to credit
points and adjust reputation around governance activity.

Key principles encoded here
---------------------------
1. **Points never move value.**
   - Reward points are accounting only. Token and treasury movements go
     through the value-transfer collaborator as explicit transfers.

2. **Points are checked, reputation saturates.**
   - Point counters hard-fail on overflow (see arith.checked_add).
   - Reputation is a soft score clamped to [0, max_reputation_score].

3. **The executor snapshots these values once.**
   - `RewardSchedule.from_mapping` merges the `rewards` config section
     over GOVERNANCE_PARAMS; runtime code never reads the dict directly.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

# ---------------------------------------------------------------------------
# Core parameter table
# ---------------------------------------------------------------------------

GOVERNANCE_PARAMS: Dict[str, Any] = {
    # -------------------------------------------------
    # Points
    # -------------------------------------------------
    # Base points for every vote cast
    "base_vote_points": 10,
    # Bonus points for a Yes vote on a proposal that succeeded
    "bonus_vote_points": 5,
    # Points for creating a proposal
    "proposal_creation_points": 50,
    # Points for the owner of a proposal that succeeded
    "proposal_success_points": 100,

    # -------------------------------------------------
    # Reputation deltas
    # -------------------------------------------------
    "vote_reputation_increase": 1,
    "vote_reputation_decrease": -2,
    "proposal_creation_reputation_increase": 5,
    "proposal_success_reputation_increase": 20,

    # -------------------------------------------------
    # Reputation bounds + decay
    # -------------------------------------------------
    "max_reputation_score": 10_000,
    # 5% decay per interval
    "reputation_decay_factor": 0.95,
    # 30 days, in seconds of wall time
    "reputation_decay_interval": 30 * 24 * 60 * 60,
}

# Recommended gate for proposal creation.
# Organizations opt in through their `min_reputation_for_proposal` parameter.
SUGGESTED_MIN_REPUTATION_FOR_PROPOSAL = 100

# Proposal text bounds
MAX_NAME_LENGTH = 32
MAX_GIST_LENGTH = 72


def get_param(name: str, default: Any | None = None) -> Any:
    """
    Helper to safely access governance parameters.

    >>> get_param("base_vote_points")
    10
    """
    return GOVERNANCE_PARAMS.get(name, default)


@dataclass(frozen=True)
class RewardSchedule:
    base_vote_points: int = GOVERNANCE_PARAMS["base_vote_points"]
    bonus_vote_points: int = GOVERNANCE_PARAMS["bonus_vote_points"]
    proposal_creation_points: int = GOVERNANCE_PARAMS["proposal_creation_points"]
    proposal_success_points: int = GOVERNANCE_PARAMS["proposal_success_points"]
    vote_reputation_increase: int = GOVERNANCE_PARAMS["vote_reputation_increase"]
    vote_reputation_decrease: int = GOVERNANCE_PARAMS["vote_reputation_decrease"]
    proposal_creation_reputation_increase: int = GOVERNANCE_PARAMS[
        "proposal_creation_reputation_increase"
    ]
    proposal_success_reputation_increase: int = GOVERNANCE_PARAMS[
        "proposal_success_reputation_increase"
    ]
    max_reputation_score: int = GOVERNANCE_PARAMS["max_reputation_score"]
    reputation_decay_factor: float = GOVERNANCE_PARAMS["reputation_decay_factor"]
    reputation_decay_interval: int = GOVERNANCE_PARAMS["reputation_decay_interval"]

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "RewardSchedule":
        """
        Build a schedule from GOVERNANCE_PARAMS with `overrides` on top.
        Unknown keys are ignored so older config files keep loading.
        """
        merged = dict(GOVERNANCE_PARAMS)
        merged.update(overrides or {})
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in merged:
                continue
            if f.name == "reputation_decay_factor":
                kwargs[f.name] = float(merged[f.name])
            else:
                kwargs[f.name] = int(merged[f.name])
        return cls(**kwargs)
