"""
Deterministic record keys.

Every record lives under a key derived from a stable tuple, so any party
can compute where a record lives without asking a central allocator:

    config    <- ("config", seed)
    stake     <- ("stake", config_key, owner)
    member    <- ("member", config_key, owner)
    proposal  <- ("proposal", config_key, proposal_id)
    vote      <- ("vote", proposal_key, owner)

Holding areas for the value-transfer collaborator use the same scheme
(treasury, mint, per-member vault).
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    # Canonical JSON for hashing: stable sort + compact separators
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")


def derive_key(*parts: Any) -> str:
    return hashlib.sha256(canonical_json_bytes([str(p) for p in parts])).hexdigest()


def config_key(seed: int) -> str:
    return derive_key("config", int(seed))


def stake_key(cfg_key: str, owner: str) -> str:
    return derive_key("stake", cfg_key, owner)


def member_key(cfg_key: str, owner: str) -> str:
    return derive_key("member", cfg_key, owner)


def proposal_key(cfg_key: str, proposal_id: int) -> str:
    return derive_key("proposal", cfg_key, int(proposal_id))


def vote_key(prop_key: str, owner: str) -> str:
    return derive_key("vote", prop_key, owner)


def treasury_key(cfg_key: str) -> str:
    return derive_key("treasury", cfg_key)


def mint_key(cfg_key: str) -> str:
    return derive_key("mint", cfg_key)


def vault_key(cfg_key: str, owner: str) -> str:
    return derive_key("vault", cfg_key, owner)


def escrow_key(cfg_key: str) -> str:
    return derive_key("escrow", cfg_key)
