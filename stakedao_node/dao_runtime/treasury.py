"""
stakedao_node/dao_runtime/treasury.py
-------------------------------------

Value-transfer collaborator.

The governance core never mutates balances itself. It asks a bank to move
fungible value between holding areas:

    transfer(source, dest, amount)
        Unconditional move out of an area the caller controls (a member
        wallet paying a fee, a member staking tokens).

    transfer_authorized(source, dest, amount, authority_proof)
        Move out of an area owned by an organization (treasury, mint,
        member vaults). The proof is an Ed25519 signature by the area's
        registered authority over transfer_message(source, dest, amount).

InMemoryBank is the reference implementation used by the dev node and the
tests. The node runs two of them: one for the native value (fees, issue
price, bounty payouts) and one for the governance token (staking, issuance).

Invariants:
- Balances never go negative; a short source fails InsufficientFunds and
  moves nothing.
- `total_supply` only changes through open_area(initial=...).
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, Optional, Protocol

from .arith import checked_add, checked_sub, require_u64
from .crypto_utils import ed25519_verify, transfer_message
from .errors import INSUFFICIENT_FUNDS, INVALID_AUTHORITY, error_for

log = logging.getLogger(__name__)


class ValueTransfer(Protocol):
    def open_area(self, key: str, authority: Optional[str] = None, initial: int = 0) -> None: ...

    def balance_of(self, key: str) -> int: ...

    def authority_of(self, key: str) -> Optional[str]: ...

    def transfer(self, source: str, dest: str, amount: int) -> None: ...

    def transfer_authorized(self, source: str, dest: str, amount: int, authority_proof: str) -> None: ...


class InMemoryBank:
    def __init__(self, name: str = "native") -> None:
        self.name = name
        self.balances: Dict[str, int] = {}
        # area key -> authority public key hex (areas without one are caller-controlled)
        self.authorities: Dict[str, str] = {}
        self.total_supply: int = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Holding areas
    # ------------------------------------------------------------------

    def open_area(self, key: str, authority: Optional[str] = None, initial: int = 0) -> None:
        """
        Register a holding area, optionally guarded by an authority key and
        seeded with `initial` freshly created value (genesis funding, mint
        reserve). Re-opening an existing area only tops it up.
        """
        with self._lock:
            if authority:
                self.authorities[key] = authority
            self.balances.setdefault(key, 0)
            if initial:
                self.balances[key] = checked_add(self.balances[key], initial)
                self.total_supply = checked_add(self.total_supply, initial)

    def fund(self, key: str, amount: int) -> None:
        """Create value in a caller-controlled area (faucet / test helper)."""
        self.open_area(key, initial=amount)

    def balance_of(self, key: str) -> int:
        return int(self.balances.get(key, 0))

    def authority_of(self, key: str) -> Optional[str]:
        return self.authorities.get(key)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def _move(self, source: str, dest: str, amount: int) -> None:
        amount = require_u64(amount)
        have = self.balances.get(source, 0)
        if have < amount:
            raise error_for(INSUFFICIENT_FUNDS, f"{self.name}: {have} < {amount}")
        if source == dest:
            return
        new_dest = checked_add(self.balances.get(dest, 0), amount)
        self.balances[source] = checked_sub(have, amount)
        self.balances[dest] = new_dest
        log.debug("[%s] %s -> %s : %d", self.name, source[:12], dest[:12], amount)

    def transfer(self, source: str, dest: str, amount: int) -> None:
        with self._lock:
            if source in self.authorities:
                raise error_for(INVALID_AUTHORITY, f"{self.name}: area requires authority proof")
            self._move(source, dest, amount)

    def transfer_authorized(self, source: str, dest: str, amount: int, authority_proof: str) -> None:
        with self._lock:
            authority = self.authorities.get(source)
            if not authority or not ed25519_verify(
                authority, transfer_message(source, dest, amount), authority_proof
            ):
                raise error_for(INVALID_AUTHORITY, f"{self.name}: bad proof for {source[:12]}")
            self._move(source, dest, amount)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "balances": dict(self.balances),
                "authorities": dict(self.authorities),
                "total_supply": self.total_supply,
            }

    def restore(self, state: Optional[Dict[str, Any]]) -> None:
        state = copy.deepcopy(state or {})
        with self._lock:
            self.balances = {str(k): int(v) for k, v in (state.get("balances") or {}).items()}
            self.authorities = dict(state.get("authorities") or {})
            self.total_supply = int(state.get("total_supply", 0))
