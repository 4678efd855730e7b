from __future__ import annotations

"""
DAO Executor

Coordinates every upward command against the runtime records:

    initialize-organization, open-stake, deposit-stake, withdraw-stake,
    close-stake, issue-tokens, create-proposal, cast-vote, retract-vote,
    cleanup-vote, execute-proposal, cleanup-proposal, query-results,
    query-member-profile

Unit of work
------------
Each command runs under the executor lock inside one store transaction:

    1. load fresh copies of the records it touches
    2. mutate them (any DaoError aborts here, nothing is visible)
    3. settle value: pre-check funds and authority for every transfer,
       then open holding areas and perform the transfers
    4. commit the staged records, then snapshot to disk if persistence is on
       and the unit changed anything

Value transfers are therefore requested only after every record mutation
succeeded, and records are committed only after the transfers went through.

Finalization is lazy: every status-sensitive command (vote, retract,
cleanup, execute, results) runs Proposal.try_finalize() against the current
tick first. There is no background loop.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config import default_config, get_node_secret
from .dao_runtime import keys
from .dao_runtime.atomic_store import AtomicLedgerStore, KeyedStore, StoreTransaction
from .dao_runtime.clock import ClockReading, SystemClock
from .dao_runtime.crypto_utils import (
    derive_authority_seed,
    ed25519_keypair_from_seed,
    ed25519_sign,
    transfer_message,
)
from .dao_runtime.errors import (
    ACCOUNTS_OPEN,
    INSUFFICIENT_FUNDS,
    INVALID_AUTHORITY,
    INSUFFICIENT_REPUTATION,
    INVALID_PROPOSAL_STATUS,
    PAYEE_MISMATCH,
    STAKE_NOT_EMPTY,
    DaoError,
    error_for,
    require,
)
from .dao_runtime.member import MemberProfile, MemberProfileView
from .dao_runtime.params import RewardSchedule
from .dao_runtime.proposal import (
    ExecutableStub,
    OpinionPoll,
    Payload,
    Proposal,
    ProposalResults,
    ProposalStatus,
    ValuePayout,
)
from .dao_runtime.setup import OrgConfig
from .dao_runtime.stake import StakeLedger
from .dao_runtime.treasury import InMemoryBank, ValueTransfer
from .dao_runtime.vote import VoteChoice, VoteRecord

log = logging.getLogger(__name__)


@dataclass
class _Transfer:
    bank: ValueTransfer
    source: str
    dest: str
    amount: int
    # org config key whose authority signs, None for caller-controlled sources
    authority_of: Optional[str] = None


@dataclass
class _Unit:
    tx: StoreTransaction
    now: ClockReading
    transfers: List[_Transfer] = field(default_factory=list)
    areas: List[Tuple[ValueTransfer, str, Optional[str], int]] = field(default_factory=list)


class DaoExecutor:
    def __init__(
        self,
        cfg: Optional[Dict[str, Any]] = None,
        *,
        clock: Any = None,
        native: Optional[ValueTransfer] = None,
        tokens: Optional[ValueTransfer] = None,
        store: Optional[KeyedStore] = None,
        node_secret: Optional[str] = None,
    ) -> None:
        self.cfg = cfg or default_config()
        self.clock = clock or SystemClock(float(self.cfg.get("clock", {}).get("slot_seconds", 0.4)))
        self.native = native if native is not None else InMemoryBank("native")
        self.tokens = tokens if tokens is not None else InMemoryBank("tokens")
        self.store = store or KeyedStore()
        self.rewards = RewardSchedule.from_mapping(self.cfg.get("rewards"))
        self._node_secret = node_secret or get_node_secret()
        self._lock = threading.RLock()

        persistence = self.cfg.get("persistence", {})
        self.record_deposit = int(persistence.get("record_deposit", 0))
        self.persist: Optional[AtomicLedgerStore] = None
        if persistence.get("enabled"):
            self.persist = AtomicLedgerStore(
                Path(persistence.get("state_dir", "data")),
                filename=persistence.get("filename", "dao_state.json"),
                keep_backups=int(persistence.get("keep_backups", 2)),
            )
            self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> bool:
        if self.persist is None:
            return False
        state = self.persist.load()
        if not state:
            return False
        with self._lock:
            self.store.restore(state.get("records"))
            if isinstance(self.native, InMemoryBank):
                self.native.restore(state.get("native"))
            if isinstance(self.tokens, InMemoryBank):
                self.tokens.restore(state.get("tokens"))
        log.info("Loaded DAO state from %s (%d records)", self.persist.path, len(self.store.keys()))
        return True

    def save(self) -> None:
        if self.persist is None:
            return
        state: Dict[str, Any] = {"records": self.store.snapshot()}
        if isinstance(self.native, InMemoryBank):
            state["native"] = self.native.snapshot()
        if isinstance(self.tokens, InMemoryBank):
            state["tokens"] = self.tokens.snapshot()
        self.persist.save(state)

    # ------------------------------------------------------------------
    # Authority
    # ------------------------------------------------------------------

    def _authority_keypair(self, cfg_key: str) -> Tuple[str, str]:
        return ed25519_keypair_from_seed(derive_authority_seed(self._node_secret, cfg_key))

    def authority_public_key(self, cfg_key: str) -> str:
        return self._authority_keypair(cfg_key)[1]

    def _sign_transfer(self, cfg_key: str, source: str, dest: str, amount: int) -> str:
        sk_hex, _ = self._authority_keypair(cfg_key)
        return ed25519_sign(sk_hex, transfer_message(source, dest, amount))

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def _unit(self, command: str) -> Iterator[_Unit]:
        with self._lock:
            try:
                with self.store.transaction() as tx:
                    unit = _Unit(tx=tx, now=self.clock.now())
                    yield unit
                    self._settle(unit)
                    changed = tx.has_changes or bool(unit.transfers or unit.areas)
            except DaoError as exc:
                log.warning("%s rejected: %s", command, exc)
                raise
            if changed:
                self.save()

    def _precheck(self, unit: _Unit) -> None:
        """
        Reject the unit before any value moves: every source must cover its
        total outflow and every guarded source must accept this node's proof.
        """
        opening = {(id(bank), key): authority for bank, key, authority, _ in unit.areas}
        outflow: Dict[Tuple[int, str], int] = {}
        for t in unit.transfers:
            k = (id(t.bank), t.source)
            outflow[k] = outflow.get(k, 0) + t.amount

        for t in unit.transfers:
            k = (id(t.bank), t.source)
            have = t.bank.balance_of(t.source)
            require(have >= outflow[k], INSUFFICIENT_FUNDS, f"{t.source[:12]} holds {have}, needs {outflow[k]}")

            guard = opening.get(k) or t.bank.authority_of(t.source)
            if t.authority_of is None:
                require(guard is None, INVALID_AUTHORITY, f"{t.source[:12]} requires authority proof")
            else:
                signer = self.authority_public_key(t.authority_of)
                require(guard == signer, INVALID_AUTHORITY, f"{t.source[:12]} is not held by this node's authority")

    def _settle(self, unit: _Unit) -> None:
        self._precheck(unit)

        for bank, key, authority, initial in unit.areas:
            bank.open_area(key, authority=authority, initial=initial)

        for t in unit.transfers:
            if t.amount <= 0:
                continue
            if t.authority_of is None:
                t.bank.transfer(t.source, t.dest, t.amount)
            else:
                proof = self._sign_transfer(t.authority_of, t.source, t.dest, t.amount)
                t.bank.transfer_authorized(t.source, t.dest, t.amount, proof)

    def _config(self, tx: StoreTransaction, seed: int) -> Tuple[str, OrgConfig]:
        cfg_key = keys.config_key(seed)
        return cfg_key, tx.load(cfg_key, OrgConfig)

    def _touch_reputation(self, member: MemberProfile, now: ClockReading, delta: int) -> None:
        member.apply_reputation_decay(
            now.wall_time, self.rewards.reputation_decay_factor, self.rewards.reputation_decay_interval
        )
        member.adjust_reputation(delta, self.rewards.max_reputation_score)

    # ------------------------------------------------------------------
    # Organization
    # ------------------------------------------------------------------

    def initialize_organization(self, seed: int, **params: Any) -> OrgConfig:
        """
        Create the organization configuration for `seed`. Missing parameters
        fall back to the `dao` config section.
        """
        defaults = dict(self.cfg.get("dao", {}))
        defaults.update({k: v for k, v in params.items() if v is not None})

        with self._unit("initialize_organization") as unit:
            cfg_key = keys.config_key(seed)
            authority = self.authority_public_key(cfg_key)
            org = OrgConfig.initialize(
                seed=seed,
                issue_price=defaults["issue_price"],
                issue_amount=defaults["issue_amount"],
                proposal_fee=defaults["proposal_fee"],
                max_supply=defaults["max_supply"],
                min_quorum=defaults["min_quorum"],
                max_expiry=defaults["max_expiry"],
                min_reputation_for_proposal=defaults.get("min_reputation_for_proposal", 0),
                authority_key=authority,
                config_key=cfg_key,
                mint_key=keys.mint_key(cfg_key),
                treasury_key=keys.treasury_key(cfg_key),
            )
            unit.tx.create(cfg_key, org)
            unit.areas.append((self.native, org.treasury_key, authority, 0))
            unit.areas.append((self.native, keys.escrow_key(cfg_key), authority, 0))
            unit.areas.append((self.tokens, org.mint_key, authority, org.max_supply))

        log.info("Initialized organization seed=%s config=%s", seed, cfg_key[:12])
        return org

    def get_organization(self, seed: int) -> OrgConfig:
        with self._lock:
            return self.store.load(keys.config_key(seed), OrgConfig)

    def issue_tokens(self, seed: int, buyer: str) -> int:
        """Sell one `issue_amount` lot of governance tokens for `issue_price`."""
        with self._unit("issue_tokens") as unit:
            cfg_key, org = self._config(unit.tx, seed)
            amount = org.record_issue()
            unit.tx.store(cfg_key, org)
            unit.transfers.append(_Transfer(self.native, buyer, org.treasury_key, org.issue_price))
            unit.transfers.append(_Transfer(self.tokens, org.mint_key, buyer, amount, authority_of=cfg_key))

        log.info("Issued %d tokens to %s (supply %d/%d)", amount, buyer, org.issued_supply, org.max_supply)
        return amount

    # ------------------------------------------------------------------
    # Staking
    # ------------------------------------------------------------------

    def open_stake(self, seed: int, owner: str) -> StakeLedger:
        with self._unit("open_stake") as unit:
            cfg_key, _ = self._config(unit.tx, seed)
            stake = StakeLedger.open(owner, unit.now.tick)
            unit.tx.create(keys.stake_key(cfg_key, owner), stake)
            unit.areas.append((self.tokens, keys.vault_key(cfg_key, owner), self.authority_public_key(cfg_key), 0))

        log.info("Opened stake for %s", owner)
        return stake

    def deposit_stake(self, seed: int, owner: str, amount: int) -> StakeLedger:
        with self._unit("deposit_stake") as unit:
            cfg_key, _ = self._config(unit.tx, seed)
            skey = keys.stake_key(cfg_key, owner)
            stake = unit.tx.load(skey, StakeLedger)
            stake.deposit(amount, unit.now.tick)
            unit.tx.store(skey, stake)

            mkey = keys.member_key(cfg_key, owner)
            if not unit.tx.exists(mkey):
                unit.tx.create(mkey, MemberProfile.initialize(owner, unit.now.wall_time))

            unit.transfers.append(_Transfer(self.tokens, owner, keys.vault_key(cfg_key, owner), int(amount)))

        log.info("Staked %d for %s (total %d)", amount, owner, stake.amount)
        return stake

    def withdraw_stake(self, seed: int, owner: str, amount: int) -> StakeLedger:
        with self._unit("withdraw_stake") as unit:
            cfg_key, _ = self._config(unit.tx, seed)
            skey = keys.stake_key(cfg_key, owner)
            stake = unit.tx.load(skey, StakeLedger)
            stake.withdraw(amount, unit.now.tick)
            unit.tx.store(skey, stake)
            unit.transfers.append(
                _Transfer(self.tokens, keys.vault_key(cfg_key, owner), owner, int(amount), authority_of=cfg_key)
            )

        log.info("Unstaked %d for %s (total %d)", amount, owner, stake.amount)
        return stake

    def close_stake(self, seed: int, owner: str) -> None:
        with self._unit("close_stake") as unit:
            cfg_key, _ = self._config(unit.tx, seed)
            skey = keys.stake_key(cfg_key, owner)
            stake = unit.tx.load(skey, StakeLedger)
            require(stake.accounts == 0, ACCOUNTS_OPEN, f"{stake.accounts} open vote(s)")
            require(stake.amount == 0, STAKE_NOT_EMPTY, f"{stake.amount} still staked")
            unit.tx.destroy(skey, refund_to=owner)

        log.info("Closed stake for %s", owner)

    def get_stake(self, seed: int, owner: str) -> StakeLedger:
        with self._lock:
            return self.store.load(keys.stake_key(keys.config_key(seed), owner), StakeLedger)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def create_proposal(
        self,
        seed: int,
        owner: str,
        proposal_id: int,
        name: str,
        gist: str,
        payload: Payload,
        quorum: int,
        expiry: int,
    ) -> Proposal:
        with self._unit("create_proposal") as unit:
            cfg_key, org = self._config(unit.tx, seed)

            stake = unit.tx.load(keys.stake_key(cfg_key, owner), StakeLedger)
            stake.require_positive_stake()

            mkey = keys.member_key(cfg_key, owner)
            member = unit.tx.load(mkey, MemberProfile)
            member.apply_reputation_decay(
                unit.now.wall_time, self.rewards.reputation_decay_factor, self.rewards.reputation_decay_interval
            )
            require(
                member.reputation_score >= org.min_reputation_for_proposal,
                INSUFFICIENT_REPUTATION,
                f"{member.reputation_score} < {org.min_reputation_for_proposal}",
            )

            org.register_new_proposal(proposal_id)
            org.validate_quorum(quorum)
            org.validate_expiry(expiry)

            proposal = Proposal.open(
                proposal_id=proposal_id,
                name=name,
                gist=gist,
                payload=payload,
                quorum=quorum,
                expiry_duration=expiry,
                owner=owner,
                tick=unit.now.tick,
            )
            unit.tx.create(keys.proposal_key(cfg_key, proposal_id), proposal)
            unit.tx.store(cfg_key, org)

            member.record_proposal_creation(self.rewards.proposal_creation_points)
            self._touch_reputation(member, unit.now, self.rewards.proposal_creation_reputation_increase)
            unit.tx.store(mkey, member)

            unit.transfers.append(_Transfer(self.native, owner, org.treasury_key, org.proposal_fee))

        log.info(
            "Proposal #%d '%s' created by %s (quorum=%d, expiry=%d)",
            proposal.id, proposal.name, owner, proposal.quorum, proposal.expiry,
        )
        return proposal

    def get_proposal(self, seed: int, proposal_id: int) -> Proposal:
        with self._lock:
            return self.store.load(keys.proposal_key(keys.config_key(seed), proposal_id), Proposal)

    def query_results(self, seed: int, proposal_id: int) -> ProposalResults:
        """Finalize-on-read: an elapsed expiry is persisted before reporting."""
        with self._unit("query_results") as unit:
            cfg_key = keys.config_key(seed)
            pkey = keys.proposal_key(cfg_key, proposal_id)
            proposal = unit.tx.load(pkey, Proposal)
            before = proposal.status
            if proposal.try_finalize(unit.now.tick) != before:
                unit.tx.store(pkey, proposal)
                log.info("Proposal #%d finalized on read: %s", proposal.id, proposal.status.value)
        return proposal.results()

    def execute_proposal(self, seed: int, caller: str, proposal_id: int, payee: Optional[str] = None) -> Proposal:
        with self._unit("execute_proposal") as unit:
            cfg_key, org = self._config(unit.tx, seed)
            pkey = keys.proposal_key(cfg_key, proposal_id)
            proposal = unit.tx.load(pkey, Proposal)
            proposal.try_finalize(unit.now.tick)
            proposal.assert_succeeded()
            require(not proposal.settled, INVALID_PROPOSAL_STATUS, "already settled")

            payload = proposal.payload
            if isinstance(payload, ValuePayout):
                require(payee == payload.target, PAYEE_MISMATCH, f"payee {payee!r}")
                unit.transfers.append(
                    _Transfer(self.native, org.treasury_key, payload.target, payload.amount, authority_of=cfg_key)
                )
            elif isinstance(payload, ExecutableStub):
                log.info("Proposal #%d: executable payload has no dispatcher; nothing to run", proposal.id)
            elif isinstance(payload, OpinionPoll):
                r = proposal.results()
                log.info(
                    "Proposal #%d poll result: yes=%d no=%d abstain=%d / quorum %d",
                    proposal.id, r.yes, r.no, r.abstain, r.quorum,
                )
            else:
                raise TypeError(f"unknown payload {payload!r}")

            proposal.settled = True
            unit.tx.store(pkey, proposal)

            mkey = keys.member_key(cfg_key, proposal.owner)
            if unit.tx.exists(mkey):
                owner = unit.tx.load(mkey, MemberProfile)
                owner.record_proposal_success(self.rewards.proposal_success_points)
                self._touch_reputation(owner, unit.now, self.rewards.proposal_success_reputation_increase)
                unit.tx.store(mkey, owner)

        log.info("Proposal #%d executed by %s", proposal.id, caller)
        return proposal

    def cleanup_proposal(self, seed: int, caller: str, proposal_id: int) -> Proposal:
        with self._unit("cleanup_proposal") as unit:
            cfg_key = keys.config_key(seed)
            pkey = keys.proposal_key(cfg_key, proposal_id)
            proposal = unit.tx.load(pkey, Proposal)
            proposal.try_finalize(unit.now.tick)
            proposal.assert_failed()
            require(not proposal.settled, INVALID_PROPOSAL_STATUS, "already settled")
            proposal.settled = True
            unit.tx.store(pkey, proposal)

        log.info("Failed proposal #%d cleaned up by %s", proposal.id, caller)
        return proposal

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def cast_vote(self, seed: int, voter: str, proposal_id: int, amount: int, choice: VoteChoice) -> Proposal:
        choice = VoteChoice(choice)
        with self._unit("cast_vote") as unit:
            cfg_key, org = self._config(unit.tx, seed)
            pkey = keys.proposal_key(cfg_key, proposal_id)
            vkey = keys.vote_key(pkey, voter)
            unit.tx.create(vkey, VoteRecord.open(voter, amount, choice), payer=voter, deposit=self.record_deposit)

            proposal = unit.tx.load(pkey, Proposal)
            proposal.cast_vote(amount, choice, unit.now.tick)
            unit.tx.store(pkey, proposal)

            skey = keys.stake_key(cfg_key, voter)
            stake = unit.tx.load(skey, StakeLedger)
            stake.require_stake_at_least(amount)
            stake.reserve_for_vote()
            unit.tx.store(skey, stake)

            mkey = keys.member_key(cfg_key, voter)
            member = unit.tx.load(mkey, MemberProfile)
            member.record_vote(self.rewards.base_vote_points)
            self._touch_reputation(member, unit.now, self.rewards.vote_reputation_increase)
            unit.tx.store(mkey, member)

            if self.record_deposit:
                unit.transfers.append(_Transfer(self.native, voter, keys.escrow_key(cfg_key), self.record_deposit))

        log.debug("%s voted %s with %d on #%d -> %s", voter, choice.value, amount, proposal.id, proposal.status.value)
        return proposal

    def retract_vote(self, seed: int, voter: str, proposal_id: int) -> Proposal:
        with self._unit("retract_vote") as unit:
            cfg_key, org = self._config(unit.tx, seed)
            pkey = keys.proposal_key(cfg_key, proposal_id)
            vkey = keys.vote_key(pkey, voter)
            vote = unit.tx.load(vkey, VoteRecord)

            proposal = unit.tx.load(pkey, Proposal)
            proposal.retract_vote(vote.amount, vote.choice, unit.now.tick)
            unit.tx.store(pkey, proposal)

            skey = keys.stake_key(cfg_key, voter)
            stake = unit.tx.load(skey, StakeLedger)
            stake.release_from_vote()
            unit.tx.store(skey, stake)

            mkey = keys.member_key(cfg_key, voter)
            member = unit.tx.load(mkey, MemberProfile)
            member.forfeit_vote_points(self.rewards.base_vote_points)
            self._touch_reputation(member, unit.now, self.rewards.vote_reputation_decrease)
            unit.tx.store(mkey, member)

            self._refund(unit, cfg_key, unit.tx.destroy(vkey, refund_to=org.treasury_key))

        log.debug("%s retracted %d from #%d", voter, vote.amount, proposal.id)
        return proposal

    def cleanup_vote(self, seed: int, voter: str, proposal_id: int) -> Proposal:
        with self._unit("cleanup_vote") as unit:
            cfg_key, org = self._config(unit.tx, seed)
            pkey = keys.proposal_key(cfg_key, proposal_id)
            proposal = unit.tx.load(pkey, Proposal)
            before = proposal.status
            status = proposal.try_finalize(unit.now.tick)
            if status == ProposalStatus.OPEN:
                raise error_for(INVALID_PROPOSAL_STATUS, "proposal still open")
            if status != before:
                unit.tx.store(pkey, proposal)

            vkey = keys.vote_key(pkey, voter)
            vote = unit.tx.load(vkey, VoteRecord)

            skey = keys.stake_key(cfg_key, voter)
            stake = unit.tx.load(skey, StakeLedger)
            stake.release_from_vote()
            unit.tx.store(skey, stake)

            if status == ProposalStatus.SUCCEEDED and vote.choice == VoteChoice.YES:
                mkey = keys.member_key(cfg_key, voter)
                member = unit.tx.load(mkey, MemberProfile)
                member.record_bonus_vote(self.rewards.bonus_vote_points)
                unit.tx.store(mkey, member)

            self._refund(unit, cfg_key, unit.tx.destroy(vkey, refund_to=org.treasury_key))

        log.debug("%s cleaned up vote on #%d (%s)", voter, proposal.id, status.value)
        return proposal

    def _refund(self, unit: _Unit, cfg_key: str, refund: Any) -> None:
        if refund.amount > 0:
            unit.transfers.append(
                _Transfer(self.native, keys.escrow_key(cfg_key), refund.recipient, refund.amount, authority_of=cfg_key)
            )

    def get_vote(self, seed: int, voter: str, proposal_id: int) -> VoteRecord:
        with self._lock:
            pkey = keys.proposal_key(keys.config_key(seed), proposal_id)
            return self.store.load(keys.vote_key(pkey, voter), VoteRecord)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def query_member_profile(self, seed: int, member: str) -> MemberProfileView:
        with self._lock:
            profile = self.store.load(keys.member_key(keys.config_key(seed), member), MemberProfile)
        return profile.snapshot()
