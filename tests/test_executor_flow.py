# tests/test_executor_flow.py

import pytest

from conftest import SEED, fund, staked_member
from stakedao_node.config import default_config
from stakedao_node.dao_runtime import keys
from stakedao_node.dao_runtime.errors import (
    ACCOUNTS_OPEN,
    ALREADY_EXISTS,
    INSUFFICIENT_FUNDS,
    INSUFFICIENT_REPUTATION,
    INSUFFICIENT_STAKE,
    INVALID_AUTHORITY,
    INVALID_PROPOSAL_STATUS,
    INVALID_QUORUM,
    INVALID_SLOT,
    MAX_SUPPLY_EXCEEDED,
    NOT_FOUND,
    PAYEE_MISMATCH,
    STAKE_NOT_EMPTY,
    AuthorizationFailure,
    DaoError,
    StorageError,
)
from stakedao_node.dao_runtime.params import SUGGESTED_MIN_REPUTATION_FOR_PROPOSAL
from stakedao_node.dao_runtime.proposal import OpinionPoll, ProposalStatus, ValuePayout
from stakedao_node.dao_runtime.vote import VoteChoice
from stakedao_node.executor import DaoExecutor


# ============================================================
# Helpers
# ============================================================

def _payout_proposal(executor, owner="alice", pid=1, target="bob", amount=50, quorum=100, expiry=10):
    return executor.create_proposal(
        SEED, owner, pid, "Fund docs", "Pay the writer", ValuePayout(target, amount), quorum, expiry
    )


def _succeeded_payout(executor, org):
    """alice proposes a 50 payout to bob; alice yes 60, bob no 50 -> Succeeded."""
    executor.native.fund(org.treasury_key, 100)
    staked_member(executor, "alice", 200)
    staked_member(executor, "bob", 150)
    _payout_proposal(executor)
    executor.cast_vote(SEED, "alice", 1, 60, VoteChoice.YES)
    proposal = executor.cast_vote(SEED, "bob", 1, 50, VoteChoice.NO)
    assert proposal.status == ProposalStatus.SUCCEEDED


# ============================================================
# Organization
# ============================================================

def test_initialize_twice_fails(executor, org):
    with pytest.raises(StorageError) as ei:
        executor.initialize_organization(SEED)
    assert ei.value.code == ALREADY_EXISTS


def test_unknown_organization_is_not_found(executor):
    with pytest.raises(StorageError) as ei:
        executor.open_stake(99, "alice")
    assert ei.value.code == NOT_FOUND


def test_areas_belong_to_the_organization_authority(executor, org):
    pk = executor.authority_public_key(org.config_key)
    assert org.authority_key == pk
    assert executor.native.authority_of(org.treasury_key) == pk
    assert executor.tokens.authority_of(org.mint_key) == pk
    assert executor.tokens.balance_of(org.mint_key) == org.max_supply


def test_issue_tokens_until_max_supply(executor, org):
    fund(executor, "dave", tokens=0, native=100)
    for _ in range(10):
        executor.issue_tokens(SEED, "dave")

    assert executor.tokens.balance_of("dave") == 1_000
    assert executor.native.balance_of("dave") == 0
    assert executor.native.balance_of(org.treasury_key) == 100

    with pytest.raises(DaoError) as ei:
        executor.issue_tokens(SEED, "dave")
    assert ei.value.code == MAX_SUPPLY_EXCEEDED
    assert executor.get_organization(SEED).issued_supply == 1_000


def test_issue_tokens_requires_payment(executor, org):
    with pytest.raises(DaoError) as ei:
        executor.issue_tokens(SEED, "pauper")
    assert ei.value.code == INSUFFICIENT_FUNDS
    assert executor.get_organization(SEED).issued_supply == 0


# ============================================================
# Staking
# ============================================================

def test_stake_moves_tokens_into_vault(executor, org, clock):
    staked_member(executor, "alice", 200)
    vault = keys.vault_key(org.config_key, "alice")
    assert executor.tokens.balance_of(vault) == 200
    assert executor.tokens.balance_of("alice") == 300
    assert executor.query_member_profile(SEED, "alice").join_date == clock.wall_time

    with pytest.raises(DaoError) as ei:
        executor.withdraw_stake(SEED, "alice", 50)
    assert ei.value.code == INVALID_SLOT

    clock.advance()
    stake = executor.withdraw_stake(SEED, "alice", 50)
    assert stake.amount == 150
    assert executor.tokens.balance_of(vault) == 150
    assert executor.tokens.balance_of("alice") == 350


def test_close_stake_requires_empty_and_unlocked(executor, org, clock):
    staked_member(executor, "alice", 200)
    with pytest.raises(DaoError) as ei:
        executor.close_stake(SEED, "alice")
    assert ei.value.code == STAKE_NOT_EMPTY

    clock.advance()
    executor.withdraw_stake(SEED, "alice", 200)
    executor.close_stake(SEED, "alice")

    with pytest.raises(StorageError):
        executor.get_stake(SEED, "alice")


def test_deposit_without_tokens_changes_nothing(executor, org):
    executor.open_stake(SEED, "alice")
    with pytest.raises(DaoError) as ei:
        executor.deposit_stake(SEED, "alice", 10)
    assert ei.value.code == INSUFFICIENT_FUNDS
    assert executor.get_stake(SEED, "alice").amount == 0
    with pytest.raises(StorageError):
        executor.query_member_profile(SEED, "alice")


# ============================================================
# Proposal creation
# ============================================================

def test_create_proposal_charges_fee_and_credits_owner(executor, org):
    staked_member(executor, "alice", 200)
    p = _payout_proposal(executor)

    assert p.id == 1
    assert p.expiry == 11
    assert executor.get_organization(SEED).proposal_count == 1
    assert executor.native.balance_of("alice") == 995
    assert executor.native.balance_of(org.treasury_key) == 5

    prof = executor.query_member_profile(SEED, "alice")
    assert prof.proposal_creation_points == 50
    assert prof.proposals_created == 1
    assert prof.reputation_score == 5


def test_rejected_proposal_leaves_no_trace(executor, org):
    staked_member(executor, "alice", 200)
    with pytest.raises(DaoError) as ei:
        _payout_proposal(executor, quorum=50)
    assert ei.value.code == INVALID_QUORUM

    assert executor.get_organization(SEED).proposal_count == 0
    assert executor.native.balance_of("alice") == 1_000
    with pytest.raises(StorageError):
        executor.get_proposal(SEED, 1)

    # id 1 is still the next one
    assert _payout_proposal(executor).id == 1


def test_fee_shortfall_rolls_back_counter(executor, org):
    staked_member(executor, "alice", 200, native=1)
    with pytest.raises(DaoError) as ei:
        _payout_proposal(executor)
    assert ei.value.code == INSUFFICIENT_FUNDS
    assert executor.get_organization(SEED).proposal_count == 0
    assert executor.query_member_profile(SEED, "alice").proposals_created == 0


def test_proposal_requires_stake(executor, org):
    fund(executor, "alice")
    executor.open_stake(SEED, "alice")
    with pytest.raises(DaoError) as ei:
        _payout_proposal(executor)
    assert ei.value.code == INSUFFICIENT_STAKE


def test_reputation_gate(cfg, clock):
    ex = DaoExecutor(cfg, clock=clock, node_secret="test-node-secret")
    ex.initialize_organization(
        SEED, issue_price=10, issue_amount=100, proposal_fee=5, max_supply=1_000,
        min_quorum=100, max_expiry=10, min_reputation_for_proposal=SUGGESTED_MIN_REPUTATION_FOR_PROPOSAL,
    )
    staked_member(ex, "alice", 200)
    with pytest.raises(DaoError) as ei:
        _payout_proposal(ex)
    assert ei.value.code == INSUFFICIENT_REPUTATION


# ============================================================
# Voting
# ============================================================

def test_vote_reserves_stake_and_credits_points(executor, org, clock):
    staked_member(executor, "alice", 200)
    _payout_proposal(executor)
    executor.cast_vote(SEED, "alice", 1, 60, VoteChoice.YES)

    assert executor.get_stake(SEED, "alice").accounts == 1
    assert executor.get_vote(SEED, "alice", 1).amount == 60
    prof = executor.query_member_profile(SEED, "alice")
    assert prof.base_voting_points == 10
    assert prof.total_votes_cast == 1
    assert prof.reputation_score == 6

    clock.advance()
    with pytest.raises(DaoError) as ei:
        executor.withdraw_stake(SEED, "alice", 10)
    assert ei.value.code == ACCOUNTS_OPEN


def test_double_vote_is_rejected(executor, org):
    staked_member(executor, "alice", 200)
    _payout_proposal(executor)
    executor.cast_vote(SEED, "alice", 1, 60, VoteChoice.YES)

    with pytest.raises(StorageError) as ei:
        executor.cast_vote(SEED, "alice", 1, 10, VoteChoice.NO)
    assert ei.value.code == ALREADY_EXISTS

    results = executor.query_results(SEED, 1)
    assert (results.yes, results.no, results.total) == (60, 0, 60)
    assert executor.get_stake(SEED, "alice").accounts == 1


def test_double_vote_on_finalized_proposal_is_still_already_exists(executor, org, clock):
    _succeeded_payout(executor, org)

    # alice's record is still live on a Succeeded proposal
    with pytest.raises(StorageError) as ei:
        executor.cast_vote(SEED, "alice", 1, 10, VoteChoice.YES)
    assert ei.value.code == ALREADY_EXISTS

    # and on a proposal that failed by expiry
    executor.create_proposal(SEED, "alice", 2, "Poll", "", OpinionPoll(), 100, 10)
    executor.cast_vote(SEED, "bob", 2, 30, VoteChoice.NO)
    clock.advance(ticks=20)
    assert executor.query_results(SEED, 2).status == ProposalStatus.FAILED

    with pytest.raises(StorageError) as ei:
        executor.cast_vote(SEED, "bob", 2, 30, VoteChoice.NO)
    assert ei.value.code == ALREADY_EXISTS


def test_vote_larger_than_stake_is_rejected(executor, org):
    staked_member(executor, "alice", 200)
    staked_member(executor, "bob", 150)
    _payout_proposal(executor)

    with pytest.raises(DaoError) as ei:
        executor.cast_vote(SEED, "bob", 1, 151, VoteChoice.YES)
    assert ei.value.code == INSUFFICIENT_STAKE
    with pytest.raises(StorageError):
        executor.get_vote(SEED, "bob", 1)
    assert executor.query_results(SEED, 1).total == 0


def test_retract_restores_everything_but_reputation(executor, org, clock):
    staked_member(executor, "alice", 200)
    staked_member(executor, "bob", 150)
    _payout_proposal(executor)
    executor.cast_vote(SEED, "bob", 1, 30, VoteChoice.NO)

    clock.advance()
    executor.retract_vote(SEED, "bob", 1)

    assert executor.query_results(SEED, 1).total == 0
    assert executor.get_stake(SEED, "bob").accounts == 0
    with pytest.raises(StorageError):
        executor.get_vote(SEED, "bob", 1)

    prof = executor.query_member_profile(SEED, "bob")
    assert prof.base_voting_points == 0
    assert prof.reward_points == 0
    # +1 for the vote, -2 for the removal, floored at zero
    assert prof.reputation_score == 0

    # a retracted vote can be cast again
    executor.cast_vote(SEED, "bob", 1, 30, VoteChoice.YES)
    assert executor.query_results(SEED, 1).yes == 30


def test_retract_after_expiry_is_rejected(executor, org, clock):
    staked_member(executor, "alice", 200)
    _payout_proposal(executor)
    executor.cast_vote(SEED, "alice", 1, 30, VoteChoice.YES)

    clock.advance(ticks=20)
    with pytest.raises(DaoError):
        executor.retract_vote(SEED, "alice", 1)
    assert executor.get_stake(SEED, "alice").accounts == 1


# ============================================================
# Finalization
# ============================================================

def test_execute_pays_target_and_rewards_owner(executor, org):
    _succeeded_payout(executor, org)

    proposal = executor.execute_proposal(SEED, "carol", 1, payee="bob")
    assert proposal.settled is True
    assert executor.native.balance_of("bob") == 1_050
    assert executor.native.balance_of(org.treasury_key) == 55

    prof = executor.query_member_profile(SEED, "alice")
    assert prof.proposal_success_points == 100
    assert prof.successful_proposals == 1
    assert prof.reputation_score == 5 + 1 + 20
    assert prof.reward_points == 50 + 10 + 100

    with pytest.raises(DaoError) as ei:
        executor.execute_proposal(SEED, "carol", 1, payee="bob")
    assert ei.value.code == INVALID_PROPOSAL_STATUS
    assert executor.native.balance_of("bob") == 1_050


def test_execute_with_wrong_payee(executor, org):
    _succeeded_payout(executor, org)

    with pytest.raises(AuthorizationFailure) as ei:
        executor.execute_proposal(SEED, "mallory", 1, payee="mallory")
    assert ei.value.code == PAYEE_MISMATCH
    assert executor.get_proposal(SEED, 1).settled is False
    assert executor.native.balance_of("mallory") == 0


def test_execute_with_empty_treasury_rolls_back(executor, org):
    staked_member(executor, "alice", 200)
    staked_member(executor, "bob", 150)
    _payout_proposal(executor, amount=500)
    executor.cast_vote(SEED, "alice", 1, 100, VoteChoice.YES)

    with pytest.raises(DaoError) as ei:
        executor.execute_proposal(SEED, "alice", 1, payee="bob")
    assert ei.value.code == INSUFFICIENT_FUNDS
    assert executor.get_proposal(SEED, 1).settled is False
    assert executor.query_member_profile(SEED, "alice").successful_proposals == 0


def test_cleanup_vote_grants_bonus_for_winning_yes(executor, org):
    _succeeded_payout(executor, org)

    executor.cleanup_vote(SEED, "alice", 1)
    executor.cleanup_vote(SEED, "bob", 1)

    alice = executor.query_member_profile(SEED, "alice")
    bob = executor.query_member_profile(SEED, "bob")
    assert alice.bonus_voting_points == 5
    assert bob.bonus_voting_points == 0
    assert executor.get_stake(SEED, "alice").accounts == 0
    assert executor.get_stake(SEED, "bob").accounts == 0

    with pytest.raises(StorageError):
        executor.cleanup_vote(SEED, "alice", 1)


def test_cleanup_vote_on_open_proposal_is_rejected(executor, org):
    staked_member(executor, "alice", 200)
    _payout_proposal(executor)
    executor.cast_vote(SEED, "alice", 1, 30, VoteChoice.YES)

    with pytest.raises(DaoError) as ei:
        executor.cleanup_vote(SEED, "alice", 1)
    assert ei.value.code == INVALID_PROPOSAL_STATUS
    assert executor.get_stake(SEED, "alice").accounts == 1


def test_expired_proposal_fails_and_cleans_up(executor, org, clock):
    staked_member(executor, "alice", 200)
    executor.create_proposal(SEED, "alice", 1, "Poll", "", OpinionPoll(), 100, 10)
    executor.cast_vote(SEED, "alice", 1, 30, VoteChoice.YES)

    clock.advance(ticks=10)
    results = executor.query_results(SEED, 1)
    assert results.status == ProposalStatus.FAILED
    # finalize-on-read is persisted
    assert executor.get_proposal(SEED, 1).status == ProposalStatus.FAILED

    with pytest.raises(DaoError) as ei:
        executor.execute_proposal(SEED, "alice", 1)
    assert ei.value.code == INVALID_PROPOSAL_STATUS

    executor.cleanup_vote(SEED, "alice", 1)
    assert executor.query_member_profile(SEED, "alice").bonus_voting_points == 0

    assert executor.cleanup_proposal(SEED, "alice", 1).settled is True
    with pytest.raises(DaoError) as ei:
        executor.cleanup_proposal(SEED, "alice", 1)
    assert ei.value.code == INVALID_PROPOSAL_STATUS


def test_opinion_poll_executes_without_moving_value(executor, org):
    staked_member(executor, "alice", 200)
    executor.create_proposal(SEED, "alice", 1, "Poll", "Do we like it?", OpinionPoll(), 100, 10)
    executor.cast_vote(SEED, "alice", 1, 150, VoteChoice.YES)

    treasury_before = executor.native.balance_of(org.treasury_key)
    assert executor.execute_proposal(SEED, "alice", 1).settled is True
    assert executor.native.balance_of(org.treasury_key) == treasury_before


# ============================================================
# Authority
# ============================================================

def test_foreign_authority_rejects_before_any_payment(executor, org):
    """A node whose secret does not hold the org's areas must not charge the buyer."""
    other = DaoExecutor(
        executor.cfg,
        clock=executor.clock,
        native=executor.native,
        tokens=executor.tokens,
        store=executor.store,
        node_secret="some-other-secret",
    )
    fund(other, "dave", tokens=0, native=100)

    with pytest.raises(AuthorizationFailure) as ei:
        other.issue_tokens(SEED, "dave")
    assert ei.value.code == INVALID_AUTHORITY

    assert executor.native.balance_of("dave") == 100
    assert executor.native.balance_of(org.treasury_key) == 0
    assert executor.tokens.balance_of("dave") == 0
    assert executor.get_organization(SEED).issued_supply == 0

    # the owning node still sells normally
    executor.issue_tokens(SEED, "dave")
    assert executor.tokens.balance_of("dave") == 100


def test_guarded_source_cannot_be_spent_as_a_wallet(executor, org):
    executor.native.fund(org.treasury_key, 50)
    with pytest.raises(AuthorizationFailure):
        executor.issue_tokens(SEED, org.treasury_key)
    assert executor.native.balance_of(org.treasury_key) == 50


# ============================================================
# Record deposits + persistence
# ============================================================

def test_vote_deposit_is_refunded_to_treasury(cfg, clock):
    cfg["persistence"]["record_deposit"] = 3
    ex = DaoExecutor(cfg, clock=clock, node_secret="test-node-secret")
    org = ex.initialize_organization(
        SEED, issue_price=10, issue_amount=100, proposal_fee=5, max_supply=1_000,
        min_quorum=100, max_expiry=10,
    )
    staked_member(ex, "alice", 200)
    _payout_proposal(ex)
    ex.cast_vote(SEED, "alice", 1, 30, VoteChoice.YES)

    escrow = keys.escrow_key(org.config_key)
    assert ex.native.balance_of(escrow) == 3
    assert ex.native.balance_of("alice") == 1_000 - 5 - 3

    ex.retract_vote(SEED, "alice", 1)
    assert ex.native.balance_of(escrow) == 0
    assert ex.native.balance_of(org.treasury_key) == 5 + 3


def test_state_survives_restart(cfg, clock):
    cfg["persistence"]["enabled"] = True
    ex = DaoExecutor(cfg, clock=clock, node_secret="test-node-secret")
    ex.initialize_organization(
        SEED, issue_price=10, issue_amount=100, proposal_fee=5, max_supply=1_000,
        min_quorum=100, max_expiry=10,
    )
    staked_member(ex, "alice", 200)
    _payout_proposal(ex)
    ex.cast_vote(SEED, "alice", 1, 30, VoteChoice.YES)
    assert ex.persist is not None and ex.persist.path.exists()

    again = DaoExecutor(cfg, clock=clock, node_secret="test-node-secret")
    assert again.get_stake(SEED, "alice").accounts == 1
    assert again.query_results(SEED, 1).yes == 30
    assert again.tokens.balance_of("alice") == 300
    assert again.query_member_profile(SEED, "alice").reward_points == 60

    # authority areas still accept this node's signatures
    clock.advance(ticks=20)
    again.cleanup_vote(SEED, "alice", 1)
    again.withdraw_stake(SEED, "alice", 200)
    assert again.tokens.balance_of("alice") == 500


def test_default_executor_uses_default_config():
    ex = DaoExecutor(default_config(), node_secret="x")
    assert ex.persist is None
    assert ex.rewards.base_vote_points == 10


def test_reads_that_change_nothing_do_not_snapshot(cfg, clock, monkeypatch):
    cfg["persistence"]["enabled"] = True
    ex = DaoExecutor(cfg, clock=clock, node_secret="test-node-secret")
    ex.initialize_organization(
        SEED, issue_price=10, issue_amount=100, proposal_fee=5, max_supply=1_000,
        min_quorum=100, max_expiry=10,
    )
    staked_member(ex, "alice", 200)
    ex.create_proposal(SEED, "alice", 1, "Poll", "", OpinionPoll(), 100, 10)

    saves = []
    monkeypatch.setattr(ex.persist, "save", lambda state: saves.append(state))

    assert ex.query_results(SEED, 1).status == ProposalStatus.OPEN
    assert saves == []

    clock.advance(ticks=10)
    assert ex.query_results(SEED, 1).status == ProposalStatus.FAILED
    assert len(saves) == 1

    # already terminal: nothing new to write
    ex.query_results(SEED, 1)
    assert len(saves) == 1
