import pathlib
import sys

import pytest

# Ensure repo root (containing the stakedao_node package) is on sys.path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stakedao_node.config import default_config
from stakedao_node.dao_runtime.clock import ManualClock
from stakedao_node.executor import DaoExecutor

SEED = 1

# Small numbers keep the arithmetic in the assertions readable.
ORG_PARAMS = {
    "issue_price": 10,
    "issue_amount": 100,
    "proposal_fee": 5,
    "max_supply": 1_000,
    "min_quorum": 100,
    "max_expiry": 10,
}


@pytest.fixture
def clock():
    return ManualClock(wall_time=1_700_000_000, tick=1)


@pytest.fixture
def cfg(tmp_path):
    c = default_config()
    c["persistence"]["state_dir"] = str(tmp_path / "state")
    return c


@pytest.fixture
def executor(cfg, clock):
    """Fresh executor per test with in-memory banks and a manual clock."""
    return DaoExecutor(cfg, clock=clock, node_secret="test-node-secret")


@pytest.fixture
def org(executor):
    return executor.initialize_organization(SEED, **ORG_PARAMS)


def fund(executor, who, tokens=500, native=1_000):
    executor.tokens.fund(who, tokens)
    executor.native.fund(who, native)


def staked_member(executor, who, amount, tokens=500, native=1_000):
    """Fund `who`, open their stake and deposit `amount` tokens."""
    fund(executor, who, tokens=tokens, native=native)
    executor.open_stake(SEED, who)
    executor.deposit_stake(SEED, who, amount)
