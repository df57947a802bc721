"""Shared fixtures for paymaster tests."""

import pytest

from stakepay.core.address_utils import encode_paymaster_and_data
from stakepay.core.chain import BlockContext
from stakepay.core.contracts.account_abstraction import UserOperation
from stakepay.core.contracts.erc20 import UINT256_MAX, ERC20Token
from stakepay.core.contracts.oracle import FixedRateOracle
from stakepay.core.contracts.staking import SimpleStakingPool
from stakepay.core.contracts.staking_paymaster import StakingPaymaster

from stakepay_tests.helpers import ACCOUNT, FIVE_ETH, OWNER


@pytest.fixture
def chain():
    return BlockContext(block_number=100)


@pytest.fixture
def token():
    token = ERC20Token(name="Test Token", symbol="TST", owner=OWNER)
    token.mint(OWNER, OWNER, FIVE_ETH)
    return token


@pytest.fixture
def oracle():
    """Two token units per native unit."""
    return FixedRateOracle(numerator=2, denominator=1)


@pytest.fixture
def paymaster(chain):
    return StakingPaymaster(owner=OWNER, chain=chain, cost_of_post=35_000)


@pytest.fixture
def capability(paymaster):
    return paymaster.issue_owner_capability(OWNER)


@pytest.fixture
def pool(token, oracle, paymaster):
    pool = SimpleStakingPool(token=token, price_oracle=oracle, owner=OWNER)
    pool.add_paymaster(OWNER, paymaster.address)
    return pool


@pytest.fixture
def registered_pool(pool, paymaster, capability, token):
    paymaster.add_staking_contract(capability, pool)
    token.approve(OWNER, paymaster.address, UINT256_MAX)
    return pool


@pytest.fixture
def make_op(paymaster, registered_pool):
    """Build a user operation for ACCOUNT routed through the registered pool."""

    def _make_op(sender=ACCOUNT, nonce=0, staking_contract=None, **kwargs):
        staking_contract = staking_contract or registered_pool.address
        kwargs.setdefault(
            "paymaster_and_data",
            encode_paymaster_and_data(paymaster.address, staking_contract),
        )
        return UserOperation(sender=sender, nonce=nonce, **kwargs)

    return _make_op
