"""
Tests for staking-contract registration and oracle bindings.
"""

import pytest

from stakepay.core.contracts.erc20 import ERC20Token
from stakepay.core.contracts.oracle import FixedRateOracle
from stakepay.core.contracts.stake_registry import OwnerCapability
from stakepay.core.contracts.staking import SimpleStakingPool
from stakepay.core.contracts.staking_paymaster import StakingPaymaster
from stakepay.core.paymaster_exceptions import (
    AlreadyRegisteredError,
    InvalidStakingContractError,
    OracleConflictError,
    UnauthorizedError,
    UnsupportedTokenError,
)

from stakepay_tests.helpers import ACCOUNT, OWNER


class TestRegistration:

    def test_register_records_reward_token(self, paymaster, capability, pool, token):
        entry = paymaster.add_staking_contract(capability, pool)

        assert entry.registered is True
        assert paymaster.registry.is_registered(pool.address)
        assert paymaster.registry.reward_token_of(pool.address) is token

    def test_register_binds_pool_oracle(self, paymaster, capability, pool, token, oracle):
        paymaster.add_staking_contract(capability, pool)

        assert paymaster.oracles.oracle_for(token.address) is oracle

    def test_register_twice_fails(self, paymaster, capability, pool):
        paymaster.add_staking_contract(capability, pool)

        with pytest.raises(AlreadyRegisteredError):
            paymaster.add_staking_contract(capability, pool)

    def test_lookup_is_case_insensitive(self, paymaster, capability, pool):
        paymaster.add_staking_contract(capability, pool)

        assert paymaster.registry.is_registered(pool.address.upper().replace("0X", "0x"))

    def test_unregistered_contract(self, paymaster, pool):
        assert paymaster.registry.is_registered(pool.address) is False
        with pytest.raises(InvalidStakingContractError):
            paymaster.registry.reward_token_of(pool.address)

    def test_stats_count_registrations(self, paymaster, capability, pool):
        paymaster.add_staking_contract(capability, pool)

        stats = paymaster.get_stats()

        assert stats["staking_contracts"] == 1
        assert stats["supported_tokens"] == 1


class TestOwnerCapability:

    def test_non_owner_cannot_obtain_capability(self, paymaster):
        with pytest.raises(UnauthorizedError):
            paymaster.issue_owner_capability(ACCOUNT)

    def test_owner_address_is_case_insensitive(self, paymaster):
        assert paymaster.issue_owner_capability(OWNER.upper().replace("0X", "0x")) is not None

    def test_forged_capability_rejected(self, paymaster, pool):
        forged = OwnerCapability(paymaster=paymaster.address, owner=OWNER)

        with pytest.raises(UnauthorizedError):
            paymaster.add_staking_contract(forged, pool)

        assert not paymaster.registry.is_registered(pool.address)

    def test_missing_capability_rejected(self, paymaster, pool, token, oracle):
        with pytest.raises(UnauthorizedError):
            paymaster.add_staking_contract(None, pool)
        with pytest.raises(UnauthorizedError):
            paymaster.add_token(None, token, oracle)

    def test_capability_of_other_paymaster_rejected(self, paymaster, chain, pool):
        other = StakingPaymaster(owner=OWNER, chain=chain)
        other_capability = other.issue_owner_capability(OWNER)

        with pytest.raises(UnauthorizedError):
            paymaster.add_staking_contract(other_capability, pool)


class TestOracleBindings:

    def test_conflicting_oracle_rejected(self, paymaster, capability, pool, token):
        paymaster.add_staking_contract(capability, pool)
        second_pool = SimpleStakingPool(
            token=token,
            price_oracle=FixedRateOracle(numerator=3, denominator=1),
            owner=OWNER,
        )

        with pytest.raises(OracleConflictError) as exc_info:
            paymaster.add_staking_contract(capability, second_pool)

        assert exc_info.value.token == token.address
        assert not paymaster.registry.is_registered(second_pool.address)

    def test_shared_oracle_allowed(self, paymaster, capability, pool, token, oracle):
        paymaster.add_staking_contract(capability, pool)
        second_pool = SimpleStakingPool(token=token, price_oracle=oracle, owner=OWNER)

        paymaster.add_staking_contract(capability, second_pool)

        assert paymaster.registry.is_registered(second_pool.address)
        assert paymaster.oracles.oracle_for(token.address) is oracle

    def test_add_token_rebinding_same_oracle_is_noop(self, paymaster, capability, token, oracle):
        assert paymaster.add_token(capability, token, oracle) is True
        assert paymaster.add_token(capability, token, oracle) is False

    def test_add_token_conflict(self, paymaster, capability, token, oracle):
        paymaster.add_token(capability, token, oracle)

        with pytest.raises(OracleConflictError):
            paymaster.add_token(capability, token, FixedRateOracle(numerator=5, denominator=1))

        assert paymaster.oracles.oracle_for(token.address) is oracle

    def test_unbound_token(self, paymaster):
        other = ERC20Token(name="Other", symbol="OTH", owner=OWNER)

        assert paymaster.oracles.is_supported(other.address) is False
        with pytest.raises(UnsupportedTokenError):
            paymaster.oracles.oracle_for(other.address)
