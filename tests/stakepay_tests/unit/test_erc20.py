"""
Unit tests for the ERC20 token used as fee and reward asset.
"""

import pytest

from stakepay.core.address_utils import ZERO_ADDRESS
from stakepay.core.contracts.erc20 import UINT256_MAX, ERC20Token
from stakepay.core.paymaster_exceptions import ContractExecutionError

from stakepay_tests.helpers import ACCOUNT, OTHER_ACCOUNT, OWNER, TARGET


@pytest.fixture
def token():
    token = ERC20Token(name="Test Token", symbol="TST", owner=OWNER)
    token.mint(OWNER, OWNER, 1_000)
    return token


class TestMint:

    def test_owner_mints(self, token):
        assert token.balance_of(OWNER) == 1_000
        assert token.total_supply == 1_000
        assert token.events[-1].source == ZERO_ADDRESS

    def test_non_owner_cannot_mint(self, token):
        with pytest.raises(ContractExecutionError):
            token.mint(ACCOUNT, ACCOUNT, 1)

        assert token.total_supply == 1_000


class TestTransfer:

    def test_transfer(self, token):
        token.transfer(OWNER, ACCOUNT, 300)

        assert token.balance_of(OWNER) == 700
        assert token.balance_of(ACCOUNT) == 300

    def test_transfer_is_case_insensitive(self, token):
        token.transfer(OWNER.upper().replace("0X", "0x"), ACCOUNT, 1)

        assert token.balance_of(OWNER) == 999

    def test_exceeding_balance_reverts(self, token):
        with pytest.raises(ContractExecutionError, match="exceeds balance"):
            token.transfer(OWNER, ACCOUNT, 1_001)

        assert token.balance_of(ACCOUNT) == 0

    def test_zero_recipient_reverts(self, token):
        with pytest.raises(ContractExecutionError):
            token.transfer(OWNER, ZERO_ADDRESS, 1)

    def test_negative_amount_reverts(self, token):
        with pytest.raises(ContractExecutionError):
            token.transfer(OWNER, ACCOUNT, -1)


class TestAllowance:

    def test_transfer_from_spends_allowance(self, token):
        token.approve(OWNER, OTHER_ACCOUNT, 500)

        token.transfer_from(OTHER_ACCOUNT, OWNER, TARGET, 200)

        assert token.balance_of(TARGET) == 200
        assert token.allowance(OWNER, OTHER_ACCOUNT) == 300

    def test_infinite_allowance_not_decremented(self, token):
        token.approve(OWNER, OTHER_ACCOUNT, UINT256_MAX)

        token.transfer_from(OTHER_ACCOUNT, OWNER, TARGET, 200)

        assert token.allowance(OWNER, OTHER_ACCOUNT) == UINT256_MAX

    def test_insufficient_allowance_reverts(self, token):
        token.approve(OWNER, OTHER_ACCOUNT, 10)

        with pytest.raises(ContractExecutionError, match="insufficient allowance"):
            token.transfer_from(OTHER_ACCOUNT, OWNER, TARGET, 11)

        assert token.balance_of(OWNER) == 1_000
        assert token.allowance(OWNER, OTHER_ACCOUNT) == 10

    def test_allowance_without_balance_reverts(self, token):
        token.approve(ACCOUNT, OTHER_ACCOUNT, 10)

        with pytest.raises(ContractExecutionError, match="exceeds balance"):
            token.transfer_from(OTHER_ACCOUNT, ACCOUNT, TARGET, 10)

        assert token.allowance(ACCOUNT, OTHER_ACCOUNT) == 10
