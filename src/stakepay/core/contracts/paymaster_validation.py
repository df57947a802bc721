"""
Pre-execution admission for the staking paymaster.

``ValidationEngine.validate`` either rejects an operation with a
``PaymasterValidationError`` or returns the ``SettlementContext`` that the
settlement step needs. It never changes state.

Checks run in a fixed order and the first failure wins:

1. verification gas above the settlement reserve
2. paymaster data carries exactly one staking contract
3. staking contract registered here and still approving this paymaster
4. reward token resolved from the registry
5. maximum native cost priced in reward tokens
6. the account's deposit is locked
7. the account's reward-token deposit covers the maximum token cost

The staking rewards themselves are not checked here; they are only tried
at settlement, with the locked deposit as the guaranteed fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..address_utils import ADDRESS_LENGTH, address_from_bytes, address_to_bytes
from ..paymaster_exceptions import (
    DepositNotLockedError,
    DepositTooLowError,
    InsufficientVerificationBudgetError,
    InvalidStakingContractError,
    MissingStakingContractError,
    PaymasterValidationError,
)
from .deposit_ledger import DepositLedger
from .stake_registry import OracleBindings, StakeRegistry

if TYPE_CHECKING:
    from .account_abstraction import UserOperation

logger = logging.getLogger(__name__)

PAYMASTER_DATA_LENGTH = ADDRESS_LENGTH * 2
_UINT256_BYTES = 32
CONTEXT_LENGTH = ADDRESS_LENGTH * 3 + _UINT256_BYTES * 2


@dataclass(frozen=True)
class SettlementContext:
    """
    Everything settlement needs, fixed at validation time.

    The token/native ratio of ``max_token_cost / max_native_cost`` is the
    conversion rate used at settlement; the oracle is not asked again.
    """

    account: str
    staking_contract: str
    reward_token: str
    max_token_cost: int
    max_native_cost: int

    def encode(self) -> bytes:
        """Pack into the opaque bytes handed to the orchestrator."""
        return (
            address_to_bytes(self.account)
            + address_to_bytes(self.staking_contract)
            + address_to_bytes(self.reward_token)
            + self.max_token_cost.to_bytes(_UINT256_BYTES, "big")
            + self.max_native_cost.to_bytes(_UINT256_BYTES, "big")
        )

    @classmethod
    def decode(cls, data: bytes) -> "SettlementContext":
        if len(data) != CONTEXT_LENGTH:
            raise ValueError(f"Settlement context must be {CONTEXT_LENGTH} bytes, got {len(data)}")
        a = ADDRESS_LENGTH
        costs = data[3 * a:]
        return cls(
            account=address_from_bytes(data[0:a]),
            staking_contract=address_from_bytes(data[a:2 * a]),
            reward_token=address_from_bytes(data[2 * a:3 * a]),
            max_token_cost=int.from_bytes(costs[:_UINT256_BYTES], "big"),
            max_native_cost=int.from_bytes(costs[_UINT256_BYTES:], "big"),
        )


class ValidationEngine:
    """Admits or rejects user operations for one paymaster."""

    def __init__(
        self,
        paymaster: str,
        registry: StakeRegistry,
        ledger: DepositLedger,
        oracles: OracleBindings,
        cost_of_post: int,
    ) -> None:
        self.paymaster = paymaster.lower()
        self.registry = registry
        self.ledger = ledger
        self.oracles = oracles
        self.cost_of_post = cost_of_post

    def validate(self, user_op: "UserOperation", max_native_cost: int) -> SettlementContext:
        """
        Admit ``user_op`` with a cost ceiling of ``max_native_cost``.

        Raises:
            PaymasterValidationError: The specific subclass names the
                failed check
        """
        account = user_op.sender.lower()
        try:
            context = self._validate(user_op, account, max_native_cost)
        except PaymasterValidationError as e:
            logger.warning(
                "Paymaster validation rejected operation",
                extra={
                    "event": "paymaster.validation_failed",
                    "sender": account[:10],
                    "reason": type(e).__name__,
                    "error": e.message,
                }
            )
            raise

        logger.debug(
            "Paymaster validation succeeded",
            extra={
                "event": "paymaster.validated",
                "sender": account[:10],
                "staking_contract": context.staking_contract[:10],
                "max_token_cost": context.max_token_cost,
                "max_native_cost": max_native_cost,
            }
        )
        return context

    def _validate(self, user_op: "UserOperation", account: str, max_native_cost: int) -> SettlementContext:
        if user_op.verification_gas_limit <= self.cost_of_post:
            raise InsufficientVerificationBudgetError(
                "Verification gas too low to cover settlement",
                details={
                    "verification_gas_limit": user_op.verification_gas_limit,
                    "cost_of_post": self.cost_of_post,
                },
            )

        data = user_op.paymaster_and_data
        if len(data) != PAYMASTER_DATA_LENGTH:
            raise MissingStakingContractError(
                "Paymaster data must specify a staking contract",
                details={"expected_length": PAYMASTER_DATA_LENGTH, "actual_length": len(data)},
            )
        staking_address = address_from_bytes(data[ADDRESS_LENGTH:])

        # Registry membership and live approval are separate checks; approval
        # can be revoked after registration.
        if not self.registry.is_registered(staking_address):
            raise InvalidStakingContractError(
                "Invalid staking contract: not registered",
                details={"staking_contract": staking_address},
            )
        if not self.registry.contract_at(staking_address).is_approved_withdrawer(self.paymaster):
            raise InvalidStakingContractError(
                "Invalid staking contract: paymaster not approved",
                details={"staking_contract": staking_address},
            )

        reward_token = self.registry.reward_token_of(staking_address).address.lower()
        max_token_cost = self.oracles.oracle_for(reward_token).convert_native_to_token(max_native_cost)

        if not self.ledger.is_locked(account):
            raise DepositNotLockedError(
                "Deposit not locked",
                details={"account": account, "unlock_block": self.ledger.unlock_block_of(account)},
            )

        balance = self.ledger.balance_of(reward_token, account)
        if balance < max_token_cost:
            raise DepositTooLowError(
                "Deposit too low",
                details={"account": account, "balance": balance, "max_token_cost": max_token_cost},
            )

        return SettlementContext(
            account=account,
            staking_contract=staking_address,
            reward_token=reward_token,
            max_token_cost=max_token_cost,
            max_native_cost=max_native_cost,
        )
