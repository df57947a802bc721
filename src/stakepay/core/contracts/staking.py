"""
Staking contract interface and a simple reward pool.

A staking contract accrues rewards for stakers in a single reward token
and lets approved paymasters withdraw a staker's rewards to pay that
staker's fees. How rewards accrue is the pool's own business; here the
owner simply assigns them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Protocol, Set, runtime_checkable

from ..address_utils import derive_address
from ..paymaster_exceptions import ContractExecutionError
from .erc20 import ERC20Token
from .oracle import PriceOracle

logger = logging.getLogger(__name__)


@runtime_checkable
class StakingContract(Protocol):
    """What the paymaster needs from a staking contract."""

    @property
    def address(self) -> str:
        ...

    def reward_token(self) -> ERC20Token:
        """Token that rewards are paid in."""
        ...

    def oracle(self) -> PriceOracle:
        """Price oracle for the reward token."""
        ...

    def reward_accumulated(self, staker: str) -> int:
        ...

    def is_approved_withdrawer(self, paymaster: str) -> bool:
        ...

    def withdraw_rewards(self, caller: str, staker: str, amount: int) -> None:
        """Transfer ``amount`` of the staker's rewards to ``caller``. May revert."""
        ...


@dataclass
class SimpleStakingPool:
    """
    Staking pool paying rewards out of its own token balance.

    Reverts with ContractExecutionError when the caller is not an approved
    paymaster, the staker's rewards are short, or the pool itself holds
    too few tokens to make the transfer.
    """

    token: ERC20Token
    price_oracle: PriceOracle
    owner: str = ""
    address: str = field(default_factory=lambda: derive_address("staking_pool"))

    approved_paymasters: Set[str] = field(default_factory=set)
    rewards: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.address = self.address.lower()
        self.owner = self.owner.lower()

    # ==================== StakingContract Interface ====================

    def reward_token(self) -> ERC20Token:
        return self.token

    def oracle(self) -> PriceOracle:
        return self.price_oracle

    def reward_accumulated(self, staker: str) -> int:
        return self.rewards.get(staker.lower(), 0)

    def is_approved_withdrawer(self, paymaster: str) -> bool:
        return paymaster.lower() in self.approved_paymasters

    def withdraw_rewards(self, caller: str, staker: str, amount: int) -> None:
        caller_norm = caller.lower()
        staker_norm = staker.lower()

        if caller_norm not in self.approved_paymasters:
            raise ContractExecutionError(
                "StakingPool: caller is not an approved paymaster",
                details={"pool": self.address, "caller": caller_norm},
            )

        accrued = self.rewards.get(staker_norm, 0)
        if accrued < amount:
            raise ContractExecutionError(
                f"StakingPool: insufficient rewards ({accrued} < {amount})",
                details={"pool": self.address, "staker": staker_norm, "amount": amount},
            )

        self.token.transfer(self.address, caller_norm, amount)
        self.rewards[staker_norm] = accrued - amount

        logger.info(
            "Rewards withdrawn",
            extra={
                "event": "staking.rewards_withdrawn",
                "pool": self.address[:10],
                "staker": staker_norm[:10],
                "paymaster": caller_norm[:10],
                "amount": amount,
            }
        )

    # ==================== Management ====================

    def add_paymaster(self, caller: str, paymaster: str) -> None:
        self._require_owner(caller)
        self.approved_paymasters.add(paymaster.lower())

    def remove_paymaster(self, caller: str, paymaster: str) -> None:
        self._require_owner(caller)
        self.approved_paymasters.discard(paymaster.lower())

    def set_rewards(self, caller: str, staker: str, amount: int) -> None:
        """Assign the staker's accrued reward balance."""
        self._require_owner(caller)
        if amount < 0:
            raise ContractExecutionError("StakingPool: rewards cannot be negative")
        self.rewards[staker.lower()] = amount

    def _require_owner(self, caller: str) -> None:
        if caller.lower() != self.owner:
            raise ContractExecutionError("StakingPool: caller is not owner")
