"""
Staking-contract registry and token price-oracle bindings.

Both tables are append-only: a staking contract once registered stays
registered with the reward token it reported, and a token once bound to
an oracle keeps that oracle. Registration is owner-only and proven by
presenting the paymaster's ``OwnerCapability``.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..paymaster_exceptions import (
    AlreadyRegisteredError,
    InvalidStakingContractError,
    OracleConflictError,
    UnauthorizedError,
    UnsupportedTokenError,
)
from .erc20 import ERC20Token
from .oracle import PriceOracle
from .staking import StakingContract

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnerCapability:
    """Proof of ownership handed to the paymaster owner."""

    paymaster: str
    owner: str
    secret: str = field(default_factory=lambda: secrets.token_hex(32), repr=False)


def require_owner_capability(expected: OwnerCapability, presented: Optional[OwnerCapability]) -> None:
    """Raise UnauthorizedError unless ``presented`` is the expected capability."""
    if (
        not isinstance(presented, OwnerCapability)
        or presented.paymaster != expected.paymaster
        or not hmac.compare_digest(presented.secret, expected.secret)
    ):
        raise UnauthorizedError(
            "Caller does not hold the owner capability",
            details={"paymaster": expected.paymaster},
        )


class OracleBindings:
    """One canonical price oracle per token."""

    def __init__(self) -> None:
        self._oracles: Dict[str, PriceOracle] = {}

    def bind(self, token: str, oracle: PriceOracle) -> bool:
        """
        Bind ``oracle`` to ``token``.

        Returns:
            True if a new binding was made, False if the same oracle was
            already bound

        Raises:
            OracleConflictError: If a different oracle is already bound
        """
        token_norm = token.lower()
        current = self._oracles.get(token_norm)
        if current is not None:
            if current.address.lower() == oracle.address.lower():
                return False
            raise OracleConflictError(
                f"Token {token_norm} is already priced by oracle {current.address}",
                token=token_norm,
                details={"bound": current.address, "rejected": oracle.address},
            )
        self._oracles[token_norm] = oracle
        logger.info(
            "Oracle bound",
            extra={"event": "oracle.bound", "token": token_norm[:10], "oracle": oracle.address[:10]},
        )
        return True

    def is_supported(self, token: str) -> bool:
        return token.lower() in self._oracles

    def oracle_for(self, token: str) -> PriceOracle:
        oracle = self._oracles.get(token.lower())
        if oracle is None:
            raise UnsupportedTokenError(
                f"Unsupported token {token}",
                details={"token": token.lower()},
            )
        return oracle

    def __len__(self) -> int:
        return len(self._oracles)


@dataclass(frozen=True)
class StakingContractEntry:
    contract: StakingContract
    reward_token: ERC20Token
    registered: bool = True


class StakeRegistry:
    """Staking contracts trusted by one paymaster."""

    def __init__(self, oracles: OracleBindings, owner_capability: OwnerCapability) -> None:
        self._oracles = oracles
        self._owner_capability = owner_capability
        self._entries: Dict[str, StakingContractEntry] = {}

    def register(self, capability: OwnerCapability, staking_contract: StakingContract) -> StakingContractEntry:
        """
        Trust a staking contract (owner only).

        Records the contract's reward token and binds its oracle to that
        token. Nothing is recorded if any step fails.

        Raises:
            UnauthorizedError: If ``capability`` is not the owner's
            AlreadyRegisteredError: If the contract is already registered
            OracleConflictError: If the reward token is priced by another oracle
        """
        require_owner_capability(self._owner_capability, capability)

        address = staking_contract.address.lower()
        if address in self._entries:
            raise AlreadyRegisteredError(
                f"Staking contract {address} already registered",
                details={"staking_contract": address},
            )

        reward_token = staking_contract.reward_token()
        self._oracles.bind(reward_token.address, staking_contract.oracle())

        entry = StakingContractEntry(contract=staking_contract, reward_token=reward_token)
        self._entries[address] = entry

        logger.info(
            "Staking contract registered",
            extra={
                "event": "registry.staking_contract_registered",
                "staking_contract": address[:10],
                "reward_token": reward_token.address[:10],
            }
        )
        return entry

    def is_registered(self, staking_contract: str) -> bool:
        entry = self._entries.get(staking_contract.lower())
        return entry is not None and entry.registered

    def entry_of(self, staking_contract: str) -> StakingContractEntry:
        entry = self._entries.get(staking_contract.lower())
        if entry is None or not entry.registered:
            raise InvalidStakingContractError(
                f"Staking contract {staking_contract} is not registered",
                details={"staking_contract": staking_contract.lower()},
            )
        return entry

    def contract_at(self, staking_contract: str) -> StakingContract:
        return self.entry_of(staking_contract).contract

    def reward_token_of(self, staking_contract: str) -> ERC20Token:
        return self.entry_of(staking_contract).reward_token

    def __len__(self) -> int:
        return len(self._entries)
