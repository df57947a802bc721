"""
Staking-aware token paymaster (ERC-4337 style).

Sponsors user operations in exchange for a fungible token. At settlement
the fee is taken from the account's staking rewards when the staking
contract will pay, and otherwise from the account's token deposit held
here as locked collateral.

Composition:
- ``OracleBindings``: token -> price oracle
- ``StakeRegistry``: trusted staking contracts and their reward tokens
- ``DepositLedger``: deposits and lock state
- ``ValidationEngine`` / ``SettlementEngine``: the two phases
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .. import config
from ..address_utils import derive_address
from ..chain import BlockContext
from ..paymaster_exceptions import UnauthorizedError
from .account_abstraction import SIG_VALIDATION_SUCCESS, PostOpMode, UserOperation
from .deposit_ledger import DepositInfo, DepositLedger, DepositState
from .erc20 import ERC20Token
from .oracle import PriceOracle
from .paymaster_settlement import PaymentSource, SettlementEngine, SettlementReceipt
from .paymaster_validation import SettlementContext, ValidationEngine
from .stake_registry import (
    OracleBindings,
    OwnerCapability,
    StakeRegistry,
    StakingContractEntry,
    require_owner_capability,
)
from .staking import StakingContract

logger = logging.getLogger(__name__)


class StakingPaymaster:
    """
    Paymaster charging fees in staking reward tokens.

    Account-facing methods take ``caller`` (msg.sender). Owner-only
    methods take the ``OwnerCapability`` obtained through
    ``issue_owner_capability``.
    """

    def __init__(
        self,
        owner: str,
        chain: BlockContext,
        address: str = "",
        cost_of_post: Optional[int] = None,
    ) -> None:
        self.address = (address or derive_address("staking_paymaster", owner)).lower()
        self.owner = owner.lower()
        self.chain = chain
        self.cost_of_post = config.COST_OF_POST if cost_of_post is None else cost_of_post

        self._owner_capability = OwnerCapability(paymaster=self.address, owner=self.owner)
        self.oracles = OracleBindings()
        self.registry = StakeRegistry(self.oracles, self._owner_capability)
        self.ledger = DepositLedger(self.address, chain, self.oracles)
        self.validation = ValidationEngine(
            self.address, self.registry, self.ledger, self.oracles, self.cost_of_post
        )
        self.settlement = SettlementEngine(self.address, self.owner, self.registry, self.ledger)

        # Statistics
        self.total_settled = 0
        self.fallback_settlements = 0
        self.fees_collected: Dict[str, int] = {}

    # ==================== Ownership ====================

    def issue_owner_capability(self, caller: str) -> OwnerCapability:
        if caller.lower() != self.owner:
            raise UnauthorizedError("Caller is not owner", details={"caller": caller.lower()})
        return self._owner_capability

    def add_staking_contract(self, capability: OwnerCapability, staking_contract: StakingContract) -> StakingContractEntry:
        """Trust a staking contract and adopt its reward token's oracle."""
        return self.registry.register(capability, staking_contract)

    def add_token(self, capability: OwnerCapability, token: ERC20Token, oracle: PriceOracle) -> bool:
        """Accept deposits in ``token`` priced by ``oracle``."""
        require_owner_capability(self._owner_capability, capability)
        return self.oracles.bind(token.address, oracle)

    # ==================== Deposits ====================

    def add_deposit_for(self, caller: str, token: ERC20Token, account: str, amount: int) -> None:
        self.ledger.add_deposit(caller, token, account, amount)

    def unlock_token_deposit(self, caller: str) -> int:
        return self.ledger.unlock(caller)

    def lock_token_deposit(self, caller: str) -> None:
        self.ledger.lock(caller)

    def withdraw_tokens_to(self, caller: str, token: ERC20Token, target: str, amount: int) -> None:
        self.ledger.withdraw(token, caller, target, amount)

    def deposit_info(self, token: ERC20Token | str, account: str) -> DepositInfo:
        token_address = token if isinstance(token, str) else token.address
        return self.ledger.deposit_info(token_address, account)

    def deposit_state(self, account: str) -> DepositState:
        return self.ledger.state_of(account)

    # ==================== IPaymaster Interface ====================

    def validate_paymaster_user_op(
        self,
        user_op: UserOperation,
        user_op_hash: bytes,
        max_cost: int,
    ) -> Tuple[bytes, int]:
        """
        Validate ``user_op`` and agree to pay up to ``max_cost``.

        Returns:
            (context, validation_data)

        Raises:
            PaymasterValidationError: If the operation is not admitted
        """
        context = self.validation.validate(user_op, max_cost)
        return context.encode(), SIG_VALIDATION_SUCCESS

    def post_op(self, mode: PostOpMode, context: bytes, actual_gas_cost: int) -> SettlementReceipt:
        """
        Settle after execution.

        ``PostOpMode.POST_OP_REVERTED`` means an earlier ``post_op`` for
        this operation failed and selects the deposit fallback.
        """
        settlement_context = SettlementContext.decode(context)
        receipt = self.settlement.settle(
            settlement_context,
            settlement_failed_upstream=(mode == PostOpMode.POST_OP_REVERTED),
            actual_native_cost=actual_gas_cost,
        )

        self.total_settled += 1
        if receipt.source == PaymentSource.DEPOSIT:
            self.fallback_settlements += 1
        token = settlement_context.reward_token
        self.fees_collected[token] = self.fees_collected.get(token, 0) + receipt.token_cost
        return receipt

    # ==================== Stats ====================

    def get_stats(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "total_settled": self.total_settled,
            "fallback_settlements": self.fallback_settlements,
            "fees_collected": dict(self.fees_collected),
            "staking_contracts": len(self.registry),
            "supported_tokens": len(self.oracles),
        }
