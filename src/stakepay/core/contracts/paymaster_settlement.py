"""
Post-execution fee collection for the staking paymaster.

Settlement runs in one of two modes:

- primary: the staking contract pays the fee out of the account's
  rewards. The contract may refuse, in which case ``RewardWithdrawalError``
  is raised and the orchestrator must settle again in fallback mode.
- fallback: the fee is debited from the account's locked deposit. This
  only touches the ledger and was proven coverable at validation, so a
  failure here raises ``FallbackSettlementError``.

Either way the collected fee is credited to the paymaster owner's
deposit balance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..paymaster_exceptions import (
    ContractExecutionError,
    FallbackSettlementError,
    InsufficientBalanceError,
    RewardWithdrawalError,
)
from .deposit_ledger import DepositLedger
from .paymaster_validation import SettlementContext
from .stake_registry import StakeRegistry

logger = logging.getLogger(__name__)


class PaymentSource(Enum):
    REWARDS = "rewards"
    DEPOSIT = "deposit"


@dataclass(frozen=True)
class SettlementReceipt:
    account: str
    source: PaymentSource
    token_cost: int
    native_cost: int


def token_cost_for(context: SettlementContext, actual_native_cost: int) -> int:
    """Price the actual native cost at the rate fixed during validation."""
    if context.max_native_cost == 0:
        return 0
    return actual_native_cost * context.max_token_cost // context.max_native_cost


class SettlementEngine:
    """Collects fees for one paymaster."""

    def __init__(self, paymaster: str, owner: str, registry: StakeRegistry, ledger: DepositLedger) -> None:
        self.paymaster = paymaster.lower()
        self.owner = owner.lower()
        self.registry = registry
        self.ledger = ledger

    def settle(
        self,
        context: SettlementContext,
        settlement_failed_upstream: bool,
        actual_native_cost: int,
    ) -> SettlementReceipt:
        """
        Collect the fee for a validated operation.

        Args:
            context: Context returned by validation for this operation
            settlement_failed_upstream: True when retrying after a failed
                primary settlement
            actual_native_cost: Actual execution cost in native currency

        Raises:
            RewardWithdrawalError: Primary mode, staking contract refused
            FallbackSettlementError: Fallback mode, deposit debit failed
        """
        if actual_native_cost < 0:
            raise ValueError("Actual cost cannot be negative")
        token_cost = token_cost_for(context, actual_native_cost)

        if settlement_failed_upstream:
            source = PaymentSource.DEPOSIT
            self._charge_deposit(context, token_cost)
        else:
            source = PaymentSource.REWARDS
            self._charge_rewards(context, token_cost)

        self.ledger.credit(context.reward_token, self.owner, token_cost)

        logger.info(
            "Operation settled",
            extra={
                "event": "paymaster.settled",
                "account": context.account[:10],
                "source": source.value,
                "token_cost": token_cost,
                "native_cost": actual_native_cost,
            }
        )
        return SettlementReceipt(
            account=context.account,
            source=source,
            token_cost=token_cost,
            native_cost=actual_native_cost,
        )

    def _charge_rewards(self, context: SettlementContext, token_cost: int) -> None:
        staking_contract = self.registry.contract_at(context.staking_contract)
        try:
            staking_contract.withdraw_rewards(self.paymaster, context.account, token_cost)
        except Exception as e:
            # Any failure of the external pool, revert or not, selects the fallback.
            reverted = isinstance(e, ContractExecutionError)
            logger.warning(
                "Reward withdrawal failed, fallback settlement required",
                extra={
                    "event": "paymaster.reward_withdrawal_failed",
                    "account": context.account[:10],
                    "staking_contract": context.staking_contract[:10],
                    "token_cost": token_cost,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=not reverted,
            )
            raise RewardWithdrawalError(
                f"Staking contract refused reward withdrawal: {e}",
                details={
                    "account": context.account,
                    "staking_contract": context.staking_contract,
                    "token_cost": token_cost,
                    "reverted": reverted,
                },
            ) from e

    def _charge_deposit(self, context: SettlementContext, token_cost: int) -> None:
        try:
            self.ledger.debit(context.reward_token, context.account, token_cost)
        except InsufficientBalanceError as e:
            logger.critical(
                "Fallback settlement failed",
                extra={
                    "event": "paymaster.fallback_failed",
                    "account": context.account[:10],
                    "token_cost": token_cost,
                },
                exc_info=True,
            )
            raise FallbackSettlementError(
                f"Deposit fallback could not cover {token_cost}: {e}",
                details={"account": context.account, "token_cost": token_cost},
            ) from e

        logger.warning(
            "Fee charged to deposit",
            extra={
                "event": "paymaster.fallback_settled",
                "account": context.account[:10],
                "token_cost": token_cost,
            }
        )
