"""
stakepay contracts.

This module provides:
- StakingPaymaster: deposit ledger, stake registry, validation and settlement
- EntryPoint / SmartAccount / UserOperation: ERC-4337 orchestration
- ERC20Token: fee and reward token
- FixedRateOracle: native -> token price conversion
- SimpleStakingPool: staking contract paying rewards to approved paymasters
"""

from .account_abstraction import (
    CallRecord,
    EntryPoint,
    ExecutionResult,
    PostOpMode,
    SmartAccount,
    UserOperation,
)
from .deposit_ledger import DepositInfo, DepositLedger, DepositState
from .erc20 import ERC20Token
from .oracle import FixedRateOracle, PriceOracle
from .paymaster_settlement import PaymentSource, SettlementEngine, SettlementReceipt
from .paymaster_validation import SettlementContext, ValidationEngine
from .stake_registry import OracleBindings, OwnerCapability, StakeRegistry
from .staking import SimpleStakingPool, StakingContract
from .staking_paymaster import StakingPaymaster

__all__ = [
    # Paymaster
    "StakingPaymaster",
    "DepositLedger",
    "DepositInfo",
    "DepositState",
    "StakeRegistry",
    "OracleBindings",
    "OwnerCapability",
    "ValidationEngine",
    "SettlementContext",
    "SettlementEngine",
    "SettlementReceipt",
    "PaymentSource",
    # Account Abstraction
    "UserOperation",
    "SmartAccount",
    "EntryPoint",
    "ExecutionResult",
    "CallRecord",
    "PostOpMode",
    # Collaborators
    "ERC20Token",
    "PriceOracle",
    "FixedRateOracle",
    "StakingContract",
    "SimpleStakingPool",
]
