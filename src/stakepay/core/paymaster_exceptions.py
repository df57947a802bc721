"""
Paymaster-specific exception hierarchy for stakepay.

Provides typed exceptions for deposit accounting, staking-contract
registration, admission validation and settlement so callers can tell
"reject this operation" apart from "retry settlement in fallback mode"
and from "an invariant is broken".
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class PaymasterError(Exception):
    """Base exception for all paymaster-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the orchestrator may retry the failed step
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


class ContractExecutionError(PaymasterError):
    """Raised when a collaborator contract (token, staking pool, account) reverts."""
    pass


class UnauthorizedError(PaymasterError):
    """Raised when an owner-only operation is attempted without the owner capability."""
    pass


# ==================== Validation Errors ====================


class PaymasterValidationError(PaymasterError):
    """Raised when an operation is rejected before execution.

    Validation is side-effect free, so nothing needs to be undone when one
    of these is raised.
    """
    pass


class UnsupportedTokenError(PaymasterValidationError):
    """Raised when a token has no price oracle bound to it."""
    pass


class InvalidStakingContractError(PaymasterValidationError):
    """Raised when the referenced staking contract is unregistered or no longer
    approves this paymaster as a reward withdrawer."""
    pass


class MissingStakingContractError(PaymasterValidationError):
    """Raised when paymaster data does not carry exactly one staking contract."""
    pass


class InsufficientVerificationBudgetError(PaymasterValidationError):
    """Raised when the verification gas limit cannot cover settlement work."""
    pass


class DepositNotLockedError(PaymasterValidationError):
    """Raised when the paying account's deposit is unlocked (or unlocking)."""
    pass


class DepositTooLowError(PaymasterValidationError):
    """Raised when the paying account's deposit cannot cover the maximum cost."""
    pass


# ==================== Registration Errors ====================


class RegistrationError(PaymasterError):
    """Raised when staking-contract or token registration fails."""
    pass


class AlreadyRegisteredError(RegistrationError):
    """Raised when a staking contract is registered twice."""
    pass


class OracleConflictError(RegistrationError):
    """Raised when a token is already bound to a different price oracle."""

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.token = token


# ==================== Deposit Errors ====================


class DepositError(PaymasterError):
    """Raised when a deposit ledger operation fails."""
    pass


class NotUnlockedError(DepositError):
    """Raised on withdrawal before the deposit was unlocked in an earlier block."""
    pass


class InsufficientBalanceError(DepositError):
    """Raised when a debit or withdrawal exceeds the deposited balance."""
    pass


# ==================== Settlement Errors ====================


class SettlementError(PaymasterError):
    """Raised when post-execution fee collection fails."""
    pass


class RewardWithdrawalError(SettlementError):
    """Raised when the staking contract refuses to pay the fee from rewards.

    Expected failure: the orchestrator must call settlement again in
    fallback mode.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class FallbackSettlementError(SettlementError):
    """Raised when the deposit fallback itself fails.

    The fallback debit was proven coverable at validation time, so this
    means a ledger invariant is broken. Never retried, never swallowed.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs["recoverable"] = False
        super().__init__(message, **kwargs)
