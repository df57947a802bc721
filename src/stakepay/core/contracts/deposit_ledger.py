"""
Token deposit ledger.

Holds per (token, account) balances in the paymaster's custody and a
per-account unlock block. A deposit counts as collateral only while it is
locked (``unlock_block == 0``). Withdrawal needs an unlock requested in an
earlier block than the current one, so an account can never unlock and
withdraw inside the block in which its deposit backed an operation.

State per account::

    LOCKED --unlock()--> PENDING_UNLOCK --(next block)--> WITHDRAWABLE
    PENDING_UNLOCK / WITHDRAWABLE --lock()--> LOCKED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from ..chain import BlockContext
from ..paymaster_exceptions import (
    InsufficientBalanceError,
    NotUnlockedError,
)
from .erc20 import ERC20Token
from .stake_registry import OracleBindings

logger = logging.getLogger(__name__)


class DepositState(Enum):
    """Lock state of an account's deposits."""
    LOCKED = "locked"
    PENDING_UNLOCK = "pending_unlock"
    WITHDRAWABLE = "withdrawable"


@dataclass(frozen=True)
class DepositInfo:
    amount: int
    unlock_block: int


class DepositLedger:
    """
    Deposit balances held by ``custodian`` (the paymaster address).

    ``debit`` and ``credit`` touch only internal state; they never call a
    token or any other contract.
    """

    def __init__(self, custodian: str, chain: BlockContext, oracles: OracleBindings) -> None:
        self.custodian = custodian.lower()
        self.chain = chain
        self._oracles = oracles
        self._balances: Dict[str, Dict[str, int]] = {}
        self._unlock_block: Dict[str, int] = {}

    # ==================== Views ====================

    def balance_of(self, token: str, account: str) -> int:
        return self._balances.get(token.lower(), {}).get(account.lower(), 0)

    def unlock_block_of(self, account: str) -> int:
        return self._unlock_block.get(account.lower(), 0)

    def is_locked(self, account: str) -> bool:
        return self.unlock_block_of(account) == 0

    def state_of(self, account: str) -> DepositState:
        unlock_block = self.unlock_block_of(account)
        if unlock_block == 0:
            return DepositState.LOCKED
        if self.chain.block_number > unlock_block:
            return DepositState.WITHDRAWABLE
        return DepositState.PENDING_UNLOCK

    def deposit_info(self, token: str, account: str) -> DepositInfo:
        return DepositInfo(
            amount=self.balance_of(token, account),
            unlock_block=self.unlock_block_of(account),
        )

    # ==================== Account Operations ====================

    def add_deposit(self, depositor: str, token: ERC20Token, account: str, amount: int) -> None:
        """
        Pull ``amount`` of ``token`` from ``depositor`` and credit ``account``.

        The depositor must have approved the custodian beforehand. A
        deposit an account makes for itself also re-locks its deposits.

        Raises:
            UnsupportedTokenError: If no oracle prices ``token``
            ContractExecutionError: If the token transfer reverts
        """
        self._oracles.oracle_for(token.address)
        depositor_norm = depositor.lower()
        account_norm = account.lower()

        token.transfer_from(self.custodian, depositor_norm, self.custodian, amount)
        self._add(token.address, account_norm, amount)

        if depositor_norm == account_norm:
            self._unlock_block[account_norm] = 0

        logger.info(
            "Deposit added",
            extra={
                "event": "deposit.added",
                "token": token.address[:10],
                "account": account_norm[:10],
                "depositor": depositor_norm[:10],
                "amount": amount,
            }
        )

    def unlock(self, account: str) -> int:
        """Request unlock of the caller's deposits at the current block."""
        account_norm = account.lower()
        self._unlock_block[account_norm] = self.chain.block_number
        logger.info(
            "Deposit unlock requested",
            extra={
                "event": "deposit.unlocked",
                "account": account_norm[:10],
                "unlock_block": self.chain.block_number,
            }
        )
        return self.chain.block_number

    def lock(self, account: str) -> None:
        """Lock the caller's deposits so they can back operations again."""
        account_norm = account.lower()
        self._unlock_block[account_norm] = 0
        logger.debug("Deposit locked", extra={"event": "deposit.locked", "account": account_norm[:10]})

    def withdraw(self, token: ERC20Token, account: str, target: str, amount: int) -> None:
        """
        Send ``amount`` of the caller's ``token`` deposit to ``target``.

        Raises:
            NotUnlockedError: Unless unlock was requested in an earlier block
            InsufficientBalanceError: If ``amount`` exceeds the balance
            ContractExecutionError: If the token transfer reverts
        """
        account_norm = account.lower()
        unlock_block = self.unlock_block_of(account_norm)
        if unlock_block == 0 or self.chain.block_number <= unlock_block:
            raise NotUnlockedError(
                "Deposit must be unlocked in an earlier block before withdrawal",
                details={
                    "account": account_norm,
                    "unlock_block": unlock_block,
                    "block_number": self.chain.block_number,
                },
            )

        balance = self.balance_of(token.address, account_norm)
        if amount > balance:
            raise InsufficientBalanceError(
                f"Withdrawal of {amount} exceeds deposit of {balance}",
                details={"token": token.address, "account": account_norm},
            )

        token.transfer(self.custodian, target, amount)
        self._balances.setdefault(token.address.lower(), {})[account_norm] = balance - amount

        logger.info(
            "Deposit withdrawn",
            extra={
                "event": "deposit.withdrawn",
                "token": token.address[:10],
                "account": account_norm[:10],
                "target": target.lower()[:10],
                "amount": amount,
            }
        )

    # ==================== Settlement Operations ====================

    def debit(self, token: str, account: str, amount: int) -> None:
        """Reduce a balance regardless of lock state. Internal state only."""
        token_norm = token.lower()
        account_norm = account.lower()
        balance = self.balance_of(token_norm, account_norm)
        if amount < 0 or amount > balance:
            raise InsufficientBalanceError(
                f"Debit of {amount} exceeds deposit of {balance}",
                details={"token": token_norm, "account": account_norm},
            )
        self._balances.setdefault(token_norm, {})[account_norm] = balance - amount

    def credit(self, token: str, beneficiary: str, amount: int) -> None:
        """Increase a balance regardless of lock state. Internal state only."""
        if amount < 0:
            raise ValueError("Credit amount cannot be negative")
        self._add(token, beneficiary.lower(), amount)

    def _add(self, token: str, account: str, amount: int) -> None:
        balances = self._balances.setdefault(token.lower(), {})
        balances[account] = balances.get(account, 0) + amount
