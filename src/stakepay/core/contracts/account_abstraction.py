"""
Account Abstraction Orchestration (ERC-4337 Style).

Provides the pieces around a paymaster:
- UserOperation: struct representing user intent
- SmartAccount: contract wallet executing the operation's call
- EntryPoint: singleton driving validate -> execute -> post_op

Settlement contract with the paymaster:
- post_op is called once after execution
- if that post_op raises, the account's call is reverted and post_op is
  called a second time with ``PostOpMode.POST_OP_REVERTED``
- a failure of the second post_op is fatal and propagates
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Protocol, Tuple

from .. import config
from ..address_utils import ADDRESS_LENGTH, address_from_bytes
from ..paymaster_exceptions import (
    ContractExecutionError,
    PaymasterError,
    PaymasterValidationError,
)
from .paymaster_settlement import PaymentSource, SettlementReceipt

logger = logging.getLogger(__name__)

SIG_VALIDATION_SUCCESS = 0
SIG_VALIDATION_FAILED = 1


class PostOpMode(IntEnum):
    """Outcome passed to ``post_op``."""
    OP_SUCCEEDED = 0
    OP_REVERTED = 1
    POST_OP_REVERTED = 2


@dataclass
class UserOperation:
    """
    ERC-4337 UserOperation struct.

    ``paymaster_and_data`` is the 20-byte paymaster address followed by
    paymaster-specific data.
    """

    sender: str
    nonce: int
    calldata: bytes = b""
    call_gas_limit: int = 200_000
    verification_gas_limit: int = 100_000
    pre_verification_gas: int = 50_000
    max_fee_per_gas: int = 1_000_000_000  # 1 Gwei
    max_priority_fee_per_gas: int = 1_000_000_000
    paymaster_and_data: bytes = b""
    signature: bytes = b""

    def pack(self) -> bytes:
        """Pack UserOp for hashing (without signature)."""
        return (
            self.sender.lower().encode() +
            self.nonce.to_bytes(32, 'big') +
            hashlib.sha3_256(self.calldata).digest() +
            self.call_gas_limit.to_bytes(32, 'big') +
            self.verification_gas_limit.to_bytes(32, 'big') +
            self.pre_verification_gas.to_bytes(32, 'big') +
            self.max_fee_per_gas.to_bytes(32, 'big') +
            self.max_priority_fee_per_gas.to_bytes(32, 'big') +
            hashlib.sha3_256(self.paymaster_and_data).digest()
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        """UserOp hash bound to the entry point and chain."""
        inner_hash = hashlib.sha3_256(self.pack()).digest()
        return hashlib.sha3_256(
            inner_hash + entry_point.lower().encode() + chain_id.to_bytes(32, 'big')
        ).digest()

    @property
    def max_gas(self) -> int:
        return self.verification_gas_limit + self.call_gas_limit + self.pre_verification_gas

    @property
    def max_cost(self) -> int:
        return self.max_gas * self.max_fee_per_gas

    @property
    def paymaster(self) -> Optional[str]:
        if len(self.paymaster_and_data) < ADDRESS_LENGTH:
            return None
        return address_from_bytes(self.paymaster_and_data[:ADDRESS_LENGTH])


@dataclass
class ExecutionResult:
    """Result of one UserOp in a bundle."""
    success: bool
    actual_gas_cost: int
    admitted: bool = True
    paid_from_deposit: bool = False
    reason: str = ""


@dataclass(frozen=True)
class CallRecord:
    dest: str
    value: int
    data: bytes


class Paymaster(Protocol):
    """What the EntryPoint calls on a paymaster."""

    address: str

    def validate_paymaster_user_op(
        self, user_op: UserOperation, user_op_hash: bytes, max_cost: int
    ) -> Tuple[bytes, int]:
        ...

    def post_op(self, mode: PostOpMode, context: bytes, actual_gas_cost: int) -> SettlementReceipt:
        ...


@dataclass
class SmartAccount:
    """
    Minimal smart account.

    Calls made during execution are staged and only become visible in
    ``executed_calls`` when the EntryPoint commits them, so a reverted
    operation leaves no trace.
    """

    address: str
    owner: str = ""
    nonce: int = 0
    entry_point: str = ""
    rejected_targets: List[str] = field(default_factory=list)

    pending_calls: List[CallRecord] = field(default_factory=list)
    executed_calls: List[CallRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.address = self.address.lower()
        self.owner = self.owner.lower()
        self.rejected_targets = [t.lower() for t in self.rejected_targets]

    def validate_user_op(self, user_op: UserOperation, user_op_hash: bytes) -> int:
        if user_op.nonce != self.nonce:
            logger.warning(
                "UserOp validation failed: nonce mismatch",
                extra={
                    "event": "account.validation_failed",
                    "account": self.address[:10],
                    "reason": "nonce_mismatch",
                    "expected": self.nonce,
                    "got": user_op.nonce,
                }
            )
            return SIG_VALIDATION_FAILED
        return SIG_VALIDATION_SUCCESS

    def execute(self, dest: str, value: int, data: bytes) -> bytes:
        """Stage a call from this account."""
        if dest.lower() in self.rejected_targets:
            raise ContractExecutionError(f"Call to {dest} reverted")
        self.pending_calls.append(CallRecord(dest.lower(), value, data))
        logger.debug(
            "Account executing call",
            extra={"event": "account.execute", "account": self.address[:10], "dest": dest[:10], "value": value},
        )
        return b""

    def commit_calls(self) -> None:
        self.executed_calls.extend(self.pending_calls)
        self.pending_calls = []

    def discard_calls(self) -> None:
        self.pending_calls = []

    def increment_nonce(self) -> int:
        self.nonce += 1
        return self.nonce


@dataclass
class EntryPoint:
    """
    ERC-4337 EntryPoint.

    Holds native-currency deposits, validates user operations with their
    account and paymaster, executes them and drives paymaster settlement.
    """

    address: str = config.ENTRY_POINT_ADDRESS
    chain_id: int = config.CHAIN_ID

    deposits: Dict[str, int] = field(default_factory=dict)
    payouts: Dict[str, int] = field(default_factory=dict)

    accounts: Dict[str, SmartAccount] = field(default_factory=dict)
    paymasters: Dict[str, Paymaster] = field(default_factory=dict)

    total_ops_processed: int = 0
    total_gas_cost: int = 0

    # ==================== Main Entry Point ====================

    def handle_ops(self, ops: List[UserOperation], beneficiary: str) -> List[ExecutionResult]:
        """
        Handle a batch of UserOperations, paying gas to ``beneficiary``.

        Operations that fail validation are not admitted and cost nothing.

        Raises:
            FallbackSettlementError: If a paymaster's fallback settlement
                fails; the batch cannot be trusted after that
        """
        results = []
        for op in ops:
            try:
                results.append(self._handle_single_op(op, beneficiary.lower()))
            except (PaymasterValidationError, ContractExecutionError) as e:
                logger.warning(
                    "UserOp rejected",
                    extra={"event": "entrypoint.op_rejected", "sender": op.sender[:10], "error": str(e)},
                )
                results.append(ExecutionResult(success=False, actual_gas_cost=0, admitted=False, reason=str(e)))
        self.total_ops_processed += len(ops)
        return results

    def simulate_validation(self, op: UserOperation) -> bytes:
        """
        Run account and paymaster validation without executing.

        Returns:
            Paymaster context (empty if the op has no paymaster)
        """
        _, context = self._validate(op)
        return context

    def _validate(self, op: UserOperation) -> Tuple[Optional[Paymaster], bytes]:
        account = self.accounts.get(op.sender.lower())
        if account is None:
            raise ContractExecutionError(f"Account {op.sender} not found")

        op_hash = op.hash(self.address, self.chain_id)
        if account.validate_user_op(op, op_hash) != SIG_VALIDATION_SUCCESS:
            raise ContractExecutionError("Account validation failed")

        paymaster_address = op.paymaster
        if paymaster_address is None:
            if self.balance_of(account.address) < op.max_cost:
                raise ContractExecutionError("Account deposit too low")
            return None, b""

        paymaster = self.paymasters.get(paymaster_address)
        if paymaster is None:
            raise ContractExecutionError(f"Paymaster {paymaster_address} not found")
        if self.balance_of(paymaster_address) < op.max_cost:
            raise ContractExecutionError("Paymaster deposit too low")

        context, validation = paymaster.validate_paymaster_user_op(op, op_hash, op.max_cost)
        if validation != SIG_VALIDATION_SUCCESS:
            raise ContractExecutionError("Paymaster validation failed")
        return paymaster, context

    def _handle_single_op(self, op: UserOperation, beneficiary: str) -> ExecutionResult:
        paymaster, context = self._validate(op)
        account = self.accounts[op.sender.lower()]
        account.increment_nonce()

        try:
            if op.calldata:
                account.execute(account.address, 0, op.calldata)
            success = True
        except ContractExecutionError as e:
            success = False
            account.discard_calls()
            logger.warning(
                "UserOp execution failed",
                extra={"event": "entrypoint.execution_failed", "sender": op.sender[:10], "error": str(e)},
            )

        gas_used = op.pre_verification_gas + op.verification_gas_limit + op.call_gas_limit // 2
        actual_gas_cost = gas_used * op.max_fee_per_gas
        paid_from_deposit = False

        if paymaster is not None:
            mode = PostOpMode.OP_SUCCEEDED if success else PostOpMode.OP_REVERTED
            try:
                receipt = paymaster.post_op(mode, context, actual_gas_cost)
            except PaymasterError as e:
                logger.warning(
                    "post_op failed, reverting call and retrying settlement",
                    extra={"event": "entrypoint.post_op_reverted", "sender": op.sender[:10], "error": str(e)},
                )
                account.discard_calls()
                success = False
                receipt = paymaster.post_op(PostOpMode.POST_OP_REVERTED, context, actual_gas_cost)
            paid_from_deposit = receipt.source == PaymentSource.DEPOSIT
            payer = paymaster.address
        else:
            payer = account.address

        account.commit_calls()
        self.deposits[payer] = self.balance_of(payer) - actual_gas_cost
        self.payouts[beneficiary] = self.payouts.get(beneficiary, 0) + actual_gas_cost
        self.total_gas_cost += actual_gas_cost

        logger.info(
            "UserOp processed",
            extra={
                "event": "entrypoint.op_processed",
                "sender": op.sender[:10],
                "success": success,
                "actual_gas_cost": actual_gas_cost,
                "paid_from_deposit": paid_from_deposit,
            }
        )
        return ExecutionResult(success=success, actual_gas_cost=actual_gas_cost, paid_from_deposit=paid_from_deposit)

    # ==================== Deposit Management ====================

    def deposit_to(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ContractExecutionError("Deposit amount cannot be negative")
        self.deposits[account.lower()] = self.balance_of(account) + amount

    def withdraw_to(self, caller: str, withdraw_address: str, amount: int) -> None:
        current = self.balance_of(caller)
        if amount > current:
            raise ContractExecutionError("Insufficient deposit")
        self.deposits[caller.lower()] = current - amount
        self.payouts[withdraw_address.lower()] = self.payouts.get(withdraw_address.lower(), 0) + amount

    def balance_of(self, account: str) -> int:
        return self.deposits.get(account.lower(), 0)

    # ==================== Registration ====================

    def register_account(self, account: SmartAccount) -> None:
        self.accounts[account.address] = account
        account.entry_point = self.address

    def register_paymaster(self, paymaster: Paymaster) -> None:
        self.paymasters[paymaster.address.lower()] = paymaster
