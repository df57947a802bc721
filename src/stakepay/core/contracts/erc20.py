"""
ERC20 token used as the fee and reward asset.

Only the transfer primitive matters to the paymaster: custody moves in via
``transfer_from`` against an allowance and out via ``transfer``. Any
failure reverts with ``ContractExecutionError`` before state changes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..address_utils import ZERO_ADDRESS, derive_address
from ..paymaster_exceptions import ContractExecutionError

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1


@dataclass
class TokenEvent:
    """Transfer or Approval log entry."""

    kind: str
    source: str
    target: str
    amount: int
    emitted_at: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    """
    In-memory ERC20 token keyed by lowercase address. The owner may mint.
    """

    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0
    address: str = ""
    owner: str = ""

    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)
    events: list[TokenEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.address = self.address.lower() if self.address else derive_address("erc20", self.symbol)
        self.owner = self.owner.lower()

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder.lower(), 0)

    def allowance(self, holder: str, spender: str) -> int:
        return self.allowances.get(holder.lower(), {}).get(spender.lower(), 0)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move ``amount`` from ``sender`` (msg.sender) to ``recipient``.

        Raises:
            ContractExecutionError: On zero recipient, bad amount or
                insufficient balance
        """
        self._move(sender.lower(), recipient.lower(), amount)
        return True

    def approve(self, holder: str, spender: str, amount: int) -> bool:
        """Set the allowance ``spender`` may pull from ``holder``."""
        holder, spender = holder.lower(), spender.lower()
        self._check(spender, amount, role="spender")
        self.allowances.setdefault(holder, {})[spender] = amount
        self.events.append(TokenEvent("Approval", holder, spender, amount))
        return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """
        Move tokens on behalf of ``from_addr`` using the spender's allowance.

        An allowance of ``UINT256_MAX`` is never decremented. Allowance and
        balance are both checked before either changes.
        """
        spender, holder = spender.lower(), from_addr.lower()
        allowed = self.allowance(holder, spender)
        if allowed < amount:
            raise ContractExecutionError(
                f"ERC20: insufficient allowance ({allowed} < {amount})",
                details={"token": self.address, "owner": holder, "spender": spender},
            )
        self._move(holder, to_addr.lower(), amount)
        if allowed != UINT256_MAX:
            self.allowances[holder][spender] = allowed - amount
        return True

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """Create ``amount`` new tokens for ``to`` (owner only)."""
        if minter.lower() != self.owner:
            raise ContractExecutionError("ERC20: caller is not owner")
        recipient = to.lower()
        self._check(recipient, amount)
        if self.total_supply + amount > UINT256_MAX:
            raise ContractExecutionError("ERC20: total supply overflow")

        self.total_supply += amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        self.events.append(TokenEvent("Transfer", ZERO_ADDRESS, recipient, amount))
        logger.info(
            "Tokens minted",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": recipient[:10],
                "amount": amount,
                "total_supply": self.total_supply,
            }
        )
        return True

    def _move(self, source: str, target: str, amount: int) -> None:
        self._check(target, amount)
        available = self.balance_of(source)
        if available < amount:
            raise ContractExecutionError(
                f"ERC20: transfer amount exceeds balance ({amount} > {available})",
                details={"token": self.address, "from": source, "amount": amount},
            )
        self.balances[source] = available - amount
        self.balances[target] = self.balance_of(target) + amount
        self.events.append(TokenEvent("Transfer", source, target, amount))
        logger.debug(
            "Tokens moved",
            extra={"event": "erc20.transfer", "token": self.symbol, "from": source[:10], "to": target[:10], "amount": amount},
        )

    @staticmethod
    def _check(counterparty: str, amount: int, role: str = "recipient") -> None:
        if not counterparty or counterparty == ZERO_ADDRESS:
            raise ContractExecutionError(f"ERC20: {role} is zero address")
        if not 0 <= amount <= UINT256_MAX:
            raise ContractExecutionError(f"ERC20: amount {amount} out of range")
