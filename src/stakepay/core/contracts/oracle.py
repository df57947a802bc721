"""
Price oracle interface.

The paymaster only ever asks an oracle one question: how many token units
is a native-currency amount worth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ..address_utils import derive_address


@runtime_checkable
class PriceOracle(Protocol):
    """Converts native-currency cost into token units. Pure query."""

    @property
    def address(self) -> str:
        ...

    def convert_native_to_token(self, native_amount: int) -> int:
        """Return the token value of ``native_amount``."""
        ...


@dataclass
class FixedRateOracle:
    """Oracle quoting a constant ``numerator / denominator`` token-per-native rate."""

    numerator: int = 2
    denominator: int = 1
    address: str = field(default_factory=lambda: derive_address("oracle"))

    def __post_init__(self) -> None:
        if self.numerator < 0 or self.denominator <= 0:
            raise ValueError("Oracle rate must be non-negative with a positive denominator")
        self.address = self.address.lower()

    def convert_native_to_token(self, native_amount: int) -> int:
        return native_amount * self.numerator // self.denominator
