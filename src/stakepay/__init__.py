"""
stakepay - staking-aware token paymaster.

Sponsors ERC-4337 style user operations and collects the fee in a
fungible token, preferring the account's staking rewards and falling back
to a locked token deposit.
"""

__version__ = "0.1.0"
