"""Addresses and amounts shared across paymaster tests."""

OWNER = "0x" + "11" * 20
ACCOUNT = "0x" + "aa" * 20
OTHER_ACCOUNT = "0x" + "bb" * 20
TARGET = "0x" + "cc" * 20
BENEFICIARY = "0x" + "dd" * 20

ONE_ETH = 10**18
FIVE_ETH = 5 * ONE_ETH
