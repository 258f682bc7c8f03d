"""Pure types, constants, and utility functions — no external dependencies beyond stdlib."""

from __future__ import annotations

import enum
import re
from typing import Final


class ConnectionState(enum.Enum):
    """Lifecycle of a wallet session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"  # transient: only visible while connect() is suspended
    CONNECTED = "connected"


type Account = str
type ChainId = str
type Wei = int

# Native currency exponent assumed when nothing else is configured (ether and friends).
WEI_DECIMALS: Final = 18

# Provider RPC method names (EIP-1193 / JSON-RPC)
ETH_REQUEST_ACCOUNTS: Final = "eth_requestAccounts"
ETH_ACCOUNTS: Final = "eth_accounts"
ETH_CHAIN_ID: Final = "eth_chainId"
PERSONAL_SIGN: Final = "personal_sign"
ETH_SEND_TRANSACTION: Final = "eth_sendTransaction"
ETH_GET_BALANCE: Final = "eth_getBalance"

# block tag for "latest confirmed state"
BLOCK_LATEST: Final = "latest"

# Provider event names
ACCOUNTS_CHANGED: Final = "accountsChanged"
CHAIN_CHANGED: Final = "chainChanged"

# EIP-1193 provider error code for "the user rejected the request"
USER_REJECTED_CODE: Final = 4001

# optional 0x prefix followed by hex digits only
HEX_QUANTITY: Final = re.compile(r"(0x)?[0-9a-fA-F]+")


def hexToInt(value: str) -> Wei:
    """Parse a JSON-RPC quantity ("0x1bc16d674ec80000") into an int.

    A bare hex string without the 0x prefix is accepted too.
    Raises ValueError for empty or non-hex input and TypeError for non-strings."""

    if not isinstance(value, str):
        raise TypeError(f"Expected hex string, got {type(value).__name__}: {value!r}")

    if not HEX_QUANTITY.fullmatch(value):
        raise ValueError(f"Not a hex quantity: {value!r}")

    return int(value, 16)


def fromSmallestUnit(amount: Wei, decimals: int = WEI_DECIMALS) -> float:
    """Convert an integer amount in the smallest unit to whole-currency units.

    Integer true division is correctly rounded, so 10**18 wei is exactly 1.0."""

    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")

    return amount / 10**decimals


def fmtunits(amount: float, symbol: str = "ETH", places: int = 6) -> str:
    """Format a whole-unit amount for log lines: 1234.5 -> '1,234.500000 ETH'"""
    return f"{amount:,.{places}f} {symbol}"


def shortAccount(account: str | None) -> str:
    """Abbreviate an account for log output: 0x1234567890abcdef... -> 0x1234…cdef"""
    if not account:
        return "-"

    if len(account) <= 12:
        return account

    return f"{account[:6]}…{account[-4:]}"
