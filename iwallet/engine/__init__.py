"""iwallet engine layer — wallet session logic with no UI dependency.

All modules use ``from __future__ import annotations`` and modern
Python typing (``str | None``, ``@dataclass(slots=True)``, etc.).

Modules
-------
primitives
    Pure types, constants, and conversion helpers (stdlib-only).
    - ``ConnectionState``: DISCONNECTED / CONNECTING / CONNECTED
    - Constants: RPC method names (``ETH_REQUEST_ACCOUNTS``, ``PERSONAL_SIGN``, ...),
      event names (``ACCOUNTS_CHANGED``, ``CHAIN_CHANGED``), ``WEI_DECIMALS``
    - Functions: ``hexToInt``, ``fromSmallestUnit``, ``fmtunits``, ``shortAccount``

errors
    Tagged error taxonomy.
    - ``WalletErrorKind``: enum used for branching on failures
    - ``WalletError`` and one subclass per kind (``NotConnected``, ``SigningFailed``, ...),
      each carrying the provider error as ``.cause``

protocols
    - ``WalletProvider``: isAvailable() / request() / on()
    - ``RemovableListeners``: providers that also support removeListener()
    - ``SessionObserver``: callback type for ``SessionEvent``

session
    - ``WalletSession``: connection state machine; connect/disconnect, signMessage,
      sendTransaction, getBalance, getAccount, getStatus
    - ``SessionStatus``: immutable snapshot returned by getStatus()
    - ``SessionEvent``: observer notification record (kind, status, reason, timestamp)

events
    - ``ProviderEventRouter``: owns the accountsChanged/chainChanged subscriptions of
      one connection and applies them to the session

rpc
    - ``JsonRpcProvider``: httpx JSON-RPC provider with listener registry and a
      polling watcher for account/chain changes
"""

# Convenience re-exports for common usage:
# from iwallet.engine import WalletSession, ConnectionState, NotConnected
from iwallet.engine.errors import (
    BalanceQueryFailed,
    NotConnected,
    ProviderRpcError,
    ProviderUnavailable,
    SigningFailed,
    TransactionFailed,
    UserRejected,
    WalletError,
    WalletErrorKind,
)
from iwallet.engine.primitives import ConnectionState
from iwallet.engine.rpc import JsonRpcProvider
from iwallet.engine.session import SessionEvent, SessionStatus, WalletSession

__all__ = [
    "BalanceQueryFailed",
    "ConnectionState",
    "JsonRpcProvider",
    "NotConnected",
    "ProviderRpcError",
    "ProviderUnavailable",
    "SessionEvent",
    "SessionStatus",
    "SigningFailed",
    "TransactionFailed",
    "UserRejected",
    "WalletError",
    "WalletErrorKind",
    "WalletSession",
]
