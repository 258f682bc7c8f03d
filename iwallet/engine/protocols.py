"""Narrow protocols for the collaborators a wallet session talks to.

The provider is an external object (a browser extension bridge, an HTTP
JSON-RPC endpoint, a test double); the session only ever needs the methods
listed here.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from iwallet.engine.session import SessionEvent


@runtime_checkable
class WalletProvider(Protocol):
    """Request/response RPC plus event subscription (EIP-1193 shaped)."""

    def isAvailable(self) -> bool: ...
    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any: ...
    def on(self, event: str, handler: Callable[..., None]) -> None: ...


@runtime_checkable
class RemovableListeners(Protocol):
    """Providers which can also unregister a handler added with on()."""

    def removeListener(self, event: str, handler: Callable[..., None]) -> None: ...


type SessionObserver = Callable[["SessionEvent"], None]
