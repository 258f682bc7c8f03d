"""JSON-RPC over HTTP wallet provider.

Python processes have no injected ``window.ethereum``, so this provider talks
to a JSON-RPC endpoint directly (a local dev node with unlocked accounts, a
signing proxy, ...). HTTP has no push channel, so account and chain changes
are discovered by polling and delivered through the same ``on()`` listener
registry a browser provider would use.
"""
from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from iwallet.engine.errors import ProviderRpcError, UserRejected, WalletError
from iwallet.engine.primitives import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    ETH_ACCOUNTS,
    ETH_CHAIN_ID,
    USER_REJECTED_CODE,
)


@dataclass(slots=True)
class JsonRpcProvider:
    """Wallet provider speaking JSON-RPC 2.0 over HTTP."""

    url: str | None = "http://127.0.0.1:8545"
    timeout: float = 30.0

    # injected for tests (httpx.MockTransport) or shared connection pools;
    # created lazily otherwise and closed by aclose()
    client: httpx.AsyncClient | None = None
    ownsClient: bool = False

    listeners: defaultdict[str, list[Callable[..., None]]] = field(
        default_factory=lambda: defaultdict(list)
    )

    # last values seen by poll(); None until the first poll establishes a baseline
    lastAccounts: list[str] | None = None
    lastChainId: str | None = None

    ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def isAvailable(self) -> bool:
        return bool(self.url)

    def _client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout)
            self.ownsClient = True

        return self.client

    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any:
        """Issue one JSON-RPC call and return its ``result``.

        Raises UserRejected for EIP-1193 code 4001 and ProviderRpcError for any
        other error object, HTTP status failure, transport error, or malformed reply."""

        if not self.url:
            raise ProviderRpcError("No JSON-RPC endpoint configured")

        payload = {
            "jsonrpc": "2.0",
            "id": next(self.ids),
            "method": method,
            "params": list(params or []),
        }

        logger.trace("[{}] -> {}", self.url, payload)

        try:
            got = await self._client().post(self.url, json=payload)
            got.raise_for_status()
            body = got.json()
        except httpx.HTTPError as e:
            raise ProviderRpcError(f"{method} request failed: {e}", cause=e) from e
        except ValueError as e:
            raise ProviderRpcError(f"{method} returned invalid JSON", cause=e) from e

        logger.trace("[{}] <- {}", self.url, body)

        if not isinstance(body, dict):
            raise ProviderRpcError(f"{method} returned unexpected payload: {body!r}")

        if (error := body.get("error")) is not None:
            if not isinstance(error, dict):
                raise ProviderRpcError(f"{method} failed: {error}")

            code = error.get("code")
            message = error.get("message") or f"{method} failed"

            if code == USER_REJECTED_CODE:
                raise UserRejected(message, code=code)

            raise ProviderRpcError(message, code=code, data=error.get("data"))

        if "result" not in body:
            raise ProviderRpcError(f"{method} reply has neither result nor error")

        return body["result"]

    # ------------------------------------------------------------------
    # Listener registry
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Callable[..., None]) -> None:
        self.listeners[event].append(handler)

    def removeListener(self, event: str, handler: Callable[..., None]) -> None:
        handlers = self.listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any) -> None:
        """Call every handler for ``event``; handler errors are logged, not raised."""

        # copy: handlers commonly unsubscribe themselves (disconnect on empty accounts)
        for handler in list(self.listeners.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("[{}] {} handler failed", self.url, event)

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    async def poll(self) -> None:
        """Check accounts and chain once, emitting events for anything that changed.

        The first poll only records a baseline."""

        accounts = [str(a) for a in (await self.request(ETH_ACCOUNTS) or [])]
        chainId = str(await self.request(ETH_CHAIN_ID))

        if self.lastAccounts is not None and accounts != self.lastAccounts:
            self.emit(ACCOUNTS_CHANGED, accounts)

        if self.lastChainId is not None and chainId != self.lastChainId:
            self.emit(CHAIN_CHANGED, chainId)

        self.lastAccounts = accounts
        self.lastChainId = chainId

    async def watch(self, interval: float = 2.0) -> None:
        """Poll forever (until cancelled) so listeners see account/chain switches."""

        logger.info("[{}] Watching for account/chain changes every {}s", self.url, interval)

        try:
            while True:
                try:
                    await self.poll()
                except WalletError as e:
                    logger.warning("[{}] Poll failed, retrying: {}", self.url, e)

                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("[{}] Stopped watching", self.url)
            raise

    async def aclose(self) -> None:
        if self.client is not None and self.ownsClient:
            await self.client.aclose()
            self.client = None
            self.ownsClient = False
