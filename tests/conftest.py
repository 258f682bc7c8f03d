"""Shared test fixtures for iwallet test suite.

FakeProvider provides a test double for an injected wallet provider,
allowing headless testing without a browser wallet or a node.
"""

import asyncio
from collections import defaultdict
from io import StringIO
from typing import Any

import pytest
from loguru import logger

ONE_ETHER_HEX = "0xDE0B6B3A7640000"


class FakeProviderWithoutRemove:
    """Test double for an EIP-1193 style provider lacking removeListener().

    Canned replies for the methods the session uses; every call is recorded in
    ``calls``. Set ``failures[method]`` to make a method raise, or
    ``gates[method]`` (an asyncio.Event) to hold a method until the event is set.
    """

    def __init__(
        self,
        accounts: list[str] | None = None,
        chainId: str = "0x1",
        balance: str = ONE_ETHER_HEX,
        available: bool = True,
    ):
        self.accounts = ["0xABC"] if accounts is None else list(accounts)
        self.chainId = chainId
        self.balance = balance
        self.available = available
        self.signature = "0xsigned"
        self.txHash = "0xtxhash"

        self.calls: list[tuple[str, Any]] = []
        self.listeners: dict[str, list] = defaultdict(list)
        self.failures: dict[str, BaseException] = {}
        self.gates: dict[str, asyncio.Event] = {}

    def isAvailable(self) -> bool:
        return self.available

    async def request(self, method: str, params=None) -> Any:
        self.calls.append((method, params))

        if (gate := self.gates.get(method)) is not None:
            await gate.wait()

        if (err := self.failures.get(method)) is not None:
            raise err

        match method:
            case "eth_requestAccounts":
                return list(self.accounts)
            case "eth_chainId":
                return self.chainId
            case "personal_sign":
                return self.signature
            case "eth_sendTransaction":
                return self.txHash
            case "eth_getBalance":
                return self.balance

        raise NotImplementedError(method)

    def on(self, event: str, handler) -> None:
        self.listeners[event].append(handler)

    # ── Test helpers ──

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self.listeners[event]):
            handler(payload)

    def listenerCount(self, event: str) -> int:
        return len(self.listeners[event])

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


class FakeProvider(FakeProviderWithoutRemove):
    """FakeProvider supporting removeListener()."""

    def removeListener(self, event: str, handler) -> None:
        if handler in self.listeners[event]:
            self.listeners[event].remove(handler)


class RecordingObserver:
    """Session observer collecting every SessionEvent."""

    def __init__(self):
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]


# ── Fixtures ──


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def session(provider, observer):
    from iwallet.engine.session import WalletSession

    return WalletSession(provider, observer=observer)


@pytest.fixture
def log_capture():
    """Capture loguru output for assertion. Yields a StringIO buffer."""
    buf = StringIO()
    handler_id = logger.add(buf, format="{level} {message}", level="DEBUG")
    yield buf
    logger.remove(handler_id)
