"""Wallet session: connection state machine gating every provider operation."""
from __future__ import annotations

import asyncio
import dataclasses
import threading
from typing import Any

import whenever
from loguru import logger

from iwallet.engine.errors import (
    BalanceQueryFailed,
    NotConnected,
    ProviderUnavailable,
    SigningFailed,
    TransactionFailed,
)
from iwallet.engine.events import ProviderEventRouter
from iwallet.engine.primitives import (
    BLOCK_LATEST,
    ETH_CHAIN_ID,
    ETH_GET_BALANCE,
    ETH_REQUEST_ACCOUNTS,
    ETH_SEND_TRANSACTION,
    PERSONAL_SIGN,
    WEI_DECIMALS,
    Account,
    ChainId,
    ConnectionState,
    fmtunits,
    fromSmallestUnit,
    hexToInt,
    shortAccount,
)
from iwallet.engine.protocols import SessionObserver, WalletProvider


@dataclasses.dataclass(slots=True, frozen=True)
class SessionStatus:
    """Point-in-time copy of the session fields."""

    connectionState: ConnectionState = ConnectionState.DISCONNECTED
    account: Account | None = None
    chainId: ChainId | None = None

    @property
    def connected(self) -> bool:
        return self.connectionState is ConnectionState.CONNECTED

    def asdict(self) -> dict[str, str | None]:
        return {
            "connectionState": self.connectionState.value,
            "account": self.account,
            "chainId": self.chainId,
        }


@dataclasses.dataclass(slots=True, frozen=True)
class SessionEvent:
    """Delivered to the session observer after every state or field change."""

    kind: str  # connecting, connected, connectFailed, disconnected, accountChanged, chainChanged
    status: SessionStatus
    reason: str = ""
    at: whenever.Instant = dataclasses.field(default_factory=whenever.Instant.now)


class WalletSession:
    """Session wrapper around an injected wallet provider.

    Parameters
    ----------
    provider:
        Provider used by connect() when none is passed explicitly. The session
        borrows it while connected and drops the reference on disconnect.
    decimals:
        Smallest-unit exponent of the native currency (18 for ether).
    observer:
        Optional callable receiving a SessionEvent after each change.
        Exceptions raised by the observer are logged and discarded.

    Only connect(), signMessage(), sendTransaction() and getBalance() suspend.
    Provider events can arrive at any time while connected; field updates are
    serialized through ``lock`` so each event applies atomically.
    """

    def __init__(
        self,
        provider: WalletProvider | None = None,
        *,
        decimals: int = WEI_DECIMALS,
        observer: SessionObserver | None = None,
    ):
        if decimals < 0:
            raise ValueError(f"decimals must be non-negative, got {decimals}")

        self.defaultProvider = provider
        self.decimals = decimals
        self.observer = observer

        self.state = ConnectionState.DISCONNECTED
        self.account: Account | None = None
        self.chainId: ChainId | None = None

        # borrowed while connecting/connected, None otherwise
        self.provider: WalletProvider | None = None

        # subscriptions belonging to the current connection
        self.router: ProviderEventRouter | None = None

        self.lock = threading.RLock()

        # bumped on every disconnect so an in-flight connect can tell it was abandoned
        self.epoch = 0
        self.pending: asyncio.Future[dict[str, str]] | None = None
        self.pendingProvider: WalletProvider | None = None

        # connect() callers currently awaiting ``pending``
        self.waiters = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def connectionState(self) -> ConnectionState:
        return self.state

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def getAccount(self) -> Account | None:
        return self.account

    def getStatus(self) -> SessionStatus:
        with self.lock:
            return SessionStatus(self.state, self.account, self.chainId)

    def __repr__(self) -> str:
        return f"WalletSession(state={self.state.value}, account={self.account}, chainId={self.chainId})"

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, provider: WalletProvider | None = None) -> dict[str, str]:
        """Authorize with the wallet and start tracking account/chain changes.

        Returns {"account": ..., "chainId": ...}.

        Already connected: returns the current connection without asking the
        provider again. Connect already in progress: waits on that attempt.

        Raises ProviderUnavailable if there is no usable provider. Any provider
        failure (including the user declining) is re-raised unchanged after the
        session has reverted to disconnected."""

        with self.lock:
            if self.state is ConnectionState.CONNECTED:
                if provider is not None and provider is not self.provider:
                    logger.warning("Already connected; ignoring different provider for connect()")

                assert self.account is not None and self.chainId is not None
                return dict(account=self.account, chainId=self.chainId)

            if self.pending is None:
                self.pendingProvider = provider or self.defaultProvider
                self.pending = asyncio.ensure_future(self._establish(self.pendingProvider))
                self.pending.add_done_callback(self._connectDone)
                self.waiters = 0
            elif provider is not None and provider is not self.pendingProvider:
                logger.warning("Connect in progress; ignoring different provider for connect()")

            pending = self.pending
            self.waiters += 1

        try:
            # waiters share one attempt; only the last waiter to be cancelled
            # (e.g. by a wait_for timeout) cancels it
            return await asyncio.shield(pending)
        except asyncio.CancelledError:
            with self.lock:
                last = False
                if self.pending is pending:
                    self.waiters -= 1
                    last = self.waiters == 0

            if last:
                pending.cancel()

            raise

    def _connectDone(self, fut: asyncio.Future) -> None:
        # abandoned attempts may finish with nobody awaiting them
        if not fut.cancelled():
            fut.exception()

        with self.lock:
            if self.pending is fut:
                self.pending = None
                self.pendingProvider = None
                self.waiters = 0

    async def _establish(self, provider: WalletProvider | None) -> dict[str, str]:
        if provider is None or not provider.isAvailable():
            logger.error("Connection failed: no wallet provider available")
            err = ProviderUnavailable("Please install MetaMask or another Web3 wallet")
            self._notify("connectFailed", reason=str(err))
            raise err

        with self.lock:
            epoch = self.epoch
            self.provider = provider
            self.state = ConnectionState.CONNECTING

        self._notify("connecting")

        router: ProviderEventRouter | None = None
        try:
            logger.debug("Requesting wallet accounts...")
            accounts = await provider.request(ETH_REQUEST_ACCOUNTS)
            self._checkEpoch(epoch)

            if not accounts:
                raise NotConnected("Wallet returned no accounts")

            account = str(accounts[0])

            chainId = await provider.request(ETH_CHAIN_ID)

            with self.lock:
                self._checkEpoch(epoch)

                router = ProviderEventRouter(self, provider)
                router.attach()

                self.router = router
                self.account = account
                self.chainId = str(chainId)
                self.state = ConnectionState.CONNECTED
        except (Exception, asyncio.CancelledError) as e:
            with self.lock:
                if router is not None:
                    router.detach()

                superseded = self.epoch != epoch
                if not superseded:
                    self._clear()

            logger.error("Connection failed: {}", e)

            if not superseded:
                self._notify("connectFailed", reason=str(e) or type(e).__name__)

            raise

        logger.info("Wallet connected: {} (chain {})", shortAccount(account), chainId)
        self._notify("connected")

        return dict(account=account, chainId=str(chainId))

    def _checkEpoch(self, epoch: int) -> None:
        if self.epoch != epoch:
            raise NotConnected("Wallet disconnected while connecting")

    def disconnect(self, reason: str = "disconnect requested") -> None:
        """Reset to disconnected and drop our provider subscriptions. Never raises."""

        with self.lock:
            previous = self.state
            self.epoch += 1

            # a connect in flight is abandoned; the next connect() starts over
            self.pending = None
            self.pendingProvider = None
            self.waiters = 0
            self._clear()

        if previous is not ConnectionState.DISCONNECTED:
            logger.info("Wallet disconnected ({})", reason)
            self._notify("disconnected", reason=reason)

    def _clear(self) -> None:
        """Drop subscriptions and every connection field. Caller holds the lock."""
        router, self.router = self.router, None
        if router is not None:
            router.detach()

        self.account = None
        self.chainId = None
        self.provider = None
        self.state = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Updates pushed by provider events (see ProviderEventRouter)
    # ------------------------------------------------------------------

    def applyAccount(self, account: Account) -> None:
        with self.lock:
            if self.state is not ConnectionState.CONNECTED:
                return

            self.account = account

        self._notify("accountChanged")

    def applyChain(self, chainId: ChainId) -> None:
        with self.lock:
            if self.state is not ConnectionState.CONNECTED:
                return

            self.chainId = chainId

        self._notify("chainChanged")

    def _notify(self, kind: str, reason: str = "") -> None:
        if self.observer is None:
            return

        try:
            self.observer(SessionEvent(kind, self.getStatus(), reason))
        except Exception:
            logger.exception("Session observer failed on {} event", kind)

    # ------------------------------------------------------------------
    # Wallet operations
    # ------------------------------------------------------------------

    def _requireConnected(self, operation: str) -> tuple[WalletProvider, Account]:
        with self.lock:
            if (
                self.state is not ConnectionState.CONNECTED
                or self.provider is None
                or self.account is None
            ):
                logger.error("{} failed: wallet not connected", operation)
                raise NotConnected()

            return self.provider, self.account

    async def signMessage(self, message: str) -> str:
        """Ask the wallet to personal_sign ``message`` with the active account."""
        provider, account = self._requireConnected("Sign message")

        try:
            signature = await provider.request(PERSONAL_SIGN, [message, account])
        except Exception as e:
            logger.error("Sign message failed: {}", e)
            raise SigningFailed(cause=e) from e

        logger.info("Message signed: {}", signature)
        return signature

    async def sendTransaction(self, to: Account, amountWei: str) -> str:
        """Submit a native-currency transfer of ``amountWei`` (decimal string) to ``to``.

        Neither the address nor the amount is checked here; the wallet and the
        network reject what they don't accept. Returns the transaction hash."""
        provider, account = self._requireConnected("Transaction")

        tx: dict[str, Any] = {"from": account, "to": to, "value": amountWei}

        try:
            txHash = await provider.request(ETH_SEND_TRANSACTION, [tx])
        except Exception as e:
            logger.error("Transaction failed: {}", e)
            raise TransactionFailed(cause=e) from e

        logger.info("Transaction sent: {}", txHash)
        return txHash

    async def getBalance(self) -> float:
        """Balance of the active account at the latest block, in whole units."""
        provider, account = self._requireConnected("Get balance")

        try:
            raw = await provider.request(ETH_GET_BALANCE, [account, BLOCK_LATEST])
            balance = fromSmallestUnit(hexToInt(raw), self.decimals)
        except Exception as e:
            logger.error("Get balance failed: {}", e)
            raise BalanceQueryFailed(cause=e) from e

        logger.info("Balance: {}", fmtunits(balance))
        return balance
