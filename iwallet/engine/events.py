"""Provider event routing for a single wallet connection.

A ``ProviderEventRouter`` is created by ``WalletSession.connect()`` once the
account and chain are known. It owns the two provider subscriptions for that
connection and forwards ``accountsChanged`` / ``chainChanged`` into the session.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from loguru import logger

from iwallet.engine.primitives import ACCOUNTS_CHANGED, CHAIN_CHANGED, shortAccount
from iwallet.engine.protocols import RemovableListeners, WalletProvider

if TYPE_CHECKING:
    from iwallet.engine.session import WalletSession


class ProviderEventRouter:
    """Routes provider callbacks to session state updates.

    Parameters
    ----------
    session:
        Session whose account/chain fields the handlers update.
    provider:
        Provider the subscriptions are registered on.

    Handlers run on the provider's schedule with no caller waiting on them,
    so they never raise. Once ``detach()`` has run (or the session has moved
    on to a different router) every callback becomes a no-op.
    """

    def __init__(self, session: WalletSession, provider: WalletProvider):
        self.session = session
        self.provider = provider
        self.active = False

        # (event name, bound handler) pairs actually registered on the provider
        self.registered: list[tuple[str, Callable[..., None]]] = []

    @property
    def handlers(self) -> dict[str, Callable[..., None]]:
        return {
            ACCOUNTS_CHANGED: self.accountsChanged,
            CHAIN_CHANGED: self.chainChanged,
        }

    def attach(self) -> None:
        """Register both handlers on the provider.

        If registration fails partway, whatever was registered is removed again
        before the error propagates."""
        try:
            for event, handler in self.handlers.items():
                self.provider.on(event, handler)
                self.registered.append((event, handler))
        except Exception:
            self.detach()
            raise

        self.active = True

    def detach(self) -> None:
        """Unregister our handlers (where the provider allows it) and go inactive. Never raises."""
        self.active = False

        if not self.registered:
            return

        if not isinstance(self.provider, RemovableListeners):
            logger.debug(
                "[{}] Provider can't remove listeners; leaving {} inert handlers registered",
                type(self.provider).__name__,
                len(self.registered),
            )
            self.registered.clear()
            return

        for event, handler in self.registered:
            try:
                self.provider.removeListener(event, handler)
            except Exception:
                logger.exception("Failed removing {} listener", event)

        self.registered.clear()

    def isCurrent(self) -> bool:
        return self.active and self.session.router is self

    # ------------------------------------------------------------------
    # Provider callbacks
    # ------------------------------------------------------------------

    def accountsChanged(self, accounts: Sequence[Any] | None = None) -> None:
        try:
            if not self.isCurrent():
                logger.warning("Ignoring stale {} event: {}", ACCOUNTS_CHANGED, accounts)
                return

            # providers report "locked / all accounts revoked" as an empty list
            if not accounts:
                logger.info("Wallet reported no accounts, disconnecting")
                self.session.disconnect(reason="accounts revoked")
                return

            account = str(accounts[0])
            logger.info("Account changed: {}", shortAccount(account))
            self.session.applyAccount(account)
        except Exception:
            logger.exception("Error handling {} event: {}", ACCOUNTS_CHANGED, accounts)

    def chainChanged(self, chainId: Any = None) -> None:
        try:
            if not self.isCurrent():
                logger.warning("Ignoring stale {} event: {}", CHAIN_CHANGED, chainId)
                return

            logger.info("Chain changed: {}", chainId)
            self.session.applyChain(str(chainId))
        except Exception:
            logger.exception("Error handling {} event: {}", CHAIN_CHANGED, chainId)
