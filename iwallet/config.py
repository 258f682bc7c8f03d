"""Environment-driven configuration and logging setup for wallet sessions."""
from __future__ import annotations

import os
import pathlib
import sys
from dataclasses import dataclass, field
from typing import Final

import whenever
from loguru import logger

from iwallet.engine.primitives import WEI_DECIMALS
from iwallet.engine.protocols import SessionObserver, WalletProvider
from iwallet.engine.rpc import JsonRpcProvider
from iwallet.engine.session import WalletSession

LOG_LEVELS: Final = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass(slots=True)
class WalletConfig:
    # JSON-RPC endpoint for the default provider (empty string means no provider)
    rpcUrl: str = field(
        default_factory=lambda: os.getenv("IWALLET_RPC_URL", "http://127.0.0.1:8545")
    )

    # native currency exponent used when converting balances to whole units
    decimals: int = field(
        default_factory=lambda: int(os.getenv("IWALLET_DECIMALS", WEI_DECIMALS))
    )

    # seconds before an HTTP request to the provider gives up
    timeout: float = field(default_factory=lambda: float(os.getenv("IWALLET_TIMEOUT", 30)))

    # seconds between account/chain polls by JsonRpcProvider.watch()
    pollInterval: float = field(
        default_factory=lambda: float(os.getenv("IWALLET_POLL_INTERVAL", 2.0))
    )

    loglevel: str = field(default_factory=lambda: os.getenv("IWALLET_LOGLEVEL", "INFO"))

    # if set, a full TRACE log is also written under here
    logdir: str | None = field(default_factory=lambda: os.getenv("IWALLET_LOGDIR") or None)

    consoleHandlerId: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.loglevel = self.loglevel.upper()

        if self.loglevel not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.loglevel}")

        if self.decimals < 0:
            raise ValueError(f"decimals must be non-negative, got {self.decimals}")

        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

        if self.pollInterval <= 0:
            raise ValueError(f"pollInterval must be positive, got {self.pollInterval}")

    def setupLogging(self) -> pathlib.Path | None:
        """Replace loguru's default sink with ours. Returns the log file path, if any."""

        logger.remove()
        self.consoleHandlerId = logger.add(sys.stderr, colorize=True, level=self.loglevel)

        if not self.logdir:
            return None

        now = whenever.ZonedDateTime.now("UTC")
        logdir = pathlib.Path(self.logdir) / f"{now.year}" / f"{now.month:02}"
        logdir.mkdir(exist_ok=True, parents=True)

        stamp = f"{now.year}{now.month:02}{now.day:02}-{now.hour:02}{now.minute:02}{now.second:02}"
        logfile = logdir / f"iwallet-{stamp}.log"
        logger.add(sink=str(logfile), level="TRACE", colorize=False)

        logger.info("Logging session to: {}", logfile)

        return logfile

    def setConsoleLogLevel(self, level: str) -> None:
        """Change the console log level at runtime."""
        level = level.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level}")

        if self.consoleHandlerId is not None:
            logger.remove(self.consoleHandlerId)

        self.loglevel = level
        self.consoleHandlerId = logger.add(sys.stderr, colorize=True, level=level)
        logger.info("Console log level set to {}", level)

    def provider(self) -> JsonRpcProvider:
        return JsonRpcProvider(url=self.rpcUrl or None, timeout=self.timeout)

    def session(
        self,
        provider: WalletProvider | None = None,
        observer: SessionObserver | None = None,
    ) -> WalletSession:
        """Build a session on ``provider`` (default: a JsonRpcProvider for rpcUrl)."""
        return WalletSession(
            provider if provider is not None else self.provider(),
            decimals=self.decimals,
            observer=observer,
        )
