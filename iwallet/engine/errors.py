"""Tagged wallet error taxonomy.

Every caller-visible failure is a ``WalletError`` subclass carrying a ``kind``
for branching and the underlying provider error as ``cause``.
"""
from __future__ import annotations

import enum
from typing import Any


class WalletErrorKind(enum.Enum):
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    USER_REJECTED = "user_rejected"
    NOT_CONNECTED = "not_connected"
    SIGNING_FAILED = "signing_failed"
    TRANSACTION_FAILED = "transaction_failed"
    BALANCE_QUERY_FAILED = "balance_query_failed"
    PROVIDER_ERROR = "provider_error"


class WalletError(Exception):
    """Base class for all wallet session errors.

    Subclasses set ``kind`` and a default message; ``cause`` is the provider
    error (if any) which is also chained as ``__cause__`` by the raise site.
    """

    kind: WalletErrorKind = WalletErrorKind.PROVIDER_ERROR
    default: str = "Wallet operation failed"

    def __init__(self, message: str | None = None, *, cause: BaseException | None = None):
        self.cause = cause

        if message is None:
            message = f"{self.default}: {cause}" if cause is not None else self.default

        super().__init__(message)

    @property
    def rejectedByUser(self) -> bool:
        """True if this error or anything in its cause chain is a user rejection."""
        seen: set[int] = set()
        err: BaseException | None = self
        while err is not None and id(err) not in seen:
            if isinstance(err, UserRejected):
                return True

            seen.add(id(err))
            err = getattr(err, "cause", None) or err.__cause__

        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, message={str(self)!r}, cause={self.cause!r})"


class ProviderUnavailable(WalletError):
    kind = WalletErrorKind.PROVIDER_UNAVAILABLE
    default = "No wallet provider available"


class UserRejected(WalletError):
    """Raised by providers when the user declines an approval prompt.

    The session never raises this itself; it reaches callers either unchanged
    (from connect()) or as the cause of a wrapping error."""

    kind = WalletErrorKind.USER_REJECTED
    default = "User rejected the request"

    def __init__(
        self,
        message: str | None = None,
        *,
        cause: BaseException | None = None,
        code: int | None = None,
    ):
        self.code = code
        super().__init__(message, cause=cause)


class NotConnected(WalletError):
    kind = WalletErrorKind.NOT_CONNECTED
    default = "Wallet not connected"


class SigningFailed(WalletError):
    kind = WalletErrorKind.SIGNING_FAILED
    default = "Sign message failed"


class TransactionFailed(WalletError):
    kind = WalletErrorKind.TRANSACTION_FAILED
    default = "Transaction failed"


class BalanceQueryFailed(WalletError):
    kind = WalletErrorKind.BALANCE_QUERY_FAILED
    default = "Get balance failed"


class ProviderRpcError(WalletError):
    """JSON-RPC error object (or transport failure) reported by a provider."""

    kind = WalletErrorKind.PROVIDER_ERROR
    default = "Provider request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        cause: BaseException | None = None,
        code: int | None = None,
        data: Any = None,
    ):
        self.code = code
        self.data = data
        super().__init__(message, cause=cause)
