"""iwallet: session wrapper around an injected blockchain wallet provider."""

from iwallet.config import WalletConfig
from iwallet.engine import *  # noqa: F401,F403
from iwallet.engine import __all__ as _engine_all

__all__ = ["WalletConfig", *_engine_all]
