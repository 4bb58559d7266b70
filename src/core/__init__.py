"""Core ledger access: configuration, RPC client, addresses and filters."""

from core.config import ReferrerMapSettings
from core.exceptions import (
    AccountDecodeError,
    AccountNotFoundError,
    LedgerError,
    LedgerRequestError,
    LedgerTimeoutError,
)
from core.ledger_client import LedgerClient, ProgramAccount, RateLimiter

__all__ = [
    # Config
    "ReferrerMapSettings",
    # Ledger client
    "LedgerClient",
    "ProgramAccount",
    "RateLimiter",
    # Errors
    "LedgerError",
    "LedgerRequestError",
    "LedgerTimeoutError",
    "AccountNotFoundError",
    "AccountDecodeError",
]
