"""
Referrer map configuration loaded from environment / .env.

Usage:
    from core.config import ReferrerMapSettings

    settings = ReferrerMapSettings.from_env()
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv
from solders.pubkey import Pubkey

DRIFT_PROGRAM_ID = "dRiftyHA39MWEi3m9aunc5MzRF1JYuBsbn6VPcn33UH"
PUBLIC_RPC_ENDPOINT = "https://api.mainnet-beta.solana.com"

VALID_COMMITMENTS = ("processed", "confirmed", "finalized")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be {cast.__name__}, got {raw!r}") from None


@dataclass(frozen=True)
class ReferrerMapSettings:
    """Settings for the ledger client and the referrer map."""

    rpc_endpoint: str = PUBLIC_RPC_ENDPOINT
    program_id: str = DRIFT_PROGRAM_ID
    commitment: str = "confirmed"
    parallel_sync: bool = True
    batch_size: int = 1000

    # Per-call timeout for every RPC request, seconds
    request_timeout: float = 30.0
    rate_limit_per_second: float = 10.0
    max_concurrency: int = 8

    def __post_init__(self) -> None:
        if self.commitment not in VALID_COMMITMENTS:
            raise ValueError(
                f"commitment must be one of {VALID_COMMITMENTS}, got {self.commitment!r}"
            )
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.rate_limit_per_second <= 0:
            raise ValueError("rate_limit_per_second must be positive")
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        # Raises ValueError on a malformed key
        Pubkey.from_string(self.program_id)

    @property
    def program_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.program_id)

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "ReferrerMapSettings":
        """Build settings from environment variables.

        Args:
            dotenv_path: Optional .env file; the default search is used when omitted

        Returns:
            Validated settings

        Raises:
            ValueError: If any variable is malformed
        """
        load_dotenv(dotenv_path)

        return cls(
            rpc_endpoint=os.getenv("SOLANA_NODE_RPC_ENDPOINT") or PUBLIC_RPC_ENDPOINT,
            program_id=os.getenv("REFERRER_MAP_PROGRAM_ID") or DRIFT_PROGRAM_ID,
            commitment=(os.getenv("REFERRER_MAP_COMMITMENT") or "confirmed").strip().lower(),
            parallel_sync=_env_bool("REFERRER_MAP_PARALLEL_SYNC", True),
            batch_size=_env_number("REFERRER_MAP_BATCH_SIZE", 1000, int),
            request_timeout=_env_number("RPC_REQUEST_TIMEOUT", 30.0, float),
            rate_limit_per_second=_env_number("RPC_RATE_LIMIT_PER_SECOND", 10.0, float),
            max_concurrency=_env_number("RPC_MAX_CONCURRENCY", 8, int),
        )
