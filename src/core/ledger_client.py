"""
Rate-limited Solana read client used by the referrer map.

Wraps solana-py's AsyncClient with:
1. A global minimum interval between requests (rate limiting)
2. A semaphore bounding in-flight requests
3. A per-call timeout on every request
4. Error wrapping into core.exceptions

Usage:
    from core.ledger_client import LedgerClient

    client = LedgerClient.from_settings(settings)
    await client.connect()
    data = await client.get_account_info(address, "processed")
"""

import asyncio
import base64
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import DataSliceOpts, MemcmpOpts
from solders.pubkey import Pubkey

from core.config import ReferrerMapSettings
from core.exceptions import LedgerRequestError, LedgerTimeoutError
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ProgramAccount:
    """One getProgramAccounts result: address plus (possibly sliced) payload."""

    pubkey: str
    data: bytes


class RateLimiter:
    """Spaces requests at least 1/rate seconds apart."""

    def __init__(self, rate_limit_per_second: float) -> None:
        self.min_interval = 1.0 / rate_limit_per_second
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait for rate limit if needed."""
        async with self._lock:
            time_since_last = time.monotonic() - self._last_request_time
            if time_since_last < self.min_interval:
                await asyncio.sleep(self.min_interval - time_since_last)
            self._last_request_time = time.monotonic()


def _account_data(data: Any) -> bytes:
    """Normalize account data to raw bytes."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    # Handle base64 tuple / string from raw JSON responses
    if isinstance(data, (tuple, list)):
        data = data[0]
    if isinstance(data, str):
        return base64.b64decode(data)
    raise TypeError(f"unsupported account data type: {type(data).__name__}")


class LedgerClient:
    """Read-only ledger access for one program.

    Every request goes through the rate limiter and the concurrency
    semaphore, and is bounded by request_timeout.
    """

    def __init__(
        self,
        rpc_endpoint: str,
        program_id: Pubkey,
        commitment: str = "confirmed",
        request_timeout: float = 30.0,
        rate_limit_per_second: float = 10.0,
        max_concurrency: int = 8,
        client: AsyncClient | None = None,
    ) -> None:
        self.rpc_endpoint = rpc_endpoint
        self.program_id = program_id
        self.commitment = Commitment(commitment)
        self.request_timeout = request_timeout
        self._client = client
        self._connected = False
        self._rate_limiter = RateLimiter(rate_limit_per_second)
        self._semaphore = asyncio.Semaphore(max_concurrency)

        self._metrics = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "timeouts": 0,
        }

    @classmethod
    def from_settings(cls, settings: ReferrerMapSettings) -> "LedgerClient":
        return cls(
            rpc_endpoint=settings.rpc_endpoint,
            program_id=settings.program_pubkey,
            commitment=settings.commitment,
            request_timeout=settings.request_timeout,
            rate_limit_per_second=settings.rate_limit_per_second,
            max_concurrency=settings.max_concurrency,
        )

    async def connect(self) -> None:
        """Open the RPC client and check node health. Idempotent."""
        if self._connected:
            return
        if self._client is None:
            self._client = AsyncClient(self.rpc_endpoint, timeout=self.request_timeout)

        healthy = await self._request("getHealth", self._client.is_connected)
        if healthy:
            logger.info(f"[LEDGER] Connected to {self.rpc_endpoint[:40]}...")
        else:
            logger.warning(f"[LEDGER] Node at {self.rpc_endpoint[:40]}... reports unhealthy")
        self._connected = True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
        self._connected = False
        logger.info("[LEDGER] Closed")

    async def get_account_info(
        self, address: Pubkey, commitment: str | None = None
    ) -> bytes | None:
        """Fetch one account's payload.

        Args:
            address: Account address
            commitment: Overrides the configured commitment level

        Returns:
            Raw account data, or None if the account does not exist
        """
        client = self._require_client()
        response = await self._request(
            "getAccountInfo",
            lambda: client.get_account_info(
                address,
                commitment=Commitment(commitment) if commitment else self.commitment,
                encoding="base64",
            ),
        )
        if response.value is None:
            return None
        return _account_data(response.value.data)

    async def get_program_accounts(
        self,
        filters: list[MemcmpOpts | int],
        data_slice: tuple[int, int] | None = None,
        commitment: str | None = None,
    ) -> list[ProgramAccount]:
        """Scan the program's accounts with server-side filters.

        Args:
            filters: memcmp / dataSize predicates evaluated by the node
            data_slice: Optional (offset, length) of each payload to return
            commitment: Overrides the configured commitment level

        Returns:
            Matching accounts with their (sliced) payloads
        """
        client = self._require_client()
        slice_opts = (
            DataSliceOpts(offset=data_slice[0], length=data_slice[1])
            if data_slice is not None
            else None
        )
        response = await self._request(
            "getProgramAccounts",
            lambda: client.get_program_accounts(
                self.program_id,
                commitment=Commitment(commitment) if commitment else self.commitment,
                encoding="base64",
                data_slice=slice_opts,
                filters=filters,
            ),
        )
        return [
            ProgramAccount(pubkey=str(keyed.pubkey), data=_account_data(keyed.account.data))
            for keyed in response.value
        ]

    def get_metrics(self) -> dict[str, int]:
        return dict(self._metrics)

    def _require_client(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(self.rpc_endpoint, timeout=self.request_timeout)
        return self._client

    async def _request(self, method: str, call: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            await self._rate_limiter.wait()
            self._metrics["total_requests"] += 1
            try:
                result = await asyncio.wait_for(call(), timeout=self.request_timeout)
            except asyncio.TimeoutError:
                self._metrics["timeouts"] += 1
                self._metrics["failed_requests"] += 1
                logger.warning(f"[LEDGER] {method} timeout ({self.request_timeout}s)")
                raise LedgerTimeoutError(method, self.request_timeout) from None
            except Exception as e:
                self._metrics["failed_requests"] += 1
                logger.warning(f"[LEDGER] {method} failed: {e}")
                raise LedgerRequestError(method, str(e)) from e
            self._metrics["successful_requests"] += 1
            return result
