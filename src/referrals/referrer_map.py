"""
Referrer map - in-memory cache of authority -> referral relationship.

Each authority (base58 text) is in one of three states:
    absent       - never observed, key not in the map
    no referrer  - key present, value None
    has referrer - key present, value ReferrerInfo

Populated by bulk sync (three getProgramAccounts scans), by direct inserts
and by single-account reads. Entries live until overwritten or until
unsubscribe() clears the whole map.

Usage:
    from referrals.referrer_map import ReferrerMap

    referrer_map = ReferrerMap(ledger_client)
    await referrer_map.subscribe()
    info = await referrer_map.must_get(authority)
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from solana.rpc.types import MemcmpOpts
from solders.pubkey import Pubkey

from core.config import ReferrerMapSettings
from core.exceptions import AccountNotFoundError
from core.ledger_client import LedgerClient, ProgramAccount
from core.memcmp import (
    get_user_stats_filter,
    get_user_stats_is_referred_filter,
    get_user_stats_is_referred_or_referrer_filter,
)
from core.pda import get_user_account_public_key, get_user_stats_account_public_key
from referrals.layout import (
    DEFAULT_PUBLIC_KEY,
    REFERRER_SLICE_LEN,
    decode_referrer,
    decode_user_stats_referral,
)
from utils.logger import get_logger, log_sync_event

logger = get_logger(__name__)

SCAN_ALL = "sync_all"
SCAN_REFERRED = "sync_referred"
SCAN_REFERRED_OR_REFERRER = "sync_referred_or_referrer"

# Single-account reads always use the freshest commitment
POINT_READ_COMMITMENT = "processed"

SCANS = (SCAN_ALL, SCAN_REFERRED, SCAN_REFERRED_OR_REFERRER)
SCAN_CANCELLED = "cancelled"


class _Unset(Enum):
    """Marks add_referrer_info's info argument as not passed."""
    UNSET = "unset"


_UNSET = _Unset.UNSET


class ReferralStatus(Enum):
    ABSENT = "absent"
    NO_REFERRER = "no_referrer"
    HAS_REFERRER = "has_referrer"


@dataclass(frozen=True)
class ReferrerInfo:
    """Referrer's primary user account and user stats account."""

    referrer: Pubkey
    referrer_stats: Pubkey


@dataclass
class SyncResult:
    """Outcome of one sync round: records seen per scan and failed scans."""

    counts: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed


def _mark_unfinished_cancelled(result: SyncResult) -> None:
    for name in SCANS:
        if name not in result.counts and name not in result.failed:
            result.failed[name] = SCAN_CANCELLED


class ReferrerMap:
    """Read-through cache of referral relationships for one program."""

    def __init__(
        self,
        client: LedgerClient,
        parallel_sync: bool = True,
        batch_size: int = 1000,
    ) -> None:
        self._referrer_map: dict[str, ReferrerInfo | None] = {}
        self._client = client
        self.program_id: Pubkey = client.program_id
        self.parallel_sync = parallel_sync
        self.batch_size = batch_size
        self._sync_task: asyncio.Task | None = None
        self._sync_result: SyncResult | None = None

    @classmethod
    def from_settings(
        cls, settings: ReferrerMapSettings, client: LedgerClient | None = None
    ) -> "ReferrerMap":
        return cls(
            client or LedgerClient.from_settings(settings),
            parallel_sync=settings.parallel_sync,
            batch_size=settings.batch_size,
        )

    async def subscribe(self) -> None:
        """Connect and run one full sync, unless the map is already populated."""
        if self.size() > 0:
            return

        await self._client.connect()
        await self.sync()

    def has(self, authority: str) -> bool:
        return authority in self._referrer_map

    def get(self, authority: str) -> ReferrerInfo | None:
        """Stored ReferrerInfo, or None when absent or known to have no referrer.

        Use has() or lookup() to tell those two apart.
        """
        return self._referrer_map.get(authority)

    def lookup(self, authority: str) -> ReferralStatus:
        if authority not in self._referrer_map:
            return ReferralStatus.ABSENT
        if self._referrer_map[authority] is None:
            return ReferralStatus.NO_REFERRER
        return ReferralStatus.HAS_REFERRER

    async def add_referrer_info(
        self, authority: str, referrer_info: ReferrerInfo | None | _Unset = _UNSET
    ) -> None:
        """Store an authority's referral state.

        Args:
            authority: Authority pubkey (base58)
            referrer_info: ReferrerInfo or None to store directly. When omitted,
                the authority's UserStats account is read from the ledger and
                decoded.

        Raises:
            AccountNotFoundError: UserStats account does not exist
            AccountDecodeError: UserStats payload is malformed
            LedgerRequestError: RPC failure or timeout
        """
        if referrer_info is not _UNSET:
            self._referrer_map[authority] = referrer_info
            return

        user_stats = get_user_stats_account_public_key(
            self.program_id, Pubkey.from_string(authority)
        )
        data = await self._client.get_account_info(user_stats, POINT_READ_COMMITMENT)
        if data is None:
            raise AccountNotFoundError(str(user_stats))

        referrer = decode_referrer(data)
        await self.add_referrer_info(authority, self._referrer_info_for(referrer))

    async def must_get(self, authority: str) -> ReferrerInfo | None:
        """Return the authority's ReferrerInfo, reading it from the ledger if absent."""
        if not self.has(authority):
            await self.add_referrer_info(authority)
        return self.get(authority)

    def values(self) -> Iterator[ReferrerInfo | None]:
        return iter(self._referrer_map.values())

    def keys(self) -> Iterator[str]:
        return iter(self._referrer_map.keys())

    def size(self) -> int:
        return len(self._referrer_map)

    async def sync(self) -> SyncResult:
        """Refresh the map from the ledger.

        Only one sync runs at a time: concurrent callers await the same
        in-flight round and get the same result. Scan failures are logged
        and reported in the result, never raised. A round cancelled by
        unsubscribe() resolves with its unfinished scans marked cancelled.

        Raises:
            asyncio.CancelledError: Only if the calling task itself is cancelled
        """
        if self._sync_task is None:
            self._sync_result = SyncResult()
            self._sync_task = asyncio.create_task(self._run_sync(self._sync_result))
        task, result = self._sync_task, self._sync_result
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not task.cancelled() or (current is not None and current.cancelling()):
                raise
            # Cancelled before its first step, nothing was marked yet
            _mark_unfinished_cancelled(result)
            return result

    async def _run_sync(self, result: SyncResult) -> SyncResult:
        scans = (
            (SCAN_ALL, self.sync_all),
            (SCAN_REFERRED, lambda: self.sync_referrer(get_user_stats_is_referred_filter())),
            (
                SCAN_REFERRED_OR_REFERRER,
                lambda: self.sync_referrer(get_user_stats_is_referred_or_referrer_filter()),
            ),
        )
        started = time.monotonic()
        try:
            if self.parallel_sync:
                await asyncio.gather(
                    *(self._run_scan(name, scan, result) for name, scan in scans)
                )
            else:
                for name, scan in scans:
                    await self._run_scan(name, scan, result)

            result.duration_seconds = time.monotonic() - started
            if result.ok:
                logger.info(
                    f"[REFERRER_MAP] Sync done in {result.duration_seconds:.2f}s: "
                    f"{result.counts}, map size {self.size()}"
                )
            else:
                logger.warning(
                    f"[REFERRER_MAP] Sync incomplete, failed scans: {sorted(result.failed)}"
                )
                log_sync_event(
                    "REFERRER_SYNC_PARTIAL",
                    str(self.program_id),
                    result.counts,
                    failed=result.failed,
                )
            return result
        except asyncio.CancelledError:
            result.duration_seconds = time.monotonic() - started
            _mark_unfinished_cancelled(result)
            logger.warning(
                f"[REFERRER_MAP] Sync cancelled, unfinished scans: "
                f"{sorted(n for n, e in result.failed.items() if e == SCAN_CANCELLED)}"
            )
            raise
        finally:
            if self._sync_task is asyncio.current_task():
                self._sync_task = None

    async def _run_scan(self, name: str, scan, result: SyncResult) -> None:
        try:
            result.counts[name] = await scan()
        except Exception as e:
            result.failed[name] = f"{type(e).__name__}: {e}"
            logger.error(f"[REFERRER_MAP] {name} failed: {e}", exc_info=e)

    async def sync_all(self) -> int:
        """Mark every UserStats account as seen without overwriting known entries.

        Requests no payload; returns the number of accounts scanned.
        """
        accounts = await self._client.get_program_accounts(
            [get_user_stats_filter()], data_slice=(0, 0)
        )
        for account in accounts:
            # Referrer scan results are more specific, never overwrite them
            if not self.has(account.pubkey):
                await self.add_referrer_info(account.pubkey, None)
        return len(accounts)

    async def sync_referrer(self, referrer_filter: MemcmpOpts) -> int:
        """Load referrers for every UserStats account matching referrer_filter.

        Returns the number of accounts scanned.
        """
        accounts = await self._client.get_program_accounts(
            [get_user_stats_filter(), referrer_filter],
            data_slice=(0, REFERRER_SLICE_LEN),
        )

        for i in range(0, len(accounts), self.batch_size):
            batch = accounts[i:i + self.batch_size]
            await asyncio.gather(*(self._store_referral(account) for account in batch))
            await asyncio.sleep(0)
        return len(accounts)

    async def _store_referral(self, account: ProgramAccount) -> None:
        referral = decode_user_stats_referral(account.data)
        await self.add_referrer_info(
            referral.authority, self._referrer_info_for(referral.referrer)
        )

    def _referrer_info_for(self, referrer: str) -> ReferrerInfo | None:
        if referrer == DEFAULT_PUBLIC_KEY:
            return None
        referrer_key = Pubkey.from_string(referrer)
        return ReferrerInfo(
            referrer=get_user_account_public_key(self.program_id, referrer_key, 0),
            referrer_stats=get_user_stats_account_public_key(self.program_id, referrer_key),
        )

    async def unsubscribe(self) -> None:
        """Cancel any in-flight sync and clear the map. Leaves the client open.

        Callers awaiting the cancelled sync get a SyncResult with the
        unfinished scans marked cancelled.
        """
        task = self._sync_task
        if task is not None:
            self._sync_task = None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._referrer_map.clear()
