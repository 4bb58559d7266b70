#!/usr/bin/env python3
"""
Run one referrer map sync and print a summary.

Optionally resolve specific authorities afterwards (read-through).

Usage: python3 sync_referrers.py [--sequential] [--quiet] [AUTHORITY ...]
"""
import asyncio
import logging
import sys

from core.config import ReferrerMapSettings
from core.ledger_client import LedgerClient
from referrals.referrer_map import ReferrerMap
from utils.logger import get_logger, setup_console_logging, setup_file_logging

logger = get_logger("sync_referrers")

SEQUENTIAL = "--sequential" in sys.argv
QUIET = "--quiet" in sys.argv
AUTHORITIES = [arg for arg in sys.argv[1:] if not arg.startswith("--")]


def build_referrer_map(
    settings: ReferrerMapSettings, client: LedgerClient, sequential: bool = False
) -> ReferrerMap:
    """ReferrerMap from settings; --sequential forces sequential scans."""
    referrer_map = ReferrerMap.from_settings(settings, client)
    if sequential:
        referrer_map.parallel_sync = False
    return referrer_map


async def main() -> int:
    setup_console_logging(logging.WARNING if QUIET else logging.INFO)
    setup_file_logging("sync_referrers.log")

    settings = ReferrerMapSettings.from_env()
    client = LedgerClient.from_settings(settings)
    referrer_map = build_referrer_map(settings, client, SEQUENTIAL)

    try:
        await client.connect()
        result = await referrer_map.sync()

        referred = sum(1 for info in referrer_map.values() if info is not None)
        print(f"[REFERRERS] {referrer_map.size()} authorities, {referred} with a referrer")
        print(f"[REFERRERS] scans: {result.counts} in {result.duration_seconds:.1f}s")
        for scan, error in result.failed.items():
            print(f"[REFERRERS] FAILED {scan}: {error}")

        for authority in AUTHORITIES:
            try:
                info = await referrer_map.must_get(authority)
            except Exception as e:
                logger.error(f"[REFERRERS] Lookup failed for {authority}: {e}")
                continue
            if info is None:
                print(f"  {authority}: no referrer")
            else:
                print(f"  {authority}: referrer={info.referrer} stats={info.referrer_stats}")

        return 0 if result.ok else 1
    finally:
        await referrer_map.unsubscribe()
        await client.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
