"""
Server-side getProgramAccounts filters for UserStats accounts.

UserStats layout offsets used here:
    0    anchor discriminator (8 bytes)
    188  referrer_status flags (IsReferrer = 1, IsReferred = 2)
"""

import hashlib

import base58
from solana.rpc.types import MemcmpOpts

REFERRER_STATUS_OFFSET = 188


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: sha256("account:<Name>")[:8]."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


USER_STATS_DISCRIMINATOR = account_discriminator("UserStats")


def get_user_stats_filter() -> MemcmpOpts:
    return MemcmpOpts(
        offset=0, bytes=base58.b58encode(USER_STATS_DISCRIMINATOR).decode("utf-8")
    )


def get_user_stats_is_referred_filter() -> MemcmpOpts:
    return MemcmpOpts(
        offset=REFERRER_STATUS_OFFSET, bytes=base58.b58encode(bytes([2])).decode("utf-8")
    )


def get_user_stats_is_referred_or_referrer_filter() -> MemcmpOpts:
    return MemcmpOpts(
        offset=REFERRER_STATUS_OFFSET, bytes=base58.b58encode(bytes([3])).decode("utf-8")
    )
