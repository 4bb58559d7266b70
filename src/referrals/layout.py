"""
UserStats account layout (only the fields the referrer map reads).

    [0, 8)    anchor discriminator
    [8, 40)   authority pubkey
    [40, 72)  referrer pubkey (all zeros = no referrer)
"""

from dataclasses import dataclass

import base58

from core.exceptions import AccountDecodeError

AUTHORITY_OFFSET = 8
REFERRER_OFFSET = 40
PUBKEY_LEN = 32
REFERRER_SLICE_LEN = REFERRER_OFFSET + PUBKEY_LEN  # 72

DEFAULT_PUBLIC_KEY = base58.b58encode(bytes(PUBKEY_LEN)).decode("utf-8")


@dataclass(frozen=True)
class UserStatsReferral:
    authority: str
    referrer: str

    @property
    def has_referrer(self) -> bool:
        return self.referrer != DEFAULT_PUBLIC_KEY


def _read_pubkey(data: bytes, offset: int) -> str:
    end = offset + PUBKEY_LEN
    if len(data) < end:
        raise AccountDecodeError(
            f"UserStats payload too short: need {end} bytes, got {len(data)}"
        )
    return base58.b58encode(data[offset:end]).decode("utf-8")


def decode_referrer(data: bytes) -> str:
    """Decode the referrer field as base58."""
    return _read_pubkey(data, REFERRER_OFFSET)


def decode_user_stats_referral(data: bytes) -> UserStatsReferral:
    """Decode authority and referrer from a (72-byte sliced) UserStats payload."""
    return UserStatsReferral(
        authority=_read_pubkey(data, AUTHORITY_OFFSET),
        referrer=_read_pubkey(data, REFERRER_OFFSET),
    )
