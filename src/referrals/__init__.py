"""Referral relationship cache."""

from referrals.referrer_map import ReferralStatus, ReferrerInfo, ReferrerMap, SyncResult

__all__ = ["ReferralStatus", "ReferrerInfo", "ReferrerMap", "SyncResult"]
