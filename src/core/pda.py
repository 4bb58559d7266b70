"""
PDA derivations for user and user stats accounts.

Both are deterministic and do no I/O.
"""

from solders.pubkey import Pubkey

USER_SEED = b"user"
USER_STATS_SEED = b"user_stats"


def get_user_account_public_key(
    program_id: Pubkey, authority: Pubkey, sub_account_id: int = 0
) -> Pubkey:
    """Derive a user account address.

    Seeds: ["user", authority, sub_account_id as u16 little-endian].

    Args:
        program_id: Owning program
        authority: Wallet that owns the user account
        sub_account_id: Sub-account index (0 is the primary account)

    Returns:
        User account address
    """
    user, _ = Pubkey.find_program_address(
        [USER_SEED, bytes(authority), sub_account_id.to_bytes(2, "little")],
        program_id,
    )
    return user


def get_user_stats_account_public_key(program_id: Pubkey, authority: Pubkey) -> Pubkey:
    """Derive the user stats account address for an authority."""
    user_stats, _ = Pubkey.find_program_address(
        [USER_STATS_SEED, bytes(authority)], program_id
    )
    return user_stats
