"""Identity reconciliation: map a social login onto exactly one user row.

Email is the unification key across providers. The first provider to sign in
owns the base record; later providers with the same email attach their id to it.
A provider id that is already stored always resolves to its own row, whatever
email the provider reports now.

Providers that yield no email (Telegram) are keyed by provider id only and can
never be merged into an existing email account. Two accounts for the same person
are possible in that case.
"""

from __future__ import annotations

from typing import Any, Tuple

from social_auth.models import ProviderProfile

from .crud import (
    create_social_user,
    get_user_by_email,
    get_user_by_provider_id,
    link_provider,
    normalize_email,
    provider_column,
)


# Outcomes (useful for logging and tests)
EXISTING = "existing"
CREATED = "created"
LINKED = "linked"


def _find_user(conn: Any, profile: ProviderProfile, col: str) -> Any:
    email = normalize_email(profile.email)
    by_email = get_user_by_email(conn, email) if email else None
    if by_email is not None and by_email[col] == profile.provider_id:
        return by_email
    # The provider id wins over the email: the account may already be linked to
    # another row (its email changed at the provider since then).
    by_id = get_user_by_provider_id(conn, profile.provider, profile.provider_id)
    return by_id if by_id is not None else by_email


def reconcile_profile(conn: Any, profile: ProviderProfile) -> Tuple[Any, str]:
    """Find, create or link the user for `profile`.

    Returns (user_row, outcome) where outcome is one of EXISTING, CREATED, LINKED.
    Runs inside the caller's transaction; persistence errors propagate.
    """
    if not (profile.provider_id or "").strip():
        raise ValueError("provider_id_blank")
    col = provider_column(profile.provider)

    row = _find_user(conn, profile, col)
    if row is None:
        return create_social_user(conn, profile), CREATED

    # Already linked to this provider: return untouched, even if the stored id
    # belongs to a different account at the same provider.
    if row[col]:
        return row, EXISTING

    return link_provider(conn, int(row["user_id"]), profile), LINKED
