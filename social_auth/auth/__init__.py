"""Authentication / authorization helpers.

- Users table (email/password hash, provider ids, role)
- JWT session tokens (stateless, no revocation)
- Identity reconciliation for Google / GitHub / Telegram sign-in

The API accepts both:

- `Authorization: Bearer <token>` (API clients, the SPA after login)
- the httpOnly `token` cookie set by the OAuth callbacks
"""

from .deps import get_session, require_admin
from .crud import bootstrap_admin_if_needed, create_user
from .reconcile import reconcile_profile

__all__ = [
    "get_session",
    "require_admin",
    "bootstrap_admin_if_needed",
    "create_user",
    "reconcile_profile",
]
