from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderProfile:
    """Normalized identity returned by a social login exchange."""

    provider: str  # google|github|telegram
    provider_id: str
    display_name: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    image: str | None = None


@dataclass(frozen=True)
class SessionData:
    """Claims carried by a verified session token."""

    id: int
    email: str | None
    role: str
