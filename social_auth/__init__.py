"""Social Auth API - Backend.

Multi-provider sign-in (Google, GitHub, Telegram, email/password) on top of a
single user table, with stateless JWT sessions.

Core concepts:
- Email is the unification key across providers; provider ids attach to
  the record the first provider created.
- Sessions are signed, time-limited tokens. There is no revocation list.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
