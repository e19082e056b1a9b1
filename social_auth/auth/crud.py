from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from social_auth.config import Config
from social_auth.constants import DEFAULT_BIO, PROVIDER_ID_COLUMNS, ROLES, VISIBILITIES
from social_auth.db import connect, insert_returning_id, is_unique_violation
from social_auth.models import ProviderProfile
from social_auth.util.time import utcnow_iso

from .security import hash_password, verify_password


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    return d


def provider_column(provider: str) -> str:
    col = PROVIDER_ID_COLUMNS.get((provider or "").strip().lower())
    if col is None:
        raise ValueError("unknown_provider")
    return col


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (int(user_id),),
    ).fetchone()


def get_user_by_email(conn: Any, email: str | None) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_provider_id(conn: Any, provider: str, provider_id: str) -> Optional[Any]:
    pid = (provider_id or "").strip()
    if not pid:
        return None
    col = provider_column(provider)
    return conn.execute(
        f"SELECT * FROM users WHERE {col}=?",
        (pid,),
    ).fetchone()


def verify_user_credentials(conn: Any, email: str, password: str, *, salt: str) -> Optional[Any]:
    """Return the user row on a match, else None.

    Unknown email, wrong password and password-less (social only) accounts all
    come back as None so callers can't tell them apart.
    """
    row = get_user_by_email(conn, email)
    if row is None:
        return None
    if not verify_password(password, row["password_hash"], salt=salt):
        return None
    return row


def create_user(
    conn: Any,
    *,
    email: str,
    password: str,
    name: str,
    salt: str,
    role: str = "user",
) -> Dict[str, Any]:
    """Create an email/password account. Raises ValueError("email_exists") on duplicates."""
    e = normalize_email(email)
    display_name = (name or "").strip()
    if not e:
        raise ValueError("email_blank")
    if not display_name:
        raise ValueError("name_blank")
    if role not in ROLES:
        raise ValueError("invalid_role")

    # Fast path. The UNIQUE index on email is what actually guarantees correctness
    # when two registrations race past this check.
    if get_user_by_email(conn, e) is not None:
        raise ValueError("email_exists")

    now = utcnow_iso()
    try:
        user_id = insert_returning_id(
            conn,
            """
            INSERT INTO users (email, display_name, first_name, password_hash, role, visibility, bio, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?,?)
            """,
            (e, display_name, display_name, hash_password(password, salt=salt), role, "private", DEFAULT_BIO, now, now),
            id_column="user_id",
        )
    except Exception as exc:
        if is_unique_violation(exc):
            raise ValueError("email_exists") from exc
        raise

    row = get_user_by_id(conn, user_id)
    assert row is not None
    return public_user(row)


def create_social_user(conn: Any, profile: ProviderProfile) -> Any:
    col = provider_column(profile.provider)
    now = utcnow_iso()
    user_id = insert_returning_id(
        conn,
        f"""
        INSERT INTO users ({col}, email, display_name, first_name, last_name, image, visibility, role, bio, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            profile.provider_id,
            normalize_email(profile.email) or None,
            profile.display_name,
            profile.first_name,
            profile.last_name,
            profile.image,
            "private",
            "user",
            DEFAULT_BIO,
            now,
            now,
        ),
        id_column="user_id",
    )
    return get_user_by_id(conn, user_id)


def link_provider(conn: Any, user_id: int, profile: ProviderProfile) -> Any:
    """Attach `profile`'s provider id to an existing user.

    Refreshes first/last name from the provider. Display name and image are only
    filled when empty. Other provider ids and the password hash are untouched.
    """
    col = provider_column(profile.provider)
    conn.execute(
        f"""
        UPDATE users
        SET {col}=?,
            first_name=COALESCE(?, first_name),
            last_name=COALESCE(?, last_name),
            display_name=CASE WHEN display_name IS NULL OR display_name='' THEN ? ELSE display_name END,
            image=COALESCE(image, ?),
            updated_at=?
        WHERE user_id=?
        """,
        (
            profile.provider_id,
            profile.first_name,
            profile.last_name,
            profile.display_name,
            profile.image,
            utcnow_iso(),
            int(user_id),
        ),
    )
    return get_user_by_id(conn, user_id)


def update_user_profile(
    conn: Any,
    *,
    user_id: int,
    name: str | None = None,
    email: str | None = None,
    visibility: str | None = None,
    image: str | None = None,
    password: str | None = None,
    bio: str | None = None,
    role: str | None = None,
    salt: str,
) -> Optional[Dict[str, Any]]:
    """Partial profile update. None or blank values keep what is stored.

    Returns the updated public user, or None if the user is gone.
    Raises ValueError("email_exists") when the new email belongs to someone else.
    """
    row = get_user_by_id(conn, user_id)
    if row is None:
        return None

    fields: list[tuple[str, Any]] = []
    if name:
        fields.append(("display_name", name))
        fields.append(("first_name", name))
    if email:
        fields.append(("email", normalize_email(email)))
    if visibility:
        if visibility not in VISIBILITIES:
            raise ValueError("invalid_visibility")
        fields.append(("visibility", visibility))
    if image:
        fields.append(("image", image))
    if password:
        fields.append(("password_hash", hash_password(password, salt=salt)))
    if bio:
        fields.append(("bio", bio))
    if role:
        if role not in ROLES:
            raise ValueError("invalid_role")
        fields.append(("role", role))

    if not fields:
        return public_user(row)

    fields.append(("updated_at", utcnow_iso()))
    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [int(user_id)]
    try:
        conn.execute(f"UPDATE users SET {sets} WHERE user_id=?", params)
    except Exception as exc:
        if is_unique_violation(exc):
            raise ValueError("email_exists") from exc
        raise

    updated = get_user_by_id(conn, user_id)
    assert updated is not None
    return public_user(updated)


def list_users(
    conn: Any,
    *,
    offset: int,
    limit: int,
    visibility: str | None = None,
    role: str | None = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """Page through users (oldest first). Returns (users, total matching)."""
    where: list[str] = []
    params: list[Any] = []
    if visibility is not None:
        where.append("visibility=?")
        params.append(visibility)
    if role is not None:
        where.append("role=?")
        params.append(role)
    where_sql = f"WHERE {' AND '.join(where)}" if where else ""

    total = conn.execute(f"SELECT COUNT(*) AS n FROM users {where_sql}", tuple(params)).fetchone()["n"]
    rows = conn.execute(
        f"SELECT * FROM users {where_sql} ORDER BY user_id ASC LIMIT ? OFFSET ?",
        tuple(params + [int(limit), int(offset)]),
    ).fetchall()
    return [public_user(r) for r in rows], int(total)


def bootstrap_admin_if_needed(cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users table is empty.

    - AUTH_BOOTSTRAP_ADMIN_EMAIL
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD

    Does nothing unless both are set and there are 0 rows in `users`.
    """
    email = normalize_email(cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL)
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD
    if not email or not password:
        return None

    with connect(cfg.DB_DSN) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]
        if int(n) > 0:
            return None
        u = create_user(conn, email=email, password=password, name="Admin", salt=cfg.PASSWORD_SALT, role="admin")
        _debug(f"Bootstrapped initial admin user: email={u.get('email')}")
        return u
