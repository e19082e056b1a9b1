from __future__ import annotations

import pytest

from social_auth.auth.crud import create_user, verify_user_credentials
from social_auth.auth.reconcile import CREATED, EXISTING, LINKED, reconcile_profile
from social_auth.db import connect
from social_auth.models import ProviderProfile


def _google(email="pat@example.com", sub="g-100", **kw) -> ProviderProfile:
    return ProviderProfile(
        provider="google",
        provider_id=sub,
        email=email,
        display_name=kw.pop("display_name", "Pat Google"),
        first_name=kw.pop("first_name", "Pat"),
        last_name=kw.pop("last_name", "Google"),
        image=kw.pop("image", "https://img.example.com/google.png"),
    )


def _github(email="pat@example.com", gh_id="4242", **kw) -> ProviderProfile:
    return ProviderProfile(
        provider="github",
        provider_id=gh_id,
        email=email,
        display_name=kw.pop("display_name", "pat-gh"),
        first_name=kw.pop("first_name", "pat-gh"),
        image=kw.pop("image", "https://img.example.com/github.png"),
    )


def _telegram(tg_id="777") -> ProviderProfile:
    return ProviderProfile(provider="telegram", provider_id=tg_id, display_name="Tele Gram", first_name="Tele")


def test_first_sign_in_creates_user(db) -> None:
    with connect(db) as conn:
        row, outcome = reconcile_profile(conn, _google())
    assert outcome == CREATED
    assert row["google_id"] == "g-100"
    assert row["email"] == "pat@example.com"
    assert row["display_name"] == "Pat Google"
    assert row["role"] == "user"
    assert row["visibility"] == "private"
    assert row["password_hash"] is None


def test_second_provider_with_same_email_links_to_one_record(db) -> None:
    with connect(db) as conn:
        first, _ = reconcile_profile(conn, _google())
    with connect(db) as conn:
        linked, outcome = reconcile_profile(conn, _github())

    assert outcome == LINKED
    assert linked["user_id"] == first["user_id"]
    assert linked["google_id"] == "g-100"
    assert linked["github_id"] == "4242"
    # First/last name are refreshed from the newest provider.
    assert linked["first_name"] == "pat-gh"
    # Display name and image are only filled when empty.
    assert linked["display_name"] == "Pat Google"
    assert linked["image"] == "https://img.example.com/google.png"

    with connect(db) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]
    assert n == 1


def test_repeat_sign_in_returns_record_unchanged(db) -> None:
    with connect(db) as conn:
        first, _ = reconcile_profile(conn, _google())
    with connect(db) as conn:
        again, outcome = reconcile_profile(conn, _google(display_name="Renamed", first_name="New"))
    assert outcome == EXISTING
    assert dict(again) == dict(first)


def test_provider_email_change_still_finds_account(db) -> None:
    with connect(db) as conn:
        first, _ = reconcile_profile(conn, _google())
    with connect(db) as conn:
        again, outcome = reconcile_profile(conn, _google(email="pat.new@example.com"))
    assert outcome == EXISTING
    assert again["user_id"] == first["user_id"]


def test_link_fills_missing_image(db) -> None:
    with connect(db) as conn:
        reconcile_profile(conn, _google(image=None))
    with connect(db) as conn:
        linked, _ = reconcile_profile(conn, _github())
    assert linked["image"] == "https://img.example.com/github.png"


def test_social_sign_in_links_to_password_account(db) -> None:
    with connect(db) as conn:
        u = create_user(conn, email="pat@example.com", password="pw", name="Pat", salt="s")
    with connect(db) as conn:
        row, outcome = reconcile_profile(conn, _google())
    assert outcome == LINKED
    assert row["user_id"] == u["user_id"]
    assert row["google_id"] == "g-100"
    with connect(db) as conn:
        # Password login keeps working after the link.
        assert verify_user_credentials(conn, "pat@example.com", "pw", salt="s") is not None


def test_telegram_without_email_is_keyed_by_provider_id(db) -> None:
    with connect(db) as conn:
        reconcile_profile(conn, _google())
    with connect(db) as conn:
        tg, outcome = reconcile_profile(conn, _telegram())
    assert outcome == CREATED
    assert tg["email"] is None
    assert tg["telegram_id"] == "777"

    with connect(db) as conn:
        again, outcome = reconcile_profile(conn, _telegram())
    assert outcome == EXISTING
    assert again["user_id"] == tg["user_id"]


def test_many_email_less_accounts_coexist(db) -> None:
    with connect(db) as conn:
        a, _ = reconcile_profile(conn, _telegram("1"))
        b, _ = reconcile_profile(conn, _telegram("2"))
    assert a["user_id"] != b["user_id"]


def test_blank_provider_id_is_rejected(db) -> None:
    with connect(db) as conn:
        with pytest.raises(ValueError, match="provider_id_blank"):
            reconcile_profile(conn, _google(sub="  "))


def test_create_user_duplicate_email(db) -> None:
    with connect(db) as conn:
        create_user(conn, email="x@example.com", password="pw", name="X", salt="s")
    with connect(db) as conn:
        with pytest.raises(ValueError, match="email_exists"):
            create_user(conn, email="X@example.com", password="pw", name="X", salt="s")


def test_repeating_first_provider_after_link_returns_linked_record(db) -> None:
    with connect(db) as conn:
        reconcile_profile(conn, _google())
    with connect(db) as conn:
        linked, _ = reconcile_profile(conn, _github())
    with connect(db) as conn:
        again, outcome = reconcile_profile(conn, _google(display_name="Renamed"))
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]

    assert outcome == EXISTING
    assert dict(again) == dict(linked)
    assert (again["google_id"], again["github_id"]) == ("g-100", "4242")
    assert n == 1


def test_provider_email_moved_onto_another_account_keeps_original_link(db) -> None:
    with connect(db) as conn:
        owner, _ = reconcile_profile(conn, _github(email="old@example.com", gh_id="42"))
        other = create_user(conn, email="new@example.com", password="pw", name="Other", salt="s")

    # The GitHub account now reports an email that belongs to someone else.
    with connect(db) as conn:
        row, outcome = reconcile_profile(conn, _github(email="new@example.com", gh_id="42"))

    assert outcome == EXISTING
    assert row["user_id"] == owner["user_id"]
    with connect(db) as conn:
        untouched = conn.execute("SELECT github_id FROM users WHERE user_id=?", (other["user_id"],)).fetchone()
    assert untouched["github_id"] is None
