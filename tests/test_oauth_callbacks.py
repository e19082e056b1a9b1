from __future__ import annotations

import base64
from urllib.parse import parse_qs, urlparse

from conftest import CLIENT_URL, OTHER_ORIGIN
from test_providers import GOOGLE_ROUTES, FakeResponse, install_fake_http, signed_telegram_params

from social_auth.auth import providers
from social_auth.auth.security import verify_session_token


def _b64(s: str) -> str:
    return base64.b64encode(s.encode()).decode()


def _token_from_location(location: str) -> str:
    return parse_qs(urlparse(location).query)["token"][0]


def test_google_start_redirects_to_consent(client) -> None:
    r = client.get("/auth/google", follow_redirects=False)
    assert r.status_code == 302
    loc = r.headers["location"]
    assert loc.startswith(providers.GOOGLE_AUTHORIZE_URL)
    state = parse_qs(urlparse(loc).query)["state"][0]
    assert base64.b64decode(state).decode() == CLIENT_URL


def test_google_callback_redirects_to_state_host_with_token(client, cfg, monkeypatch) -> None:
    install_fake_http(monkeypatch, GOOGLE_ROUTES)
    r = client.get(
        "/auth/google/callback",
        params={"code": "c", "state": _b64(OTHER_ORIGIN)},
        follow_redirects=False,
    )
    assert r.status_code == 302
    loc = r.headers["location"]
    assert loc.startswith(f"{OTHER_ORIGIN}/auth/callback?token=")

    s = verify_session_token(cfg, _token_from_location(loc))
    assert s.email == "pat@example.com"
    # Same token also lands in an httpOnly cookie.
    cookie = r.headers["set-cookie"]
    assert cookie.startswith("token=")
    assert "httponly" in cookie.lower()


def test_google_callback_ignores_untrusted_state_host(client, monkeypatch) -> None:
    install_fake_http(monkeypatch, GOOGLE_ROUTES)
    r = client.get(
        "/auth/google/callback",
        params={"code": "c", "state": _b64("https://evil.example.net")},
        follow_redirects=False,
    )
    assert r.headers["location"].startswith(f"{CLIENT_URL}/auth/callback?token=")


def test_google_callback_with_garbage_state_falls_back(client, monkeypatch) -> None:
    install_fake_http(monkeypatch, GOOGLE_ROUTES)
    r = client.get("/auth/google/callback", params={"code": "c", "state": "%%%"}, follow_redirects=False)
    assert r.headers["location"].startswith(f"{CLIENT_URL}/auth/callback?token=")


def test_google_callback_failure_redirects_to_error_page(client, monkeypatch) -> None:
    install_fake_http(monkeypatch, {providers.GOOGLE_TOKEN_URL: FakeResponse(401, {})})
    r = client.get("/auth/google/callback", params={"code": "c"}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == f"{CLIENT_URL}/auth/error"
    assert "set-cookie" not in r.headers


def test_github_start_redirects_to_consent(client) -> None:
    r = client.get("/auth/github", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"].startswith(providers.GITHUB_AUTHORIZE_URL)


def test_google_then_github_sign_in_share_one_account(client, cfg, monkeypatch) -> None:
    install_fake_http(monkeypatch, GOOGLE_ROUTES)
    r = client.get("/auth/google/callback", params={"code": "c"}, follow_redirects=False)
    google_user = verify_session_token(cfg, _token_from_location(r.headers["location"]))

    install_fake_http(
        monkeypatch,
        {
            providers.GITHUB_TOKEN_URL: FakeResponse(200, {"access_token": "gh"}),
            f"{providers.GITHUB_API_URL}/user/emails": FakeResponse(
                200, [{"email": "pat@example.com", "primary": True, "verified": True}]
            ),
            f"{providers.GITHUB_API_URL}/user": FakeResponse(200, {"id": 9, "login": "pat"}),
        },
    )
    r = client.get("/auth/github/callback", params={"code": "c"}, follow_redirects=False)
    assert r.headers["location"].startswith(f"{CLIENT_URL}/home?token=")
    github_user = verify_session_token(cfg, _token_from_location(r.headers["location"]))
    assert github_user.id == google_user.id

    r = client.get("/user/details", headers={"Authorization": f"Bearer {_token_from_location(r.headers['location'])}"})
    details = r.json()["data"]
    assert details["google_id"] == "g-sub-1"
    assert details["github_id"] == "9"


def test_telegram_callback(client, cfg) -> None:
    r = client.get("/auth/telegram/callback", params=signed_telegram_params(), follow_redirects=False)
    assert r.status_code == 302
    loc = r.headers["location"]
    assert loc.startswith(f"{CLIENT_URL}/home?token=")
    s = verify_session_token(cfg, _token_from_location(loc))
    assert s.email is None


def test_telegram_callback_bad_signature(client) -> None:
    params = signed_telegram_params()
    params["hash"] = "0" * 64
    r = client.get("/auth/telegram/callback", params=params, follow_redirects=False)
    assert r.headers["location"] == f"{CLIENT_URL}/auth/error"


def test_cookie_from_callback_authenticates_requests(client, monkeypatch) -> None:
    install_fake_http(monkeypatch, GOOGLE_ROUTES)
    client.get("/auth/google/callback", params={"code": "c"}, follow_redirects=False)
    # TestClient keeps cookies between requests.
    r = client.get("/user/details")
    assert r.status_code == 200
    assert r.json()["data"]["email"] == "pat@example.com"
