"""OAuth / social login providers.

Each provider turns the query parameters of its callback into a ProviderProfile:

- Google: authorization code -> token endpoint -> OpenID userinfo
- GitHub: authorization code -> access token -> /user + /user/emails
- Telegram: signed login-widget payload, verified locally with the bot token

HTTP calls use `requests` with explicit timeouts. Any failure raises ProviderError;
callers turn that into a redirect to the client's error page.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

import requests

from social_auth.config import Config
from social_auth.constants import PROVIDER_GITHUB, PROVIDER_GOOGLE, PROVIDER_TELEGRAM
from social_auth.models import ProviderProfile


GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_URL = "https://api.github.com"


class ProviderError(RuntimeError):
    pass


def callback_url(cfg: Config, provider: str) -> str:
    return f"{cfg.PUBLIC_API_URL.rstrip('/')}/auth/{provider}/callback"


def _clean(v: Any) -> Optional[str]:
    s = str(v).strip() if v is not None else ""
    return s or None


class OAuthProvider:
    """Base class. Subclasses implement `exchange`, and `authorize_url` when the
    provider uses a redirect-based consent screen."""

    name: str = ""

    def is_configured(self, cfg: Config) -> bool:
        raise NotImplementedError

    def authorize_url(self, cfg: Config, *, state: str | None = None) -> str:
        raise ProviderError(f"{self.name}_has_no_consent_redirect")

    def exchange(self, cfg: Config, params: Mapping[str, str]) -> ProviderProfile:
        raise NotImplementedError

    def _require_configured(self, cfg: Config) -> None:
        if not self.is_configured(cfg):
            raise ProviderError(f"{self.name}_not_configured")


class GoogleProvider(OAuthProvider):
    name = PROVIDER_GOOGLE

    def is_configured(self, cfg: Config) -> bool:
        return bool(cfg.GOOGLE_CLIENT_ID and cfg.GOOGLE_CLIENT_SECRET)

    def authorize_url(self, cfg: Config, *, state: str | None = None) -> str:
        self._require_configured(cfg)
        params = {
            "client_id": cfg.GOOGLE_CLIENT_ID,
            "redirect_uri": callback_url(cfg, self.name),
            "response_type": "code",
            "scope": "openid email profile",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    def exchange(self, cfg: Config, params: Mapping[str, str]) -> ProviderProfile:
        self._require_configured(cfg)
        code = _clean(params.get("code"))
        if not code:
            raise ProviderError("google_code_missing")

        r = requests.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": cfg.GOOGLE_CLIENT_ID,
                "client_secret": cfg.GOOGLE_CLIENT_SECRET,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": callback_url(cfg, self.name),
            },
            headers={"Accept": "application/json"},
            timeout=cfg.OAUTH_HTTP_TIMEOUT_SECONDS,
        )
        if r.status_code != 200:
            # Avoid leaking sensitive info; include minimal context.
            raise ProviderError(f"google_token_exchange_failed (status={r.status_code})")
        access_token = (r.json() or {}).get("access_token")
        if not access_token:
            raise ProviderError("google_access_token_missing")

        r = requests.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=cfg.OAUTH_HTTP_TIMEOUT_SECONDS,
        )
        if r.status_code != 200:
            raise ProviderError(f"google_userinfo_failed (status={r.status_code})")
        info = r.json() or {}

        sub = _clean(info.get("sub"))
        email = _clean(info.get("email"))
        if not sub or not email:
            raise ProviderError("google_profile_incomplete")
        if info.get("email_verified") is not True:
            raise ProviderError("google_email_unverified")

        first = _clean(info.get("given_name"))
        last = _clean(info.get("family_name"))
        display = _clean(info.get("name")) or " ".join(x for x in (first, last) if x) or email
        return ProviderProfile(
            provider=self.name,
            provider_id=sub,
            email=email,
            display_name=display,
            first_name=first,
            last_name=last,
            image=_clean(info.get("picture")),
        )


def _pick_github_email(emails: Any) -> Optional[str]:
    """Primary verified address, else any verified one. Unverified addresses are
    never returned since the email decides which account gets linked."""
    if not isinstance(emails, list):
        return None
    verified: List[Dict[str, Any]] = [
        e for e in emails if isinstance(e, dict) and e.get("email") and e.get("verified") is True
    ]
    if not verified:
        return None
    primary = [e for e in verified if e.get("primary")]
    return str((primary or verified)[0]["email"])


class GitHubProvider(OAuthProvider):
    name = PROVIDER_GITHUB

    def is_configured(self, cfg: Config) -> bool:
        return bool(cfg.GITHUB_CLIENT_ID and cfg.GITHUB_CLIENT_SECRET)

    def authorize_url(self, cfg: Config, *, state: str | None = None) -> str:
        self._require_configured(cfg)
        params = {
            "client_id": cfg.GITHUB_CLIENT_ID,
            "redirect_uri": callback_url(cfg, self.name),
            "scope": "read:user user:email",
        }
        if state:
            params["state"] = state
        return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"

    def exchange(self, cfg: Config, params: Mapping[str, str]) -> ProviderProfile:
        self._require_configured(cfg)
        code = _clean(params.get("code"))
        if not code:
            raise ProviderError("github_code_missing")

        r = requests.post(
            GITHUB_TOKEN_URL,
            data={
                "client_id": cfg.GITHUB_CLIENT_ID,
                "client_secret": cfg.GITHUB_CLIENT_SECRET,
                "code": code,
                "redirect_uri": callback_url(cfg, self.name),
            },
            headers={"Accept": "application/json"},
            timeout=cfg.OAUTH_HTTP_TIMEOUT_SECONDS,
        )
        if r.status_code != 200:
            raise ProviderError(f"github_token_exchange_failed (status={r.status_code})")
        access_token = (r.json() or {}).get("access_token")
        if not access_token:
            raise ProviderError("github_access_token_missing")

        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/vnd.github+json"}
        r = requests.get(f"{GITHUB_API_URL}/user", headers=headers, timeout=cfg.OAUTH_HTTP_TIMEOUT_SECONDS)
        if r.status_code != 200:
            raise ProviderError(f"github_user_failed (status={r.status_code})")
        gh_user = r.json() or {}

        # /user/emails carries the verified flag that /user lacks.
        r = requests.get(f"{GITHUB_API_URL}/user/emails", headers=headers, timeout=cfg.OAUTH_HTTP_TIMEOUT_SECONDS)
        if r.status_code != 200:
            raise ProviderError(f"github_emails_failed (status={r.status_code})")
        email = _pick_github_email(r.json())

        provider_id = _clean(gh_user.get("id"))
        if not provider_id or not email:
            raise ProviderError("github_profile_incomplete")

        display = _clean(gh_user.get("name")) or _clean(gh_user.get("login")) or email
        return ProviderProfile(
            provider=self.name,
            provider_id=provider_id,
            email=email,
            display_name=display,
            first_name=display.split(" ")[0] or None,
            last_name=None,
            image=_clean(gh_user.get("avatar_url")),
        )


def telegram_data_check_string(params: Mapping[str, str]) -> str:
    return "\n".join(f"{k}={params[k]}" for k in sorted(params) if k != "hash")


def telegram_signature(bot_token: str, params: Mapping[str, str]) -> str:
    secret = hashlib.sha256(bot_token.encode("utf-8")).digest()
    return hmac.new(secret, telegram_data_check_string(params).encode("utf-8"), hashlib.sha256).hexdigest()


class TelegramProvider(OAuthProvider):
    """Telegram Login Widget. No code exchange: the widget redirects with signed fields."""

    name = PROVIDER_TELEGRAM

    def is_configured(self, cfg: Config) -> bool:
        return bool(cfg.TELEGRAM_BOT_TOKEN)

    def exchange(self, cfg: Config, params: Mapping[str, str]) -> ProviderProfile:
        self._require_configured(cfg)
        data = {k: str(v) for k, v in params.items()}

        received = data.get("hash") or ""
        if not received or not data.get("id") or not data.get("auth_date"):
            raise ProviderError("telegram_payload_incomplete")

        expected = telegram_signature(str(cfg.TELEGRAM_BOT_TOKEN), data)
        if not hmac.compare_digest(expected, received.lower()):
            raise ProviderError("telegram_signature_invalid")

        try:
            auth_date = int(data["auth_date"])
        except ValueError as e:
            raise ProviderError("telegram_auth_date_invalid") from e
        if time.time() - auth_date > int(cfg.TELEGRAM_AUTH_MAX_AGE_SECONDS):
            raise ProviderError("telegram_auth_expired")

        first = _clean(data.get("first_name"))
        last = _clean(data.get("last_name"))
        display = " ".join(x for x in (first, last) if x) or _clean(data.get("username")) or data["id"]
        return ProviderProfile(
            provider=self.name,
            provider_id=data["id"],
            email=None,
            display_name=display,
            first_name=first,
            last_name=last,
            image=_clean(data.get("photo_url")),
        )


PROVIDERS: Dict[str, OAuthProvider] = {
    PROVIDER_GOOGLE: GoogleProvider(),
    PROVIDER_GITHUB: GitHubProvider(),
    PROVIDER_TELEGRAM: TelegramProvider(),
}


def get_provider(name: str) -> OAuthProvider:
    p = PROVIDERS.get((name or "").strip().lower())
    if p is None:
        raise ProviderError("unknown_provider")
    return p
