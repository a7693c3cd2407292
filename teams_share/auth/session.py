"""Delegated sign-in against the Microsoft identity platform.

Silent lookup in the msal token cache first; when that misses, an
authorization-code flow through the user's browser with a loopback
redirect. The serialized cache is flushed to disk after every change.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

import msal
import requests

from teams_share.auth.cache import TokenCacheStore
from teams_share.auth.callback import CallbackListener
from teams_share.config import (
    CALLBACK_PATH,
    RESERVED_SCOPES,
    authority_url,
    redirect_uri,
    required_scopes,
    token_cache_path,
)
from teams_share.errors import AuthenticationError, CacheCorruptionError
from teams_share.models import AccessToken

logger = logging.getLogger(__name__)

# Errors meaning the cached refresh state is unusable
CACHE_INVALIDATING_ERRORS = frozenset({"invalid_grant", "no_tokens_found"})

CONSENT_REQUIRED_CODE = 65001

AppFactory = Callable[[Dict[str, Any], msal.SerializableTokenCache], Any]


def build_msal_app(config: Dict[str, Any], cache: msal.SerializableTokenCache):
    """Public client by default; confidential when a client secret is configured."""
    client_id = config.get("client_id", "")
    if not client_id:
        raise AuthenticationError(
            "No client_id configured. Run: teams-share configure --client-id <app-id>"
        )

    secret = config.get("client_secret", "")
    if secret:
        return msal.ConfidentialClientApplication(
            client_id,
            client_credential=secret,
            authority=authority_url(config),
            token_cache=cache,
        )
    return msal.PublicClientApplication(
        client_id,
        authority=authority_url(config),
        token_cache=cache,
    )


def normalize_scopes(scopes: Iterable[str]) -> FrozenSet[str]:
    """Lowercase scope names, strip resource prefixes, drop OIDC reserved scopes.

    ``https://graph.microsoft.com/User.Read`` and ``user.read`` compare equal.
    """
    result = set()
    for scope in scopes:
        name = scope.strip()
        if "://" in name:
            name = name.rsplit("/", 1)[-1]
        name = name.lower()
        if name and name not in RESERVED_SCOPES:
            result.add(name)
    return frozenset(result)


def granted_scopes(result: Dict[str, Any], requested: List[str]) -> FrozenSet[str]:
    """Scopes granted by a token response.

    Cache hits carry no ``scope`` field; msal only serves a cached access
    token whose target covers the requested scopes.
    """
    scope = result.get("scope")
    if scope is None:
        return normalize_scopes(requested)
    if isinstance(scope, str):
        scope = scope.split()
    return normalize_scopes(scope)


def classify_auth_error(result: Dict[str, Any]) -> AuthenticationError:
    """Map an msal/AAD error response to an AuthenticationError with a readable message."""
    error = result.get("error", "")
    description = result.get("error_description", "") or ""
    suberror = result.get("suberror", "")
    codes = result.get("error_codes") or []

    if error == "access_denied":
        return AuthenticationError(
            "Sign-in was cancelled or access was denied.", reason="access_denied"
        )
    if (
        error == "consent_required"
        or suberror == "consent_required"
        or CONSENT_REQUIRED_CODE in codes
        or f"AADSTS{CONSENT_REQUIRED_CODE}" in description
    ):
        return AuthenticationError(
            "The app needs consent for the requested permissions. "
            "Ask your administrator to grant consent, then sign in again.",
            reason="consent_required",
        )
    if error == "invalid_grant":
        return AuthenticationError(
            "The sign-in code was invalid or expired. Please sign in again.",
            reason="invalid_grant",
        )

    detail = description.splitlines()[0] if description else error or "unknown error"
    return AuthenticationError(f"Authentication failed: {detail}")


class Authenticator:
    """Owns the msal application, its token cache and the on-disk copy.

    One instance per process; pass it around instead of relying on module
    state.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        store: Optional[TokenCacheStore] = None,
        opener: Callable[[str], Any] = webbrowser.open,
        app_factory: Optional[AppFactory] = None,
    ):
        self.config = config
        self.scopes = required_scopes(config)
        self.store = store or TokenCacheStore(token_cache_path())
        self.opener = opener
        self._app_factory = app_factory or build_msal_app
        self._app = None
        self._cache = msal.SerializableTokenCache()

        blob = self.store.load()
        if blob:
            try:
                self._deserialize(blob)
                logger.info("Loaded existing token cache")
            except CacheCorruptionError as exc:
                logger.warning("%s; starting with an empty cache", exc)
                self.store.clear()
                self._reset_cache()

    @property
    def app(self):
        if self._app is None:
            self._app = self._app_factory(self.config, self._cache)
        return self._app

    @property
    def redirect_uri(self) -> str:
        return redirect_uri(self.config)

    def _deserialize(self, blob: str):
        try:
            self._cache.deserialize(blob)
        except ValueError as exc:
            raise CacheCorruptionError(f"Token cache is not parseable: {exc}") from exc

    def _reset_cache(self):
        self._cache = msal.SerializableTokenCache()
        self._app = None

    def _flush(self, force: bool = False):
        if force or self._cache.has_state_changed:
            self.store.save(self._cache.serialize())
            self._cache.has_state_changed = False

    def _to_access_token(self, result: Dict[str, Any], username: str = "") -> AccessToken:
        claims = result.get("id_token_claims") or {}
        return AccessToken(
            token=result["access_token"],
            scopes=granted_scopes(result, self.scopes),
            expires_at=time.time() + int(result.get("expires_in", 3600)),
            username=claims.get("preferred_username") or username,
        )

    def current_account(self) -> Optional[Dict[str, Any]]:
        """First cached account, or None. Only one account is ever used."""
        accounts = self.app.get_accounts()
        return accounts[0] if accounts else None

    def covers_required(self, granted: FrozenSet[str]) -> bool:
        return normalize_scopes(self.scopes) <= granted

    def acquire_silent(self) -> Optional[AccessToken]:
        """Token from cache or refresh, or None on any miss."""
        try:
            account = self.current_account()
            if account is None:
                logger.info("No cached account")
                return None
            result = self.app.acquire_token_silent_with_error(self.scopes, account=account)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Silent token acquisition failed: %s", exc)
            return None

        if not result:
            logger.info("No cached token for the required scopes")
            return None

        if "access_token" not in result:
            error = result.get("error", "")
            logger.info("Silent token acquisition failed: %s", error or result)
            if error in CACHE_INVALIDATING_ERRORS:
                logger.warning("Token cache is no longer valid (%s); clearing it", error)
                self.store.clear()
                self._reset_cache()
            return None

        granted = granted_scopes(result, self.scopes)
        if not self.covers_required(granted):
            missing = normalize_scopes(self.scopes) - granted
            logger.info("Cached token lacks scopes %s; treating as a miss", sorted(missing))
            return None

        self._flush()
        logger.info("Got token silently from cache")
        return self._to_access_token(result, username=account.get("username", ""))

    def acquire_interactive(self) -> AccessToken:
        """Browser sign-in followed by the code exchange.

        msal's auth code flow adds ``state`` and a PKCE verifier; both are
        checked against the redirect. Raises AuthenticationError
        (LoginTimeoutError on timeout).
        """
        port = int(self.config.get("redirect_port", 3000))
        timeout = float(self.config.get("login_timeout", 300))
        prompt = self.config.get("prompt") or "select_account"

        with CallbackListener(port, CALLBACK_PATH, timeout=timeout) as listener:
            flow = self.app.initiate_auth_code_flow(
                self.scopes,
                redirect_uri=self.redirect_uri,
                prompt=prompt,
            )
            if "auth_uri" not in flow:
                raise classify_auth_error(flow)

            logger.info("Opening browser for sign-in")
            if not self.opener(flow["auth_uri"]):
                logger.warning("Could not open a browser; visit this URL to sign in: %s", flow["auth_uri"])
            try:
                auth_response = listener.wait_for_response()
            except AuthenticationError as exc:
                if exc.reason in ("timeout", "listener"):
                    raise
                raise classify_auth_error(
                    {"error": exc.reason, "error_description": str(exc)}
                ) from exc

        return self.exchange_response(flow, auth_response)

    def exchange_response(self, flow: Dict[str, Any], auth_response: Dict[str, str]) -> AccessToken:
        """Redeem the redirect's authorization code and persist the resulting cache.

        A ``state`` that does not match the flow is rejected.
        """
        try:
            result = self.app.acquire_token_by_auth_code_flow(flow, auth_response)
        except requests.RequestException as exc:
            raise AuthenticationError(f"Authentication failed: {exc}") from exc
        except ValueError as exc:
            logger.error("Rejected sign-in redirect: %s", exc)
            raise AuthenticationError(
                "The sign-in response did not match this login attempt. Please sign in again.",
                reason="state_mismatch",
            ) from exc

        if not result or "access_token" not in result:
            error = classify_auth_error(result or {})
            logger.error("Code exchange failed (%s): %s", error.reason, (result or {}).get("error_description", ""))
            raise error

        self._flush(force=True)
        logger.info("Access token retrieved successfully")
        return self._to_access_token(result)

    def get_access_token(self, force_interactive: bool = False) -> AccessToken:
        """Silent first, interactive on a miss."""
        if not force_interactive:
            token = self.acquire_silent()
            if token is not None:
                return token
            logger.info("No usable cached token, proceeding with interactive login")
        return self.acquire_interactive()

    def sign_out(self) -> List[str]:
        """Remove every cached account and delete the cache file.

        Idempotent. Returns the messages of any account removals that
        failed; the cache file is deleted regardless.
        """
        errors: List[str] = []
        try:
            accounts = self.app.get_accounts()
        except AuthenticationError as exc:
            logger.info("No msal application (%s); clearing the cache file only", exc)
            accounts = []
        except ValueError as exc:
            errors.append(str(exc))
            accounts = []

        for account in accounts:
            try:
                self.app.remove_account(account)
            except (ValueError, KeyError, requests.RequestException) as exc:
                logger.error("Error removing account %s: %s", account.get("username"), exc)
                errors.append(str(exc))

        self.store.clear()
        self._reset_cache()
        logger.info("Signed out")
        return errors
