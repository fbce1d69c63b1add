"""
OAuth2 authentication and token management for the Spotify Web API

This module implements the authentication state machine used by
SpotifyClient. It supports two grant families:

- App-only (client credentials): no user context, public catalog data only
- User-scoped (authorization code + refresh token): access to the user's
  library, playlists and liked songs

State machine:

    UNAUTHENTICATED --(cached refresh token)--> REFRESHING  --> AUTHENTICATED
    UNAUTHENTICATED --(no cached token)-------> AUTHORIZING --> AUTHENTICATED
    any failure ------------------------------------------> UNAUTHENTICATED

Every exchange goes through one function, TokenManager.exchange(), which
receives a grant object. Each grant carries only the fields its exchange
needs, so no grant-type conditionals are spread across the request code.

Credential installation:
    The resulting bearer token is written into the Authorization header of
    the shared requests.Session owned by SpotifyClient. That header is a
    single mutable value with one writer (this module) and many readers
    (every resource request). Authorization must complete before the first
    resource request is issued; SpotifyClient.__init__ enforces this by
    authorizing before returning. On failure the header is removed so
    dependent calls can detect the unauthenticated state and refuse to run.

Persistence:
    Only the refresh token survives process restarts. It lives in a flat
    JSON key/value document (TokenCache) that is read at the start of every
    user authorization and rewritten whenever the provider issues a new
    refresh token. A refresh response without a refresh token leaves the
    cached value untouched.
"""

import json
import os
import tempfile
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import requests

from ..exceptions import AuthError, CallbackError, SpotifetchError
from ..utils.helpers import mask_secret
from ..utils.logger import get_logger
from .callback import LocalCallbackListener, redirect_uri_for, DEFAULT_REDIRECT_PORT
from .settings import SPOTIFY_ACCOUNTS_BASE_URL

logger = get_logger(__name__)

REFRESH_TOKEN_KEY = 'refresh_token'
EXPIRY_BUFFER_SECONDS = 60


class AuthState(Enum):
    """Authentication lifecycle of a TokenManager"""
    UNAUTHENTICATED = "unauthenticated"
    AUTHORIZING = "authorizing"
    REFRESHING = "refreshing"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Credentials:
    """Spotify application credentials; the secret is kept out of repr()"""
    client_id: str
    client_secret: str = field(repr=False)

    @property
    def masked(self) -> Dict[str, str]:
        """Loggable view of the credentials"""
        return {'client_id': self.client_id, 'client_secret': mask_secret(self.client_secret)}


@dataclass(frozen=True)
class ClientCredentialsGrant:
    """App-only grant, no user context"""
    grant_type = 'client_credentials'

    def form(self) -> Dict[str, str]:
        return {'grant_type': self.grant_type}


@dataclass(frozen=True)
class AuthorizationCodeGrant:
    """Exchange of a freshly captured authorization code"""
    code: str
    redirect_uri: str
    grant_type = 'authorization_code'

    def form(self) -> Dict[str, str]:
        return {'grant_type': self.grant_type, 'code': self.code, 'redirect_uri': self.redirect_uri}


@dataclass(frozen=True)
class RefreshTokenGrant:
    """Exchange of a cached refresh token, no user interaction"""
    refresh_token: str
    redirect_uri: str
    grant_type = 'refresh_token'

    def form(self) -> Dict[str, str]:
        return {
            'grant_type': self.grant_type,
            'refresh_token': self.refresh_token,
            'redirect_uri': self.redirect_uri,
        }


Grant = Union[ClientCredentialsGrant, AuthorizationCodeGrant, RefreshTokenGrant]


@dataclass
class TokenState:
    """
    In-memory token information

    Attributes:
        access_token: Current bearer token, None when unauthenticated
        refresh_token: Refresh token issued with the current access token, if any
        token_type: Usually 'Bearer'
        expires_at: Unix timestamp after which the access token is invalid
        scope: Scopes granted by the provider
    """
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: str = 'Bearer'
    expires_at: Optional[float] = None
    scope: Optional[str] = None

    @classmethod
    def from_token_response(cls, payload: Dict[str, Any], now: Optional[float] = None) -> 'TokenState':
        now_ts = time.time() if now is None else now
        expires_in = payload.get('expires_in')
        return cls(
            access_token=payload.get('access_token'),
            refresh_token=payload.get('refresh_token'),
            token_type=payload.get('token_type') or 'Bearer',
            expires_at=now_ts + float(expires_in) if expires_in else None,
            scope=payload.get('scope'),
        )

    def is_expired(self, buffer_seconds: int = EXPIRY_BUFFER_SECONDS) -> bool:
        """True when the token expires within the safety buffer; unknown expiry never expires"""
        if self.expires_at is None:
            return False
        return time.time() >= self.expires_at - buffer_seconds


@dataclass
class AuthResult:
    """
    Explicit outcome of an authorization attempt

    Authorization methods never raise; they return this instead so callers
    decide whether a failure is fatal.
    """
    success: bool
    grant_type: Optional[str] = None
    error: Optional[SpotifetchError] = None

    def raise_for_error(self) -> None:
        """Re-raise the stored error, if any"""
        if self.error is not None:
            raise self.error


class TokenCache:
    """
    Flat key/value JSON document on local disk

    read() tolerates a missing or corrupt file by returning None; write()
    merges the new key into whatever is already stored and swaps the file
    in atomically, so an interrupted write leaves the previous document.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token cache {self.path}: {e}")
            return {}

    def read(self, key: str) -> Optional[Any]:
        return self._load().get(key) or None

    def write(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            try:
                # 0o600 = owner read/write only
                os.chmod(tmp_name, 0o600)
            except OSError:
                # Windows doesn't support chmod
                pass
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def clear(self) -> bool:
        """Delete the cache file; returns True if a file was removed"""
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False


ListenerFactory = Callable[..., LocalCallbackListener]


class TokenManager:
    """
    Runs the grant flows and installs the resulting bearer token

    Args:
        credentials: Application client id and secret
        api_session: The shared session of the client façade; receives the
                     Authorization header
        cache: Refresh token store
        http: Session used for token endpoint requests (separate from
              api_session so Basic auth never mixes with the bearer header)
        listener_factory: Builds the local callback listener for the
                          interactive path
        redirect_port: Port of the local callback listener
        show_dialog: Force the consent dialog on the interactive path
        request_timeout: Seconds per token request
        callback_timeout: Seconds to wait for the browser redirect
        interactive_fallback: Fall back to the interactive flow when the
                              provider rejects a cached refresh token
    """

    def __init__(
        self,
        credentials: Credentials,
        api_session: requests.Session,
        cache: TokenCache,
        http: Optional[requests.Session] = None,
        listener_factory: ListenerFactory = LocalCallbackListener,
        redirect_port: int = DEFAULT_REDIRECT_PORT,
        show_dialog: bool = True,
        request_timeout: float = 30,
        callback_timeout: float = 300,
        interactive_fallback: bool = True,
        accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
    ):
        self.credentials = credentials
        self.api_session = api_session
        self.cache = cache
        self.http = http or requests.Session()
        self.listener_factory = listener_factory
        self.redirect_port = redirect_port
        self.show_dialog = show_dialog
        self.request_timeout = request_timeout
        self.callback_timeout = callback_timeout
        self.interactive_fallback = interactive_fallback
        self.token_url = f"{accounts_base_url.rstrip('/')}/api/token"

        self.state = AuthState.UNAUTHENTICATED
        self.token = TokenState()
        self._last_flow: Optional[str] = None
        self._last_scope: str = ""

    @property
    def redirect_uri(self) -> str:
        return redirect_uri_for(self.redirect_port)

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED and bool(self.token.access_token)

    @property
    def can_reauthorize(self) -> bool:
        return self._last_flow is not None

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    def exchange(self, grant: Grant) -> TokenState:
        """
        Post a grant to the token endpoint

        Args:
            grant: One of the grant variants

        Returns:
            TokenState parsed from the response

        Raises:
            AuthError: On network failure, non-success status, or a response
                       without a usable access_token and expiry
        """
        try:
            response = self.http.post(
                self.token_url,
                data=grant.form(),
                auth=(self.credentials.client_id, self.credentials.client_secret),
                headers={'Content-Type': 'application/x-www-form-urlencoded'},
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            raise AuthError(
                f"Token request failed: {e}",
                details={'original_error': str(e)},
                grant_type=grant.grant_type,
            ) from e

        if response.status_code >= 400:
            raise AuthError(
                f"Token request rejected (HTTP {response.status_code})",
                details={'response': _safe_body(response)},
                grant_type=grant.grant_type,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError(
                "Token response was not JSON",
                grant_type=grant.grant_type,
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, dict) or not payload.get('access_token'):
            raise AuthError(
                "Token response did not contain an access_token",
                grant_type=grant.grant_type,
                status_code=response.status_code,
            )

        try:
            return TokenState.from_token_response(payload)
        except (TypeError, ValueError) as e:
            raise AuthError(
                f"Token response was malformed: {e}",
                grant_type=grant.grant_type,
                status_code=response.status_code,
            ) from e

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def authorize_app_only(self) -> AuthResult:
        """
        Client credentials flow

        Returns:
            AuthResult; on failure the session is left without a bearer token
        """
        self._last_flow = 'app'
        self.state = AuthState.AUTHORIZING
        grant = ClientCredentialsGrant()

        try:
            token = self.exchange(grant)
        except AuthError as e:
            return self._fail(e, "app-only authorization")

        self._install(token)
        logger.info("App-only authorization successful")
        return AuthResult(success=True, grant_type=grant.grant_type)

    def authorize_user(self, scope: str = "") -> AuthResult:
        """
        User-scoped flow

        Takes the refresh path when a refresh token is cached, the interactive
        path otherwise. A rejected refresh token falls back to the interactive
        path once when interactive_fallback is enabled.

        Args:
            scope: Space separated scopes to request on the interactive path

        Returns:
            AuthResult describing the outcome
        """
        self._last_flow = 'user'
        self._last_scope = scope

        refresh_token = self.cache.read(REFRESH_TOKEN_KEY)
        if refresh_token:
            result = self._refresh(refresh_token)
            if result.success or not self._should_fall_back(result):
                return result
            logger.warning("Cached refresh token was rejected, starting interactive authorization")

        return self._authorize_interactive(scope)

    def reauthorize(self) -> AuthResult:
        """
        Repeat the last flow, e.g. after the provider answered 401

        A user flow goes through the refresh path when a refresh token is
        cached, so this normally needs no interaction.
        """
        if self._last_flow == 'user':
            return self.authorize_user(self._last_scope)
        if self._last_flow == 'app':
            return self.authorize_app_only()
        return AuthResult(success=False, error=AuthError("No previous authorization to repeat"))

    def revoke(self) -> None:
        """
        Forget all credentials: cached refresh token, current token and header

        Tokens remain valid on Spotify's side until they expire.
        """
        if self.cache.clear():
            logger.info(f"Removed token cache {self.cache.path}")
        self._uninstall()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _refresh(self, refresh_token: str) -> AuthResult:
        self.state = AuthState.REFRESHING
        grant = RefreshTokenGrant(refresh_token=refresh_token, redirect_uri=self.redirect_uri)

        try:
            token = self.exchange(grant)
        except AuthError as e:
            return self._fail(e, "refresh token exchange")

        self._install(token)
        self._persist_refresh_token(token)
        logger.info("Access token refreshed from cached refresh token")
        return AuthResult(success=True, grant_type=grant.grant_type)

    def _authorize_interactive(self, scope: str) -> AuthResult:
        self.state = AuthState.AUTHORIZING
        listener = self.listener_factory(
            client_id=self.credentials.client_id,
            scope=scope,
            port=self.redirect_port,
            show_dialog=self.show_dialog,
            timeout=self.callback_timeout,
        )

        try:
            callback = listener.capture()
        except CallbackError as e:
            return self._fail(e, "authorization callback")

        if not callback.code:
            reason = 'denied' if callback.error else 'missing_code'
            error = CallbackError(
                f"No authorization code received ({callback.error or 'callback had no code'})",
                reason=reason,
                details={'provider_error': callback.error},
            )
            return self._fail(error, "authorization callback")

        grant = AuthorizationCodeGrant(code=callback.code, redirect_uri=listener.redirect_uri)
        try:
            token = self.exchange(grant)
        except AuthError as e:
            return self._fail(e, "authorization code exchange")

        self._install(token)
        self._persist_refresh_token(token)
        logger.console_info("Authorization successful!")
        return AuthResult(success=True, grant_type=grant.grant_type)

    def _should_fall_back(self, result: AuthResult) -> bool:
        return (
            self.interactive_fallback
            and isinstance(result.error, AuthError)
            and result.error.is_rejection
        )

    def _persist_refresh_token(self, token: TokenState) -> None:
        # Spotify does not always rotate refresh tokens; keep the cached one then
        if not token.refresh_token:
            return
        try:
            self.cache.write(REFRESH_TOKEN_KEY, token.refresh_token)
        except OSError as e:
            logger.warning(f"Failed to persist refresh token to {self.cache.path}: {e}")

    def _install(self, token: TokenState) -> None:
        self.token = token
        self.api_session.headers['Authorization'] = f"Bearer {token.access_token}"
        self.state = AuthState.AUTHENTICATED

    def _uninstall(self) -> None:
        self.token = TokenState()
        self.api_session.headers.pop('Authorization', None)
        self.state = AuthState.UNAUTHENTICATED

    def _fail(self, error: SpotifetchError, operation: str) -> AuthResult:
        self._uninstall()
        logger.error(f"Spotify authorization failed during {operation}: {error}")
        logger.error(f"Attempted credentials: {self.credentials.masked}")
        if error.details:
            logger.debug(f"Details: {error.details}")
        return AuthResult(success=False, grant_type=getattr(error, 'grant_type', None), error=error)


def _safe_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return (response.text or '')[:500]
