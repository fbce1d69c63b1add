"""
Spotify Web API client

SpotifyClient is the façade the rest of the package (and library users) talk
to. It owns one requests.Session rooted at https://api.spotify.com/v1/, runs
the configured authorization flow before returning from __init__, and
exposes the collection operations on top of the pagination engine.

Request pipeline (_request):

1. Refuse to send anything while no bearer token is installed
   (NotAuthenticatedError)
2. Renew an access token that is about to expire
3. Send the GET with the configured timeout
4. On HTTP 401 reauthorize once and retry; give up with TokenExpiredError
5. Any other network failure or HTTP status >= 400 becomes PageFetchError,
   which the failure policy of the surrounding aggregation then handles

Usage:

    client = SpotifyClient(client_id, client_secret, auth_type="user",
                           scope="playlist-read-private user-library-read")
    result = client.get_playlist_tracks("37i9dQZF1DXcBWIGoYBM5M")
    for track in result:
        print(track.title, track.artists)
"""

import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import requests

from ..config.auth import AuthResult, Credentials, TokenCache, TokenManager
from ..config.settings import Settings, get_settings
from ..exceptions import ConfigError, NotAuthenticatedError, PageFetchError, TokenExpiredError
from ..utils.helpers import resolve_url, unique_ids
from ..utils.logger import get_logger
from .models import Page, TrackRecord, format_track, unwrap_track
from .paginator import (
    BatchChunker,
    FailurePolicy,
    FetchResult,
    Formatter,
    LIBRARY_PAGE_SIZE,
    MAX_BATCH_SIZE,
    PageFetch,
    PaginatedFetcher,
    TRACK_PAGE_SIZE,
    merge_by_id,
)

logger = get_logger(__name__)

AUTH_TYPES = ('app', 'user')

PolicyArg = Union[FailurePolicy, str, None]


def extract_spotify_id(url_or_id: str, kind: str = 'playlist') -> str:
    """
    Extract a resource id from a Spotify URL, URI or bare id

    Supported forms:
        37i9dQZF1DXcBWIGoYBM5M
        https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc123
        spotify:playlist:37i9dQZF1DXcBWIGoYBM5M

    Raises:
        ValueError: If nothing that looks like a `kind` id can be found
    """
    value = url_or_id.strip()

    if re.match(r'^[a-zA-Z0-9]{22}$', value):
        return value

    if 'spotify.com' in value and f'{kind}/' in value:
        return value.split(f'{kind}/')[-1].split('?')[0].strip('/')

    if value.startswith('spotify:'):
        parts = value.split(':')
        if len(parts) >= 3 and parts[1] == kind:
            return parts[2]

    raise ValueError(f"Invalid Spotify {kind} URL or ID: {url_or_id}")


def _unwrapping(formatter: Optional[Formatter]) -> Optional[Formatter]:
    # Playlist and saved-track items nest the track under item["track"]
    if formatter is None:
        return None
    return lambda item: formatter(unwrap_track(item))


class SpotifyClient:
    """
    Authenticated Spotify Web API client

    Args:
        client_id: Spotify application client id
        client_secret: Spotify application client secret
        auth_type: 'app' for client credentials, 'user' for the
                   authorization-code flow with refresh token caching
        scope: Scopes for the user flow; defaults to settings.spotify.scope
        settings: Settings instance; defaults to the global settings
        session: requests.Session for resource calls
        token_manager: Pre-built TokenManager, mainly for tests

    Authorization runs inside __init__. A failed authorization does not
    raise: the outcome is kept in `last_auth_result` and every later
    resource call raises NotAuthenticatedError.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_type: str = "app",
        scope: Optional[str] = None,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        token_manager: Optional[TokenManager] = None,
    ):
        if auth_type not in AUTH_TYPES:
            raise ConfigError(f"Invalid auth_type: {auth_type}", details={'allowed': list(AUTH_TYPES)})
        if not client_id or not client_secret:
            raise ConfigError("Spotify client_id and client_secret are required")

        self.settings = settings or get_settings()
        self.auth_type = auth_type
        self.scope = self.settings.spotify.scope if scope is None else scope
        self.base_url = self.settings.spotify.api_base_url

        self.session = session or requests.Session()
        self.session.headers['User-Agent'] = self.settings.network.user_agent

        self.auth = token_manager or self._build_token_manager(Credentials(client_id, client_secret))
        self.last_auth_result = self.authorize()

    def _build_token_manager(self, credentials: Credentials) -> TokenManager:
        network = self.settings.network
        return TokenManager(
            credentials,
            api_session=self.session,
            cache=TokenCache(self.settings.get_token_cache_path()),
            redirect_port=self.settings.spotify.redirect_port,
            show_dialog=self.settings.spotify.show_dialog,
            request_timeout=network.request_timeout,
            callback_timeout=network.callback_timeout,
            interactive_fallback=network.interactive_fallback,
            accounts_base_url=self.settings.spotify.accounts_base_url,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.auth.is_authenticated

    def authorize(self) -> AuthResult:
        """Run the configured authorization flow; never raises"""
        if self.auth_type == 'user':
            return self.auth.authorize_user(self.scope)
        return self.auth.authorize_app_only()

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    def _request(
        self,
        path_or_url: str,
        params: Optional[Dict[str, Any]] = None,
        operation: str = "",
    ) -> Dict[str, Any]:
        """
        Authenticated GET returning the decoded JSON body

        Args:
            path_or_url: Path relative to the API root, or an absolute
                         pagination link
            params: Query parameters
            operation: Aggregation name for error reporting

        Raises:
            NotAuthenticatedError: No bearer token is installed
            TokenExpiredError: The token was rejected and could not be renewed
            PageFetchError: Network failure, HTTP error status or a body
                            that is not JSON
        """
        if not self.auth.is_authenticated:
            raise NotAuthenticatedError(
                "Not authenticated with Spotify; authorization failed or was never run",
                details={'operation': operation},
            )

        if self.auth.token.is_expired():
            logger.debug("Access token about to expire, reauthorizing")
            self._reauthorize_or_raise("Access token expired and could not be renewed")

        url = resolve_url(self.base_url, path_or_url)
        response = self._send(url, params, operation)

        if response.status_code == 401:
            if not self.settings.network.reauthorize_on_401:
                raise TokenExpiredError("Access token was rejected (HTTP 401)", status_code=401)

            logger.info("Access token rejected, reauthorizing once")
            self._reauthorize_or_raise("Access token was rejected and reauthorization failed")
            response = self._send(url, params, operation)

            if response.status_code == 401:
                raise TokenExpiredError(
                    "Access token was rejected again after reauthorization", status_code=401
                )

        if response.status_code >= 400:
            raise PageFetchError(
                f"{operation or 'request'} failed with HTTP {response.status_code}",
                operation=operation,
                url=url,
                status_code=response.status_code,
                details={'response': response.text[:500] if response.text else ''},
            )

        try:
            return response.json()
        except ValueError as e:
            raise PageFetchError(
                f"{operation or 'request'} returned a body that is not JSON",
                operation=operation,
                url=url,
                status_code=response.status_code,
            ) from e

    def _send(self, url: str, params: Optional[Dict[str, Any]], operation: str) -> requests.Response:
        try:
            return self.session.get(url, params=params, timeout=self.settings.network.request_timeout)
        except requests.RequestException as e:
            raise PageFetchError(
                f"{operation or 'request'} failed: {e}",
                operation=operation,
                url=url,
                details={'original_error': str(e)},
            ) from e

    def _reauthorize_or_raise(self, message: str) -> None:
        result = self.auth.reauthorize()
        self.last_auth_result = result
        if not result.success:
            raise TokenExpiredError(message, details={'cause': str(result.error)})

    def _page_fetcher(
        self,
        path: str,
        page_size: int,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> PageFetch:
        """
        Build fetch_page(cursor, offset) for one endpoint

        The provider's `next` link is followed as-is. Without a cursor the
        first page is requested bare and later pages by explicit offset.
        """
        def fetch_page(cursor: Optional[str], offset: int) -> Page:
            if cursor:
                return Page.from_response(self._request(cursor, operation=operation))

            query = dict(params or {})
            if offset:
                query.update({'offset': offset, 'limit': page_size})
            return Page.from_response(self._request(path, params=query or None, operation=operation))

        return fetch_page

    def _policy(self, policy: PolicyArg) -> FailurePolicy:
        return FailurePolicy.parse(policy if policy is not None else self.settings.network.failure_policy)

    def _paginate(
        self,
        path: str,
        page_size: int,
        operation: str,
        formatter: Optional[Formatter],
        max_pages: Optional[int],
        policy: PolicyArg,
    ) -> FetchResult:
        fetcher = PaginatedFetcher(
            self._page_fetcher(path, page_size, operation),
            page_size,
            formatter=formatter,
            max_pages=max_pages,
            policy=self._policy(policy),
            operation=operation,
        )
        result = fetcher.fetch_all()
        logger.info(f"Retrieved {len(result)} items for {operation}")
        return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def search_track(self, title: str, artist: str, formatted: bool = True) -> Optional[Union[TrackRecord, Dict[str, Any]]]:
        """
        Search for a track and return the first match

        Args:
            title: Track title
            artist: Artist name
            formatted: Return a TrackRecord instead of the raw track object

        Returns:
            First matching track, or None when the search has no results
        """
        data = self._request(
            'search',
            params={'q': f"track:{title} artist:{artist}", 'type': 'track'},
            operation='search',
        )
        items = ((data or {}).get('tracks') or {}).get('items') or []
        if not items:
            logger.info(f"No track found for '{title}' by '{artist}'")
            return None

        return format_track(items[0]) if formatted else items[0]

    def get_playlist_tracks(
        self,
        playlist_id: str,
        formatter: Optional[Formatter] = format_track,
        max_pages: Optional[int] = None,
        policy: PolicyArg = None,
    ) -> FetchResult:
        """
        Every track of a playlist, in playlist order

        Items are unwrapped from their playlist entry before formatting; with
        formatter=None the raw playlist entries are returned.

        Args:
            playlist_id: Spotify playlist id
            formatter: Per-item mapping, format_track by default
            max_pages: Stop after this many pages of 100
            policy: Failure policy override for this call
        """
        return self._paginate(
            f"playlists/{playlist_id}/tracks",
            TRACK_PAGE_SIZE,
            'playlist tracks',
            _unwrapping(formatter),
            max_pages,
            policy,
        )

    def get_album_tracks(
        self,
        album_id: str,
        formatter: Optional[Formatter] = format_track,
        max_pages: Optional[int] = None,
        policy: PolicyArg = None,
    ) -> FetchResult:
        """Every track of an album; album items are track objects already"""
        return self._paginate(
            f"albums/{album_id}/tracks",
            TRACK_PAGE_SIZE,
            'album tracks',
            formatter,
            max_pages,
            policy,
        )

    def get_user_playlists(self, formatter: Optional[Formatter] = None, policy: PolicyArg = None) -> FetchResult:
        """Playlists of the current user (requires auth_type='user')"""
        return self._paginate('me/playlists', LIBRARY_PAGE_SIZE, 'user playlists', formatter, None, policy)

    def get_user_albums(self, formatter: Optional[Formatter] = None, policy: PolicyArg = None) -> FetchResult:
        """Saved albums of the current user (requires auth_type='user')"""
        return self._paginate('me/albums', LIBRARY_PAGE_SIZE, 'user albums', formatter, None, policy)

    def get_liked_tracks(self, formatter: Optional[Formatter] = format_track, policy: PolicyArg = None) -> FetchResult:
        """Liked songs of the current user (requires auth_type='user')"""
        return self._paginate(
            'me/tracks', LIBRARY_PAGE_SIZE, 'liked tracks', _unwrapping(formatter), None, policy
        )

    def _audio_features_chunker(self, policy: PolicyArg) -> BatchChunker:
        def fetch_batch(group: List[str]) -> Dict[str, Any]:
            return self._request(
                'audio-features', params={'ids': ','.join(group)}, operation='audio features'
            )

        return BatchChunker(
            fetch_batch,
            result_key='audio_features',
            batch_size=MAX_BATCH_SIZE,
            policy=self._policy(policy),
            operation='audio features',
        )

    def get_audio_features(self, track_ids: Sequence[str], policy: PolicyArg = None) -> FetchResult:
        """
        Audio features for a list of track ids, in input order

        Ids are sent in groups of at most 100. The provider answers null for
        ids it does not know, so items line up with track_ids only while
        result.complete is True; use get_audio_features_by_id() to merge.
        """
        return self._audio_features_chunker(policy).fetch_all(list(track_ids))

    def get_audio_features_by_id(self, track_ids: Sequence[str], policy: PolicyArg = None) -> Dict[str, Any]:
        """Audio features keyed by track id; unknown ids are absent"""
        return self._audio_features_chunker(policy).fetch_by_id(unique_ids(track_ids))

    def with_audio_features(
        self,
        tracks: Sequence[Union[TrackRecord, Dict[str, Any]]],
        policy: PolicyArg = None,
    ) -> List[Dict[str, Any]]:
        """
        Merge audio features into track records by id

        Placeholders and tracks without an id are passed through unchanged.

        Returns:
            List of dicts in the order of `tracks`
        """
        records = [t.to_dict() if isinstance(t, TrackRecord) else dict(t) for t in tracks]
        features = self.get_audio_features_by_id([r.get('id') for r in records], policy=policy)
        return merge_by_id(records, features)


def create_client(
    settings: Optional[Settings] = None,
    auth_type: Optional[str] = None,
    client_factory: Callable[..., SpotifyClient] = SpotifyClient,
) -> SpotifyClient:
    """
    Build a client from settings (credentials come from env/.env or YAML)

    Raises:
        ConfigError: When the settings do not validate
    """
    settings = settings or get_settings()
    errors = settings.validation_errors()
    if errors:
        raise ConfigError("Invalid configuration: " + "; ".join(errors), details={'errors': errors})

    return client_factory(
        settings.spotify.client_id,
        settings.spotify.client_secret,
        auth_type=auth_type or settings.spotify.auth_type,
        scope=settings.spotify.scope,
        settings=settings,
    )
