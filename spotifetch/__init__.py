"""
spotifetch: read-only client for the Spotify Web API

spotifetch authenticates against Spotify (app-only client credentials or a
user authorization with a cached refresh token), walks paginated
collections to completion and enriches tracks with batched audio features.

Package layout:

- config/: settings, OAuth2 token management, local redirect listener
- spotify/: client façade, pagination engine, track formatting
- utils/: logging and small helpers
- main.py: command line interface

Quick start:

    from spotifetch import SpotifyClient

    client = SpotifyClient(client_id, client_secret, auth_type="user")
    for track in client.get_liked_tracks():
        print(track.title, "-", ", ".join(track.artists))
"""

__version__ = "1.0.0"

from .exceptions import (
    SpotifetchError,
    ConfigError,
    AuthError,
    NotAuthenticatedError,
    TokenExpiredError,
    CallbackError,
    PageFetchError,
    FormatError,
)
from .spotify import SpotifyClient, FailurePolicy, FetchResult, TrackRecord, format_track

__all__ = [
    '__version__',
    'SpotifyClient',
    'FailurePolicy',
    'FetchResult',
    'TrackRecord',
    'format_track',
    'SpotifetchError',
    'ConfigError',
    'AuthError',
    'NotAuthenticatedError',
    'TokenExpiredError',
    'CallbackError',
    'PageFetchError',
    'FormatError',
]
