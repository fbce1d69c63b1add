"""
Spotify Web API package

- client.py: SpotifyClient façade, request pipeline and collection operations
- paginator.py: page walking, batch enrichment and the failure policy
- models.py: Page, TrackRecord and the track formatter

Usage:

    from spotifetch.spotify import SpotifyClient

    client = SpotifyClient(client_id, client_secret)
    tracks = client.get_album_tracks("4aawyAB9vmqN3uQ7FjRGTy").items
"""

from .client import (
    SpotifyClient,
    create_client,
    extract_spotify_id,
)
from .models import Page, TrackRecord, format_track, unwrap_track
from .paginator import (
    BatchChunker,
    FailurePolicy,
    FetchResult,
    PaginatedFetcher,
    merge_by_id,
    walk_pages,
)

__all__ = [
    # Client
    'SpotifyClient',
    'create_client',
    'extract_spotify_id',

    # Models
    'Page',
    'TrackRecord',
    'format_track',
    'unwrap_track',

    # Pagination and enrichment
    'BatchChunker',
    'FailurePolicy',
    'FetchResult',
    'PaginatedFetcher',
    'merge_by_id',
    'walk_pages',
]
