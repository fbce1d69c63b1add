"""
Data models for Spotify API responses

This module defines the small set of structures the pagination engine and
the client façade pass around:

- Page: one response of a paginated endpoint ({items, total, next})
- TrackRecord: the canonical, flattened representation of a track
- format_track(): the null-safe mapping from a raw track object to a TrackRecord

Raw provider objects are plain dictionaries. Nothing in this module performs
I/O, and format_track() never raises for a mapping-shaped item, so it is safe
to run over every item of a long walk.
"""

from dataclasses import dataclass, field, fields
from typing import List, Optional, Dict, Any, Mapping


# Pixel height of the album artwork variant used for cover_art
COVER_ART_HEIGHT = 640


@dataclass
class Page:
    """
    A single page of a paginated Spotify endpoint

    Attributes:
        items: Raw items in provider order
        total: Total number of items across all pages; only authoritative on the
               first page of a walk
        next: Absolute URL of the following page, None on the last page
    """
    items: List[Any] = field(default_factory=list)
    total: int = 0
    next: Optional[str] = None

    @classmethod
    def from_response(cls, data: Optional[Mapping[str, Any]]) -> 'Page':
        """
        Build a Page from decoded JSON, tolerating missing or null keys

        Args:
            data: Decoded response body of a paging endpoint

        Returns:
            Page with empty defaults for anything the response omitted
        """
        if not isinstance(data, Mapping):
            return cls.empty()

        items = data.get('items') or []
        try:
            total = int(data.get('total') or 0)
        except (TypeError, ValueError):
            total = 0

        return cls(
            items=list(items) if isinstance(items, list) else [],
            total=max(total, 0),
            next=data.get('next') or None,
        )

    @classmethod
    def empty(cls) -> 'Page':
        """Zero items, zero total, no cursor"""
        return cls()


@dataclass
class TrackRecord:
    """
    Canonical flattened track

    The placeholder record ({title: "", artists: [""]}) stands for items the
    provider reports as no longer available; every other field is None on it.

    Attributes:
        title: Track name
        artists: Artist names in provider order
        album: Album name, None for simplified tracks (album track listings)
        disc_number: Disc position for multi-disc releases
        track_number: Position on the disc
        cover_art: URL of the 640px album image, if the provider has one
        year: Release year derived from the album release date
        id: Spotify track id, used to merge enrichment records by key
    """
    title: str
    artists: List[str]
    album: Optional[str] = None
    disc_number: Optional[int] = None
    track_number: Optional[int] = None
    cover_art: Optional[str] = None
    year: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def placeholder(cls) -> 'TrackRecord':
        """Record used for unavailable tracks"""
        return cls(title="", artists=[""])

    @property
    def is_placeholder(self) -> bool:
        return self.id is None and self.title == "" and self.artists == [""]

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to a plain dict, leaving out fields that are None

        Returns:
            Dictionary suitable for json.dumps; the placeholder serializes to
            exactly {"title": "", "artists": [""]}
        """
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                result[f.name] = list(value) if isinstance(value, list) else value
        return result


def _artist_names(artists: Any) -> List[str]:
    if not isinstance(artists, list):
        return []
    return [a.get('name') for a in artists if isinstance(a, Mapping) and a.get('name') is not None]


def _cover_art(album: Mapping[str, Any]) -> Optional[str]:
    images = album.get('images')
    if not isinstance(images, list):
        return None
    for image in images:
        if isinstance(image, Mapping) and image.get('height') == COVER_ART_HEIGHT:
            return image.get('url')
    return None


def _release_year(album: Mapping[str, Any]) -> Optional[str]:
    release_date = album.get('release_date')
    if not isinstance(release_date, str) or not release_date:
        return None
    return release_date.split('-')[0]


def format_track(item: Any) -> TrackRecord:
    """
    Map a raw track object to a TrackRecord

    Accepts full track objects (playlists, liked songs, search) and simplified
    ones (album track listings, which carry no album object). Any item that is
    not a mapping, or whose id is null (the provider's marker for a track that
    is no longer available or a local file), yields the placeholder record.

    Args:
        item: Raw track object from the API

    Returns:
        TrackRecord; this function does not raise
    """
    if not isinstance(item, Mapping) or item.get('id') is None:
        return TrackRecord.placeholder()

    album = item.get('album')
    if not isinstance(album, Mapping):
        album = None

    return TrackRecord(
        title=item.get('name'),
        artists=_artist_names(item.get('artists')),
        album=album.get('name') if album else None,
        disc_number=item.get('disc_number'),
        track_number=item.get('track_number'),
        cover_art=_cover_art(album) if album else None,
        year=_release_year(album) if album else None,
        id=item.get('id'),
    )


def unwrap_track(item: Any) -> Any:
    """
    Return the track object nested in a playlist or saved-track item

    Playlist items and saved-track items look like {added_at, track}; the
    track may be null when it was removed from the catalog.
    """
    if isinstance(item, Mapping) and 'track' in item:
        return item.get('track')
    return item
