"""
Command line interface for spotifetch

Thin wrapper around SpotifyClient. Every data command prints JSON on stdout
so the output can be piped into other tools; progress and errors go to
stderr through the logging system.

Commands:
- Authentication: login, logout, status
- Collections: playlist, album, liked, my-playlists, my-albums
- Lookups: search, features
"""

import json
import sys
import click
import functools
from typing import Any, Iterable, Optional

from . import __version__
from .config.auth import REFRESH_TOKEN_KEY, TokenCache
from .config.settings import get_settings, reload_settings
from .exceptions import SpotifetchError
from .spotify.client import create_client, extract_spotify_id
from .spotify.models import TrackRecord
from .spotify.paginator import FetchResult
from .utils.helpers import mask_secret
from .utils.logger import configure_from_settings, get_logger


configure_from_settings()
logger = get_logger(__name__)


def handle_error(func):
    """
    Decorator turning library errors into a red message and exit status

    KeyboardInterrupt exits with 130, everything else with 1.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo(click.style("\n\nOperation cancelled by user", fg='yellow'), err=True)
            sys.exit(130)
        except (SpotifetchError, ValueError) as e:
            logger.error(f"Command failed: {e}")
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
    return wrapper


def _jsonable(item: Any) -> Any:
    if isinstance(item, TrackRecord):
        return item.to_dict()
    return item


def _emit(items: Iterable[Any]) -> None:
    click.echo(json.dumps([_jsonable(item) for item in items], indent=2, ensure_ascii=False))


def _emit_result(result: FetchResult, items: Optional[Iterable[Any]] = None) -> None:
    _emit(result.items if items is None else items)
    if not result.complete:
        click.echo(
            click.style(
                f"Warning: partial result, {len(result.errors)} request(s) failed",
                fg='yellow'
            ),
            err=True
        )


def _client(auth_type=None):
    client = create_client(auth_type=auth_type)
    client.last_auth_result.raise_for_error()
    return client


policy_option = click.option(
    '--best-effort', is_flag=True,
    help='Keep going when a page request fails and return a partial result'
)


def _policy(best_effort: bool):
    return 'best_effort' if best_effort else None


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output (debug log on stderr)')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
def cli(ctx, version, verbose, config):
    """
    spotifetch - fetch playlists, albums and liked songs from Spotify as JSON
    """
    ctx.ensure_object(dict)

    if version:
        click.echo(f"spotifetch v{__version__}")
        return

    if config:
        reload_settings(config)
        configure_from_settings()
        logger.debug(f"Loaded config: {config}")

    if verbose:
        get_settings().logging.level = 'DEBUG'
        configure_from_settings(verbose=True)
        ctx.obj['verbose'] = True

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Authentication

@cli.command()
@handle_error
def login():
    """Authorize spotifetch to read your library (opens a browser)"""
    settings = get_settings()
    click.echo(f"Redirect URI (must be registered in the Spotify dashboard): {settings.redirect_uri}")

    _client(auth_type='user')
    click.echo(click.style("Login successful, refresh token cached", fg='green'))


@cli.command()
@handle_error
def logout():
    """Forget the cached refresh token"""
    cache = TokenCache(get_settings().get_token_cache_path())
    if cache.clear():
        click.echo(click.style("Logged out, token cache removed", fg='green'))
    else:
        click.echo("No cached credentials found")


@cli.command()
@handle_error
def status():
    """Show configuration and authorization status"""
    settings = get_settings()
    cache = TokenCache(settings.get_token_cache_path())
    refresh_token = cache.read(REFRESH_TOKEN_KEY)

    click.echo(str(settings))
    click.echo(f"Client ID: {settings.spotify.client_id or '<not set>'}")
    click.echo(f"Client secret: {mask_secret(settings.spotify.client_secret)}")
    click.echo(f"Token cache: {cache.path}")
    click.echo(f"Refresh token: {mask_secret(refresh_token) if refresh_token else '<none>'}")

    errors = settings.validation_errors()
    if errors:
        click.echo(click.style("Configuration problems:", fg='red'))
        for error in errors:
            click.echo(f"  - {error}")
        sys.exit(1)


# Collections

@cli.command()
@click.argument('playlist_url')
@click.option('--max-pages', type=click.IntRange(min=1), help='Stop after this many pages of 100 tracks')
@click.option('--raw', is_flag=True, help='Print raw playlist items instead of track records')
@policy_option
@handle_error
def playlist(playlist_url, max_pages, raw, best_effort):
    """Print every track of a playlist"""
    playlist_id = extract_spotify_id(playlist_url, 'playlist')
    client = _client()
    kwargs = {'formatter': None} if raw else {}
    _emit_result(client.get_playlist_tracks(
        playlist_id, max_pages=max_pages, policy=_policy(best_effort), **kwargs
    ))


@cli.command()
@click.argument('album_url')
@click.option('--max-pages', type=click.IntRange(min=1), help='Stop after this many pages of 100 tracks')
@policy_option
@handle_error
def album(album_url, max_pages, best_effort):
    """Print every track of an album"""
    album_id = extract_spotify_id(album_url, 'album')
    client = _client()
    _emit_result(client.get_album_tracks(album_id, max_pages=max_pages, policy=_policy(best_effort)))


@cli.command()
@click.option('--features', is_flag=True, help='Merge audio features into each track')
@policy_option
@handle_error
def liked(features, best_effort):
    """Print your liked songs"""
    client = _client(auth_type='user')
    result = client.get_liked_tracks(policy=_policy(best_effort))
    if features:
        _emit_result(result, client.with_audio_features(result.items, policy=_policy(best_effort)))
    else:
        _emit_result(result)


@cli.command('my-playlists')
@policy_option
@handle_error
def my_playlists(best_effort):
    """Print your playlists (id, name, track count)"""
    client = _client(auth_type='user')
    _emit_result(client.get_user_playlists(formatter=_playlist_summary, policy=_policy(best_effort)))


@cli.command('my-albums')
@policy_option
@handle_error
def my_albums(best_effort):
    """Print your saved albums (id, name, artists)"""
    client = _client(auth_type='user')
    _emit_result(client.get_user_albums(formatter=_album_summary, policy=_policy(best_effort)))


# Lookups

@cli.command()
@click.argument('title')
@click.argument('artist')
@click.option('--raw', is_flag=True, help='Print the raw track object')
@handle_error
def search(title, artist, raw):
    """Find the first track matching TITLE by ARTIST"""
    client = _client()
    track = client.search_track(title, artist, formatted=not raw)
    if track is None:
        click.echo(click.style("No match found", fg='yellow'), err=True)
        sys.exit(1)
    click.echo(json.dumps(_jsonable(track), indent=2, ensure_ascii=False))


@cli.command()
@click.argument('track_ids', nargs=-1, required=True)
@policy_option
@handle_error
def features(track_ids, best_effort):
    """Print audio features for TRACK_IDS, keyed by id"""
    ids = [extract_spotify_id(t, 'track') for t in track_ids]
    client = _client()
    keyed = client.get_audio_features_by_id(ids, policy=_policy(best_effort))
    click.echo(json.dumps(keyed, indent=2, ensure_ascii=False))


def _playlist_summary(item):
    tracks = item.get('tracks') or {}
    return {
        'id': item.get('id'),
        'name': item.get('name'),
        'owner': (item.get('owner') or {}).get('display_name'),
        'total_tracks': tracks.get('total'),
    }


def _album_summary(item):
    saved = item.get('album') or {}
    return {
        'id': saved.get('id'),
        'name': saved.get('name'),
        'artists': [a.get('name') for a in saved.get('artists') or []],
        'release_date': saved.get('release_date'),
    }


if __name__ == '__main__':
    cli()
