"""Test configuration and fixtures"""

import json
import socket

import pytest
import requests
from unittest.mock import Mock

from spotifetch.config.auth import Credentials, TokenCache, TokenManager
from spotifetch.config.callback import CallbackResult
from spotifetch.config.settings import Settings


def make_response(status_code=200, json_data=None, text=None, url="https://api.spotify.com/v1/test"):
    """Build a real requests.Response without touching the network"""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    if json_data is not None:
        response._content = json.dumps(json_data).encode('utf-8')
        response.headers['Content-Type'] = 'application/json'
    else:
        response._content = (text or '').encode('utf-8')
    return response


def token_payload(access_token='access-1', refresh_token=None, expires_in=3600):
    payload = {'access_token': access_token, 'token_type': 'Bearer', 'expires_in': expires_in}
    if refresh_token:
        payload['refresh_token'] = refresh_token
    return payload


def raw_track(track_id, name=None, album=True):
    """Full track object as returned inside playlist and liked-song items"""
    track = {
        'id': track_id,
        'name': name or f'Song {track_id}',
        'artists': [{'id': f'artist-{track_id}', 'name': f'Artist {track_id}'}],
        'disc_number': 1,
        'track_number': 1,
    }
    if album:
        track['album'] = {
            'name': f'Album {track_id}',
            'release_date': '2019-05-17',
            'images': [
                {'height': 640, 'width': 640, 'url': f'https://i.scdn.co/image/{track_id}-640'},
                {'height': 300, 'width': 300, 'url': f'https://i.scdn.co/image/{track_id}-300'},
            ],
        }
    return track


@pytest.fixture
def cache_path(tmp_path):
    """Token cache location inside the test's temporary directory"""
    return tmp_path / 'spotifetch' / 'cache.json'


@pytest.fixture
def test_settings(tmp_path, cache_path, monkeypatch):
    """Settings isolated from the user's environment and config files"""
    for var in ('SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_SCOPE',
                'SPOTIFETCH_CACHE_PATH', 'SPOTIFETCH_LOG_LEVEL'):
        monkeypatch.delenv(var, raising=False)

    settings = Settings(config_path=str(tmp_path / 'missing.yaml'))
    settings.spotify.client_id = 'test-client-id'
    settings.spotify.client_secret = 'test-client-secret'
    settings.security.token_cache_path = str(cache_path)
    settings.security.config_directory = str(tmp_path / 'spotifetch')
    settings.network.failure_policy = 'fail_fast'
    settings.network.reauthorize_on_401 = True
    settings.network.interactive_fallback = True
    return settings


@pytest.fixture
def token_http():
    """Session double for the token endpoint; answers with a fresh token"""
    http = Mock()
    http.post.return_value = make_response(200, token_payload())
    return http


@pytest.fixture
def fake_listener():
    """Callback listener double that captures code 'auth-code'"""
    listener = Mock()
    listener.redirect_uri = 'http://localhost:8008/callback'
    listener.capture.return_value = CallbackResult(code='auth-code')
    return listener


@pytest.fixture
def token_manager(token_http, cache_path, fake_listener):
    """TokenManager wired to doubles, installing into a real requests.Session"""
    return TokenManager(
        Credentials('test-client-id', 'test-client-secret'),
        api_session=requests.Session(),
        cache=TokenCache(cache_path),
        http=token_http,
        listener_factory=Mock(return_value=fake_listener),
    )


@pytest.fixture
def free_port():
    """A TCP port that was free a moment ago"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]
