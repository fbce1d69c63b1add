# tests/test_cli.py
"""Test the command line interface"""

import json

import pytest
from click.testing import CliRunner
from unittest.mock import Mock

from spotifetch import __version__
from spotifetch import main
from spotifetch.config.auth import AuthResult, TokenCache
from spotifetch.exceptions import AuthError, PageFetchError
from spotifetch.spotify.models import TrackRecord
from spotifetch.spotify.paginator import FetchResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_client(monkeypatch, test_settings):
    """Replace client construction with an authenticated double"""
    client = Mock()
    client.last_auth_result = AuthResult(success=True, grant_type='client_credentials')
    monkeypatch.setattr(main, 'create_client', Mock(return_value=client))
    monkeypatch.setattr(main, 'get_settings', lambda: test_settings)
    return client


class TestCli:
    """Test CLI commands"""

    def test_version(self, runner):
        result = runner.invoke(main.cli, ['--version'])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_playlist_prints_json(self, runner, fake_client):
        fake_client.get_playlist_tracks.return_value = FetchResult(
            items=[TrackRecord(title='Song', artists=['Band'], id='t1'), TrackRecord.placeholder()],
            requests=1,
        )

        result = runner.invoke(main.cli, [
            'playlist', 'https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=x', '--max-pages', '2'
        ])

        assert result.exit_code == 0
        assert json.loads(result.output) == [
            {'title': 'Song', 'artists': ['Band'], 'id': 't1'},
            {'title': '', 'artists': ['']},
        ]
        args, kwargs = fake_client.get_playlist_tracks.call_args
        assert args == ('37i9dQZF1DXcBWIGoYBM5M',)
        assert kwargs['max_pages'] == 2
        assert kwargs['policy'] is None

    def test_best_effort_flag(self, runner, fake_client):
        fake_client.get_album_tracks.return_value = FetchResult(items=[], requests=1)

        result = runner.invoke(main.cli, ['album', 'spotify:album:4aawyAB9vmqN3uQ7FjRGTy', '--best-effort'])

        assert result.exit_code == 0
        assert fake_client.get_album_tracks.call_args.kwargs['policy'] == 'best_effort'

    def test_invalid_url(self, runner, fake_client):
        result = runner.invoke(main.cli, ['playlist', 'https://example.com/x'])
        assert result.exit_code == 1
        assert 'Invalid Spotify playlist' in result.output

    def test_failed_authorization_exits(self, runner, fake_client):
        fake_client.last_auth_result = AuthResult(success=False, error=AuthError('invalid_client'))
        result = runner.invoke(main.cli, ['liked'])
        assert result.exit_code == 1
        assert 'invalid_client' in result.output

    def test_page_error_exits(self, runner, fake_client):
        fake_client.get_album_tracks.side_effect = PageFetchError('album tracks failed with HTTP 500')
        result = runner.invoke(main.cli, ['album', '4aawyAB9vmqN3uQ7FjRGTy'])
        assert result.exit_code == 1

    def test_features(self, runner, fake_client):
        fake_client.get_audio_features_by_id.return_value = {'t1': {'id': 't1', 'tempo': 120.0}}

        result = runner.invoke(main.cli, ['features', 'spotify:track:6rqhFgbbKwnb9MLmUQDhG6'])

        assert result.exit_code == 0
        assert json.loads(result.output) == {'t1': {'id': 't1', 'tempo': 120.0}}
        assert fake_client.get_audio_features_by_id.call_args.args[0] == ['6rqhFgbbKwnb9MLmUQDhG6']

    def test_search_no_match(self, runner, fake_client):
        fake_client.search_track.return_value = None
        result = runner.invoke(main.cli, ['search', 'Nothing', 'Nobody'])
        assert result.exit_code == 1

    def test_my_playlists_summary(self, runner, fake_client):
        def get_user_playlists(formatter=None, policy=None):
            raw = {'id': 'p1', 'name': 'Mix', 'owner': {'display_name': 'me'}, 'tracks': {'total': 7}}
            return FetchResult(items=[formatter(raw)])
        fake_client.get_user_playlists.side_effect = get_user_playlists

        result = runner.invoke(main.cli, ['my-playlists'])

        assert result.exit_code == 0
        assert json.loads(result.output) == [{'id': 'p1', 'name': 'Mix', 'owner': 'me', 'total_tracks': 7}]

    def test_logout(self, runner, fake_client, cache_path):
        TokenCache(cache_path).write('refresh_token', 'r1')

        result = runner.invoke(main.cli, ['logout'])

        assert result.exit_code == 0
        assert not cache_path.exists()

    def test_status_masks_secret(self, runner, fake_client, cache_path):
        TokenCache(cache_path).write('refresh_token', 'refresh-token-value')

        result = runner.invoke(main.cli, ['status'])

        assert result.exit_code == 0
        assert 'test-client-secret' not in result.output
        assert 'refresh-token-value' not in result.output
        assert 'test-client-id' in result.output

    def test_max_pages_must_be_positive(self, runner, fake_client):
        for value in ('0', '-1'):
            result = runner.invoke(main.cli, ['playlist', '37i9dQZF1DXcBWIGoYBM5M', '--max-pages', value])
            assert result.exit_code == 2
        fake_client.get_playlist_tracks.assert_not_called()

    def test_liked_features_reports_partial_walk(self, runner, fake_client):
        """Test a partial liked-songs walk is flagged even when features are merged"""
        fake_client.get_liked_tracks.return_value = FetchResult(
            items=[TrackRecord(title='Song', artists=['Band'], id='t1')],
            errors=[PageFetchError('liked tracks failed with HTTP 500')],
            requests=2,
        )
        fake_client.with_audio_features.return_value = [
            {'title': 'Song', 'artists': ['Band'], 'id': 't1', 'tempo': 120.0}
        ]

        result = runner.invoke(main.cli, ['liked', '--features', '--best-effort'])

        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]['tempo'] == 120.0
        assert 'partial result, 1 request(s) failed' in result.output

    def test_verbose_routes_log_to_console(self, runner, fake_client, monkeypatch):
        configure = Mock()
        monkeypatch.setattr(main, 'configure_from_settings', configure)

        result = runner.invoke(main.cli, ['--verbose', 'status'])

        assert result.exit_code == 0
        configure.assert_called_once_with(verbose=True)
