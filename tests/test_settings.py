# tests/test_settings.py
"""Test configuration loading and validation"""

import yaml

from spotifetch.config.settings import Settings


def write_config(path, data):
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return str(path)


class TestSettings:
    """Test YAML and environment configuration"""

    def test_defaults(self, test_settings):
        assert test_settings.spotify.redirect_port == 8008
        assert test_settings.spotify.api_base_url == 'https://api.spotify.com/v1/'
        assert test_settings.network.failure_policy == 'fail_fast'
        assert test_settings.redirect_uri == 'http://localhost:8008/callback'

    def test_yaml_sections(self, tmp_path, monkeypatch):
        """Test known keys are applied and unknown ones ignored"""
        monkeypatch.delenv('SPOTIFY_CLIENT_ID', raising=False)
        config = write_config(tmp_path / 'config.yaml', {
            'spotify': {'redirect_port': 9000, 'auth_type': 'user', 'bogus': 1},
            'network': {'failure_policy': 'best_effort', 'request_timeout': 5},
            'security': {
                'token_cache_path': str(tmp_path / 'c.json'),
                'config_directory': str(tmp_path / 'cfg'),
            },
            'unknown_section': {'x': 1},
        })

        settings = Settings(config)

        assert settings.spotify.redirect_port == 9000
        assert settings.spotify.auth_type == 'user'
        assert not hasattr(settings.spotify, 'bogus')
        assert settings.network.failure_policy == 'best_effort'
        assert settings.network.request_timeout == 5
        assert settings.get_token_cache_path() == tmp_path / 'c.json'
        assert (tmp_path / 'cfg').is_dir()

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Test environment variables win over the YAML file"""
        config = write_config(tmp_path / 'config.yaml', {
            'spotify': {'client_id': 'from-yaml'},
            'security': {'config_directory': str(tmp_path / 'cfg')},
        })
        monkeypatch.setenv('SPOTIFY_CLIENT_ID', 'from-env')
        monkeypatch.setenv('SPOTIFY_CLIENT_SECRET', 'env-secret')
        monkeypatch.setenv('SPOTIFETCH_CACHE_PATH', str(tmp_path / 'env-cache.json'))

        settings = Settings(config)

        assert settings.spotify.client_id == 'from-env'
        assert settings.spotify.client_secret == 'env-secret'
        assert settings.get_token_cache_path() == tmp_path / 'env-cache.json'

    def test_validation(self, test_settings):
        assert test_settings.validation_errors() == []

        test_settings.spotify.client_secret = ''
        test_settings.spotify.auth_type = 'robot'
        test_settings.network.failure_policy = 'sometimes'
        errors = test_settings.validation_errors()

        assert len(errors) == 3

    def test_str_hides_secret(self, test_settings):
        assert 'test-client-secret' not in str(test_settings)
