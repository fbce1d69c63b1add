# tests/test_utils.py
"""Test utilities and helpers"""

import logging

import pytest

from spotifetch.utils.helpers import (
    ceil_div,
    chunked,
    mask_secret,
    resolve_url,
    unique_ids,
)
from spotifetch.utils.logger import ConsoleMessageFilter, get_logger, parse_size


class TestHelpers:
    """Test helper functions"""

    def test_chunked(self):
        """Test chunking preserves count and order"""
        items = list(range(250))
        groups = list(chunked(items, 100))
        assert [len(g) for g in groups] == [100, 100, 50]
        assert [i for g in groups for i in g] == items
        assert list(chunked([], 100)) == []

    def test_chunked_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1, 2], 0))

    def test_ceil_div(self):
        """Test page count arithmetic"""
        assert ceil_div(250, 100) == 3
        assert ceil_div(200, 100) == 2
        assert ceil_div(1, 20) == 1
        assert ceil_div(0, 20) == 0
        assert ceil_div(-5, 20) == 0
        assert ceil_div(None, 20) == 0

    def test_mask_secret(self):
        """Test credentials are masked except the last characters"""
        assert mask_secret("abcdef123456") == "********3456"
        assert mask_secret("abc") == "***"
        assert mask_secret("") == "<empty>"
        assert mask_secret(None) == "<empty>"

    def test_resolve_url(self):
        """Test API path resolution keeps the version prefix"""
        base = "https://api.spotify.com/v1/"
        assert resolve_url(base, "playlists/x/tracks") == "https://api.spotify.com/v1/playlists/x/tracks"
        assert resolve_url(base, "/me/tracks") == "https://api.spotify.com/v1/me/tracks"
        assert resolve_url("https://api.spotify.com/v1", "search") == "https://api.spotify.com/v1/search"
        nxt = "https://api.spotify.com/v1/me/tracks?offset=20&limit=20"
        assert resolve_url(base, nxt) == nxt

    def test_unique_ids(self):
        assert unique_ids(['a', None, 'b', 'a', '', 'c']) == ['a', 'b', 'c']


class TestLogger:
    """Test logging helpers"""

    def test_parse_size(self):
        assert parse_size("10MB") == 10 * 1024 ** 2
        assert parse_size("500KB") == 500 * 1024
        assert parse_size("1.5 GB") == int(1.5 * 1024 ** 3)
        with pytest.raises(ValueError):
            parse_size("lots")

    def test_console_filter(self):
        """Test only warnings and marked messages reach the console"""
        console_filter = ConsoleMessageFilter()

        def record(level, name='spotifetch.test', **extra):
            rec = logging.LogRecord(name, level, __file__, 1, "msg", None, None)
            for key, value in extra.items():
                setattr(rec, key, value)
            return rec

        assert console_filter.filter(record(logging.WARNING))
        assert console_filter.filter(record(logging.INFO, console_output=True))
        assert console_filter.filter(record(logging.INFO, name='spotifetch.console'))
        assert not console_filter.filter(record(logging.INFO))
        assert not console_filter.filter(record(logging.DEBUG))

        verbose_filter = ConsoleMessageFilter(verbose=True)
        assert verbose_filter.filter(record(logging.DEBUG))
        assert verbose_filter.filter(record(logging.INFO))

    def test_console_info(self, caplog):
        caplog.set_level(logging.INFO)
        logger = get_logger('spotifetch.test_console')
        logger.console_info("visible to user")

        assert caplog.records[-1].console_output is True
        assert caplog.records[-1].getMessage() == "visible to user"
