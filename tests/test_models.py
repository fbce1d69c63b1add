# tests/test_models.py
"""Test response models and track formatting"""

from spotifetch.spotify.models import Page, TrackRecord, format_track, unwrap_track

from conftest import raw_track


class TestFormatTrack:
    """Test mapping raw track objects to TrackRecord"""

    def test_full_track(self):
        """Test every field of a full track object"""
        record = format_track(raw_track('t1', name='Hello'))

        assert record.title == 'Hello'
        assert record.artists == ['Artist t1']
        assert record.album == 'Album t1'
        assert record.disc_number == 1
        assert record.track_number == 1
        assert record.cover_art == 'https://i.scdn.co/image/t1-640'
        assert record.year == '2019'
        assert record.id == 't1'

    def test_multiple_artists_keep_order(self):
        """Test artist names are kept in provider order"""
        track = raw_track('t1')
        track['artists'] = [{'name': 'B'}, {'name': 'A'}, {'name': 'C'}]
        assert format_track(track).artists == ['B', 'A', 'C']

    def test_unavailable_track_is_placeholder(self):
        """Test a null id yields the placeholder whatever else is present"""
        record = format_track({'id': None, 'name': 'Gone', 'artists': 'not-a-list', 'album': 42})
        assert record.is_placeholder
        assert record.to_dict() == {'title': '', 'artists': ['']}

    def test_malformed_items_never_raise(self):
        """Test non-mapping and missing-id items yield the placeholder"""
        for item in (None, 'spotify:track:x', 17, [], {}, {'name': 'no id'}):
            assert format_track(item).to_dict() == {'title': '', 'artists': ['']}

    def test_simplified_track_without_album(self):
        """Test album track listings, which carry no album object"""
        record = format_track(raw_track('t2', album=False))
        assert record.album is None
        assert record.cover_art is None
        assert record.year is None
        assert 'album' not in record.to_dict()

    def test_missing_640_image(self):
        """Test cover_art is None when no 640px variant exists"""
        track = raw_track('t3')
        track['album']['images'] = [{'height': 300, 'url': 'small'}]
        assert format_track(track).cover_art is None

    def test_null_album_fields(self):
        """Test null images and release date on the album"""
        track = raw_track('t4')
        track['album'] = {'name': 'Odd', 'images': None, 'release_date': None}
        record = format_track(track)
        assert record.album == 'Odd'
        assert record.cover_art is None
        assert record.year is None

    def test_year_only_release_date(self):
        """Test release dates with year precision"""
        track = raw_track('t5')
        track['album']['release_date'] = '1979'
        assert format_track(track).year == '1979'


class TestTrackRecord:
    """Test TrackRecord serialization"""

    def test_to_dict_omits_none(self):
        """Test None fields are left out of the dict"""
        record = TrackRecord(title='A', artists=['B'], id='x')
        assert record.to_dict() == {'title': 'A', 'artists': ['B'], 'id': 'x'}

    def test_placeholder_is_recognized(self):
        """Test placeholder detection"""
        assert TrackRecord.placeholder().is_placeholder
        assert not TrackRecord(title='', artists=[''], id='x').is_placeholder


class TestPage:
    """Test building pages from decoded responses"""

    def test_from_response(self):
        """Test a regular paging object"""
        page = Page.from_response({'items': [1, 2], 'total': 10, 'next': 'https://next'})
        assert page.items == [1, 2]
        assert page.total == 10
        assert page.next == 'https://next'

    def test_tolerates_missing_keys(self):
        """Test defaults for missing, null or wrongly typed keys"""
        assert Page.from_response({}) == Page.empty()
        assert Page.from_response(None) == Page.empty()
        page = Page.from_response({'items': None, 'total': 'many', 'next': ''})
        assert page.items == []
        assert page.total == 0
        assert page.next is None


class TestUnwrapTrack:
    """Test unwrapping playlist and saved-track items"""

    def test_unwraps_nested_track(self):
        track = raw_track('t1')
        assert unwrap_track({'added_at': '2020-01-01', 'track': track}) is track

    def test_removed_track_unwraps_to_none(self):
        assert unwrap_track({'added_at': '2020-01-01', 'track': None}) is None
        assert format_track(unwrap_track({'track': None})).is_placeholder

    def test_plain_track_passes_through(self):
        track = raw_track('t1')
        assert unwrap_track(track) is track
