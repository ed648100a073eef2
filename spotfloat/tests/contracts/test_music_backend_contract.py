"""Every backend variant honours the same MusicBackend contract."""

from unittest.mock import Mock, patch

import pytest
import requests

from spotfloat.domain.entities import Device, ResultRow, SearchMode
from spotfloat.domain.errors import BackendError, Unavailable
from spotfloat.domain.ports import MusicBackend
from spotfloat.infrastructure.backends.relay import RelayBackend
from spotfloat.infrastructure.backends.spotify_api import SpotifyApiBackend
from spotfloat.infrastructure.backends.spt_cli import SptCliBackend

CONTRACT_METHODS = ['search', 'browse', 'play', 'skip', 'toggle_pause', 'previous', 'like',
                    'list_devices', 'currently_playing']


def _api_backend():
    client = Mock()
    client.search.return_value = {'tracks': {'items': [
        {'name': 'Around the World', 'id': 't1', 'uri': 'spotify:track:t1', 'artists': [{'name': 'Daft Punk'}]},
    ]}}
    client.devices.return_value = {'devices': [{'name': 'Kitchen', 'id': 'k1', 'is_active': True}]}
    client.current_user_playing_track.return_value = None
    return SpotifyApiBackend("tok", client=client)


def _relay_backend():
    session = Mock()
    session.headers = {}

    def get(url, params=None, timeout=None):
        response = Mock(status_code=200)
        if '/search/' in url:
            response.json.return_value = {'results': [
                {'primary': 'Around the World', 'secondary': 'Daft Punk', 'uri': 'spotify:track:t1', 'id': 't1'}]}
        elif url.endswith('/devices'):
            response.json.return_value = {'devices': [{'name': 'Kitchen', 'id': 'k1', 'is_active': True}]}
        elif url.endswith('/currently-playing'):
            response.json.return_value = {'playing': False}
        else:
            response.json.return_value = {'status': 'ok'}
        return response

    session.get.side_effect = get
    return RelayBackend("http://relay:3000", "tok", session=session)


BACKEND_BUILDERS = [_api_backend, _relay_backend]


def test_all_variants_implement_the_port():
    for backend_class in (SpotifyApiBackend, SptCliBackend, RelayBackend):
        assert MusicBackend in backend_class.__mro__
        for name in CONTRACT_METHODS:
            assert callable(getattr(backend_class, name))


@pytest.mark.parametrize("build", BACKEND_BUILDERS)
def test_search_returns_result_rows(build):
    backend = build()

    rows = backend.search(SearchMode.TRACK, "around the world", 20)

    assert rows and all(isinstance(row, ResultRow) for row in rows)
    assert rows[0].uri == 'spotify:track:t1'
    assert backend.search(SearchMode.TRACK, "", 20) == []


@pytest.mark.parametrize("build", BACKEND_BUILDERS)
def test_devices_and_playback_state(build):
    backend = build()

    devices = backend.list_devices()

    assert devices == [Device("Kitchen", "k1", True)]
    assert backend.currently_playing() is None


@pytest.mark.parametrize("build", BACKEND_BUILDERS)
def test_play_accepts_optional_device(build):
    backend = build()

    assert backend.play('spotify:track:t1') is None
    assert backend.play('spotify:track:t1', device_id='k1') is None


@patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
def test_subprocess_variant_contract(mock_run):
    backend = SptCliBackend()
    mock_run.return_value = Mock(stdout="Around the World||Daft Punk||spotify:track:t1\n\n")

    rows = backend.search(SearchMode.TRACK, "around the world", 20)
    assert rows == [ResultRow("Around the World", "Daft Punk", "spotify:track:t1", "t1")]

    mock_run.return_value = Mock(stdout="")
    assert backend.currently_playing() is None
    assert backend.list_devices() == []


def test_failures_are_backend_errors():
    client = Mock()
    client.devices.side_effect = requests.exceptions.Timeout("slow")
    backend = SpotifyApiBackend("tok", client=client)

    with pytest.raises(BackendError):
        backend.list_devices()
    with pytest.raises(Unavailable):
        backend.list_devices()
