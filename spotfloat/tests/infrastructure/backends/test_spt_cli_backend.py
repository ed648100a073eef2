import subprocess
from unittest.mock import Mock, patch

import pytest

from spotfloat.domain.entities import Device, NowPlaying, ResultRow, SearchMode
from spotfloat.domain.errors import MalformedResponse, NotFound, Unauthorized, Unavailable
from spotfloat.infrastructure.backends.spt_cli import (
    SptCliBackend,
    parse_device_lines,
    parse_now_playing,
    parse_result_lines,
)


def test_parse_result_lines_drops_trailing_blank_line():
    output = (
        "Around the World||Daft Punk||spotify:track:1pKYYY0dkg23sQQXi0Q5zN\n"
        "One More Time||Daft Punk||spotify:track:0DiWol3AO6WpXZgp0goxAV\n"
        "\n"
    )

    rows = parse_result_lines(output)

    assert rows == [
        ResultRow("Around the World", "Daft Punk", "spotify:track:1pKYYY0dkg23sQQXi0Q5zN", "1pKYYY0dkg23sQQXi0Q5zN"),
        ResultRow("One More Time", "Daft Punk", "spotify:track:0DiWol3AO6WpXZgp0goxAV", "0DiWol3AO6WpXZgp0goxAV"),
    ]


def test_parse_result_lines_allows_empty_secondary():
    rows = parse_result_lines("Daft Punk||||spotify:artist:4tZwfgrHOc3mvqYlEYSvVi")

    assert rows[0].secondary_text == ""
    assert rows[0].id == "4tZwfgrHOc3mvqYlEYSvVi"


def test_parse_result_lines_rejects_short_lines():
    with pytest.raises(MalformedResponse):
        parse_result_lines("just a title")


def test_parse_device_lines():
    assert parse_device_lines("0 Kitchen\n1 Office Speaker\n") == [
        Device("Kitchen", "Kitchen"),
        Device("Office Speaker", "Office Speaker"),
    ]
    with pytest.raises(MalformedResponse):
        parse_device_lines("0\n")


def test_parse_now_playing():
    assert parse_now_playing("Get Lucky||Daft Punk, Pharrell Williams\n") == \
        NowPlaying("Get Lucky", ["Daft Punk", "Pharrell Williams"])
    assert parse_now_playing("\n") is None


class TestSptCliBackend:
    """Tests for the spt subprocess backend."""

    def setup_method(self):
        """Set up test fixtures."""
        self.backend = SptCliBackend("spt", timeout=2)

    def _completed(self, stdout=""):
        return Mock(stdout=stdout, returncode=0)

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_search_builds_command(self, mock_run):
        mock_run.return_value = self._completed("Discovery||Daft Punk||spotify:album:2noRn2Aes5aoNVsU6iWThc\n")

        rows = self.backend.search(SearchMode.ALBUM, "discovery", 10)

        mock_run.assert_called_once_with(
            ["spt", "search", "--albums", "--limit", "10", "--format", "%b||%a||%u", "--", "discovery"],
            capture_output=True, text=True, timeout=2, check=True,
        )
        assert rows[0].primary_text == "Discovery"

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_search_query_starting_with_hyphen_is_not_an_option(self, mock_run):
        mock_run.return_value = self._completed("")

        self.backend.search(SearchMode.ARTIST, "-M-", 5)

        argv = mock_run.call_args.args[0]
        assert argv[-2:] == ["--", "-M-"]

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_empty_query_does_not_spawn(self, mock_run):
        assert self.backend.search(SearchMode.TRACK, "", 10) == []
        mock_run.assert_not_called()

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_play_with_and_without_device(self, mock_run):
        mock_run.return_value = self._completed()

        self.backend.play("spotify:track:1pKYYY0dkg23sQQXi0Q5zN")
        self.backend.play("spotify:track:1pKYYY0dkg23sQQXi0Q5zN", device_id="Kitchen")

        assert mock_run.call_args_list[0].args[0] == ["spt", "play", "--uri", "spotify:track:1pKYYY0dkg23sQQXi0Q5zN"]
        assert mock_run.call_args_list[1].args[0][-2:] == ["--device", "Kitchen"]

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_play_rejects_invalid_uri(self, mock_run):
        with pytest.raises(NotFound):
            self.backend.play("not-a-uri")
        mock_run.assert_not_called()

    @pytest.mark.parametrize("method,flag", [
        ("skip", "--next"),
        ("toggle_pause", "--toggle"),
        ("previous", "--previous"),
        ("like", "--like"),
    ])
    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_playback_flags(self, mock_run, method, flag):
        mock_run.return_value = self._completed()

        getattr(self.backend, method)()

        assert mock_run.call_args.args[0] == ["spt", "playback", flag]

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_devices_and_now_playing(self, mock_run):
        mock_run.side_effect = [self._completed("0 Kitchen\n"), self._completed("Intro||M83\n")]

        assert self.backend.list_devices() == [Device("Kitchen", "Kitchen")]
        assert self.backend.currently_playing() == NowPlaying("Intro", ["M83"])

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_missing_executable(self, mock_run):
        mock_run.side_effect = FileNotFoundError("spt")

        with pytest.raises(Unavailable):
            self.backend.skip()

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["spt"], 2)

        with pytest.raises(Unavailable):
            self.backend.list_devices()

    @patch('spotfloat.infrastructure.backends.spt_cli.subprocess.run')
    def test_failed_exit_codes(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["spt"], stderr="Invalid token, please re-authenticate")
        with pytest.raises(Unauthorized):
            self.backend.skip()

        mock_run.side_effect = subprocess.CalledProcessError(1, ["spt"], stderr="no active device")
        with pytest.raises(Unavailable):
            self.backend.skip()

    def test_browse_is_unsupported(self):
        with pytest.raises(Unavailable):
            self.backend.browse(SearchMode.ARTIST, "4tZwfgrHOc3mvqYlEYSvVi", 20)
