import logging
import subprocess
from typing import List, Optional, Sequence

from spotfloat.domain.entities import Device, NowPlaying, ResultRow, SearchMode, is_playable_uri, uri_id
from spotfloat.domain.errors import MalformedResponse, NotFound, Unauthorized, Unavailable
from spotfloat.domain.ports import MusicBackend

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "||"

# spt --format strings producing primary||secondary||uri
SEARCH_FORMATS = {
    SearchMode.TRACK: "%t||%a||%u",
    SearchMode.ARTIST: "%a||||%u",
    SearchMode.ALBUM: "%b||%a||%u",
    SearchMode.PLAYLIST: "%p||||%u",
    SearchMode.SHOW: "%h||||%u",
}
NOW_PLAYING_FORMAT = "%t||%a"


def parse_result_lines(output: str) -> List[ResultRow]:
    """Parse primary||secondary||uri lines, skipping blank ones."""
    rows = []
    for line in output.splitlines():
        if not line.strip():
            continue
        fields = line.split(FIELD_SEPARATOR)
        if len(fields) < 3:
            raise MalformedResponse(f"Expected 3 fields in spt output line: {line!r}")
        primary, secondary, uri = (field.strip() for field in fields[:3])
        rows.append(ResultRow(primary, secondary, uri, uri_id(uri)))
    return rows


def parse_device_lines(output: str) -> List[Device]:
    """Parse '<index> <name>' lines. spt addresses devices by name, so it doubles as id."""
    devices = []
    for line in output.splitlines():
        if not line.strip():
            continue
        _, _, name = line.strip().partition(" ")
        name = name.strip()
        if not name:
            raise MalformedResponse(f"Expected '<index> <name>' in spt output line: {line!r}")
        devices.append(Device(name=name, id=name, is_active=False))
    return devices


def parse_now_playing(output: str) -> Optional[NowPlaying]:
    line = next((line for line in output.splitlines() if line.strip()), "")
    if not line:
        return None
    title, _, artists = line.partition(FIELD_SEPARATOR)
    names = [name.strip() for name in artists.split(", ") if name.strip()]
    return NowPlaying(title=title.strip(), artist_names=names)


class SptCliBackend(MusicBackend):
    """Music backend shelling out to spotify-tui's `spt` command."""

    def __init__(self, executable: str = "spt", timeout: float = 10.0):
        self.executable = executable
        self.timeout = timeout

    def _run(self, args: Sequence[str]) -> str:
        command = [self.executable, *args]
        logger.debug(f"Running {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise Unavailable(f"{self.executable} is not installed or not on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise Unavailable(f"{self.executable} {args[0]} timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            logger.warning(f"{self.executable} exited with {e.returncode}: {stderr}")
            if "auth" in stderr.lower() or "token" in stderr.lower():
                raise Unauthorized(f"{self.executable} is not authorized: {stderr}") from e
            raise Unavailable(f"{self.executable} {args[0]} failed ({e.returncode}): {stderr}") from e
        return completed.stdout

    def search(self, mode: SearchMode, query: str, limit: int = 20) -> List[ResultRow]:
        if not query or not query.strip():
            return []
        output = self._run([
            "search", f"--{mode.value}s",
            "--limit", str(limit),
            "--format", SEARCH_FORMATS[mode],
            "--", query,
        ])
        return parse_result_lines(output)[:limit]

    def browse(self, mode: SearchMode, item_id: str, limit: int = 20) -> List[ResultRow]:
        raise Unavailable(f"{self.executable} cannot list the contents of {mode.label.lower()}")

    def play(self, uri: str, device_id: Optional[str] = None) -> None:
        if not is_playable_uri(uri):
            raise NotFound(f"Not a playable Spotify URI: {uri!r}")
        args = ["play", "--uri", uri]
        if device_id:
            args += ["--device", device_id]
        self._run(args)

    def skip(self) -> None:
        self._run(["playback", "--next"])

    def toggle_pause(self) -> None:
        self._run(["playback", "--toggle"])

    def previous(self) -> None:
        self._run(["playback", "--previous"])

    def like(self) -> None:
        self._run(["playback", "--like"])

    def list_devices(self) -> List[Device]:
        return parse_device_lines(self._run(["list", "--devices"]))

    def currently_playing(self) -> Optional[NowPlaying]:
        return parse_now_playing(self._run(["playback", "--status", "--format", NOW_PLAYING_FORMAT]))
