from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import UnknownChoice
from .formatting import join_artists


class SearchMode(Enum):
    """Entity type searched for; values match the Spotify search `type` names."""

    TRACK = "track"
    ARTIST = "artist"
    ALBUM = "album"
    PLAYLIST = "playlist"
    SHOW = "show"

    @property
    def label(self) -> str:
        """Plural, capitalized name shown in surface titles."""
        return self.value.capitalize() + "s"

    @classmethod
    def parse(cls, value: Any) -> "SearchMode":
        """Accept an enum member or names such as 'track', 'Tracks' or 'ALBUMS'."""
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        if name.endswith("s") and name[:-1] in cls._value2member_map_:
            name = name[:-1]
        try:
            return cls(name)
        except ValueError:
            raise UnknownChoice(f"Unknown search mode: {value!r}")


# Children listed when browsing into a result of the given mode
BROWSE_CHILD_MODE = {
    SearchMode.ARTIST: SearchMode.ALBUM,
    SearchMode.ALBUM: SearchMode.TRACK,
    SearchMode.PLAYLIST: SearchMode.TRACK,
    SearchMode.SHOW: SearchMode.TRACK,
}


class Direction(Enum):
    NEXT = 1
    PREVIOUS = -1

    @classmethod
    def parse(cls, value: Any) -> "Direction":
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        if name == "next":
            return cls.NEXT
        if name in ("prev", "previous"):
            return cls.PREVIOUS
        raise UnknownChoice(f"Unknown direction: {value!r}")


class PlaybackAction(Enum):
    NEXT = "next"
    PAUSE = "pause"
    PREVIOUS = "prev"

    @classmethod
    def parse(cls, value: Any) -> "PlaybackAction":
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        if name == "previous":
            name = "prev"
        try:
            return cls(name)
        except ValueError:
            raise UnknownChoice(f"Unknown playback action: {value!r}")


@dataclass(frozen=True)
class ResultRow:
    """One search or browse result, normalized across entity types."""

    primary_text: str
    secondary_text: str
    uri: str
    id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "primary": self.primary_text,
            "secondary": self.secondary_text,
            "uri": self.uri,
            "id": self.id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultRow":
        """Build a row from its wire form. Raises KeyError/TypeError on bad input."""
        return cls(
            primary_text=str(data["primary"]),
            secondary_text=str(data.get("secondary") or ""),
            uri=str(data["uri"]),
            id=str(data.get("id") or uri_id(data["uri"])),
        )


@dataclass(frozen=True)
class Device:
    """Playback device as reported by the backend."""

    name: str
    id: str
    is_active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "id": self.id, "is_active": self.is_active}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Device":
        return cls(
            name=str(data["name"]),
            id=str(data["id"]),
            is_active=bool(data.get("is_active", False)),
        )


@dataclass(frozen=True)
class NowPlaying:
    """Track or episode currently playing."""

    title: str
    artist_names: List[str] = field(default_factory=list)

    def display_text(self) -> str:
        artists = join_artists(self.artist_names)
        if not artists:
            return self.title
        return f"{self.title} by {artists}"

    def to_dict(self) -> Dict[str, Any]:
        return {"playing": True, "title": self.title, "artists": list(self.artist_names)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["NowPlaying"]:
        """Return None for the `{"playing": false}` wire form."""
        if not data.get("playing"):
            return None
        return cls(title=str(data["title"]), artist_names=[str(a) for a in data.get("artists") or []])


class SurfaceKind(Enum):
    ANCHOR = "anchor"
    PLACEHOLDER = "placeholder"
    NOW_PLAYING = "now_playing"
    DEVICES = "devices"
    INPUT = "input"
    RESULTS = "results"


@dataclass(frozen=True)
class SurfaceRecord:
    """Session-side metadata for one surface handle."""

    handle: int
    kind: SurfaceKind
    order: int


@dataclass(frozen=True)
class Geometry:
    """Floating surface placement.

    Coordinates are relative to the editor when a surface is opened without an
    anchor, otherwise relative to the anchor surface.
    """

    width: int
    height: int
    row: float
    col: float
    z_index: int = 50
    focusable: bool = False
    enter: bool = False


PLAYABLE_KINDS = ("track", "episode", "album", "artist", "playlist", "show")
CONTEXT_KINDS = ("album", "artist", "playlist", "show")

_URI_RE = re.compile(r"^spotify:(?P<kind>[a-z]+):(?P<id>[A-Za-z0-9]+)$")


def parse_uri(uri: str) -> Optional[Tuple[str, str]]:
    """Split 'spotify:<kind>:<id>' into (kind, id), or None when it does not match."""
    match = _URI_RE.match((uri or "").strip())
    if not match:
        return None
    return match.group("kind"), match.group("id")


def is_playable_uri(uri: str) -> bool:
    parsed = parse_uri(uri)
    return parsed is not None and parsed[0] in PLAYABLE_KINDS


def uri_id(uri: str) -> str:
    """Last colon-separated segment of a URI."""
    return str(uri).rsplit(":", 1)[-1]
