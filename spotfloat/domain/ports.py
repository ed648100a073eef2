from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Tuple

from .entities import Device, Geometry, NowPlaying, ResultRow, SearchMode


class MusicBackend(Protocol):
    """Port defining how the session talks to the music service.

    Implementations map their own wire format (JSON objects, CLI text lines)
    into domain entities and raise only BackendError subclasses.
    """

    def search(self, mode: SearchMode, query: str, limit: int = 20) -> List[ResultRow]:
        """Return up to limit rows for query. An empty query yields an empty list."""

    def browse(self, mode: SearchMode, item_id: str, limit: int = 20) -> List[ResultRow]:
        """List the children of an artist, album, playlist or show."""

    def play(self, uri: str, device_id: Optional[str] = None) -> None:
        """Start playback of uri, on device_id when given, else on the active device."""

    def skip(self) -> None:
        """Skip to the next item."""

    def toggle_pause(self) -> None:
        """Pause when playing, resume when paused."""

    def previous(self) -> None:
        """Go back to the previous item."""

    def like(self) -> None:
        """Save the currently playing item to the user's library."""

    def list_devices(self) -> List[Device]:
        """Return devices available for playback, possibly none."""

    def currently_playing(self) -> Optional[NowPlaying]:
        """Return what is playing, or None when playback is stopped."""


class SurfaceHost(Protocol):
    """Port over the editor's floating text surfaces.

    Handles are stable integers owned by whoever created them. Column arguments
    count codepoints, not bytes.
    """

    def create_surface(self) -> int:
        """Create an empty, unopened surface and return its handle."""

    def destroy_surface(self, handle: int) -> None:
        """Close and wipe the surface. Raises SurfaceNotFound for unknown handles."""

    def write_lines(self, handle: int, lines: Sequence[str]) -> None:
        """Replace the whole content of the surface."""

    def write_region(self, handle: int, row: int, col_start: int, col_end: int, text: str) -> None:
        """Replace columns [col_start, col_end) of one row."""

    def read_lines(self, handle: int) -> List[str]:
        """Return the current content of the surface."""

    def set_option(self, handle: int, key: str, value) -> None:
        """Set a surface (buffer or window) option."""

    def open_floating(self, handle: int, anchor: Optional[int], geometry: Geometry) -> None:
        """Show the surface floating, relative to anchor or to the editor."""

    def bind_key(self, handle: int, mode: str, key: str, invocation: str) -> None:
        """Bind key in the given editor mode to a command invocation."""

    def highlight(self, handle: int, group: str, row: int, col_start: int, col_end: int) -> None:
        """Apply a highlight group to part of a row."""

    def clear_highlights(self, handle: int) -> None:
        """Remove every highlight previously added to the surface."""

    def run_command(self, command: str) -> None:
        """Run a raw host command (highlight definitions, insert mode, autocmds)."""

    def editor_size(self) -> Tuple[int, int]:
        """Return (columns, lines) of the editor."""

    def notify(self, message: str, level: str = "info") -> None:
        """Show a message to the user; level is 'info', 'warn' or 'error'."""
