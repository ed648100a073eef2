from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from spotfloat.application import layout
from spotfloat.crosscutting.logging import CorrelationContext, log_with_fields
from spotfloat.domain.entities import (
    BROWSE_CHILD_MODE,
    Device,
    Direction,
    Geometry,
    PlaybackAction,
    ResultRow,
    SearchMode,
    SurfaceKind,
    SurfaceRecord,
)
from spotfloat.domain.errors import (
    BackendError,
    EmptyInput,
    InputError,
    NotBrowsable,
    SurfaceCreationFailed,
    SurfaceError,
    SurfaceNotFound,
)
from spotfloat.domain.ports import MusicBackend, SurfaceHost

logger = logging.getLogger(__name__)

SINGLETON_KINDS = (SurfaceKind.ANCHOR, SurfaceKind.INPUT)


def cycle(index: Optional[int], direction: Direction, count: int) -> Optional[int]:
    """Move index one step with wrap-around.

    Uses Python's modulo, which is never negative for a positive count, so
    going back from 0 lands on count - 1. An undefined index starts at 0.
    """
    if count <= 0:
        return None
    current = 0 if index is None else index
    return (current + direction.value) % count


@dataclass
class Session:
    """Mutable state of the single live plugin session."""

    surfaces: Dict[int, SurfaceRecord] = field(default_factory=dict)
    anchor: Optional[int] = None
    mode: SearchMode = SearchMode.TRACK
    query: str = ""
    results: List[ResultRow] = field(default_factory=list)
    selected_result: Optional[int] = None
    devices: List[Device] = field(default_factory=list)
    selected_device: Optional[int] = None
    _next_order: int = 0

    def add_surface(self, handle: int, kind: SurfaceKind) -> SurfaceRecord:
        if kind in SINGLETON_KINDS and self.handle_of(kind) is not None:
            raise SurfaceCreationFailed(f"Session already owns a {kind.value} surface")
        if handle in self.surfaces:
            raise SurfaceCreationFailed(f"Surface handle {handle} is already registered")
        record = SurfaceRecord(handle=handle, kind=kind, order=self._next_order)
        self._next_order += 1
        self.surfaces[handle] = record
        if kind is SurfaceKind.ANCHOR:
            self.anchor = handle
        return record

    def remove_surface(self, handle: int) -> Optional[SurfaceRecord]:
        record = self.surfaces.pop(handle, None)
        if record is not None and record.kind is SurfaceKind.ANCHOR:
            self.anchor = None
        return record

    def handle_of(self, kind: SurfaceKind) -> Optional[int]:
        for record in self.surfaces.values():
            if record.kind is kind:
                return record.handle
        return None

    def records_for_teardown(self) -> List[SurfaceRecord]:
        """Surfaces newest first, so dependents go before the anchor."""
        return sorted(self.surfaces.values(), key=lambda r: r.order, reverse=True)

    @property
    def is_open(self) -> bool:
        return bool(self.surfaces)

    def selected_device_id(self) -> Optional[str]:
        if self.selected_device is None or not self.devices:
            return None
        return self.devices[self.selected_device].id

    def selected_row(self) -> Optional[ResultRow]:
        if self.selected_result is None or not self.results:
            return None
        return self.results[self.selected_result]


class SessionController:
    """Owns the session state and every surface, and mediates backend calls.

    Commands run one at a time. User actions report failures through the host
    and return False, leaving the session as it was before the call.
    """

    def __init__(self,
                 host: SurfaceHost,
                 backend: MusicBackend,
                 width: int = layout.WIDTH,
                 search_limit: int = 20,
                 backend_name: Optional[str] = None):
        """Initialize controller.

        Args:
            host: Surface host the session draws into
            backend: Music backend strategy used for every call
            width: Width of the boxed surfaces in codepoints
            search_limit: Maximum number of rows per search or browse
            backend_name: Name added to log records for correlation
        """
        self._host = host
        self._backend = backend
        self._width = width
        self._search_limit = search_limit
        self._backend_name = backend_name or type(backend).__name__
        self.session = Session()

    @property
    def is_open(self) -> bool:
        return self.session.is_open

    def _context(self, command: str) -> CorrelationContext:
        return CorrelationContext(command=command, backend=self._backend_name)

    # Surface helpers

    def _create_surface(self,
                        kind: SurfaceKind,
                        lines: Sequence[str],
                        geometry: Geometry,
                        window_options: Sequence = layout.DISPLAY_WINDOW_OPTIONS,
                        modifiable: bool = False) -> int:
        try:
            handle = self._host.create_surface()
        except SurfaceError:
            raise
        except Exception as e:
            raise SurfaceCreationFailed(f"Failed to create {kind.value} surface: {e}") from e

        self.session.add_surface(handle, kind)
        if lines:
            self._host.write_lines(handle, lines)
        for key, value in layout.SURFACE_OPTIONS:
            self._host.set_option(handle, key, value)
        if not modifiable:
            self._host.set_option(handle, "modifiable", False)

        anchor = None if kind is SurfaceKind.ANCHOR else self.session.anchor
        self._host.open_floating(handle, anchor, geometry)
        for key, value in window_options:
            self._host.set_option(handle, key, value)
        logger.debug(f"Opened {kind.value} surface {handle}")
        return handle

    def _destroy_surface(self, handle: int) -> None:
        record = self.session.remove_surface(handle)
        kind = record.kind if record else None
        self._host_destroy(handle, kind)

    def _host_destroy(self, handle: int, kind: Optional[SurfaceKind]) -> None:
        try:
            self._host.destroy_surface(handle)
        except SurfaceNotFound:
            logger.debug(f"Surface {handle} was already gone")
        except SurfaceError as e:
            name = kind.value if kind else "unknown"
            logger.warning(f"Failed to destroy {name} surface {handle}: {e}")

    def _destroy_kind(self, kind: SurfaceKind) -> None:
        handle = self.session.handle_of(kind)
        if handle is not None:
            self._destroy_surface(handle)

    def _report(self, error: Exception) -> None:
        level = "warn" if isinstance(error, InputError) else "error"
        log_with_fields(logger, 'WARNING' if level == "warn" else 'ERROR', str(error),
                        {'error_type': type(error).__name__})
        try:
            self._host.notify(f"Spotify: {error}", level)
        except Exception as e:
            logger.warning(f"Failed to notify user: {e}")

    def _run_host_command(self, command: str) -> None:
        try:
            self._host.run_command(command)
        except Exception as e:
            logger.warning(f"Host command {command!r} failed: {e}")

    # Open / close

    def open(self) -> bool:
        """Open the search UI. Returns False when a surface could not be created.

        Any other failure tears the partial session down before propagating.
        """
        with self._context('open'):
            if self.is_open:
                logger.info("Session already open, reopening")
                self.close()

            logger.info("Opening session")
            for command in layout.HIGHLIGHT_COMMANDS:
                self._run_host_command(command)

            try:
                self._open_surfaces()
            except SurfaceError as e:
                logger.error(f"Open aborted: {e}")
                self._teardown()
                self._report(e)
                return False
            except Exception:
                logger.exception("Open failed unexpectedly")
                self._teardown()
                raise

            log_with_fields(logger, 'INFO', 'Session opened', {
                'surfaces': len(self.session.surfaces),
                'devices': len(self.session.devices),
            })
            return True

    def _open_surfaces(self) -> None:
        columns, lines = self._host.editor_size()
        self._create_surface(SurfaceKind.ANCHOR, [], layout.anchor_geometry(columns, lines, self._width),
                             window_options=())
        self._create_surface(SurfaceKind.PLACEHOLDER,
                             layout.placeholder_lines(self.session.mode, self._width),
                             layout.placeholder_geometry(self._width))

        now_playing = self._fetch_best_effort("currently playing", self._backend.currently_playing)
        if now_playing is not None:
            self._create_surface(SurfaceKind.NOW_PLAYING,
                                 layout.now_playing_lines(now_playing, self._width),
                                 layout.now_playing_geometry(self._width))

        devices = self._fetch_best_effort("devices", self._backend.list_devices)
        self.session.devices = list(devices or [])
        self.session.selected_device = 0 if self.session.devices else None
        self._render_devices()

        input_handle = self._create_surface(SurfaceKind.INPUT, [], layout.input_geometry(self._width),
                                            window_options=layout.INPUT_WINDOW_OPTIONS, modifiable=True)
        for mode, key, invocation in layout.INPUT_KEYMAPS:
            self._host.bind_key(input_handle, mode, key, invocation)
        for command in layout.CLOSE_AUTOCMDS:
            self._run_host_command(command)
        self._run_host_command("startinsert!")

    def _fetch_best_effort(self, what: str, call):
        try:
            return call()
        except BackendError as e:
            log_with_fields(logger, 'WARNING', f"Could not load {what}", {
                'error_type': type(e).__name__,
                'error_message': str(e),
            })
            return None

    def close(self) -> None:
        """Destroy every surface and clear state. Safe to call when already closed."""
        with self._context('close'):
            if not self.is_open:
                self.session = Session()
                logger.debug("No surfaces to close, state cleared")
                return
            self._run_host_command("stopinsert!")
            self._teardown()
            logger.info("Session closed")

    def _teardown(self) -> None:
        records = self.session.records_for_teardown()
        # Reset before destroying so a close re-entered from a BufLeave autocmd is a no-op
        self.session = Session()
        for record in records:
            self._host_destroy(record.handle, record.kind)

    # Devices

    def show_devices(self) -> bool:
        """Reload the device list and redraw the picker."""
        with self._context('show_devices'):
            try:
                devices = self._backend.list_devices()
            except BackendError as e:
                self._report(e)
                return False

            selected = self.session.selected_device
            if not devices:
                selected = None
            elif selected is None or selected >= len(devices):
                selected = 0
            self.session.devices = list(devices)
            self.session.selected_device = selected

            if self.session.anchor is not None:
                try:
                    self._render_devices()
                    self._render_results()
                except SurfaceError as e:
                    self._report(e)
                    return False
            logger.info(f"Loaded {len(devices)} devices")
            return True

    def _render_devices(self) -> None:
        self._destroy_kind(SurfaceKind.DEVICES)
        if not self.session.devices:
            return
        lines = layout.device_lines(self.session.devices, self.session.selected_device, self._width)
        handle = self._create_surface(SurfaceKind.DEVICES, lines,
                                      layout.devices_geometry(len(lines), self._width))
        self._highlight_row(handle, self.session.selected_device)

    def select_device(self, direction) -> Optional[int]:
        """Move the device cursor and return the new index (None without devices)."""
        with self._context('select_device'):
            try:
                direction = Direction.parse(direction)
            except InputError as e:
                self._report(e)
                return self.session.selected_device

            old = self.session.selected_device
            new = cycle(old, direction, len(self.session.devices))
            if new is None:
                logger.debug("No devices to select")
                return None
            self.session.selected_device = new
            self._move_marker(self.session.handle_of(SurfaceKind.DEVICES), old, new)
            logger.info(f"Selected device {new}: {self.session.devices[new].name}")
            return new

    # Results

    def search(self, mode, query: Optional[str] = None) -> bool:
        """Search and replace the result list. Query defaults to the input content."""
        with self._context('search'):
            try:
                mode = SearchMode.parse(mode)
                if query is None:
                    query = self._read_input()
                query = (query or "").strip()
                if not query:
                    raise EmptyInput("Search input cannot be empty")
            except (InputError, SurfaceError) as e:
                self._report(e)
                return False

            logger.info(f"Searching {mode.value}s for {query!r}")
            try:
                rows = self._backend.search(mode, query, self._search_limit)
            except BackendError as e:
                self._report(e)
                return False

            self._replace_results(mode, query, rows)
            return True

    def _read_input(self) -> str:
        handle = self.session.handle_of(SurfaceKind.INPUT)
        if handle is None:
            raise SurfaceNotFound("Search input is not open")
        return " ".join(self._host.read_lines(handle))

    def _replace_results(self, mode: SearchMode, query: str, rows: Sequence[ResultRow]) -> None:
        self.session.mode = mode
        self.session.query = query
        self.session.results = list(rows)
        self.session.selected_result = 0 if rows else None
        log_with_fields(logger, 'INFO', 'Results updated', {'mode': mode.value, 'count': len(rows)})

        if self.session.anchor is None:
            return
        try:
            placeholder = self.session.handle_of(SurfaceKind.PLACEHOLDER)
            if placeholder is not None:
                self._host.write_lines(placeholder, layout.placeholder_lines(mode, self._width))
            self._render_results()
        except SurfaceError as e:
            self._report(e)

    def _render_results(self) -> None:
        self._destroy_kind(SurfaceKind.RESULTS)
        if not self.session.query:
            return
        lines = layout.result_lines(self.session.mode, self.session.results,
                                    self.session.selected_result, self._width)
        devices_height = 0
        if self.session.handle_of(SurfaceKind.DEVICES) is not None:
            devices_height = len(self.session.devices) + 2
        handle = self._create_surface(SurfaceKind.RESULTS, lines,
                                      layout.results_geometry(len(lines), devices_height, self._width))
        self._highlight_row(handle, self.session.selected_result)

    def select_result(self, direction) -> Optional[int]:
        """Move the result cursor and return the new index (None without results)."""
        with self._context('select_result'):
            try:
                direction = Direction.parse(direction)
            except InputError as e:
                self._report(e)
                return self.session.selected_result

            old = self.session.selected_result
            new = cycle(old, direction, len(self.session.results))
            if new is None:
                return None
            self.session.selected_result = new
            self._move_marker(self.session.handle_of(SurfaceKind.RESULTS), old, new)
            return new

    def browse_selected(self) -> bool:
        """Replace the results with the children of the selected row."""
        with self._context('browse'):
            row = self.session.selected_row()
            try:
                if row is None:
                    raise EmptyInput("No result selected")
                child_mode = BROWSE_CHILD_MODE.get(self.session.mode)
                if child_mode is None:
                    raise NotBrowsable(f"{self.session.mode.label} cannot be browsed")
            except InputError as e:
                self._report(e)
                return False

            logger.info(f"Browsing {self.session.mode.value} {row.id}")
            try:
                rows = self._backend.browse(self.session.mode, row.id, self._search_limit)
            except BackendError as e:
                self._report(e)
                return False

            self._replace_results(child_mode, row.primary_text, rows)
            return True

    # Playback

    def play(self, uri: Optional[str]) -> bool:
        """Play uri on the selected device, or on the active one when none is selected."""
        with self._context('play'):
            uri = (uri or "").strip()
            if not uri:
                self._report(EmptyInput("Nothing to play"))
                return False

            device_id = self.session.selected_device_id()
            try:
                if device_id is None:
                    self._backend.play(uri)
                else:
                    self._backend.play(uri, device_id=device_id)
            except BackendError as e:
                self._report(e)
                return False
            log_with_fields(logger, 'INFO', 'Playback started', {'uri': uri, 'device_id': device_id})
            return True

    def play_selected(self) -> bool:
        row = self.session.selected_row()
        if row is None:
            with self._context('play'):
                self._report(EmptyInput("No result selected"))
            return False
        return self.play(row.uri)

    def playback(self, action) -> bool:
        """Map next/pause/prev onto skip/toggle_pause/previous."""
        with self._context('playback'):
            try:
                action = PlaybackAction.parse(action)
            except InputError as e:
                self._report(e)
                return False

            calls = {
                PlaybackAction.NEXT: self._backend.skip,
                PlaybackAction.PAUSE: self._backend.toggle_pause,
                PlaybackAction.PREVIOUS: self._backend.previous,
            }
            try:
                calls[action]()
            except BackendError as e:
                self._report(e)
                return False
            logger.info(f"Playback action {action.value} sent")
            return True

    def save(self) -> bool:
        """Like the item currently playing."""
        with self._context('save'):
            try:
                self._backend.like()
            except BackendError as e:
                self._report(e)
                return False
            logger.info("Saved current item")
            return True

    # Selection drawing

    def _highlight_row(self, handle: Optional[int], index: Optional[int]) -> None:
        if handle is None or index is None:
            return
        self._host.clear_highlights(handle)
        self._host.highlight(handle, layout.SELECTION_GROUP, index + 1, layout.MARKER_COL + 1,
                             self._width - 1)

    def _move_marker(self, handle: Optional[int], old: Optional[int], new: int) -> None:
        if handle is None:
            return
        try:
            if old is not None and old != new:
                self._host.write_region(handle, old + 1, layout.MARKER_COL, layout.MARKER_COL + 1, " ")
            self._host.write_region(handle, new + 1, layout.MARKER_COL, layout.MARKER_COL + 1, layout.MARKER)
            self._highlight_row(handle, new)
        except SurfaceError as e:
            logger.warning(f"Failed to redraw selection: {e}")
