import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from pynvim.api import NvimError

from spotfloat.domain.entities import Geometry
from spotfloat.domain.errors import SurfaceCreationFailed, SurfaceNotFound

logger = logging.getLogger(__name__)

NAMESPACE = 'spotfloat'

WINDOW_OPTIONS = {'winhl', 'winblend', 'foldlevel', 'cursorline', 'wrap', 'number'}

NOTIFY_LEVELS = {'debug': 1, 'info': 2, 'warn': 3, 'error': 4}


@dataclass
class _Surface:
    buffer: object
    window: Optional[object] = None


def _byte_col(line: str, col: int) -> int:
    """Byte offset of codepoint column col in line."""
    return len(line[:col].encode('utf-8'))


@contextmanager
def _translate(handle: int, action: str, error=SurfaceNotFound):
    """Re-raise Neovim API failures as surface errors."""
    try:
        yield
    except NvimError as e:
        raise error(f"Could not {action} surface {handle}: {e}") from e


class NvimSurfaceHost:
    """SurfaceHost backed by Neovim scratch buffers and floating windows."""

    def __init__(self, nvim):
        self._nvim = nvim
        self._surfaces: Dict[int, _Surface] = {}
        self._ids = itertools.count(1)
        self._namespace: Optional[int] = None

    @property
    def namespace(self) -> int:
        if self._namespace is None:
            self._namespace = self._nvim.api.create_namespace(NAMESPACE)
        return self._namespace

    def _get(self, handle: int) -> _Surface:
        surface = self._surfaces.get(handle)
        if surface is None:
            raise SurfaceNotFound(f"Unknown surface {handle}")
        return surface

    def _line(self, surface: _Surface, row: int) -> str:
        lines = self._nvim.api.buf_get_lines(surface.buffer, row, row + 1, False)
        return lines[0] if lines else ""

    def create_surface(self) -> int:
        try:
            buffer = self._nvim.api.create_buf(False, True)
        except NvimError as e:
            raise SurfaceCreationFailed(f"Could not create buffer: {e}") from e
        handle = next(self._ids)
        self._surfaces[handle] = _Surface(buffer=buffer)
        logger.debug(f"Created surface {handle} on buffer {buffer}")
        return handle

    def destroy_surface(self, handle: int) -> None:
        surface = self._surfaces.pop(handle, None)
        if surface is None:
            raise SurfaceNotFound(f"Unknown surface {handle}")
        with _translate(handle, 'close'):
            if surface.window is not None and self._nvim.api.win_is_valid(surface.window):
                self._nvim.api.win_close(surface.window, True)
            if self._nvim.api.buf_is_valid(surface.buffer):
                self._nvim.api.buf_delete(surface.buffer, {'force': True})

    def write_lines(self, handle: int, lines: Sequence[str]) -> None:
        surface = self._get(handle)
        with _translate(handle, 'write'), self._modifiable(surface):
            self._nvim.api.buf_set_lines(surface.buffer, 0, -1, True, list(lines))

    def write_region(self, handle: int, row: int, col_start: int, col_end: int, text: str) -> None:
        surface = self._get(handle)
        with _translate(handle, 'write'):
            line = self._line(surface, row)
            start, end = _byte_col(line, col_start), _byte_col(line, col_end)
            with self._modifiable(surface):
                self._nvim.api.buf_set_text(surface.buffer, row, start, row, end, [text])

    def read_lines(self, handle: int) -> List[str]:
        surface = self._get(handle)
        with _translate(handle, 'read'):
            return list(self._nvim.api.buf_get_lines(surface.buffer, 0, -1, False))

    def set_option(self, handle: int, key: str, value) -> None:
        surface = self._get(handle)
        if key in WINDOW_OPTIONS and surface.window is None:
            raise SurfaceNotFound(f"Surface {handle} has no window for option {key}")
        scope = {'win': surface.window} if key in WINDOW_OPTIONS else {'buf': surface.buffer}
        with _translate(handle, f'set {key} on'):
            self._nvim.api.set_option_value(key, value, scope)

    def open_floating(self, handle: int, anchor: Optional[int], geometry: Geometry) -> None:
        surface = self._get(handle)
        config = {
            'width': geometry.width,
            'height': geometry.height,
            'row': geometry.row,
            'col': geometry.col,
            'style': 'minimal',
            'zindex': geometry.z_index,
            'focusable': geometry.focusable,
        }
        if anchor is None:
            config.update({'relative': 'editor', 'anchor': 'NW'})
        else:
            anchor_window = self._get(anchor).window
            if anchor_window is None:
                raise SurfaceCreationFailed(f"Anchor surface {anchor} is not open")
            config.update({'relative': 'win', 'win': anchor_window, 'bufpos': [0, 0]})
        with _translate(handle, 'open a window for', SurfaceCreationFailed):
            surface.window = self._nvim.api.open_win(surface.buffer, geometry.enter, config)

    def bind_key(self, handle: int, mode: str, key: str, invocation: str) -> None:
        surface = self._get(handle)
        with _translate(handle, f'map {key} on'):
            self._nvim.api.buf_set_keymap(surface.buffer, mode, key, invocation,
                                          {'noremap': True, 'silent': True, 'nowait': True})

    def highlight(self, handle: int, group: str, row: int, col_start: int, col_end: int) -> None:
        surface = self._get(handle)
        with _translate(handle, 'highlight'):
            line = self._line(surface, row)
            self._nvim.api.buf_add_highlight(surface.buffer, self.namespace, group, row,
                                             _byte_col(line, col_start), _byte_col(line, col_end))

    def clear_highlights(self, handle: int) -> None:
        surface = self._get(handle)
        with _translate(handle, 'clear highlights on'):
            self._nvim.api.buf_clear_namespace(surface.buffer, self.namespace, 0, -1)

    def run_command(self, command: str) -> None:
        self._nvim.command(command)

    def editor_size(self) -> Tuple[int, int]:
        return int(self._nvim.options['columns']), int(self._nvim.options['lines'])

    def notify(self, message: str, level: str = 'info') -> None:
        self._nvim.api.notify(message, NOTIFY_LEVELS.get(level, 2), {})

    def _modifiable(self, surface: _Surface):
        return _ModifiableScope(self._nvim, surface.buffer)


class _ModifiableScope:
    """Temporarily lifts 'modifiable' on a buffer and restores the old value."""

    def __init__(self, nvim, buffer):
        self._nvim = nvim
        self._buffer = buffer
        self._previous = True

    def __enter__(self):
        self._previous = self._nvim.api.get_option_value('modifiable', {'buf': self._buffer})
        if not self._previous:
            self._nvim.api.set_option_value('modifiable', True, {'buf': self._buffer})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._previous:
            self._nvim.api.set_option_value('modifiable', False, {'buf': self._buffer})
