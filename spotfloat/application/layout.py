"""Box drawing, placement and key maps for the session surfaces.

Everything here is pure: the controller feeds the returned lines and
geometries to the SurfaceHost.
"""

from typing import List, Optional, Sequence, Tuple

from spotfloat.domain.entities import Device, Geometry, NowPlaying, ResultRow, SearchMode
from spotfloat.domain.formatting import fit, truncate

WIDTH = 70
HEIGHT = 3

MARKER = "▶"
MARKER_COL = 2
NOW_PLAYING_ICON = "墳"

BORDER_GROUP = "SpotifyBorder"
TEXT_GROUP = "SpotifyText"
SELECTION_GROUP = "SpotifySelection"

HIGHLIGHT_COMMANDS = [
    f"hi {BORDER_GROUP} guifg=#1db954",
    f"hi {TEXT_GROUP} guifg=#1ed760",
    f"hi {SELECTION_GROUP} guifg=#191414 guibg=#1ed760",
]

# Buffer options applied to every surface before it is opened
SURFACE_OPTIONS = [("bufhidden", "wipe"), ("buftype", "nofile")]
# Window options applied once a display surface is open
DISPLAY_WINDOW_OPTIONS = [("winhl", f"Normal:{BORDER_GROUP}"), ("winblend", 0), ("foldlevel", 100)]
INPUT_WINDOW_OPTIONS = [("winhl", f"Normal:{TEXT_GROUP}"), ("winblend", 0), ("foldlevel", 100)]

CLOSE_AUTOCMDS = [
    "autocmd QuitPre <buffer> ++nested ++once :silent call SpotifyCloseWin()",
    "autocmd BufLeave <buffer> ++nested ++once :silent call SpotifyCloseWin()",
]


def _both_modes(key: str, call: str) -> List[Tuple[str, str, str]]:
    return [("n", key, f":call {call}<CR>"), ("i", key, f"<C-O>:call {call}<CR>")]


INPUT_KEYMAPS = (
    [
        ("n", "<Esc>", ":call SpotifyCloseWin()<CR>"),
        ("n", "q", ":call SpotifyCloseWin()<CR>"),
        ("n", "<CR>", ":call SpotifyPlay()<CR>"),
        ("i", "<CR>", "<C-O>:call SpotifySearch('track')<CR>"),
    ]
    + _both_modes("<C-T>", "SpotifySearch('track')")
    + _both_modes("<C-R>", "SpotifySearch('artist')")
    + _both_modes("<C-L>", "SpotifySearch('album')")
    + _both_modes("<C-Y>", "SpotifySearch('playlist')")
    + _both_modes("<C-W>", "SpotifySearch('show')")
    + _both_modes("<Tab>", "SpotifyDevices('next')")
    + _both_modes("<C-N>", "SpotifyDevices('next')")
    + _both_modes("<S-Tab>", "SpotifyDevices('prev')")
    + _both_modes("<C-P>", "SpotifyDevices('prev')")
    + _both_modes("<C-J>", "SpotifyResults('next')")
    + _both_modes("<C-K>", "SpotifyResults('prev')")
    + _both_modes("<C-E>", "SpotifyPlay()")
    + _both_modes("<C-D>", "SpotifyBrowse()")
    + _both_modes("<C-F>", "SpotifyPlayback('next')")
    + _both_modes("<C-B>", "SpotifyPlayback('prev')")
    + _both_modes("<C-X>", "SpotifyPlayback('pause')")
    + _both_modes("<C-S>", "SpotifySave()")
)


def title_border(title: str, width: int = WIDTH) -> str:
    """Top border of exactly width codepoints with the title centred."""
    inner = width - 2
    text = f" {truncate(title, max(inner - 7, 0))} "
    if len(text) > inner:
        text = text[:inner]
    left = (inner - len(text)) // 2
    right = inner - len(text) - left
    return "╭" + "─" * left + text + "─" * right + "╮"


def bottom_border(width: int = WIDTH) -> str:
    return "╰" + "─" * (width - 2) + "╯"


def frame(title: str, body: Sequence[str], width: int = WIDTH) -> List[str]:
    lines = [title_border(title, width)]
    lines.extend("│" + fit(line, width - 2) + "│" for line in body)
    lines.append(bottom_border(width))
    return lines


def _list_row(text: str, selected: bool, width: int) -> str:
    marker = MARKER if selected else " "
    return f" {marker} {truncate(text, width - 10)}"


def search_title(mode: SearchMode) -> str:
    return f"Spotify Search: {mode.label}"


def placeholder_lines(mode: SearchMode, width: int = WIDTH) -> List[str]:
    return frame(search_title(mode), [" › "], width)


def now_playing_lines(now_playing: NowPlaying, width: int = WIDTH) -> List[str]:
    text = truncate(now_playing.display_text(), width - 10)
    return frame("Currently Playing", [f" {NOW_PLAYING_ICON} {text}"], width)


def device_lines(devices: Sequence[Device], selected: Optional[int], width: int = WIDTH) -> List[str]:
    body = []
    for index, device in enumerate(devices):
        name = device.name + (" (active)" if device.is_active else "")
        body.append(_list_row(name, index == selected, width))
    return frame("Connect to a Device", body, width)


def result_lines(mode: SearchMode, rows: Sequence[ResultRow], selected: Optional[int],
                 width: int = WIDTH) -> List[str]:
    if not rows:
        return frame(f"Results: {mode.label}", ["   Nothing found"], width)
    body = []
    for index, row in enumerate(rows):
        text = row.primary_text
        if row.secondary_text:
            text += f" · {row.secondary_text}"
        body.append(_list_row(text, index == selected, width))
    return frame(f"Results: {mode.label} ({len(rows)})", body, width)


def anchor_geometry(editor_columns: int, editor_lines: int, width: int = WIDTH) -> Geometry:
    """1x1 reference surface centred in the editor."""
    return Geometry(
        width=1,
        height=1,
        row=(editor_lines / 2) - (HEIGHT / 2),
        col=(editor_columns / 2) - (width / 2) + 1.5,
    )


def placeholder_geometry(width: int = WIDTH) -> Geometry:
    return Geometry(width=width, height=HEIGHT, row=0.5, col=-2)


def input_geometry(width: int = WIDTH) -> Geometry:
    return Geometry(width=width - 7, height=1, row=1, col=3, z_index=51, focusable=True, enter=True)


def now_playing_geometry(width: int = WIDTH) -> Geometry:
    return Geometry(width=width, height=HEIGHT, row=-3, col=-2)


def devices_geometry(line_count: int, width: int = WIDTH) -> Geometry:
    return Geometry(width=width, height=line_count, row=3, col=-2)


def results_geometry(line_count: int, devices_height: int, width: int = WIDTH) -> Geometry:
    return Geometry(width=width, height=line_count, row=3 + devices_height, col=-2)
