from typing import Sequence

ELLIPSIS = "..."


def truncate(text: str, max_width: int, ellipsis: str = ELLIPSIS) -> str:
    """Cut text to max_width codepoints and append the ellipsis.

    Python strings index by codepoint, so multi-byte glyphs are never split.
    Text that already fits is returned unchanged.
    """
    if max_width < 0:
        max_width = 0
    if len(text) <= max_width:
        return text
    return text[:max_width] + ellipsis


def fit(text: str, width: int) -> str:
    """Truncate (ellipsis included) and right-pad text to exactly width codepoints."""
    if width <= 0:
        return ""
    if len(text) > width:
        cut = max(width - len(ELLIPSIS), 0)
        text = truncate(text, cut)[:width]
    return text + " " * (width - len(text))


def join_artists(names: Sequence[str]) -> str:
    """Join names as natural language: 'A', 'A and B', 'A, B and C'."""
    names = [name for name in names if name]
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]
