from spotfloat.domain.formatting import ELLIPSIS, fit, join_artists, truncate


def test_truncate_leaves_short_text_alone():
    assert truncate("Around the World", 60) == "Around the World"
    assert truncate("exact", 5) == "exact"


def test_truncate_cuts_and_appends_ellipsis():
    assert truncate("abcdefgh", 3) == "abc" + ELLIPSIS
    assert truncate("abcdefgh", 3, "~") == "abc~"


def test_truncate_counts_codepoints_not_bytes():
    # Each glyph is three bytes in UTF-8
    text = "墳墳墳墳"
    assert truncate(text, 2) == "墳墳..."
    assert truncate(text, 4) == text


def test_truncate_negative_width_keeps_only_ellipsis():
    assert truncate("abc", -5) == ELLIPSIS


def test_fit_pads_to_exact_width():
    assert fit("ab", 5) == "ab   "
    assert len(fit("a" * 100, 20)) == 20
    assert fit("a" * 100, 20).endswith(ELLIPSIS)
    assert fit("anything", 0) == ""


def test_join_artists_natural_language():
    assert join_artists([]) == ""
    assert join_artists(["Daft Punk"]) == "Daft Punk"
    assert join_artists(["Daft Punk", "Pharrell Williams"]) == "Daft Punk and Pharrell Williams"
    assert join_artists(["A", "B", "C"]) == "A, B and C"


def test_join_artists_skips_empty_names():
    assert join_artists(["", "A", ""]) == "A"
