from live_feed.utils import (
    caps_ratio,
    clamp01,
    clean_text,
    contains_link,
    estimate_read_time_seconds,
    format_clock,
    parse_datetime_utc,
    truncate,
    word_count,
)


def test_clean_text_strips_html_and_ws() -> None:
    assert clean_text("  hello&nbsp;<b>world</b>\n") == "hello world"


def test_caps_ratio_ignores_non_letters() -> None:
    assert caps_ratio("ABC def 123!") == 0.5
    assert caps_ratio("1234") == 0.0


def test_contains_link_and_word_count() -> None:
    assert contains_link("see https://example.com/x for details")
    assert not contains_link("no links here")
    assert word_count("It's a   small world") == 4


def test_clamp01_bounds() -> None:
    assert clamp01(-0.5) == 0.0
    assert clamp01(1.5) == 1.0
    assert clamp01(0.25) == 0.25


def test_truncate_adds_ellipsis() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghijkl", 5) == "abcde..."


def test_estimate_read_time_has_floor() -> None:
    assert estimate_read_time_seconds("one two three") == 30
    assert estimate_read_time_seconds(" ".join(["word"] * 400)) == 120


def test_parse_datetime_utc_formats() -> None:
    iso = parse_datetime_utc("2023-11-14T22:13:20+00:00")
    rfc = parse_datetime_utc("Tue, 14 Nov 2023 22:13:20 GMT")
    assert iso is not None and rfc is not None
    assert iso.timestamp() == rfc.timestamp() == 1_700_000_000
    assert parse_datetime_utc("") is None
    assert parse_datetime_utc("not a date") is None


def test_format_clock_handles_missing() -> None:
    assert format_clock(None) == "-"
    assert len(format_clock(1_700_000_000)) == 8
