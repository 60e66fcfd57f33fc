"""Tests for handoff input parsing."""

import io

from td.handoff_input import FlagExpander, build_handoff, parse_sections


def test_literal_values():
    expander = FlagExpander(io.StringIO(""))
    assert expander.expand(("one", "two")) == ["one", "two"]
    assert not expander.stdin_used


def test_file_values(tmp_path):
    path = tmp_path / "done.txt"
    path.write_text("first\n\n  second  \n")
    expander = FlagExpander(io.StringIO(""))
    assert expander.expand((f"@{path}",)) == ["first", "second"]


def test_missing_file_warns(tmp_path):
    expander = FlagExpander(io.StringIO(""))
    assert expander.expand((f"@{tmp_path / 'nope.txt'}",)) == []
    assert len(expander.warnings) == 1
    assert "failed to read" in expander.warnings[0]


def test_stdin_consumed_once():
    expander = FlagExpander(io.StringIO("a\nb\n"))
    assert expander.expand(("-",)) == ["a", "b"]
    assert expander.expand(("-",)) == []
    assert expander.warnings == ["stdin already used, ignoring additional - flag"]


def test_parse_sections():
    text = """
done:
  - Wrote parser
  * Added tests
remaining:
  - Docs
notes:
  - ignored
stray line
decisions:
  - Use YAML-ish input
"""
    parsed = parse_sections(text)
    assert parsed["done"] == ["Wrote parser", "Added tests"]
    assert parsed["remaining"] == ["Docs"]
    assert parsed["decisions"] == ["Use YAML-ish input"]
    assert parsed["uncertain"] == []


def test_build_handoff_from_flags_and_note():
    handoff, warnings = build_handoff(
        "td-aaaaaa", "s1", io.StringIO(""),
        done=("parser",), remaining=("docs",), uncertain=("perf?",), note="quick note",
    )
    assert handoff.done == ["parser", "quick note"]
    assert handoff.remaining == ["docs"]
    assert handoff.uncertain == ["perf?"]
    assert warnings == []


def test_build_handoff_reads_sections_from_stdin():
    stdin = io.StringIO("done:\n  - piped item\nuncertain:\n  - edge case\n")
    handoff, _ = build_handoff("td-aaaaaa", "s1", stdin, done=("flag item",),
                               read_sections=True)
    assert handoff.done == ["flag item", "piped item"]
    assert handoff.uncertain == ["edge case"]


def test_build_handoff_dash_flag_wins_over_sections():
    stdin = io.StringIO("line one\nline two\n")
    handoff, _ = build_handoff("td-aaaaaa", "s1", stdin, remaining=("-",),
                               read_sections=True)
    assert handoff.remaining == ["line one", "line two"]
    assert handoff.done == []


def test_build_handoff_empty():
    handoff, _ = build_handoff("td-aaaaaa", "s1", io.StringIO(""), read_sections=True)
    assert handoff.is_empty()
