"""Handoff input parsing.

Flag values expand three ways: a literal item, ``@path`` for one item per
line of a file, or ``-`` for one item per line of stdin (stdin can be
consumed once). Without flag-driven stdin, piped input may instead carry
YAML-like sections::

    done:
      - Item completed
    remaining:
      * Item to do
"""

from __future__ import annotations

from typing import TextIO

from td.models import Handoff

SECTIONS = ("done", "remaining", "decisions", "uncertain")


def read_lines(stream: TextIO) -> list[str]:
    """Non-blank, stripped lines."""
    return [line.strip() for line in stream if line.strip()]


class FlagExpander:
    """Expands repeated flag values, tracking whether stdin was consumed."""

    def __init__(self, stdin: TextIO) -> None:
        self.stdin = stdin
        self.stdin_used = False
        self.warnings: list[str] = []

    def expand(self, values: tuple[str, ...] | list[str]) -> list[str]:
        result: list[str] = []
        for value in values:
            if value == "-":
                if self.stdin_used:
                    self.warnings.append("stdin already used, ignoring additional - flag")
                    continue
                self.stdin_used = True
                result.extend(read_lines(self.stdin))
            elif value.startswith("@"):
                path = value[1:]
                try:
                    with open(path) as f:
                        result.extend(read_lines(f))
                except OSError as e:
                    self.warnings.append(f"failed to read {path}: {e.strerror or e}")
            else:
                result.append(value)
        return result


def parse_sections(text: str) -> dict[str, list[str]]:
    """Parse ``section:`` headers followed by ``- `` or ``* `` items.

    Unknown sections and stray lines are ignored.
    """
    parsed: dict[str, list[str]] = {name: [] for name in SECTIONS}
    current = ""
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.endswith(":"):
            current = stripped[:-1].strip().lower()
            continue
        if stripped.startswith("- ") or stripped.startswith("* "):
            item = stripped[2:].strip()
            if item and current in parsed:
                parsed[current].append(item)
    return parsed


def build_handoff(issue_id: str, session_id: str, stdin: TextIO, *,
                  done: tuple[str, ...] = (), remaining: tuple[str, ...] = (),
                  decisions: tuple[str, ...] = (), uncertain: tuple[str, ...] = (),
                  note: str = "", read_sections: bool = False) -> tuple[Handoff, list[str]]:
    """Assemble a handoff from flags and stdin. Returns (handoff, warnings)."""
    expander = FlagExpander(stdin)
    handoff = Handoff(
        issue_id=issue_id,
        session_id=session_id,
        done=expander.expand(done),
        remaining=expander.expand(remaining),
        decisions=expander.expand(decisions),
        uncertain=expander.expand(uncertain),
    )
    if note:
        handoff.done.append(note)
    if read_sections and not expander.stdin_used:
        sections = parse_sections(stdin.read())
        handoff.done.extend(sections["done"])
        handoff.remaining.extend(sections["remaining"])
        handoff.decisions.extend(sections["decisions"])
        handoff.uncertain.extend(sections["uncertain"])
    return handoff, expander.warnings
