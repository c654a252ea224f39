"""Bracket span scanning for message text.

A double quote or an asterisk opens a *bracket span* that runs up to and
including the next occurrence of the same character.  Bracketed text is
quoted speech or stage direction, so names inside it do not make a
participant present.  :func:`get_non_bracket_spans` returns the complement:
the *plain* spans that presence counting looks at.
"""

from __future__ import annotations

from dataclasses import dataclass

BRACKET_CHARS = frozenset('"*')


@dataclass(frozen=True)
class Span:
    """A half-open ``[start, end)`` range of a text.

    Attributes:
        start: Index of the first character.
        end: Index one past the last character.
        text: The covered substring, when the producer attached it.
    """

    start: int
    end: int
    text: str | None = None


def parse_bracket_spans(text: str) -> list[Span]:
    """Return the bracket spans of *text*, in ascending order.

    An opener with no matching closer brackets everything up to the end of
    the text and stops the scan.  A closer never opens a new span.
    """
    spans: list[Span] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch not in BRACKET_CHARS:
            i += 1
            continue
        close = text.find(ch, i + 1)
        if close == -1:
            spans.append(Span(i, len(text)))
            break
        spans.append(Span(i, close + 1))
        i = close + 1
    return spans


def get_non_bracket_spans(text: str) -> list[Span]:
    """Return the plain (unbracketed) spans of *text* with their substrings.

    Empty spans are omitted, except that a text without any bracket span
    yields the single span covering all of it.
    """
    brackets = parse_bracket_spans(text)
    if not brackets:
        return [Span(0, len(text), text)]

    spans: list[Span] = []
    cursor = 0
    for bracket in brackets:
        if bracket.start > cursor:
            spans.append(Span(cursor, bracket.start, text[cursor : bracket.start]))
        cursor = max(cursor, bracket.end)
    if cursor < len(text):
        spans.append(Span(cursor, len(text), text[cursor:]))
    return spans
