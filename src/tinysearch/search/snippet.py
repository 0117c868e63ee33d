"""Snippet extraction for search result previews.

A snippet is a fixed window of the document text around the earliest
case-insensitive occurrence of any query term: up to ``before`` characters
ahead of the match and ``after`` characters past its end. Documents where no
term occurs literally get no snippet at all.
"""

from __future__ import annotations

from collections.abc import Sequence
import re


DEFAULT_BEFORE = 40
DEFAULT_AFTER = 80


def find_earliest_match(text: str, terms: Sequence[str]) -> tuple[int, str] | None:
    """Return ``(position, term)`` of the first term occurrence in ``text``.

    Ties on position go to the term listed first.
    """
    if not text or not terms:
        return None

    text_lower = text.lower()
    best_pos = -1
    best_term = ""
    for term in terms:
        term = str(term)
        if not term:
            continue
        pos = text_lower.find(term.lower())
        if pos != -1 and (best_pos == -1 or pos < best_pos):
            best_pos = pos
            best_term = term

    if best_pos == -1:
        return None
    return best_pos, best_term


def snippet_for(
    text: str | None,
    terms: Sequence[str],
    before: int = DEFAULT_BEFORE,
    after: int = DEFAULT_AFTER,
) -> str | None:
    """Extract a bounded window around the earliest matching term.

    Args:
        text: Document text.
        terms: Query terms, matched case-insensitively as substrings.
        before: Characters kept ahead of the match.
        after: Characters kept past the end of the match.

    Returns:
        The window, or ``None`` when the text is empty or no term occurs.
    """
    if not text:
        return None
    match = find_earliest_match(text, terms)
    if match is None:
        return None

    position, term = match
    start = max(0, position - before)
    end = min(len(text), position + len(term) + after)
    return text[start:end]


def highlight_terms(snippet: str | None, terms: Sequence[str], style: str = "plain") -> str | None:
    """Mark every occurrence of ``terms`` in ``snippet``.

    ``style="plain"`` wraps matches in ``[[...]]``, ``style="html"`` in
    ``<mark>...</mark>``. Overlapping matches keep the earliest, longest one.
    """
    if not snippet or not terms:
        return snippet

    matches: list[tuple[int, int]] = []
    for term in terms:
        if not term:
            continue
        pattern = re.compile(re.escape(str(term)), re.IGNORECASE)
        matches.extend((m.start(), m.end()) for m in pattern.finditer(snippet))
    if not matches:
        return snippet

    matches.sort(key=lambda span: (span[0], -(span[1] - span[0])))
    selected: list[tuple[int, int]] = []
    for start, end in matches:
        if selected and start < selected[-1][1]:
            continue
        selected.append((start, end))

    result = snippet
    for start, end in reversed(selected):
        matched = result[start:end]
        replacement = f"<mark>{matched}</mark>" if style == "html" else f"[[{matched}]]"
        result = result[:start] + replacement + result[end:]
    return result
