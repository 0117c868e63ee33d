"""Deterministic tokenizer shared by the index builder and the query path.

Index-time and query-time text must go through exactly the same
normalization, otherwise a query term can never meet the token it was
derived from. Everything here is a pure function of ``(text, options)``:
no locale lookups, no NLP dependencies, no hidden state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
import re
import unicodedata
from typing import Any

from tinysearch.errors import TokenizerError


DEFAULT_STOPWORDS = frozenset(
    [
        "a",
        "an",
        "and",
        "are",
        "as",
        "at",
        "be",
        "but",
        "by",
        "for",
        "from",
        "has",
        "he",
        "in",
        "is",
        "it",
        "its",
        "of",
        "on",
        "or",
        "that",
        "the",
        "to",
        "was",
        "were",
        "will",
        "with",
    ]
)

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_SMART_APOSTROPHES = re.compile("[\u2019\u2018\u02bc]")
# [\W_] is "neither a letter nor a digit" for str patterns.
_SEPARATORS = re.compile(r"[\W_]+")
_SEPARATORS_KEEP_APOSTROPHE = re.compile(r"(?:[^\w']|_)+")
_BOUNDARY_APOSTROPHE = re.compile(r"(^|\s)'|'(\s|$)")
_LEADING_APOSTROPHES = re.compile(r"(\s)'+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class TokenizeOptions:
    """Options controlling normalization and token filtering."""

    lowercase: bool = True
    ascii_fold: bool = False
    remove_stopwords: bool = False
    stopwords: frozenset[str] = field(default=DEFAULT_STOPWORDS)
    min_token_length: int = 1
    preserve_apostrophes: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.min_token_length, bool) or not isinstance(self.min_token_length, int):
            raise TokenizerError(f"min_token_length must be an integer, got {self.min_token_length!r}")
        if self.min_token_length < 0:
            raise TokenizerError(f"min_token_length must be >= 0, got {self.min_token_length}")
        object.__setattr__(self, "stopwords", _coerce_stopwords(self.stopwords))

    def with_overrides(self, **updates: Any) -> TokenizeOptions:
        return replace(self, **updates)


def _coerce_stopwords(stopwords: Any) -> frozenset[str]:
    if stopwords is None:
        return DEFAULT_STOPWORDS
    if isinstance(stopwords, frozenset) and all(isinstance(word, str) for word in stopwords):
        return stopwords
    if isinstance(stopwords, (str, bytes)) or not isinstance(stopwords, Iterable):
        raise TokenizerError("stopwords must be an iterable of strings")
    words = list(stopwords)
    if not all(isinstance(word, str) for word in words):
        raise TokenizerError("stopwords must be an iterable of strings")
    return frozenset(words)


DEFAULT_OPTIONS = TokenizeOptions()


def _ascii_fold(text: str) -> str:
    return _COMBINING_MARKS.sub("", unicodedata.normalize("NFKD", text))


def normalize_text(text: Any, options: TokenizeOptions | None = None) -> str:
    """Normalize ``text`` into a single-space separated string of tokens.

    Punctuation, symbols, hyphens and slashes act as separators, so
    ``"state-of-the-art"`` becomes ``"state of the art"``. Apostrophes are
    separators too unless ``preserve_apostrophes`` is set, in which case only
    apostrophes with a letter or digit on both sides survive (``"don't"``).
    """

    opts = options or DEFAULT_OPTIONS
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    normalized = unicodedata.normalize("NFC", text)
    if opts.ascii_fold:
        normalized = _ascii_fold(normalized)
    if opts.lowercase:
        normalized = normalized.lower()

    normalized = _SMART_APOSTROPHES.sub("'", normalized)

    if opts.preserve_apostrophes:
        normalized = _SEPARATORS_KEEP_APOSTROPHE.sub(" ", normalized)
        normalized = _BOUNDARY_APOSTROPHE.sub(" ", normalized)
        normalized = _LEADING_APOSTROPHES.sub(r"\1", normalized)
    else:
        normalized = _SEPARATORS.sub(" ", normalized)

    return _WHITESPACE.sub(" ", normalized.strip())


def tokenize(text: Any, options: TokenizeOptions | None = None) -> list[str]:
    """Return the ordered token sequence for ``text`` (duplicates preserved)."""

    opts = options or DEFAULT_OPTIONS
    normalized = normalize_text(text, opts)
    if not normalized:
        return []

    stopwords = opts.stopwords if opts.remove_stopwords else None
    tokens: list[str] = []
    for token in normalized.split(" "):
        if not token:
            continue
        if len(token) < opts.min_token_length:
            continue
        if stopwords is not None and token in stopwords:
            continue
        tokens.append(token)
    return tokens


def term_frequencies(tokens: Iterable[str]) -> dict[str, int]:
    """Aggregate a token stream into a term -> count map."""

    frequencies: dict[str, int] = {}
    for token in tokens:
        frequencies[token] = frequencies.get(token, 0) + 1
    return frequencies


class Analyzer:
    """Callable bundling a fixed set of tokenizer options."""

    def __init__(self, options: TokenizeOptions | None = None, *, name: str = "default") -> None:
        self.options = options or DEFAULT_OPTIONS
        self.name = name

    def __call__(self, text: Any) -> list[str]:
        return tokenize(text, self.options)

    def normalize(self, text: Any) -> str:
        return normalize_text(text, self.options)


_ANALYZER_FACTORIES: dict[str, Callable[[], Analyzer]] = {
    "default": lambda: Analyzer(),
    "ascii-fold": lambda: Analyzer(TokenizeOptions(ascii_fold=True), name="ascii-fold"),
    "english-stop": lambda: Analyzer(TokenizeOptions(remove_stopwords=True), name="english-stop"),
    "apostrophe": lambda: Analyzer(TokenizeOptions(preserve_apostrophes=True), name="apostrophe"),
}


def get_analyzer(name: str | None) -> Analyzer:
    """Return analyzer by profile name, defaulting to the standard options."""

    if name is None:
        return _ANALYZER_FACTORIES["default"]()
    normalized = name.strip().lower()
    if normalized not in _ANALYZER_FACTORIES:
        msg = f"Unknown analyzer '{name}'. Available: {sorted(_ANALYZER_FACTORIES)}"
        raise TokenizerError(msg)
    return _ANALYZER_FACTORIES[normalized]()
