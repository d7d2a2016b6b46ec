"""
Locate detection values in flattened text.

Literal, non-overlapping, left-to-right search with token-boundary
validation. Phone-like values fall back to a digits-only stream match,
which only reports presence and never yields a styleable span.
"""

import unicodedata
from dataclasses import dataclass
from typing import Collection, Iterable, List, Tuple

import regex as re
from rapidfuzz.distance import Levenshtein

Range = Tuple[int, int]

BOUNDARY = re.compile(r"""[\s.,;:!?()\[\]{}<>$"'\-]""")
PHONE = re.compile(r"^[+]?[\d ()\-]{6,}$")
NON_PHONE_CHARS = re.compile(r"[^\d+]")
WHITESPACE_RUN = re.compile(r"\s+")

NEAR_MISS_THRESHOLD = 0.7
NEAR_MISS_LIMIT = 3


@dataclass(frozen=True)
class Hit:
    start: int
    end: int
    normalized: bool = False

    @property
    def styleable(self) -> bool:
        return not self.normalized and self.start >= 0


NORMALIZED_HIT = Hit(-1, -1, normalized=True)


def nfkc(s: str) -> str:
    return unicodedata.normalize("NFKC", s or "")


def normalize_phone(s: str) -> str:
    return NON_PHONE_CHARS.sub("", s or "")


def is_phone(s: str) -> bool:
    return bool(PHONE.match(s or ""))


def is_email(s: str) -> bool:
    return "@" in (s or "")


def find_all(text: str, value: str) -> List[Range]:
    """Non-overlapping occurrences; each match consumes its region."""
    if not value:
        return []
    hits: List[Range] = []
    i = 0
    while i < len(text):
        j = text.find(value, i)
        if j < 0:
            break
        hits.append((j, j + len(value)))
        i = j + len(value)
    return hits


def _is_boundary(ch: str) -> bool:
    return BOUNDARY.match(ch) is not None


def has_token_boundary(text: str, start: int, end: int, edges: Collection[int] = ()) -> bool:
    """edges are offsets where the text is discontinuous (paragraph starts)."""
    left_ok = start <= 0 or start in edges or _is_boundary(text[start - 1])
    right_ok = end >= len(text) or end in edges or _is_boundary(text[end])
    return left_ok and right_ok


def locate(text: str, value: str, require_boundary: bool = True,
           edges: Collection[int] = ()) -> List[Hit]:
    """
    Find styleable occurrences of value in text.

    Returns literal hits that pass the boundary check (emails are exempt);
    offsets in edges count as boundaries on either side.
    With no literal hit at all, a phone-like value that matches in the
    digits-only stream yields a single NORMALIZED_HIT. An empty list means
    either "not found" or "found only inside other tokens"; use
    find_all() to tell the two apart.
    """
    if not value:
        return []
    ranges = find_all(text, value)
    folded = nfkc(value)
    if not ranges and folded != value:
        ranges = find_all(text, folded)

    if ranges:
        if require_boundary and not is_email(value):
            ranges = [(s, e) for s, e in ranges if has_token_boundary(text, s, e, edges)]
        return [Hit(s, e) for s, e in ranges]

    if is_phone(value):
        needle = normalize_phone(value)
        if needle and find_all(normalize_phone(text), needle):
            return [NORMALIZED_HIT]
    return []


def find_variants(text: str, value: str) -> List[Range]:
    """Occurrences of value and its whitespace variants, deduplicated and sorted."""
    if not value or not text:
        return []
    variants = [
        value,
        WHITESPACE_RUN.sub("", value),
        WHITESPACE_RUN.sub(" ", value),
        WHITESPACE_RUN.sub("  ", value),
    ]
    seen = set()
    for variant in variants:
        for found in find_all(text, variant):
            seen.add(found)
    return sorted(seen)


def merge_ranges(ranges: Iterable[Range]) -> List[Range]:
    merged: List[List[int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(s, e) for s, e in merged]


def similarity(a: str, b: str) -> float:
    if not a and not b:
        return 0.0
    return Levenshtein.normalized_similarity(nfkc(a), nfkc(b))


def near_misses(text: str, value: str, threshold: float = NEAR_MISS_THRESHOLD,
                limit: int = NEAR_MISS_LIMIT) -> List[str]:
    """Windows of text that look like value, for "did you mean" hints."""
    found: List[str] = []
    if not value:
        return found
    for i in range(len(text) - len(value) + 1):
        segment = text[i:i + len(value) + 4]
        if similarity(value, segment) >= threshold:
            found.append(segment)
            if len(found) >= limit:
                break
    return found


def window_around(text: str, start: int, end: int, extra: int = 12) -> str:
    return text[max(0, start - extra):min(len(text), end + extra)]
