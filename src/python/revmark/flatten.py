"""
Flattened text view of a Document with a per-character position map.

The view keeps one slice of text and one slice of map entries per paragraph.
Paragraph start offsets are recomputed lazily, so re-deriving a spliced
paragraph only touches that paragraph's slice.
"""

from bisect import bisect_right
from enum import Enum
from collections.abc import Sequence
from typing import FrozenSet, Iterator, List, Optional, Tuple

from .model import Document, Entry, Marker, Paragraph, Real, Synthetic


class JoinPolicy(str, Enum):
    """When to synthesize a join space in front of a text run."""
    ALWAYS = "always"
    ALNUM = "alnum"
    NEVER = "never"

    @classmethod
    def parse(cls, value) -> "JoinPolicy":
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        for policy in cls:
            if policy.value == normalized:
                return policy
        raise ValueError(f"Invalid join policy '{value}'. Choose from: {', '.join(p.value for p in cls)}")


def _wants_join(policy: JoinPolicy, last_char: str, text: str) -> bool:
    if not last_char or not text:
        return False
    if policy is JoinPolicy.ALWAYS:
        return True
    if policy is JoinPolicy.ALNUM:
        return last_char.isalnum() and text[0].isalnum()
    return False


def flatten_paragraph(paragraph: Paragraph, p_index: int, policy: JoinPolicy) -> Tuple[str, List[Entry]]:
    """Flatten one paragraph; joins never cross a paragraph boundary."""
    parts: List[str] = []
    entries: List[Entry] = []
    last_char = ""
    previous_lineage = None

    for r_index, run in enumerate(paragraph.runs):
        for child in run.children:
            if isinstance(child, Marker):
                parts.append(" ")
                entries.append(Synthetic(p_index, r_index, "marker"))
                last_char = " "

        text = run.text
        if text is None:
            previous_lineage = run.lineage
            continue

        # Fragments of one split run stay glued together
        if run.lineage is not previous_lineage and _wants_join(policy, last_char, text):
            parts.append(" ")
            entries.append(Synthetic(p_index, r_index, "join"))
            last_char = " "

        parts.append(text)
        entries.extend(Real(p_index, r_index, o) for o in range(len(text)))
        if text:
            last_char = text[-1]
        previous_lineage = run.lineage

    return "".join(parts), entries


class FlatView(Sequence):
    """Flattened text plus position map; indexable like the map itself."""

    def __init__(self, document: Document, join_policy: JoinPolicy = JoinPolicy.ALNUM):
        self.document = document
        self.join_policy = JoinPolicy.parse(join_policy)
        self._texts: List[str] = []
        self._entries: List[List[Entry]] = []
        self._starts: Optional[List[int]] = None
        self._text: Optional[str] = None
        for p_index, para in enumerate(document.paragraphs):
            text, entries = flatten_paragraph(para, p_index, self.join_policy)
            self._texts.append(text)
            self._entries.append(entries)

    @property
    def text(self) -> str:
        if self._text is None:
            self._text = "".join(self._texts)
        return self._text

    def _paragraph_starts(self) -> List[int]:
        if self._starts is None:
            starts = []
            offset = 0
            for entries in self._entries:
                starts.append(offset)
                offset += len(entries)
            starts.append(offset)
            self._starts = starts
        return self._starts

    def __len__(self) -> int:
        return self._paragraph_starts()[-1]

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        size = len(self)
        if index < 0:
            index += size
        if not (0 <= index < size):
            raise IndexError("position map index out of range")
        starts = self._paragraph_starts()
        # Empty paragraphs share a start with their successor; take the last one
        p_index = bisect_right(starts, index, 0, len(self._entries)) - 1
        return self._entries[p_index][index - starts[p_index]]

    def __iter__(self) -> Iterator[Entry]:
        for entries in self._entries:
            yield from entries

    def paragraph_span(self, p_index: int) -> Tuple[int, int]:
        starts = self._paragraph_starts()
        return starts[p_index], starts[p_index + 1]

    def paragraph_text(self, p_index: int) -> str:
        return self._texts[p_index]

    def paragraph_edges(self) -> FrozenSet[int]:
        """Absolute offsets where one paragraph ends and the next begins."""
        return frozenset(self._paragraph_starts()[1:-1])

    def paragraph_separated_text(self, separator: str = "\n") -> str:
        return separator.join(self._texts)

    def rebuild(self, p_index: int) -> None:
        """Re-derive the slice of one paragraph after its runs changed."""
        para = self.document.paragraphs[p_index]
        text, entries = flatten_paragraph(para, p_index, self.join_policy)
        if len(entries) != len(self._entries[p_index]):
            self._starts = None
        self._texts[p_index] = text
        self._entries[p_index] = entries
        self._text = None


def flatten(document: Document, join_policy: JoinPolicy = JoinPolicy.ALNUM) -> FlatView:
    return FlatView(document, join_policy)
