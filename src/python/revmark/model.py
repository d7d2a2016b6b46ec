"""
In-memory document model used by the flatten/locate/splice engine.

A Document owns Paragraphs, a Paragraph owns Runs. Runs carry a properties
mapping, an optional text payload and opaque children. Nothing here knows
about WordprocessingML; docx_io translates between markup and this model.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

Properties = Dict[str, Any]

MARKER_KINDS = ("tab", "br", "cr")


class Marker(NamedTuple):
    """A control marker child (tab, break) that flattens to one space."""
    kind: str
    payload: Any = None


class Real(NamedTuple):
    paragraph: int
    run: int
    offset: int


class Synthetic(NamedTuple):
    paragraph: int
    run: int
    kind: str  # "marker" | "join"


Entry = Union[Real, Synthetic]


@dataclass
class Run:
    properties: Properties = field(default_factory=dict)
    text: Optional[str] = None
    children: List[Any] = field(default_factory=list)
    # Backing markup element while the run is untouched since parsing
    element: Any = field(default=None, repr=False, compare=False)
    # Markup element this run (or the run it was split from) was parsed from
    origin: Any = field(default=None, repr=False, compare=False)
    # Shared by every fragment split out of one parsed run
    lineage: object = field(default_factory=object, repr=False, compare=False)

    @property
    def marker_count(self) -> int:
        return sum(1 for child in self.children if isinstance(child, Marker))

    @property
    def pristine(self) -> bool:
        return self.element is not None

    def fragment(self, text: str, properties: Properties, children: Optional[List[Any]] = None) -> "Run":
        """Build a replacement piece of this run; it keeps origin and lineage."""
        return Run(
            properties=properties,
            text=text,
            children=list(children or []),
            origin=self.origin,
            lineage=self.lineage,
        )


@dataclass
class Paragraph:
    runs: List[Run] = field(default_factory=list)
    element: Any = field(default=None, repr=False, compare=False)

    @property
    def text(self) -> str:
        return "".join(run.text or "" for run in self.runs)


@dataclass
class Document:
    paragraphs: List[Paragraph] = field(default_factory=list)

    def resolve(self, paragraph: int, run: int) -> Optional[Run]:
        """Return the run at (paragraph, run) or None when either index is stale."""
        if not (0 <= paragraph < len(self.paragraphs)):
            return None
        runs = self.paragraphs[paragraph].runs
        if not (0 <= run < len(runs)):
            return None
        return runs[run]

    def iter_runs(self) -> Iterator[Tuple[int, int, Run]]:
        for p_idx, para in enumerate(self.paragraphs):
            for r_idx, run in enumerate(para.runs):
                yield p_idx, r_idx, run

    @classmethod
    def from_runs(cls, *paragraphs: List[Tuple[str, Properties]]) -> "Document":
        """Convenience constructor: each argument is a list of (text, properties)."""
        return cls(paragraphs=[
            Paragraph(runs=[Run(properties=dict(props), text=text) for text, props in para])
            for para in paragraphs
        ])
