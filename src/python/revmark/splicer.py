"""
Split and restyle the runs covering an absolute range of flattened text.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .flatten import FlatView
from .model import Document, Properties, Real, Run
from .styles import matches_ground_truth

logger = logging.getLogger(__name__)

OverlayChooser = Callable[[Properties, bool], Properties]
TextTransform = Callable[[str], str]


@dataclass
class StructuralGap:
    position: int
    reason: str


@dataclass
class SpliceResult:
    start: int
    end: int
    styled_chars: int = 0
    replaced_runs: int = 0
    gaps: List[StructuralGap] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.gaps


def _split_run(run: Run, offset: int, take: int, choose_overlay: OverlayChooser,
               transform_text: Optional[TextTransform]) -> List[Run]:
    txt = run.text or ""
    before = txt[:offset]
    middle = txt[offset:offset + take]
    after = txt[offset + take:]

    original = run.properties or {}
    was_ground_truth = matches_ground_truth(original)

    if transform_text is not None:
        replaced = transform_text(middle)
        if len(replaced) != len(middle):
            raise ValueError("text transform must preserve length")
        middle = replaced

    pieces: List[Run] = []
    if before:
        pieces.append(run.fragment(before, dict(original)))
    pieces.append(run.fragment(middle, choose_overlay(dict(original), was_ground_truth)))
    if after:
        pieces.append(run.fragment(after, dict(original)))
    # Opaque children (markers, drawings, field chars) stay with the first piece
    pieces[0].children = list(run.children)
    return pieces


def apply_style(document: Document, positions: FlatView, start: int, end: int,
                choose_overlay: OverlayChooser,
                transform_text: Optional[TextTransform] = None) -> SpliceResult:
    """
    Restyle every real character in [start, end).

    Synthetic positions are skipped without splitting anything. Each covered
    run is replaced by up to three fragments and the paragraph's slice of
    the position map is re-derived before moving on. Positions that no
    longer resolve are recorded as StructuralGap and skipped one at a time.

    Ranges that share a paragraph must be applied back-to-front.
    """
    if not (0 <= start < end <= len(positions)):
        raise ValueError(f"Invalid range [{start}, {end}) for position map of length {len(positions)}")

    result = SpliceResult(start=start, end=end)
    i = start
    # A stale view can shrink when a paragraph is re-derived
    while i < min(end, len(positions)):
        entry = positions[i]
        if not isinstance(entry, Real):
            i += 1
            continue

        run = document.resolve(entry.paragraph, entry.run)
        if run is None or run.text is None or not (0 <= entry.offset < len(run.text)):
            gap = StructuralGap(i, f"no run text at paragraph {entry.paragraph}, run {entry.run}, offset {entry.offset}")
            logger.warning("Skipping unresolvable position %d: %s", i, gap.reason)
            result.gaps.append(gap)
            i += 1
            continue

        take = min(len(run.text) - entry.offset, end - i)
        pieces = _split_run(run, entry.offset, take, choose_overlay, transform_text)
        runs = document.paragraphs[entry.paragraph].runs
        runs[entry.run:entry.run + 1] = pieces
        positions.rebuild(entry.paragraph)

        logger.debug(
            "Split paragraph %d run %d at offset %d (+%d) into %d fragments",
            entry.paragraph, entry.run, entry.offset, take, len(pieces),
        )
        result.styled_chars += take
        result.replaced_runs += 1
        i += take
    return result
