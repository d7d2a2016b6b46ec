"""
Orchestrate detections over a document: locate each value in the
flattened text and restyle every styleable occurrence in place.

Rules:
 - value occurs and every covered run was bold + red  -> red, italic, underline
 - value occurs otherwise                             -> brown, underline
 - value missing from the document                    -> document untouched
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import List, Optional, Sequence, Tuple

from .config import AnnotationSettings
from .detections import Detection
from .flatten import FlatView
from .locator import Hit, find_all, locate, nfkc
from .model import Document, Real
from .splicer import SpliceResult, StructuralGap, apply_style
from .styles import matches_ground_truth, overlay_brown, overlay_exact

logger = logging.getLogger(__name__)

STATUS_STYLED = "styled"
STATUS_NOT_FOUND = "not_found"
STATUS_PARTIAL = "partial"
STATUS_NORMALIZED = "normalized"
STATUS_EMPTY = "empty"


@dataclass
class DetectionOutcome:
    detection: Detection
    status: str
    hits: List[Hit] = field(default_factory=list)
    styled: List[Tuple[int, int]] = field(default_factory=list)
    ground_truth: List[bool] = field(default_factory=list)
    gaps: List[StructuralGap] = field(default_factory=list)

    def to_dict(self):
        return {
            "type": self.detection.type,
            "value": self.detection.value,
            "status": self.status,
            "hits": [{"start": h.start, "end": h.end, "normalized": h.normalized} for h in self.hits],
            "styled": [{"start": s, "end": e, "ground_truth": gt}
                       for (s, e), gt in zip(self.styled, self.ground_truth)],
            "skipped_positions": [g.position for g in self.gaps],
        }


@dataclass
class AnnotationResult:
    document: Document
    view: FlatView
    outcomes: List[DetectionOutcome] = field(default_factory=list)

    @property
    def styled_count(self) -> int:
        return sum(len(o.styled) for o in self.outcomes)

    @property
    def not_found(self) -> List[Detection]:
        return [o.detection for o in self.outcomes if o.status == STATUS_NOT_FOUND]


def span_matches_ground_truth(document: Document, positions: FlatView, start: int, end: int,
                              red_variants=None) -> bool:
    """True when every real character in [start, end) sits in a ground-truth run."""
    kwargs = {"red_variants": red_variants} if red_variants is not None else {}
    seen_real = False
    for i in range(start, end):
        entry = positions[i]
        if not isinstance(entry, Real):
            continue
        run = document.resolve(entry.paragraph, entry.run)
        if run is None:
            continue
        seen_real = True
        if not matches_ground_truth(run.properties, **kwargs):
            return False
    return seen_real


def _overlay_for(settings: AnnotationSettings, ground_truth: bool):
    if ground_truth:
        styler = partial(overlay_exact, color=settings.exact_color, underline=settings.underline)
    else:
        styler = partial(overlay_brown, color=settings.added_color, underline=settings.underline)
    return lambda properties, _was_ground_truth: styler(properties)


def annotate(document: Document, detections: Sequence[Detection],
             settings: Optional[AnnotationSettings] = None,
             view: Optional[FlatView] = None) -> AnnotationResult:
    settings = settings or AnnotationSettings()
    view = view if view is not None else FlatView(document, settings.join_policy)
    result = AnnotationResult(document=document, view=view)

    for det in detections:
        value = det.value or ""
        if not value:
            result.outcomes.append(DetectionOutcome(det, STATUS_EMPTY))
            continue

        # The view is kept current by the splicer, so this sees earlier splices
        text = view.text
        hits = locate(text, value, require_boundary=settings.require_token_boundary,
                      edges=view.paragraph_edges())
        if not hits:
            literal = find_all(text, value) or find_all(text, nfkc(value))
            status = STATUS_PARTIAL if literal else STATUS_NOT_FOUND
            logger.debug("Detection %r: %s", value, status)
            result.outcomes.append(DetectionOutcome(det, status))
            continue

        styleable = [h for h in hits if h.styleable]
        if not styleable:
            logger.debug("Detection %r: only found in normalized digit stream", value)
            result.outcomes.append(DetectionOutcome(det, STATUS_NORMALIZED, hits=hits))
            continue

        outcome = DetectionOutcome(det, STATUS_STYLED, hits=hits)
        # Back-to-front keeps earlier hit offsets valid while splitting
        for hit in sorted(styleable, key=lambda h: h.start, reverse=True):
            ground_truth = span_matches_ground_truth(
                document, view, hit.start, hit.end, settings.red_variants)
            splice: SpliceResult = apply_style(
                document, view, hit.start, hit.end, _overlay_for(settings, ground_truth))
            outcome.styled.insert(0, (hit.start, hit.end))
            outcome.ground_truth.insert(0, ground_truth)
            outcome.gaps.extend(splice.gaps)
        logger.info("Detection %r: styled %d occurrence(s)", value, len(outcome.styled))
        result.outcomes.append(outcome)

    return result
