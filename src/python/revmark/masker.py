"""
Mask detected values in place with 'X' characters.

Letters and digits become 'X'; whitespace and punctuation are kept, so the
flattened text keeps its length and every position map stays aligned.
Formatting of the masked characters is left as it was.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .config import AnnotationSettings
from .detections import Detection
from .flatten import FlatView
from .locator import find_variants, merge_ranges
from .model import Document
from .splicer import StructuralGap, apply_style

logger = logging.getLogger(__name__)


def mask_text(text: str) -> str:
    """
    Replace letters and digits with 'X'.

    Punctuation stays visible, so a masked phone or ID keeps its shape:
    "+49 (30) 1234-567" becomes "+XX (XX) XXXX-XXX". Join decisions under
    the alnum policy depend on that punctuation staying put.
    """
    return "".join("X" if ch.isalnum() else ch for ch in text)


def _keep_properties(properties, _was_ground_truth):
    return dict(properties)


@dataclass
class MaskResult:
    document: Document
    view: FlatView
    ranges: List[Tuple[int, int]] = field(default_factory=list)
    not_found: List[Detection] = field(default_factory=list)
    gaps: List[StructuralGap] = field(default_factory=list)


def mask_document(document: Document, detections: Sequence[Detection],
                  settings: Optional[AnnotationSettings] = None) -> MaskResult:
    settings = settings or AnnotationSettings()
    view = FlatView(document, settings.join_policy)
    text = view.text
    result = MaskResult(document=document, view=view)

    found: List[Tuple[int, int]] = []
    for det in detections:
        value = (det.value or "").strip()
        if not value:
            continue
        ranges = find_variants(text, value)
        logger.debug("Mask %r: %d occurrence(s)", value, len(ranges))
        if not ranges:
            result.not_found.append(det)
        found.extend(ranges)

    result.ranges = merge_ranges(found)
    for start, end in reversed(result.ranges):
        splice = apply_style(document, view, start, end, _keep_properties, transform_text=mask_text)
        result.gaps.extend(splice.gaps)
    logger.info("Masked %d range(s)", len(result.ranges))
    return result
