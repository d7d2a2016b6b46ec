"""
Evaluate detections against a document's text.

Returns which detections were matched exactly, only in normalized form,
only as sub-token substrings, or not at all, plus duplicate counts and
natural-language notes for each detection.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .detections import Detection
from .locator import (
    Hit,
    find_all,
    has_token_boundary,
    is_email,
    is_phone,
    near_misses,
    nfkc,
    normalize_phone,
    similarity,
    window_around,
    NORMALIZED_HIT,
)

PARTIAL_WINDOW = 14
PARTIAL_SIMILARITY = 0.75


@dataclass
class Match:
    detection: Detection
    hits: List[Hit]
    status: str  # "exact" | "partial"


@dataclass
class Duplicate:
    value: str
    count_in_json: int
    count_in_doc: int

    @property
    def extra(self) -> int:
        return self.count_in_json - self.count_in_doc


@dataclass
class EvaluationResult:
    matched: List[Match] = field(default_factory=list)
    not_found: List[Detection] = field(default_factory=list)
    partials: List[Detection] = field(default_factory=list)
    duplicates: List[Duplicate] = field(default_factory=list)
    occurrences: Dict[str, List[Hit]] = field(default_factory=dict)
    notes: Dict[Detection, List[str]] = field(default_factory=dict)

    def add_note(self, detection: Detection, message: str) -> None:
        self.notes.setdefault(detection, []).append(message)

    def to_dict(self, detections: Sequence[Detection]) -> dict:
        status = {}
        for m in self.matched:
            status[m.detection] = m.status
        for d in self.partials:
            status[d] = "substring"
        for d in self.not_found:
            status[d] = "not_found"
        return {
            "detections": [
                {**d.to_dict(), "status": status.get(d, "unknown"), "notes": self.notes.get(d, [])}
                for d in detections
            ],
            "duplicates": [
                {"value": x.value, "countInJson": x.count_in_json, "countInDoc": x.count_in_doc, "extra": x.extra}
                for x in self.duplicates
            ],
        }


def _raw_hits(text: str, value: str) -> List[Hit]:
    if is_phone(value):
        if find_all(normalize_phone(text), normalize_phone(value)):
            return [NORMALIZED_HIT]
        return []
    return [Hit(s, e) for s, e in find_all(text, value)]


def evaluate_detections(doc_text: str, detections: Sequence[Detection]) -> EvaluationResult:
    text = nfkc(doc_text)
    result = EvaluationResult()

    by_value: Dict[str, List[Detection]] = {}
    for d in detections:
        by_value.setdefault(nfkc(str(d.value or "").strip()), []).append(d)

    for d in detections:
        v = nfkc(str(d.value or ""))
        if not v:
            result.not_found.append(d)
            result.add_note(d, "Empty value in JSON.")
            continue

        hits = _raw_hits(text, v)
        if not hits:
            near = near_misses(text, v)
            if near:
                result.add_note(d, "Not found; nearest text candidates: "
                                + ", ".join(f'"{x}"' for x in near) + ".")
            result.not_found.append(d)
            continue

        good = [h for h in hits if h.normalized or is_email(v) or has_token_boundary(text, h.start, h.end)]
        if not good:
            result.partials.append(d)
            result.add_note(d, "Found only as a substring (token boundary mismatch).")
            continue

        result.occurrences[v] = result.occurrences.get(v, []) + good
        status = "partial" if any(h.start == -1 for h in good) else "exact"
        result.matched.append(Match(detection=d, hits=good, status=status))
        if len(good) > 1:
            result.add_note(d, f"Appears {len(good)} times in document.")

    for value, listed in by_value.items():
        occ = result.occurrences.get(value, [])
        if len(listed) > len(occ):
            result.duplicates.append(Duplicate(value, len(listed), len(occ)))
            for idx, d in enumerate(listed):
                if idx >= len(occ):
                    result.add_note(d, f"Duplicate: JSON lists {len(listed)}, but document has {len(occ)}.")

    for d in result.partials:
        v = nfkc(str(d.value or ""))
        for s, e in find_all(text, v):
            w = window_around(text, s, e, PARTIAL_WINDOW)
            if similarity(v, w) >= PARTIAL_SIMILARITY:
                result.add_note(d, f"Partial match near “…{w}…”. "
                                   "Consider boundary/spacing/diacritics issues.")
                break

    return result
