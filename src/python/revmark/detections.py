"""
Detection records ({type, value}) and the JSON files that carry them.
"""

import json
from dataclasses import dataclass
from typing import Any, List


@dataclass(eq=False)
class Detection:
    """One detected value. Compared by identity so duplicates stay distinct."""
    type: str
    value: str

    def to_dict(self):
        return {"type": self.type, "value": self.value}


def parse_detections(payload: Any) -> List[Detection]:
    """Accept {"pii": [...]} or a bare list of {type, value} objects."""
    if isinstance(payload, dict):
        items = payload.get("pii")
    else:
        items = payload
    if not isinstance(items, list):
        raise ValueError("Detections must be a list or an object with a 'pii' list")

    detections: List[Detection] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"Detection {i} is not an object")
        value = item.get("value")
        detections.append(Detection(
            type=str(item.get("type") or ""),
            value="" if value is None else str(value),
        ))
    return detections


def load_detections(path: str) -> List[Detection]:
    with open(path, "r", encoding="utf-8") as fh:
        return parse_detections(json.load(fh))
