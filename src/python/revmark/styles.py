"""
Run property predicates and overlays.

Ground truth is bold text in one of the accepted reds. A span that was
ground truth gets the "exact" overlay (red, italic, underline); anything
else gets the "brown" overlay (brown, underline). Overlays return new
mappings and leave unrelated keys alone.
"""

from typing import Any, Iterable, Optional

from .model import Properties

RED_VARIANTS = frozenset({"FF0000", "C00000", "E00000"})
EXACT_COLOR = "FF0000"
BROWN_COLOR = "7B3F00"
UNDERLINE = "single"

_FALSE_VALUES = {"0", "false", "off"}


def _toggle_on(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_VALUES
    if isinstance(value, dict):
        val = value.get("val")
        return val is None or str(val).strip().lower() not in _FALSE_VALUES
    return False


def is_bold(properties: Optional[Properties]) -> bool:
    if not isinstance(properties, dict) or "bold" not in properties:
        return False
    return _toggle_on(properties.get("bold"))


def color_of(properties: Optional[Properties]) -> Optional[str]:
    """Hex color of a run, or None when absent or not a plain value."""
    if not isinstance(properties, dict):
        return None
    value = properties.get("color")
    if isinstance(value, dict):
        value = value.get("val")
    if isinstance(value, str) and value:
        return value.upper()
    return None


def matches_ground_truth(properties: Optional[Properties], red_variants: Iterable[str] = RED_VARIANTS) -> bool:
    try:
        color = color_of(properties)
        if color is None or not is_bold(properties):
            return False
        return color in {c.upper() for c in red_variants}
    except Exception:
        # Unexpected property shapes never count as ground truth
        return False


def overlay_exact(properties: Optional[Properties], color: str = EXACT_COLOR,
                  underline: str = UNDERLINE) -> Properties:
    out = dict(properties or {})
    out["italic"] = True
    out["underline"] = underline
    out["color"] = color
    return out


def overlay_brown(properties: Optional[Properties], color: str = BROWN_COLOR,
                  underline: str = UNDERLINE) -> Properties:
    out = dict(properties or {})
    out["underline"] = underline
    out["color"] = color
    return out


def choose_overlay(properties: Optional[Properties], was_ground_truth: bool) -> Properties:
    if was_ground_truth:
        return overlay_exact(properties)
    return overlay_brown(properties)
