"""
Tests for annotate.py module - end-to-end restyling over the run model.

Tests cover:
- Ground-truth spans get the exact overlay, others the brown overlay
- Missing values leave the document untouched
- Embedded and normalized-only hits are reported but never styled
- Later detections see the splices made by earlier ones
"""

import pytest
from revmark.annotate import (
    STATUS_EMPTY,
    STATUS_NORMALIZED,
    STATUS_NOT_FOUND,
    STATUS_PARTIAL,
    STATUS_STYLED,
    annotate,
    span_matches_ground_truth,
)
from revmark.config import AnnotationSettings
from revmark.detections import Detection
from revmark.flatten import FlatView, JoinPolicy
from revmark.model import Document

RED_BOLD = {"bold": True, "color": "FF0000"}
EXACT = {"bold": True, "color": "FF0000", "italic": True, "underline": "single"}


def _snapshot(doc):
    return [[(r.text, dict(r.properties)) for r in p.runs] for p in doc.paragraphs]


class TestAnnotateStyling:
    """Overlay selection."""

    def test_ground_truth_gets_exact_overlay(self):
        """A bold red value is restyled red, italic and underlined."""
        doc = Document.from_runs([("Dr. ", {}), ("Andreas König", RED_BOLD)])
        result = annotate(doc, [Detection("NAME", "Andreas König")])

        assert result.outcomes[0].status == STATUS_STYLED
        assert result.outcomes[0].ground_truth == [True]
        assert _snapshot(doc) == [[("Dr. ", {}), ("Andreas König", EXACT)]]

    def test_plain_text_gets_brown_overlay(self):
        """A value without ground-truth styling is underlined in brown."""
        doc = Document.from_runs([("Lives in Zürich now", {"italic": True})])
        annotate(doc, [Detection("CITY", "Zürich")])
        assert _snapshot(doc) == [[
            ("Lives in ", {"italic": True}),
            ("Zürich", {"italic": True, "underline": "single", "color": "7B3F00"}),
            (" now", {"italic": True}),
        ]]

    def test_partially_red_span_is_not_ground_truth(self):
        """Every covered run must be ground truth for the exact overlay."""
        doc = Document.from_runs([("Andreas ", RED_BOLD), ("König", {})])
        result = annotate(doc, [Detection("NAME", "Andreas König")])
        assert result.outcomes[0].ground_truth == [False]
        colors = {r.properties["color"] for r in doc.paragraphs[0].runs}
        assert colors == {"7B3F00"}

    def test_every_occurrence_is_styled(self):
        doc = Document.from_runs([("Jane met Jane at noon", {})])
        result = annotate(doc, [Detection("NAME", "Jane")])
        assert result.outcomes[0].styled == [(0, 4), (9, 13)]
        assert result.styled_count == 2
        assert [r.text for r in doc.paragraphs[0].runs] == ["Jane", " met ", "Jane", " at noon"]

    def test_custom_colors(self):
        settings = AnnotationSettings(added_color="00AA00", underline="double")
        doc = Document.from_runs([("Jane", {})])
        annotate(doc, [Detection("NAME", "Jane")], settings)
        assert doc.paragraphs[0].runs[0].properties == {"underline": "double", "color": "00AA00"}


class TestAnnotateNoChange:
    """Detections that must leave the document untouched."""

    def test_missing_value_is_noop(self):
        """'Zzyzx' is absent, so nothing changes."""
        doc = Document.from_runs([("Dr. Andreas König", RED_BOLD)], [("Berlin", {})])
        before = _snapshot(doc)
        result = annotate(doc, [Detection("NAME", "Zzyzx")])
        assert result.outcomes[0].status == STATUS_NOT_FOUND
        assert result.not_found == [result.outcomes[0].detection]
        assert _snapshot(doc) == before

    def test_embedded_value_is_partial(self):
        """'art' inside 'startup' is reported but not styled."""
        doc = Document.from_runs([("a startup company", {})])
        before = _snapshot(doc)
        result = annotate(doc, [Detection("WORD", "art")])
        assert result.outcomes[0].status == STATUS_PARTIAL
        assert _snapshot(doc) == before

    def test_embedded_value_styled_without_boundary_check(self):
        settings = AnnotationSettings(require_token_boundary=False)
        doc = Document.from_runs([("a startup company", {})])
        result = annotate(doc, [Detection("WORD", "art")], settings)
        assert result.outcomes[0].status == STATUS_STYLED
        assert [r.text for r in doc.paragraphs[0].runs] == ["a st", "art", "up company"]

    def test_normalized_phone_is_not_styled(self):
        """A reformatted phone number is found but never styled."""
        doc = Document.from_runs([("Call +49 (30) 1234-567 today", {})])
        before = _snapshot(doc)
        result = annotate(doc, [Detection("PHONE", "+49 30 1234567")])
        assert result.outcomes[0].status == STATUS_NORMALIZED
        assert result.outcomes[0].styled == []
        assert _snapshot(doc) == before

    def test_empty_value(self):
        doc = Document.from_runs([("text", {})])
        result = annotate(doc, [Detection("NAME", "")])
        assert result.outcomes[0].status == STATUS_EMPTY


class TestAnnotateSequencing:
    """Detections are applied in order against the live view."""

    def test_later_detection_sees_earlier_splice(self):
        """A second, wider detection spans the fragments of the first."""
        doc = Document.from_runs([("Maria Schmidt", {"bold": True, "color": "C00000"})])
        result = annotate(doc, [Detection("NAME", "Maria"), Detection("NAME", "Maria Schmidt")])

        assert result.outcomes[0].styled == [(0, 5)]
        assert result.outcomes[1].styled == [(0, 13)]
        assert result.outcomes[1].ground_truth == [True]
        runs = doc.paragraphs[0].runs
        assert [r.text for r in runs] == ["Maria", " Schmidt"]
        assert all(r.properties["italic"] is True for r in runs)
        assert result.view.text == "Maria Schmidt"

    def test_view_matches_fresh_flatten(self):
        """The live view stays identical to a from-scratch flatten."""
        doc = Document.from_runs(
            [("Dr. Andreas", RED_BOLD), ("König", {})],
            [("Office: Berlin, Jane Doe", {})],
        )
        result = annotate(doc, [Detection("CITY", "Berlin"), Detection("NAME", "Andreas König"),
                                Detection("NAME", "Jane Doe")])
        fresh = FlatView(doc, JoinPolicy.ALNUM)
        assert result.view.text == fresh.text
        assert list(result.view) == list(fresh)
        assert all(o.status == STATUS_STYLED for o in result.outcomes)

    def test_value_at_paragraph_end(self):
        """A paragraph boundary ends a token even though no space is flattened."""
        doc = Document.from_runs([("Dr. Andreas König", {})], [("Office", {})])
        result = annotate(doc, [Detection("NAME", "Andreas König")])
        assert result.view.text == "Dr. Andreas KönigOffice"
        assert result.outcomes[0].styled == [(4, 17)]

    def test_join_policy_never_changes_matching(self):
        """Without joins, words in adjacent runs run together."""
        doc = Document.from_runs([("Andreas", {}), ("König", {})])
        result = annotate(doc, [Detection("NAME", "Andreas König")],
                          AnnotationSettings(join_policy="never"))
        assert result.outcomes[0].status == STATUS_NOT_FOUND


class TestSpanGroundTruth:
    """Test span_matches_ground_truth()."""

    def test_synthetic_only_span(self):
        """A span with no real characters is not ground truth."""
        doc = Document.from_runs([("Andreas", RED_BOLD), ("König", RED_BOLD)])
        view = FlatView(doc)
        assert span_matches_ground_truth(doc, view, 7, 8) is False
        assert span_matches_ground_truth(doc, view, 0, 13) is True
