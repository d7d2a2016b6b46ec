"""Pytest path setup for src-layout imports, plus shared DOCX fixtures."""

from pathlib import Path
import json
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PYTHON = REPO_ROOT / "src" / "python"

if str(SRC_PYTHON) not in sys.path:
    sys.path.insert(0, str(SRC_PYTHON))


def build_docx(path, paragraphs):
    """Write a DOCX whose paragraphs are lists of (text, bold, hex color or None)."""
    from docx import Document
    from docx.shared import RGBColor

    doc = Document()
    for runs in paragraphs:
        para = doc.add_paragraph()
        for text, bold, color in runs:
            run = para.add_run(text)
            if bold:
                run.bold = True
            if color:
                run.font.color.rgb = RGBColor.from_string(color)
    doc.save(str(path))
    return path


@pytest.fixture
def sample_docx(tmp_path):
    return build_docx(tmp_path / "input.docx", [
        [("Dr. Andreas König", True, "FF0000")],
        [("Office: ", False, None), ("Berlin", False, None)],
    ])


@pytest.fixture
def detections_file(tmp_path):
    path = tmp_path / "detections.json"
    path.write_text(json.dumps({"pii": [
        {"type": "NAME", "value": "Andreas König"},
        {"type": "CITY", "value": "Berlin"},
        {"type": "NAME", "value": "Zzyzx"},
    ]}), encoding="utf-8")
    return path
