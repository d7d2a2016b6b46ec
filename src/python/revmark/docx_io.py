from io import BytesIO
import copy
import logging
import zipfile
from docx import Document as open_docx
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .model import Document, Marker, Paragraph, Properties, Run

logger = logging.getLogger(__name__)

MAIN_PART = "word/document.xml"
WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def _safe_fromstring(xml_bytes: bytes):
    """Safe XML parsing that disables entity resolution."""
    from lxml import etree
    parser = etree.XMLParser(resolve_entities=False)
    return etree.fromstring(xml_bytes, parser)


class DocxLoadError(RuntimeError):
    pass


# Friendly property names for common w:rPr children
PROPERTY_ALIASES: Dict[str, str] = {
    "b": "bold",
    "i": "italic",
    "u": "underline",
    "color": "color",
    "strike": "strike",
    "sz": "size",
    "highlight": "highlight",
}
ALIAS_TO_TAG = {alias: tag for tag, alias in PROPERTY_ALIASES.items()}

TOGGLE_TAGS = {
    "b", "bCs", "i", "iCs", "caps", "smallCaps", "strike", "dstrike", "outline",
    "shadow", "emboss", "imprint", "noProof", "snapToGrid", "vanish", "webHidden",
    "rtl", "cs", "specVanish", "oMath",
}

# CT_RPr child sequence; Word rejects run properties written out of order
RPR_ORDER = [
    "rStyle", "rFonts", "b", "bCs", "i", "iCs", "caps", "smallCaps", "strike",
    "dstrike", "outline", "shadow", "emboss", "imprint", "noProof", "snapToGrid",
    "vanish", "webHidden", "color", "spacing", "w", "kern", "position", "sz",
    "szCs", "highlight", "u", "effect", "bdr", "shd", "fitText", "vertAlign",
    "rtl", "cs", "em", "lang", "eastAsianLayout", "specVanish", "oMath", "rPrChange",
]
_RPR_RANK = {tag: i for i, tag in enumerate(RPR_ORDER)}

MARKER_TAGS = {qn("w:tab"): "tab", qn("w:br"): "br", qn("w:cr"): "cr"}
_FALSE_VALUES = {"0", "false", "off"}


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _w_attributes(el) -> Optional[Dict[str, str]]:
    """Attributes keyed by local name, or None when any is outside the w: namespace."""
    attrs = {}
    for key, value in el.attrib.items():
        if not key.startswith(f"{{{WORD_NS}}}"):
            return None
        attrs[_local(key)] = value
    return attrs


def properties_from_rpr(rpr) -> Properties:
    """Translate a w:rPr element into a properties mapping."""
    props: Properties = {}
    if rpr is None:
        return props
    for child in rpr:
        if not isinstance(child.tag, str) or not child.tag.startswith(f"{{{WORD_NS}}}"):
            props[str(child.tag)] = copy.deepcopy(child)
            continue
        tag = _local(child.tag)
        key = PROPERTY_ALIASES.get(tag, tag)
        attrs = _w_attributes(child)
        if len(child) or attrs is None:
            # Nested or foreign content stays opaque
            props[key] = copy.deepcopy(child)
        elif tag in TOGGLE_TAGS and set(attrs) <= {"val"}:
            val = attrs.get("val")
            props[key] = val is None or val.strip().lower() not in _FALSE_VALUES
        elif set(attrs) == {"val"}:
            props[key] = attrs["val"]
        else:
            props[key] = attrs
    return props


def _property_element(key: str, value: Any):
    tag = ALIAS_TO_TAG.get(key, key)
    if isinstance(value, bool):
        el = OxmlElement(f"w:{tag}")
        if not value:
            el.set(qn("w:val"), "0")
        return el
    if isinstance(value, str):
        el = OxmlElement(f"w:{tag}")
        el.set(qn("w:val"), value)
        return el
    if isinstance(value, dict):
        el = OxmlElement(f"w:{tag}")
        for attr, attr_value in value.items():
            el.set(qn(f"w:{attr}"), str(attr_value))
        return el
    if value is None:
        return None
    return copy.deepcopy(value)


def _rank(el) -> int:
    if not isinstance(el.tag, str):
        return len(RPR_ORDER)
    return _RPR_RANK.get(_local(el.tag), len(RPR_ORDER))


def rpr_from_properties(props: Properties):
    """Build a w:rPr element from a properties mapping; None when empty."""
    if not props:
        return None
    children = []
    for key, value in props.items():
        el = _property_element(key, value)
        if el is not None:
            children.append(el)
    if not children:
        return None
    rpr = OxmlElement("w:rPr")
    for el in sorted(children, key=_rank):
        rpr.append(el)
    return rpr


def _parse_run(r_el) -> List[Run]:
    """
    Split one w:r into ordered model runs.

    A piece holds the children that precede its text, then the text itself,
    which is the order the flattener and _make_text_run use. A child that
    follows text starts a new piece, so breaks and references keep their
    place. Pieces share the element, origin and lineage of the w:r.
    """
    props: Properties = {}
    rpr = r_el.find(qn("w:rPr"))
    if rpr is not None:
        props = properties_from_rpr(rpr)

    lineage = object()
    pieces: List[Run] = []

    def new_piece() -> Run:
        piece = Run(properties=dict(props), element=r_el, origin=r_el, lineage=lineage)
        pieces.append(piece)
        return piece

    current = new_piece()
    for child in r_el:
        if child.tag == qn("w:rPr"):
            continue
        if child.tag == qn("w:t"):
            current.text = (current.text or "") + (child.text or "")
            continue
        if current.text is not None:
            current = new_piece()
        if child.tag in MARKER_TAGS:
            current.children.append(Marker(MARKER_TAGS[child.tag], child))
        else:
            current.children.append(child)
    return pieces


def _iter_run_elements(p_el) -> Iterable[Any]:
    """Runs of a paragraph in document order, including wrapped inline runs."""
    for child in p_el:
        if child.tag == qn("w:r"):
            yield child
        elif child.tag in (qn("w:hyperlink"), qn("w:fldSimple"), qn("w:ins")):
            for subchild in child:
                if subchild.tag == qn("w:r"):
                    yield subchild
                elif subchild.tag == qn("w:ins"):
                    for node in subchild:
                        if node.tag == qn("w:r"):
                            yield node
        elif child.tag == qn("w:sdt"):
            for sdt_content in child.iter(qn("w:sdtContent")):
                for subchild in sdt_content:
                    if subchild.tag == qn("w:r"):
                        yield subchild
                    elif subchild.tag == qn("w:ins"):
                        for node in subchild:
                            if node.tag == qn("w:r"):
                                yield node


def _parse_paragraph(p_el) -> Paragraph:
    runs = [piece for r in _iter_run_elements(p_el) for piece in _parse_run(r)]
    return Paragraph(runs=runs, element=p_el)


def _iter_paragraph_elements(container) -> Iterable[Any]:
    # w:body | w:tc | w:sdtContent -> (w:p | w:tbl | w:sdt)
    for child in container:
        if child.tag == qn("w:p"):
            yield child
        elif child.tag == qn("w:tbl"):
            for tr in child.iterchildren(qn("w:tr")):
                for tc in tr.iterchildren(qn("w:tc")):
                    yield from _iter_paragraph_elements(tc)
        elif child.tag == qn("w:sdt"):
            for sdt_content in child.iterchildren(qn("w:sdtContent")):
                yield from _iter_paragraph_elements(sdt_content)


def parse_document(doc) -> Document:
    """Build the run model for the body of a python-docx Document."""
    body = doc.element.body
    return Document(paragraphs=[_parse_paragraph(p) for p in _iter_paragraph_elements(body)])


def _make_text_run(run: Run, source_run=None):
    r = OxmlElement("w:r")
    if source_run is not None:
        # Copy attributes (like rsidR) from source to preserve identity
        for key, value in source_run.attrib.items():
            r.set(key, value)

    rpr = rpr_from_properties(run.properties)
    if rpr is not None:
        r.append(rpr)

    for child in run.children:
        if isinstance(child, Marker):
            if child.payload is not None:
                r.append(copy.deepcopy(child.payload))
            else:
                r.append(OxmlElement(f"w:{child.kind}"))
        else:
            r.append(copy.deepcopy(child))

    if run.text is not None:
        t = OxmlElement("w:t")
        # Preserve spaces so split fragments aren't collapsed
        t.set(qn("xml:space"), "preserve")
        t.text = run.text
        r.append(t)
    return r


def _group_by_origin(runs: List[Run]) -> List[Tuple[Any, List[Run]]]:
    groups: List[Tuple[Any, List[Run]]] = []
    for run in runs:
        if groups and run.origin is not None and groups[-1][0] is run.origin:
            groups[-1][1].append(run)
        else:
            groups.append((run.origin, [run]))
    return groups


def write_paragraph(paragraph: Paragraph) -> int:
    """Write changed runs back into the paragraph's markup; returns runs replaced."""
    replaced = 0
    anchor = None
    for origin, runs in _group_by_origin(paragraph.runs):
        if origin is not None and all(run.element is origin for run in runs):
            anchor = origin
            continue

        new_elements = [_make_text_run(run, origin) for run in runs]
        if origin is not None and origin.getparent() is not None:
            for el in new_elements:
                origin.addprevious(el)
            origin.getparent().remove(origin)
        elif anchor is not None:
            for el in reversed(new_elements):
                anchor.addnext(el)
        elif paragraph.element is not None:
            for el in new_elements:
                paragraph.element.append(el)
        else:
            continue
        for run, el in zip(runs, new_elements):
            run.element = el
            run.origin = el
        anchor = new_elements[-1]
        replaced += 1
    return replaced


class DocxModel:
    """A python-docx document together with its run model."""

    def __init__(self, doc):
        self.doc = doc
        self.document = parse_document(doc)

    @staticmethod
    def _check_container(data: bytes) -> None:
        try:
            with zipfile.ZipFile(BytesIO(data)) as zf:
                if MAIN_PART not in zf.namelist():
                    raise DocxLoadError(f"{MAIN_PART} not found")
                _safe_fromstring(zf.read(MAIN_PART))
        except zipfile.BadZipFile as exc:
            raise DocxLoadError("Invalid DOCX container (ZIP)") from exc
        except DocxLoadError:
            raise
        except Exception as exc:
            raise DocxLoadError(f"Malformed WordprocessingML in {MAIN_PART}: {exc}") from exc

    @staticmethod
    def load_bytes(data: bytes) -> "DocxModel":
        DocxModel._check_container(data)
        return DocxModel(open_docx(BytesIO(data)))

    @staticmethod
    def load(path: str) -> "DocxModel":
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise DocxLoadError(f"Failed to read DOCX: {path}") from exc
        return DocxModel.load_bytes(data)

    def flush(self) -> int:
        replaced = 0
        for para in self.document.paragraphs:
            replaced += write_paragraph(para)
        if replaced:
            logger.debug("Wrote %d changed run(s) back to markup", replaced)
        return replaced

    def save(self, path_or_stream: Union[str, Any]):
        self.flush()
        self.doc.save(path_or_stream)

    def to_bytes(self) -> bytes:
        buf = BytesIO()
        self.save(buf)
        return buf.getvalue()
