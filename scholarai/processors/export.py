"""Structural HTML cleanup and export to DOCX and PDF."""

import io
from typing import Iterator, NamedTuple, Optional
from xml.sax.saxutils import escape

from bs4 import BeautifulSoup, Comment, Doctype, Tag
from docx import Document
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer
from reportlab.platypus.doctemplate import LayoutError

from scholarai.utils.logging import get_logger, log_execution_time

logger = get_logger(__name__)

ALLOWED_TAGS = ("h1", "h2", "h3", "p", "ul", "li")
# Removed together with their content; every other tag is unwrapped.
DROPPED_TAGS = ("head", "title", "style", "script", "meta", "link")
HEADING_LEVELS = {"h1": 1, "h2": 2, "h3": 3}
MAX_LIST_DEPTH = 3


class ExportError(Exception):
    """Raised when HTML cannot be rendered to a document."""


class Block(NamedTuple):
    """A renderable unit of structural HTML."""

    kind: str
    text: str
    depth: int = 0


def _normalize(text: str) -> str:
    return " ".join(text.split())


def sanitize_structural_html(html: str) -> str:
    """Reduce HTML to the h1, h2, h3, p, ul and li whitelist.

    Document-shell tags and unknown tags are unwrapped so their text is kept,
    stylesheet and script content is dropped and every attribute is removed.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    for node in soup.find_all(string=lambda s: isinstance(s, (Comment, Doctype))):
        node.extract()
    for tag in soup.find_all(DROPPED_TAGS):
        tag.decompose()
    for tag in soup.find_all(True):
        if tag.name in ALLOWED_TAGS:
            tag.attrs = {}
        else:
            tag.unwrap()

    return str(soup).strip()


def _own_text(item: Tag) -> str:
    parts = []
    for child in item.children:
        if isinstance(child, Tag):
            if child.name in ("ul", "li"):
                continue
            parts.append(child.get_text(" "))
        else:
            parts.append(str(child))
    return _normalize(" ".join(parts))


def _walk(node: Tag, depth: int = 0) -> Iterator[Block]:
    for child in node.children:
        if not isinstance(child, Tag):
            text = _normalize(str(child))
            if text:
                yield Block("p", text, depth)
        elif child.name in HEADING_LEVELS or child.name == "p":
            text = _normalize(child.get_text(" "))
            if text:
                yield Block(child.name, text, depth)
        elif child.name == "ul":
            yield from _walk(child, min(depth + 1, MAX_LIST_DEPTH))
        elif child.name == "li":
            text = _own_text(child)
            if text:
                yield Block("li", text, max(depth, 1))
            for nested in child.find_all("ul", recursive=False):
                yield from _walk(nested, min(depth + 1, MAX_LIST_DEPTH))


def iter_blocks(html: str) -> Iterator[Block]:
    """Yield headings, paragraphs and list items in document order."""
    soup = BeautifulSoup(sanitize_structural_html(html), "html.parser")
    yield from _walk(soup)


@log_execution_time(logger=logger)
def html_to_docx(html: str, title: Optional[str] = None) -> bytes:
    """Render structural HTML as a DOCX document."""
    blocks = list(iter_blocks(html))
    if not blocks:
        raise ExportError("There is no content to export.")

    document = Document()
    if title:
        document.core_properties.title = title

    try:
        for block in blocks:
            if block.kind in HEADING_LEVELS:
                document.add_heading(block.text, level=HEADING_LEVELS[block.kind])
            elif block.kind == "li":
                style = "List Bullet" if block.depth <= 1 else f"List Bullet {block.depth}"
                document.add_paragraph(block.text, style=style)
            else:
                document.add_paragraph(block.text)

        buffer = io.BytesIO()
        document.save(buffer)
    except (KeyError, ValueError) as e:
        logger.error("DOCX export error: %s", str(e))
        raise ExportError(f"Failed to build DOCX document: {str(e)}") from e

    logger.info("Exported %d blocks to DOCX", len(blocks))
    return buffer.getvalue()


def _pdf_styles() -> dict:
    styles = getSampleStyleSheet()
    mapping = {
        "h1": styles["Heading1"],
        "h2": styles["Heading2"],
        "h3": styles["Heading3"],
        "p": styles["BodyText"],
    }
    for depth in range(1, MAX_LIST_DEPTH + 1):
        mapping[f"li{depth}"] = ParagraphStyle(
            name=f"Bullet{depth}",
            parent=styles["BodyText"],
            leftIndent=18 * depth,
            bulletIndent=18 * depth - 12,
        )
    return mapping


@log_execution_time(logger=logger)
def html_to_pdf(html: str, title: Optional[str] = None) -> bytes:
    """Render structural HTML as a PDF document."""
    blocks = list(iter_blocks(html))
    if not blocks:
        raise ExportError("There is no content to export.")

    styles = _pdf_styles()
    story = []
    for block in blocks:
        text = escape(block.text)
        if block.kind == "li":
            story.append(
                Paragraph(text, styles[f"li{block.depth}"], bulletText="•")
            )
        else:
            story.append(Paragraph(text, styles[block.kind]))
            if block.kind in HEADING_LEVELS:
                story.append(Spacer(1, 0.05 * inch))

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=0.75 * inch,
        leftMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=title or "",
    )
    try:
        doc.build(story)
    except (LayoutError, ValueError) as e:
        logger.error("PDF export error: %s", str(e))
        raise ExportError(f"Failed to build PDF document: {str(e)}") from e

    logger.info("Exported %d blocks to PDF", len(blocks))
    return buffer.getvalue()
