"""Text extraction for uploaded papers (PDF and DOCX)."""

import io
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from zipfile import BadZipFile

import docx
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from scholarai.models.schemas import (
    SUPPORTED_MEDIA_TYPES,
    DocumentMetadata,
    MediaType,
    SourceDocument,
)
from scholarai.utils.logging import LoggerMixin, log_execution_time


class ProcessingError(Exception):
    """Base class for document processing errors."""


class UnsupportedFormatError(ProcessingError):
    """Raised when the declared media type is not PDF or DOCX."""


class ExtractionError(ProcessingError):
    """Raised when a supported file cannot be parsed."""


def supported_types_label() -> str:
    return " or ".join(kind.label for kind in SUPPORTED_MEDIA_TYPES)


class TextExtractor(LoggerMixin):
    """Turns an uploaded PDF or DOCX document into plain text.

    Only the declared media type decides how a document is parsed; the bytes
    are never sniffed. Parsing is delegated to pypdf and python-docx.
    """

    def __init__(self) -> None:
        self._handlers: Dict[
            MediaType, Callable[[SourceDocument], Tuple[str, Optional[int]]]
        ] = {
            MediaType.PDF: self._extract_pdf,
            MediaType.DOCX: self._extract_docx,
        }

    def extract(self, document: SourceDocument) -> str:
        """Extract the text of a document.

        Raises:
            UnsupportedFormatError: The declared type is not PDF or DOCX.
            ExtractionError: The file could not be parsed.
        """
        text, _ = self._dispatch(document)
        return text

    def extract_with_metadata(
        self, document: SourceDocument
    ) -> Tuple[str, DocumentMetadata]:
        """Extract the text of a document along with its metadata."""
        text, page_count = self._dispatch(document)
        metadata = DocumentMetadata(
            filename=document.filename,
            file_type=document.kind.value,
            file_size=document.size,
            page_count=page_count,
            char_count=len(text),
        )
        self.logger.debug("Created metadata: %s", metadata.model_dump())
        return text, metadata

    @log_execution_time()
    def _dispatch(self, document: SourceDocument) -> Tuple[str, Optional[int]]:
        kind = document.kind
        self.logger.info(
            "Extracting text from %s (declared type %s, %d bytes)",
            document.filename or "<unnamed>",
            document.media_type,
            document.size,
        )
        if kind not in self._handlers:
            self.logger.error("Unsupported file type: %s", document.media_type)
            raise UnsupportedFormatError(
                f"Unsupported file type: {document.media_type or 'unknown'}. "
                f"Please upload a {supported_types_label()} file."
            )

        text, page_count = self._handlers[kind](document)
        self.logger.info(
            "Extracted %d characters from %s document", len(text), kind.label
        )
        self.logger.debug("Extracted text preview (first 200 chars): %.200s", text)
        return text, page_count

    @staticmethod
    def _page_items(page: Any) -> List[str]:
        items: List[str] = []

        # pypdf chunks may carry line breaks; each line counts as one item
        def visit(text: str, *_: Any) -> None:
            for piece in text.splitlines():
                piece = piece.strip()
                if piece:
                    items.append(piece)

        page.extract_text(visitor_text=visit)
        return items

    def _extract_pdf(self, document: SourceDocument) -> Tuple[str, Optional[int]]:
        """Join each page's text items with a space; pages are joined directly."""
        try:
            reader = PdfReader(io.BytesIO(document.content), strict=False)
            pages: List[str] = []
            for page_number, page in enumerate(reader.pages, start=1):
                items = self._page_items(page)
                if not items:
                    self.logger.warning("No text found on page %d", page_number)
                pages.append(" ".join(items))
        except (PyPdfError, OSError, ValueError, KeyError, TypeError) as e:
            self.logger.error("PDF processing error: %s", str(e))
            raise ExtractionError(
                "Could not read the PDF file. It may be corrupt or unreadable."
            ) from e

        self.logger.debug("Read %d PDF pages", len(pages))
        return "".join(pages), len(pages)

    @classmethod
    def _block_paragraphs(cls, parent: Any, element: Any) -> Iterator[Paragraph]:
        """Paragraphs in document order, descending into table cells."""
        for child in element.iterchildren():
            if child.tag == qn("w:p"):
                yield Paragraph(child, parent)
            elif child.tag == qn("w:tbl"):
                table = Table(child, parent)
                for row in table.rows:
                    seen: List[Any] = []
                    for cell in row.cells:
                        # merged cells repeat the same element across the row
                        if any(cell._tc is tc for tc in seen):
                            continue
                        seen.append(cell._tc)
                        yield from cls._block_paragraphs(cell, cell._tc)

    def _extract_docx(self, document: SourceDocument) -> Tuple[str, Optional[int]]:
        """Raw paragraph text, each paragraph followed by a blank line."""
        try:
            doc = docx.Document(io.BytesIO(document.content))
            paragraphs = [
                paragraph.text
                for paragraph in self._block_paragraphs(doc, doc.element.body)
            ]
        except (PackageNotFoundError, BadZipFile, OSError, ValueError, KeyError) as e:
            self.logger.error("DOCX processing error: %s", str(e))
            raise ExtractionError(
                "Could not read the DOCX file. It may be corrupt or unreadable."
            ) from e

        self.logger.debug("Read %d DOCX paragraphs", len(paragraphs))
        return "".join(f"{text}\n\n" for text in paragraphs), None
