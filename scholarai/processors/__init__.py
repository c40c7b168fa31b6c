"""Document processing components: text extraction and export."""

from scholarai.processors.document import (
    ExtractionError,
    ProcessingError,
    TextExtractor,
    UnsupportedFormatError,
)
from scholarai.processors.export import (
    ExportError,
    html_to_docx,
    html_to_pdf,
    sanitize_structural_html,
)

__all__ = [
    "TextExtractor",
    "ProcessingError",
    "UnsupportedFormatError",
    "ExtractionError",
    "ExportError",
    "html_to_docx",
    "html_to_pdf",
    "sanitize_structural_html",
]
