"""Test configuration and shared fixtures."""

import io
import os
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import docx
import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from scholarai.api.endpoints import app
from scholarai.models.schemas import MediaType, SourceDocument
from scholarai.processors.document import TextExtractor
from scholarai.services.actions import PaperActions
from scholarai.services.invoker import CapabilityInvoker
from scholarai.services.model_manager import ModelManager

# Minimal valid PDF with extractable text
SAMPLE_PDF_BYTES = b"""%PDF-1.7
1 0 obj
<</Type/Catalog/Pages 2 0 R>>
endobj
2 0 obj
<</Type/Pages/Kids[3 0 R]/Count 1>>
endobj
3 0 obj
<</Type/Page/Parent 2 0 R/MediaBox[0 0 612 792]/Contents 4 0 R/Resources<</Font<</F1<</Type/Font/Subtype/Type1/BaseFont/Helvetica>>>>>>
endobj
4 0 obj
<</Length 68>>
stream
BT
/F1 12 Tf
72 720 Td
(Test PDF Content) Tj
ET
endstream
endobj
xref
0 5
0000000000 65535 f
0000000015 00000 n
0000000061 00000 n
0000000111 00000 n
0000000254 00000 n
trailer
<</Root 1 0 R/Size 5>>
startxref
372
%%EOF"""


# Environment setup fixtures
@pytest.fixture(autouse=True)
def env_setup():
    """Set up test environment variables with valid test keys."""
    os.environ.update(
        {
            "OPENAI_API_KEY": "sk-1234567890abcdefghijklmnopqrstuvwxyz1234",
            "ANTHROPIC_API_KEY": "sk-ant-REDACTED",
            "DEFAULT_MODEL": "openai",
            "LOG_LEVEL": "DEBUG",
        }
    )
    yield


@pytest.fixture
def test_client():
    """Provide a test client for the FastAPI application."""
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# Document fixtures
@pytest.fixture
def sample_pdf() -> SourceDocument:
    """A one-page PDF upload containing "Test PDF Content"."""
    return SourceDocument(
        content=SAMPLE_PDF_BYTES, media_type=MediaType.PDF.value, filename="test.pdf"
    )


@pytest.fixture
def corrupted_pdf() -> SourceDocument:
    """A PDF upload whose bytes cannot be parsed."""
    return SourceDocument(
        content=b"%PDF-1.7\nThis is not a valid PDF file\n%%EOF",
        media_type=MediaType.PDF.value,
        filename="corrupted.pdf",
    )


@pytest.fixture
def docx_bytes() -> Callable[..., bytes]:
    """Build a DOCX file in memory from a list of paragraphs."""

    def _build(*paragraphs: str) -> bytes:
        document = docx.Document()
        for text in paragraphs:
            document.add_paragraph(text)
        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    return _build


@pytest.fixture
def sample_docx(docx_bytes) -> SourceDocument:
    """A two-paragraph DOCX upload."""
    return SourceDocument(
        content=docx_bytes("First paragraph.", "Second paragraph."),
        media_type=MediaType.DOCX.value,
        filename="test.docx",
    )


# Model fixtures
@pytest.fixture
def mock_model_manager():
    """A model manager whose invoke coroutine is mocked."""
    manager = MagicMock(spec=ModelManager)
    manager.invoke = AsyncMock(return_value=AIMessage(content="{}"))
    return manager


@pytest.fixture
def reply(mock_model_manager) -> Callable[[str], None]:
    """Set the raw text the mocked model replies with."""

    def _reply(content: str) -> None:
        mock_model_manager.invoke.return_value = AIMessage(content=content)

    return _reply


@pytest.fixture
def invoker(mock_model_manager) -> CapabilityInvoker:
    return CapabilityInvoker(mock_model_manager)


@pytest.fixture
def actions(invoker) -> PaperActions:
    return PaperActions(invoker, TextExtractor())
