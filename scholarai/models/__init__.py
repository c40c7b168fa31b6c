"""
Data models and schemas for the paper assistant.
This package contains all Pydantic models used for validation and serialization.
"""

from scholarai.models.schemas import (
    SUPPORTED_MEDIA_TYPES,
    ActionResult,
    ChatMessage,
    ChatOutput,
    ChatRequest,
    DocumentMetadata,
    ExportRequest,
    ExtractionOutput,
    FormattingSuggestionsOutput,
    MediaType,
    ModelProvider,
    PaperTextRequest,
    ReformatOutput,
    ReformatRequest,
    SectionSuggestion,
    SessionChatRequest,
    SessionReformatRequest,
    SessionPaperRequest,
    SourceDocument,
    SummaryOutput,
    TemplateFormat,
    TemplateSpec,
)

__all__ = [
    "SUPPORTED_MEDIA_TYPES",
    "ActionResult",
    "ChatMessage",
    "ChatOutput",
    "ChatRequest",
    "DocumentMetadata",
    "ExportRequest",
    "ExtractionOutput",
    "FormattingSuggestionsOutput",
    "MediaType",
    "ModelProvider",
    "PaperTextRequest",
    "ReformatOutput",
    "ReformatRequest",
    "SectionSuggestion",
    "SessionChatRequest",
    "SessionReformatRequest",
    "SessionPaperRequest",
    "SourceDocument",
    "SummaryOutput",
    "TemplateFormat",
    "TemplateSpec",
]
