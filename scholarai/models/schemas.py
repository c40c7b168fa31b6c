from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

DataT = TypeVar("DataT")


class MediaType(str, Enum):
    """Declared media type of an uploaded document."""

    PDF = "application/pdf"
    DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_declared(cls, declared: Optional[str]) -> "MediaType":
        """Classify a declared content type; anything unknown is UNSUPPORTED."""
        normalized = (declared or "").split(";")[0].strip().lower()
        aliases = {
            "pdf": cls.PDF,
            cls.PDF.value: cls.PDF,
            "docx": cls.DOCX,
            cls.DOCX.value: cls.DOCX,
        }
        return aliases.get(normalized, cls.UNSUPPORTED)

    @property
    def label(self) -> str:
        """Short human-readable name."""
        return {
            MediaType.PDF: "PDF",
            MediaType.DOCX: "DOCX",
            MediaType.UNSUPPORTED: "unsupported",
        }[self]


SUPPORTED_MEDIA_TYPES = (MediaType.PDF, MediaType.DOCX)


class ModelProvider(str, Enum):
    """Supported model providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class TemplateFormat(str, Enum):
    """Target layout for reformatting a paper."""

    IEEE = "IEEE"
    APA = "APA"
    ACM = "ACM"
    CUSTOM = "Custom"

    @property
    def is_custom(self) -> bool:
        return self is TemplateFormat.CUSTOM

    def describe(self) -> str:
        """One-line description used by the template listing endpoint."""
        return {
            TemplateFormat.IEEE: "IEEE conference/journal structure",
            TemplateFormat.APA: "APA 7th edition manuscript structure",
            TemplateFormat.ACM: "ACM proceedings structure",
            TemplateFormat.CUSTOM: "Structure copied from an uploaded exemplar",
        }[self]


class SourceDocument(BaseModel):
    """An uploaded file: raw bytes plus the media type the client declared."""

    content: bytes = Field(..., description="Raw file bytes", repr=False)
    media_type: str = Field(..., description="Declared MIME type")
    filename: Optional[str] = Field(None, description="Original filename")

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def kind(self) -> MediaType:
        return MediaType.from_declared(self.media_type)

    @property
    def size(self) -> int:
        return len(self.content)


class DocumentMetadata(BaseModel):
    """Metadata for an extracted document."""

    filename: Optional[str] = Field(None, description="Original filename")
    file_type: str = Field(..., description="File MIME type")
    file_size: int = Field(..., ge=0, description="File size in bytes")
    page_count: Optional[int] = Field(
        None, description="Number of pages (if applicable)"
    )
    char_count: int = Field(0, ge=0, description="Length of the extracted text")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(extra="forbid")

    @field_validator("file_type")
    @classmethod
    def validate_file_type(cls, v: str) -> str:
        """Validate that the file type is supported."""
        if MediaType.from_declared(v) not in SUPPORTED_MEDIA_TYPES:
            raise ValueError(f"Unsupported file type: {v}")
        return MediaType.from_declared(v).value


class TemplateSpec(BaseModel):
    """A standard template format, or Custom with its structural exemplar."""

    format: TemplateFormat
    reference_text: Optional[str] = Field(
        None, description="Exemplar text whose structure guides reformatting"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def validate_reference(self) -> "TemplateSpec":
        """A custom template needs non-empty reference text."""
        if self.format.is_custom and not (
            self.reference_text and self.reference_text.strip()
        ):
            raise ValueError("A custom template requires non-empty reference text")
        return self


class SectionSuggestion(BaseModel):
    """Formatting advice for one section of a paper."""

    section_name: NonEmptyStr = Field(..., alias="sectionName")
    suggestion: NonEmptyStr

    model_config = ConfigDict(populate_by_name=True)


class SummaryOutput(BaseModel):
    summary: NonEmptyStr = Field(..., description="A concise summary of the paper")


class FormattingSuggestionsOutput(BaseModel):
    suggestions: List[SectionSuggestion] = Field(
        default_factory=list,
        description="Ordered suggestions, one per identified section",
    )

    @field_validator("suggestions", mode="before")
    @classmethod
    def default_missing(cls, v: Any) -> Any:
        return [] if v is None else v


class ReformatOutput(BaseModel):
    reformatted_content: NonEmptyStr = Field(
        ...,
        alias="reformattedContent",
        description="Structural HTML using only h1, h2, h3, p, ul and li",
    )

    model_config = ConfigDict(populate_by_name=True)


class ChatOutput(BaseModel):
    answer: NonEmptyStr = Field(..., description="Answer grounded in the paper")


class ExtractionOutput(BaseModel):
    text: str = Field(..., description="Extracted plain text")
    metadata: DocumentMetadata


class ActionResult(BaseModel, Generic[DataT]):
    """Uniform result of an action: exactly one of data or error is set."""

    data: Optional[DataT] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one(self) -> "ActionResult[DataT]":
        if (self.data is None) == (self.error is None):
            raise ValueError("Exactly one of data or error must be set")
        return self

    @classmethod
    def ok(cls, data: DataT) -> "ActionResult[DataT]":
        return cls(data=data)

    @classmethod
    def fail(cls, error: str) -> "ActionResult[DataT]":
        return cls(error=error)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with wire field names."""
        return self.model_dump(mode="json", by_alias=True)


class ChatMessage(BaseModel):
    """One turn of a chat about the paper."""

    role: Literal["user", "bot"]
    text: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PaperTextRequest(BaseModel):
    """Request body carrying the paper text."""

    paper_text: str = Field("", description="Full text of the paper")


class ChatRequest(BaseModel):
    paper_text: str = Field("", description="Full text of the paper")
    question: str = Field("", description="Question about the paper")


class ReformatRequest(BaseModel):
    paper_text: str = Field("", description="Full text of the paper")
    template_format: Optional[TemplateFormat] = Field(
        None, description="Target template format"
    )
    custom_template_content: Optional[str] = Field(
        None, description="Exemplar text, required for the Custom format"
    )


class ExportRequest(BaseModel):
    html: str = Field(..., description="Structural HTML to export")
    title: Optional[str] = Field(None, description="Document title metadata")
    filename: str = Field(
        "paper", pattern=r"^[\w\-. ]{1,100}$", description="Download name stem"
    )


class SessionPaperRequest(BaseModel):
    paper_text: str = Field("", description="Full text of the paper")


class SessionChatRequest(BaseModel):
    question: str = Field("", description="Question about the session's paper")


class SessionReformatRequest(BaseModel):
    template_format: Optional[TemplateFormat] = Field(
        None, description="Target template format"
    )
    custom_template_content: Optional[str] = Field(
        None, description="Exemplar text, required for the Custom format"
    )
