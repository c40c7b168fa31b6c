"""Prompt templates and request building for each capability.

Building a request is pure: it validates the typed input, picks the fixed
template for the capability and records the schema the reply must satisfy.
Nothing here talks to a model.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, Union

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel

from scholarai.models.schemas import (
    ChatOutput,
    FormattingSuggestionsOutput,
    ReformatOutput,
    SummaryOutput,
    TemplateFormat,
    TemplateSpec,
)

EMPTY_PAPER_MESSAGE = "Paper content cannot be empty."
EMPTY_PAPER_CHAT_MESSAGE = "Paper content cannot be empty to ask questions."
EMPTY_QUESTION_MESSAGE = "Question cannot be empty."
MISSING_FORMAT_MESSAGE = "Template format must be selected."
MISSING_CUSTOM_TEMPLATE_MESSAGE = (
    "Custom template content is required when the Custom format is selected."
)


class Capability(str, Enum):
    """AI-backed operations offered on a paper."""

    SUMMARIZE = "summarize"
    SUGGEST_FORMATTING = "suggest_formatting"
    REFORMAT = "reformat"
    CHAT = "chat"


class InputValidationError(ValueError):
    """Raised when a required input is empty or a required choice is missing."""

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        super().__init__(message)


@dataclass(frozen=True)
class CapabilityRequest:
    """Everything needed to ask a model for one capability."""

    capability: Capability
    prompt: ChatPromptTemplate
    variables: Dict[str, str] = field(default_factory=dict)
    output_schema: Type[BaseModel] = BaseModel

    def to_messages(self) -> List[BaseMessage]:
        return self.prompt.format_messages(**self.variables)


SYSTEM_PROMPT = (
    "You are ScholarAI, an assistant for academic authors. "
    "You always reply with a single JSON object and no other text."
)

SUMMARIZE_TEMPLATE = """Summarize the following research paper. Focus on the key findings and main points.

Reply with a JSON object of the form {{"summary": "<the summary>"}}.

Research paper:
---
{paper_text}
---"""

SUGGEST_FORMATTING_TEMPLATE = """Analyze the following research paper and identify the common academic sections it contains or should contain (for example Abstract, Introduction, Methodology, Results, Discussion, Conclusion, References).

For each identified section, give a brief suggestion for its content or structure.

Reply with a JSON object listing the sections in the order they should appear:
{{"suggestions": [{{"sectionName": "Introduction", "suggestion": "State the problem, give background and outline the objectives."}}]}}

Leave out any section that is not applicable or cannot be determined. If no section can be identified, reply with {{"suggestions": []}}.

Research paper:
---
{paper_text}
---"""

REFORMAT_TEMPLATE = """You are a meticulous typesetter. Reformat the research paper below so that it follows the structure of the given template. Change only the formatting, never the wording.

Instructions:
1. Analyze the template.
   - If custom template content is given, copy its structure: heading levels, paragraph breaks and the order of sections.
   - Otherwise reproduce the usual structure of the named format (title, abstract, introduction and so on).
2. Place the original paper content into that structure.
   - Match heading levels exactly.
   - Keep all original text, equations and data. Do not summarize, rephrase or omit anything.
3. Produce a single clean HTML string.
   - Use only these tags: <h1>, <h2>, <h3>, <p>, <ul>, <li>.
   - Do not include <html>, <head>, <body> or <style> tags, and no style or class attributes.

Reply with a JSON object of the form {{"reformattedContent": "<the HTML>"}}.

Template format: {template_format}
{exemplar_section}
Original paper content:
---
{paper_text}
---"""

EXEMPLAR_SECTION = """Custom template content for structural reference:
---
{custom_template_content}
---
"""

CHAT_TEMPLATE = """Answer a question about the research paper below, based only on its content.

Reply with a JSON object of the form {{"answer": "<your answer>"}}.

Research paper:
---
{paper_text}
---

Question: {question}"""


def _require(value: Optional[str], field_name: str, message: str) -> str:
    if value is None or not value.strip():
        raise InputValidationError(field_name, message)
    return value


def _prompt(template: str) -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [("system", SYSTEM_PROMPT), ("human", template)]
    )


def build_summarize_request(paper_text: str) -> CapabilityRequest:
    _require(paper_text, "paper_text", EMPTY_PAPER_MESSAGE)
    return CapabilityRequest(
        capability=Capability.SUMMARIZE,
        prompt=_prompt(SUMMARIZE_TEMPLATE),
        variables={"paper_text": paper_text},
        output_schema=SummaryOutput,
    )


def build_suggest_formatting_request(paper_text: str) -> CapabilityRequest:
    _require(paper_text, "paper_text", EMPTY_PAPER_MESSAGE)
    return CapabilityRequest(
        capability=Capability.SUGGEST_FORMATTING,
        prompt=_prompt(SUGGEST_FORMATTING_TEMPLATE),
        variables={"paper_text": paper_text},
        output_schema=FormattingSuggestionsOutput,
    )


def _coerce_format(template_format: Union[TemplateFormat, str, None]) -> TemplateFormat:
    if template_format is None or (
        isinstance(template_format, str) and not template_format.strip()
    ):
        raise InputValidationError("template_format", MISSING_FORMAT_MESSAGE)
    if isinstance(template_format, TemplateFormat):
        return template_format
    for fmt in TemplateFormat:
        if fmt.value.lower() == template_format.strip().lower():
            return fmt
    choices = ", ".join(fmt.value for fmt in TemplateFormat)
    raise InputValidationError(
        "template_format",
        f"Unknown template format: {template_format}. Choose one of {choices}.",
    )


def build_reformat_request(
    paper_text: str,
    template_format: Union[TemplateFormat, str, None],
    custom_template_content: Optional[str] = None,
) -> CapabilityRequest:
    """Build a reformat request.

    The Custom format requires exemplar text, which is embedded verbatim. A
    standard format is driven by its name, plus the exemplar when one is given.
    """
    _require(paper_text, "paper_text", EMPTY_PAPER_MESSAGE)
    fmt = _coerce_format(template_format)
    if fmt.is_custom:
        _require(
            custom_template_content,
            "custom_template_content",
            MISSING_CUSTOM_TEMPLATE_MESSAGE,
        )
    spec = TemplateSpec(format=fmt, reference_text=custom_template_content)

    variables = {"paper_text": paper_text, "template_format": spec.format.value}
    exemplar_section = ""
    if spec.reference_text and spec.reference_text.strip():
        exemplar_section = EXEMPLAR_SECTION
        variables["custom_template_content"] = spec.reference_text

    # The exemplar block is spliced in before the template is parsed so its
    # placeholder is filled like any other variable.
    template = REFORMAT_TEMPLATE.replace("{exemplar_section}", exemplar_section)
    return CapabilityRequest(
        capability=Capability.REFORMAT,
        prompt=_prompt(template),
        variables=variables,
        output_schema=ReformatOutput,
    )


def build_chat_request(paper_text: str, question: str) -> CapabilityRequest:
    _require(paper_text, "paper_text", EMPTY_PAPER_CHAT_MESSAGE)
    _require(question, "question", EMPTY_QUESTION_MESSAGE)
    return CapabilityRequest(
        capability=Capability.CHAT,
        prompt=_prompt(CHAT_TEMPLATE),
        variables={"paper_text": paper_text, "question": question},
        output_schema=ChatOutput,
    )


BUILDERS: Dict[Capability, Callable[..., CapabilityRequest]] = {
    Capability.SUMMARIZE: build_summarize_request,
    Capability.SUGGEST_FORMATTING: build_suggest_formatting_request,
    Capability.REFORMAT: build_reformat_request,
    Capability.CHAT: build_chat_request,
}


def build_request(capability: Union[Capability, str], **fields: Any) -> CapabilityRequest:
    """Build the request for any capability from its keyword fields."""
    return BUILDERS[Capability(capability)](**fields)
