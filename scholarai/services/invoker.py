"""Sends capability requests to a model and validates the replies."""

import json
from typing import Any, Callable, Dict, Optional

from langchain_core.utils.json import parse_json_markdown
from pydantic import BaseModel, ValidationError

from scholarai.models.schemas import (
    FormattingSuggestionsOutput,
    ModelProvider,
    ReformatOutput,
)
from scholarai.processors.export import sanitize_structural_html
from scholarai.services.model_manager import ModelError, ModelManager
from scholarai.services.prompts import Capability, CapabilityRequest
from scholarai.utils.logging import LoggerMixin, log_execution_time


class GenerationError(Exception):
    """Raised when the model call itself fails."""


class SchemaValidationError(GenerationError):
    """Raised when the model replied but the reply does not fit the schema."""


def message_text(message: Any) -> str:
    """Plain text of a chat model reply, whatever its content layout."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


def _shape_reformat(output: BaseModel) -> BaseModel:
    html = sanitize_structural_html(output.reformatted_content)
    if not html:
        raise SchemaValidationError("Reformatted content is empty after cleanup")
    return ReformatOutput(reformatted_content=html)


SHAPERS: Dict[Capability, Callable[[BaseModel], BaseModel]] = {
    Capability.REFORMAT: _shape_reformat,
}


class CapabilityInvoker(LoggerMixin):
    """Calls the model exactly once per request and returns a typed result."""

    def __init__(self, model_manager: ModelManager):
        self.model_manager = model_manager

    @log_execution_time()
    async def invoke(
        self,
        request: CapabilityRequest,
        provider: Optional[ModelProvider] = None,
    ) -> BaseModel:
        """
        Run a capability request.

        Args:
            request: Request built by the prompt builder.
            provider: Provider for this call; the manager's default when None.

        Returns:
            An instance of ``request.output_schema``.

        Raises:
            GenerationError: If the model call fails.
            SchemaValidationError: If the reply does not match the schema.
        """
        messages = request.to_messages()
        self.logger.info(
            "Invoking %s (%d messages)", request.capability.value, len(messages)
        )
        try:
            response = await self.model_manager.invoke(messages, provider=provider)
        except (ModelError, ValueError) as e:
            raise GenerationError(
                f"{request.capability.value} generation failed: {str(e)}"
            ) from e

        content = message_text(response)
        self.logger.debug("Raw %s reply: %.200s", request.capability.value, content)
        return self.parse(request, content)

    def parse(self, request: CapabilityRequest, content: str) -> BaseModel:
        """Validate reply text against the request's output schema."""
        capability = request.capability
        if capability is Capability.SUGGEST_FORMATTING and not content.strip():
            self.logger.warning("Empty formatting reply, returning no suggestions")
            return FormattingSuggestionsOutput()

        try:
            payload = parse_json_markdown(content)
        except (json.JSONDecodeError, ValueError) as e:
            self.logger.error("Unparseable %s reply: %s", capability.value, str(e))
            raise SchemaValidationError(
                f"{capability.value} reply is not valid JSON"
            ) from e

        if not isinstance(payload, dict):
            raise SchemaValidationError(f"{capability.value} reply is not a JSON object")

        try:
            output = request.output_schema.model_validate(payload)
        except ValidationError as e:
            self.logger.error(
                "%s reply failed validation: %s", capability.value, str(e)
            )
            raise SchemaValidationError(
                f"{capability.value} reply does not match the expected shape"
            ) from e

        shaper = SHAPERS.get(capability)
        return shaper(output) if shaper else output
