"""User-facing entry points.

Every action validates its inputs, runs at most one capability and returns an
``ActionResult`` holding either data or a readable error. Nothing raised
downstream reaches the caller: failures are logged here and replaced by a
message suggesting a retry.
"""

import asyncio
from typing import Any, Dict, Optional

from scholarai.models.schemas import (
    ActionResult,
    ExtractionOutput,
    ModelProvider,
    SourceDocument,
    TemplateFormat,
)
from scholarai.processors.document import (
    ExtractionError,
    TextExtractor,
    UnsupportedFormatError,
)
from scholarai.services.invoker import CapabilityInvoker
from scholarai.services.prompts import (
    Capability,
    InputValidationError,
    build_request,
)
from scholarai.services.session import PaperSession
from scholarai.utils.logging import LoggerMixin

FAILURE_MESSAGES = {
    Capability.SUMMARIZE: "Failed to summarize paper. Please try again.",
    Capability.SUGGEST_FORMATTING: (
        "Failed to get formatting suggestions. Please try again."
    ),
    Capability.REFORMAT: "Failed to reformat paper. Please try again.",
    Capability.CHAT: "Failed to get answer from chatbot. Please try again.",
}
EXTRACTION_FAILURE_MESSAGE = "Failed to process the file. Please try again."
NO_TEXT_MESSAGE = (
    "No text could be extracted from the file. "
    "If it is a scanned document, paste its text instead."
)
CHAT_ERROR_PREFIX = "Sorry, I couldn't process that. "


class PaperActions(LoggerMixin):
    """Entry points behind the HTTP API. Holds collaborators, never request state."""

    def __init__(self, invoker: CapabilityInvoker, extractor: TextExtractor):
        self.invoker = invoker
        self.extractor = extractor

    async def _run(
        self,
        capability: Capability,
        provider: Optional[ModelProvider],
        **fields: Any,
    ) -> ActionResult:
        try:
            request = build_request(capability, **fields)
        except InputValidationError as e:
            self.logger.info(
                "Rejected %s request (%s): %s", capability.value, e.field_name, e
            )
            return ActionResult.fail(str(e))

        try:
            output = await self.invoker.invoke(request, provider=provider)
        except Exception:
            self.logger.exception("Error in %s action", capability.value)
            return ActionResult.fail(FAILURE_MESSAGES[capability])

        return ActionResult.ok(output)

    async def handle_extract(self, document: SourceDocument) -> ActionResult:
        """Extract plain text from an uploaded PDF or DOCX file."""
        loop = asyncio.get_running_loop()
        try:
            text, metadata = await loop.run_in_executor(
                None, self.extractor.extract_with_metadata, document
            )
        except UnsupportedFormatError as e:
            self.logger.info("Rejected upload %s: %s", document.filename, e)
            return ActionResult.fail(str(e))
        except ExtractionError as e:
            self.logger.warning("Unreadable upload %s: %s", document.filename, e)
            return ActionResult.fail(str(e))
        except Exception:
            self.logger.exception("Error extracting %s", document.filename)
            return ActionResult.fail(EXTRACTION_FAILURE_MESSAGE)

        if not text.strip():
            self.logger.warning("No text extracted from %s", document.filename)
            return ActionResult.fail(NO_TEXT_MESSAGE)
        return ActionResult.ok(ExtractionOutput(text=text, metadata=metadata))

    async def handle_summarize(
        self, paper_text: str, provider: Optional[ModelProvider] = None
    ) -> ActionResult:
        return await self._run(
            Capability.SUMMARIZE, provider, paper_text=paper_text
        )

    async def handle_suggest_formatting(
        self, paper_text: str, provider: Optional[ModelProvider] = None
    ) -> ActionResult:
        return await self._run(
            Capability.SUGGEST_FORMATTING, provider, paper_text=paper_text
        )

    async def handle_reformat(
        self,
        paper_text: str,
        template_format: Optional[TemplateFormat],
        custom_template_content: Optional[str] = None,
        provider: Optional[ModelProvider] = None,
    ) -> ActionResult:
        return await self._run(
            Capability.REFORMAT,
            provider,
            paper_text=paper_text,
            template_format=template_format,
            custom_template_content=custom_template_content,
        )

    async def handle_chat(
        self,
        paper_text: str,
        question: str,
        provider: Optional[ModelProvider] = None,
    ) -> ActionResult:
        return await self._run(
            Capability.CHAT, provider, paper_text=paper_text, question=question
        )

    async def handle_analyze(
        self, paper_text: str, provider: Optional[ModelProvider] = None
    ) -> Dict[str, ActionResult]:
        """Summarize and suggest formatting concurrently on the same text."""
        summary, suggestions = await asyncio.gather(
            self.handle_summarize(paper_text, provider),
            self.handle_suggest_formatting(paper_text, provider),
        )
        return {"summary": summary, "suggestions": suggestions}

    async def handle_session_extract(
        self, session: PaperSession, document: SourceDocument
    ) -> ActionResult:
        """Extract an upload into a session, tracking the upload state."""
        session.upload.start(document.filename)
        result = await self.handle_extract(document)
        if result.succeeded:
            session.upload.succeed()
            session.set_paper_text(result.data.text)
            session.mark_processed()
        else:
            session.upload.fail(result.error)
        return result

    def _stale(
        self, session: PaperSession, paper_text: str, capability: Capability
    ) -> bool:
        """True when the paper changed while the capability was running."""
        if session.paper_text == paper_text:
            return False
        self.logger.info(
            "Discarding %s result: paper text changed during the call",
            capability.value,
        )
        return True

    async def handle_session_summarize(
        self, session: PaperSession, provider: Optional[ModelProvider] = None
    ) -> ActionResult:
        session.playback.stop()
        paper_text = session.paper_text
        result = await self.handle_summarize(paper_text, provider)
        if not self._stale(session, paper_text, Capability.SUMMARIZE):
            session.set_summary(result.data.summary if result.succeeded else "")
        return result

    async def handle_session_suggest_formatting(
        self, session: PaperSession, provider: Optional[ModelProvider] = None
    ) -> ActionResult:
        paper_text = session.paper_text
        result = await self.handle_suggest_formatting(paper_text, provider)
        if result.succeeded and not self._stale(
            session, paper_text, Capability.SUGGEST_FORMATTING
        ):
            session.set_suggestions(result.data.suggestions)
        return result

    async def handle_session_reformat(
        self,
        session: PaperSession,
        template_format: Optional[TemplateFormat],
        custom_template_content: Optional[str] = None,
        provider: Optional[ModelProvider] = None,
    ) -> ActionResult:
        paper_text = session.paper_text
        result = await self.handle_reformat(
            paper_text, template_format, custom_template_content, provider
        )
        if result.succeeded and not self._stale(
            session, paper_text, Capability.REFORMAT
        ):
            session.reformatted_html = result.data.reformatted_content
        return result

    async def handle_session_chat(
        self,
        session: PaperSession,
        question: str,
        provider: Optional[ModelProvider] = None,
    ) -> ActionResult:
        """Ask about the session's paper; the exchange is kept in its history.

        Rejected questions (empty question or paper) are not recorded.
        """
        try:
            build_request(
                Capability.CHAT, paper_text=session.paper_text, question=question
            )
        except InputValidationError as e:
            return ActionResult.fail(str(e))

        session.add_message("user", question)
        result = await self.handle_chat(session.paper_text, question, provider)
        if result.succeeded:
            session.add_message("bot", result.data.answer)
        else:
            session.add_message("bot", CHAT_ERROR_PREFIX + result.error)
        return result
