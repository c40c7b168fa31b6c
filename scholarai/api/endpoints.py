"""API endpoints for the paper assistant."""

from typing import Any, Dict, Optional

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from scholarai.api.config import (
    get_model_manager,
    get_paper_actions,
    get_session_store,
    get_settings,
)
from scholarai.config.settings import Settings
from scholarai.models.schemas import (
    ChatRequest,
    ExportRequest,
    ModelProvider,
    PaperTextRequest,
    ReformatRequest,
    SessionChatRequest,
    SessionPaperRequest,
    SessionReformatRequest,
    SourceDocument,
    TemplateFormat,
)
from scholarai.processors.export import ExportError, html_to_docx, html_to_pdf
from scholarai.services.actions import PaperActions
from scholarai.services.model_manager import APIKeyError, ModelManager
from scholarai.services.session import (
    InvalidTransitionError,
    PaperSession,
    SessionNotFoundError,
    SessionStore,
)
from scholarai.utils.logging import PACKAGE_LOGGER, get_logger, setup_logger

setup_logger(PACKAGE_LOGGER, level=Settings().LOG_LEVEL)
logger = get_logger(__name__)

API_VERSION = "1.0.0"
DOCX_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
PLAYBACK_ERROR_MESSAGE = "Speech playback failed."

app = FastAPI(
    title="ScholarAI API",
    description="Summaries, formatting advice, reformatting and Q&A for research papers",
    version=API_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(
    request: Request, exc: SessionNotFoundError
) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Session not found"})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(
    request: Request, exc: InvalidTransitionError
) -> JSONResponse:
    logger.info("Rejected session transition on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(APIKeyError)
async def api_key_error_handler(request: Request, exc: APIKeyError) -> JSONResponse:
    logger.error("Model provider not configured: %s", exc)
    return JSONResponse(
        status_code=503, content={"detail": "No language model is configured."}
    )


async def read_upload(file: UploadFile, settings: Settings) -> SourceDocument:
    """Read an upload into memory, enforcing the size limit."""
    content = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        logger.error("Upload %s exceeds %d bytes", file.filename, settings.MAX_UPLOAD_BYTES)
        raise HTTPException(
            status_code=413,
            detail=f"File is larger than {settings.MAX_UPLOAD_BYTES} bytes",
        )
    logger.debug(
        "Read upload %s (%s, %d bytes)", file.filename, file.content_type, len(content)
    )
    return SourceDocument(
        content=content, media_type=file.content_type or "", filename=file.filename
    )


def get_session(
    session_id: str, store: SessionStore = Depends(get_session_store)
) -> PaperSession:
    return store.get(session_id)


def get_processed_session(
    session: PaperSession = Depends(get_session),
) -> PaperSession:
    if not session.is_processed:
        raise InvalidTransitionError("Process the paper content first")
    return session


@app.post("/extract/")
async def extract_text(
    file: UploadFile = File(...),
    actions: PaperActions = Depends(get_paper_actions),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Extract plain text from an uploaded PDF or DOCX paper."""
    logger.info("Received extraction request for file: %s", file.filename)
    document = await read_upload(file, settings)
    result = await actions.handle_extract(document)
    return result.to_dict()


@app.post("/summarize/")
async def summarize(
    body: PaperTextRequest,
    provider: Optional[ModelProvider] = Query(None),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    """Summarize a paper."""
    result = await actions.handle_summarize(body.paper_text, provider)
    return result.to_dict()


@app.post("/suggest-formatting/")
async def suggest_formatting(
    body: PaperTextRequest,
    provider: Optional[ModelProvider] = Query(None),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    """Suggest content and structure for each section of a paper."""
    result = await actions.handle_suggest_formatting(body.paper_text, provider)
    return result.to_dict()


@app.post("/analyze/")
async def analyze(
    body: PaperTextRequest,
    provider: Optional[ModelProvider] = Query(None),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    """Summarize and suggest formatting in one call."""
    results = await actions.handle_analyze(body.paper_text, provider)
    return {name: result.to_dict() for name, result in results.items()}


@app.post("/reformat/")
async def reformat(
    body: ReformatRequest,
    provider: Optional[ModelProvider] = Query(None),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    """Reformat a paper into a template's structure as structural HTML."""
    logger.info(
        "Reformat requested with format %s",
        body.template_format.value if body.template_format else None,
    )
    result = await actions.handle_reformat(
        body.paper_text, body.template_format, body.custom_template_content, provider
    )
    return result.to_dict()


@app.post("/reformat/upload/")
async def reformat_upload(
    template_format: Optional[TemplateFormat] = Form(None),
    paper_text: Optional[str] = Form(None),
    paper_file: Optional[UploadFile] = File(None),
    template_file: Optional[UploadFile] = File(None),
    provider: Optional[ModelProvider] = Query(None),
    actions: PaperActions = Depends(get_paper_actions),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Reformat with the paper and/or the custom exemplar given as files."""
    if paper_file is not None:
        extracted = await actions.handle_extract(await read_upload(paper_file, settings))
        if not extracted.succeeded:
            return extracted.to_dict()
        paper_text = extracted.data.text

    custom_template_content = None
    if template_file is not None:
        extracted = await actions.handle_extract(
            await read_upload(template_file, settings)
        )
        if not extracted.succeeded:
            return extracted.to_dict()
        custom_template_content = extracted.data.text

    result = await actions.handle_reformat(
        paper_text or "", template_format, custom_template_content, provider
    )
    return result.to_dict()


@app.post("/chat/")
async def chat(
    body: ChatRequest,
    provider: Optional[ModelProvider] = Query(None),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    """Answer a question about a paper."""
    result = await actions.handle_chat(body.paper_text, body.question, provider)
    return result.to_dict()


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/export/docx/")
def export_docx(body: ExportRequest) -> Response:
    """Download structural HTML as a Word document."""
    try:
        content = html_to_docx(body.html, title=body.title)
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _attachment(content, DOCX_MEDIA_TYPE, f"{body.filename}.docx")


@app.post("/export/pdf/")
def export_pdf(body: ExportRequest) -> Response:
    """Download structural HTML as a PDF."""
    try:
        content = html_to_pdf(body.html, title=body.title)
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _attachment(content, "application/pdf", f"{body.filename}.pdf")


@app.post("/sessions/", status_code=201)
def create_session(store: SessionStore = Depends(get_session_store)) -> Dict[str, Any]:
    """Start a new working session."""
    return store.create().to_dict()


@app.get("/sessions/{session_id}")
def read_session(session: PaperSession = Depends(get_session)) -> Dict[str, Any]:
    return session.to_dict()


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(
    session_id: str, store: SessionStore = Depends(get_session_store)
) -> Response:
    store.delete(session_id)
    return Response(status_code=204)


@app.put("/sessions/{session_id}/paper")
def update_session_paper(
    body: SessionPaperRequest, session: PaperSession = Depends(get_session)
) -> Dict[str, Any]:
    """Replace the session's paper text; derived results are cleared."""
    session.set_paper_text(body.paper_text)
    return session.to_dict()


@app.post("/sessions/{session_id}/process")
def process_session_paper(session: PaperSession = Depends(get_session)) -> Dict[str, Any]:
    """Confirm the pasted text, unlocking the paper features."""
    session.mark_processed()
    return session.to_dict()


@app.post("/sessions/{session_id}/upload")
async def upload_session_paper(
    file: UploadFile = File(...),
    session: PaperSession = Depends(get_session),
    actions: PaperActions = Depends(get_paper_actions),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Extract an uploaded paper into the session."""
    document = await read_upload(file, settings)
    result = await actions.handle_session_extract(session, document)
    return result.to_dict()


@app.post("/sessions/{session_id}/summarize")
async def summarize_session(
    provider: Optional[ModelProvider] = Query(None),
    session: PaperSession = Depends(get_processed_session),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    result = await actions.handle_session_summarize(session, provider)
    return result.to_dict()


@app.post("/sessions/{session_id}/suggest-formatting")
async def suggest_formatting_session(
    provider: Optional[ModelProvider] = Query(None),
    session: PaperSession = Depends(get_processed_session),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    result = await actions.handle_session_suggest_formatting(session, provider)
    return result.to_dict()


@app.post("/sessions/{session_id}/suggestions/{section_name}/toggle")
def toggle_session_section(
    section_name: str, session: PaperSession = Depends(get_session)
) -> Dict[str, Any]:
    """Expand or collapse one formatting suggestion."""
    try:
        open_sections = session.toggle_section(section_name)
    except KeyError as e:
        raise HTTPException(status_code=404, detail="Unknown section") from e
    return {"open_sections": open_sections}


@app.post("/sessions/{session_id}/reformat")
async def reformat_session(
    body: SessionReformatRequest,
    provider: Optional[ModelProvider] = Query(None),
    session: PaperSession = Depends(get_processed_session),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    result = await actions.handle_session_reformat(
        session, body.template_format, body.custom_template_content, provider
    )
    return result.to_dict()


@app.post("/sessions/{session_id}/chat")
async def chat_session(
    body: SessionChatRequest,
    provider: Optional[ModelProvider] = Query(None),
    session: PaperSession = Depends(get_processed_session),
    actions: PaperActions = Depends(get_paper_actions),
) -> Dict[str, Any]:
    """Ask about the session's paper; the exchange is added to its history."""
    result = await actions.handle_session_chat(session, body.question, provider)
    return {
        **result.to_dict(),
        "history": [m.model_dump(mode="json") for m in session.chat_history],
    }


@app.post("/sessions/{session_id}/playback/{action}")
def control_playback(
    action: str,
    message: Optional[str] = Query(None),
    session: PaperSession = Depends(get_session),
) -> Dict[str, Any]:
    """Drive the read-aloud state of the session's summary.

    ``error`` reports a speech engine failure; ``message`` is shown to the user.
    """
    playback = session.playback
    if action == "play":
        playback.play(session.summary)
    elif action == "pause":
        playback.pause()
    elif action == "stop":
        playback.stop()
    elif action == "end":
        playback.end()
    elif action == "error":
        playback.error_occurred(message or PLAYBACK_ERROR_MESSAGE)
    else:
        raise HTTPException(status_code=404, detail=f"Unknown playback action: {action}")
    return playback.to_dict()


@app.get("/template-formats/")
def list_template_formats() -> Dict[str, Dict[str, Any]]:
    """Get available template formats."""
    return {
        fmt.value: {"description": fmt.describe(), "requires_template": fmt.is_custom}
        for fmt in TemplateFormat
    }


@app.get("/models/")
def list_models(
    model_manager: ModelManager = Depends(get_model_manager),
) -> Dict[str, Any]:
    """Get configured model providers."""
    logger.debug("Listing available models")
    return model_manager.available_models


@app.get("/health/")
def health_check(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """Health check endpoint."""
    logger.info("Health check requested")
    return {
        "status": "healthy",
        "version": API_VERSION,
        "config": {
            "default_model": settings.DEFAULT_MODEL,
            "log_level": settings.LOG_LEVEL,
        },
    }


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "scholarai.api.endpoints:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
