"""Tests for the HTTP API."""

import pytest

from scholarai.api.config import (
    get_model_manager,
    get_paper_actions,
    get_session_store,
    get_settings,
)
from scholarai.api.endpoints import PLAYBACK_ERROR_MESSAGE, app
from scholarai.models.schemas import MediaType
from scholarai.services.model_manager import APIKeyError
from scholarai.services.session import SessionStore

SAMPLE_PAPER = (
    "Deep Residual Learning. Abstract: We present a residual learning framework. "
    "Results: Our residual nets won first place on ILSVRC 2015."
)


@pytest.fixture
def client(test_client, actions):
    """Test client whose actions use the mocked model."""
    app.dependency_overrides[get_paper_actions] = lambda: actions
    return test_client


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def session_client(client, store):
    """Test client with a fresh session store."""
    app.dependency_overrides[get_session_store] = lambda: store
    return client


class TestInfoEndpoints:
    """Tests for informational endpoints."""

    def test_health_check(self, test_client):
        """Test health check endpoint."""
        response = test_client.get("/health/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_template_formats(self, test_client):
        """Test the four template formats are listed."""
        response = test_client.get("/template-formats/")
        data = response.json()
        assert list(data) == ["IEEE", "APA", "ACM", "Custom"]
        assert data["Custom"]["requires_template"] is True
        assert data["IEEE"]["requires_template"] is False

    def test_models(self, test_client, mock_model_manager):
        """Test configured models are listed."""
        mock_model_manager.available_models = {
            "openai": {"model": "gpt-4o-mini", "timeout": 60}
        }
        app.dependency_overrides[get_model_manager] = lambda: mock_model_manager

        response = test_client.get("/models/")

        assert response.json() == {"openai": {"model": "gpt-4o-mini", "timeout": 60}}

    def test_unconfigured_model(self, test_client):
        """Test a missing API key is reported as unavailable."""

        def no_model():
            raise APIKeyError("No API key configured for any model provider")

        app.dependency_overrides[get_model_manager] = no_model

        response = test_client.get("/models/")

        assert response.status_code == 503


class TestExtractEndpoint:
    """Tests for file extraction."""

    def test_extract_pdf(self, client, sample_pdf):
        """Test text extraction from an uploaded PDF."""
        response = client.post(
            "/extract/",
            files={"file": ("paper.pdf", sample_pdf.content, MediaType.PDF.value)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["error"] is None
        assert "Test PDF Content" in body["data"]["text"]
        assert body["data"]["metadata"]["filename"] == "paper.pdf"

    def test_extract_unsupported(self, client):
        """Test unsupported uploads return an error envelope."""
        response = client.post(
            "/extract/", files={"file": ("notes.txt", b"hello", "text/plain")}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["data"] is None
        assert "PDF or DOCX" in body["error"]

    def test_upload_too_large(self, client, sample_pdf):
        """Test uploads over the size limit are refused."""
        settings = get_settings().model_copy(update={"MAX_UPLOAD_BYTES": 10})
        app.dependency_overrides[get_settings] = lambda: settings

        response = client.post(
            "/extract/",
            files={"file": ("paper.pdf", sample_pdf.content, MediaType.PDF.value)},
        )

        assert response.status_code == 413


class TestCapabilityEndpoints:
    """Tests for the AI-backed endpoints."""

    def test_summarize(self, client, reply):
        """Test the summary envelope."""
        reply('{"summary": "Residual learning eases training."}')

        response = client.post("/summarize/", json={"paper_text": SAMPLE_PAPER})

        assert response.json() == {
            "data": {"summary": "Residual learning eases training."},
            "error": None,
        }

    def test_summarize_empty(self, client, mock_model_manager):
        """Test validation errors come back in the envelope."""
        response = client.post("/summarize/", json={"paper_text": "  "})

        assert response.status_code == 200
        assert response.json() == {"data": None, "error": "Paper content cannot be empty."}
        mock_model_manager.invoke.assert_not_called()

    def test_provider_query(self, client, reply, mock_model_manager):
        """Test the provider query parameter is honoured."""
        reply('{"summary": "S."}')

        client.post("/summarize/?provider=anthropic", json={"paper_text": "Paper"})

        assert mock_model_manager.invoke.call_args.kwargs["provider"] == "anthropic"

    def test_suggest_formatting(self, client, reply):
        """Test suggestions use the camelCase wire name."""
        reply('{"suggestions": [{"sectionName": "Abstract", "suggestion": "Shorten."}]}')

        response = client.post("/suggest-formatting/", json={"paper_text": SAMPLE_PAPER})

        assert response.json()["data"]["suggestions"][0]["sectionName"] == "Abstract"

    def test_analyze(self, client, reply):
        """Test both results are returned."""
        reply('{"summary": "S.", "suggestions": []}')

        response = client.post("/analyze/", json={"paper_text": SAMPLE_PAPER})

        body = response.json()
        assert body["summary"]["data"] == {"summary": "S."}
        assert body["suggestions"]["data"] == {"suggestions": []}

    def test_reformat(self, client, reply):
        """Test reformatted HTML is returned cleaned."""
        reply('{"reformattedContent": "<body><h1>Title</h1></body>"}')

        response = client.post(
            "/reformat/",
            json={"paper_text": SAMPLE_PAPER, "template_format": "IEEE"},
        )

        assert response.json()["data"] == {"reformattedContent": "<h1>Title</h1>"}

    def test_reformat_missing_format(self, client):
        """Test a format must be selected."""
        response = client.post("/reformat/", json={"paper_text": SAMPLE_PAPER})

        assert response.json()["error"] == "Template format must be selected."

    def test_reformat_unknown_format(self, client):
        """Test unknown formats are rejected by request validation."""
        response = client.post(
            "/reformat/", json={"paper_text": SAMPLE_PAPER, "template_format": "MLA"}
        )

        assert response.status_code == 422

    def test_reformat_upload_custom(self, client, reply, mock_model_manager, docx_bytes):
        """Test an uploaded exemplar drives a Custom reformat."""
        reply('{"reformattedContent": "<h1>Title</h1>"}')

        response = client.post(
            "/reformat/upload/",
            data={"template_format": "Custom", "paper_text": SAMPLE_PAPER},
            files={
                "template_file": (
                    "exemplar.docx",
                    docx_bytes("Exemplar Heading", "Exemplar body"),
                    MediaType.DOCX.value,
                )
            },
        )

        assert response.json()["error"] is None
        prompt = mock_model_manager.invoke.call_args.args[0][-1].content
        assert "Exemplar Heading\n\nExemplar body\n\n" in prompt

    def test_reformat_upload_bad_exemplar(self, client, mock_model_manager):
        """Test an unreadable exemplar stops before any model call."""
        response = client.post(
            "/reformat/upload/",
            data={"template_format": "Custom", "paper_text": SAMPLE_PAPER},
            files={"template_file": ("exemplar.txt", b"x", "text/plain")},
        )

        assert "Unsupported file type" in response.json()["error"]
        mock_model_manager.invoke.assert_not_called()

    def test_chat(self, client, reply):
        """Test a chat answer."""
        reply('{"answer": "ILSVRC 2015."}')

        response = client.post(
            "/chat/", json={"paper_text": SAMPLE_PAPER, "question": "Which contest?"}
        )

        assert response.json()["data"] == {"answer": "ILSVRC 2015."}

    def test_chat_empty_question(self, client):
        """Test an empty question is rejected."""
        response = client.post("/chat/", json={"paper_text": SAMPLE_PAPER})

        assert response.json()["error"] == "Question cannot be empty."


class TestExportEndpoints:
    """Tests for document downloads."""

    def test_export_docx(self, test_client):
        """Test a DOCX download."""
        response = test_client.post(
            "/export/docx/", json={"html": "<h1>Title</h1>", "filename": "resnet"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats"
        )
        assert 'filename="resnet.docx"' in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_export_pdf(self, test_client):
        """Test a PDF download."""
        response = test_client.post("/export/pdf/", json={"html": "<p>Body</p>"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_export_empty(self, test_client):
        """Test exporting nothing is a client error."""
        response = test_client.post("/export/pdf/", json={"html": "<style></style>"})

        assert response.status_code == 400
        assert response.json()["detail"] == "There is no content to export."


class TestSessionEndpoints:
    """Tests for session workflows."""

    def create(self, client):
        return client.post("/sessions/").json()["session_id"]

    def test_create_and_read(self, session_client):
        """Test a new session starts empty."""
        response = session_client.post("/sessions/")
        assert response.status_code == 201

        session_id = response.json()["session_id"]
        body = session_client.get(f"/sessions/{session_id}").json()
        assert body["paper_text"] == ""
        assert body["is_processed"] is False

    def test_unknown_session(self, session_client):
        """Test unknown sessions are not found."""
        assert session_client.get("/sessions/missing").status_code == 404

    def test_delete(self, session_client):
        """Test sessions can be discarded."""
        session_id = self.create(session_client)

        assert session_client.delete(f"/sessions/{session_id}").status_code == 204
        assert session_client.get(f"/sessions/{session_id}").status_code == 404

    def test_features_locked_until_processed(self, session_client, mock_model_manager):
        """Test capabilities need processed paper content."""
        session_id = self.create(session_client)
        session_client.put(
            f"/sessions/{session_id}/paper", json={"paper_text": SAMPLE_PAPER}
        )

        response = session_client.post(f"/sessions/{session_id}/summarize")

        assert response.status_code == 409
        mock_model_manager.invoke.assert_not_called()

    def test_process_empty_paper(self, session_client):
        """Test empty papers cannot be processed."""
        session_id = self.create(session_client)

        response = session_client.post(f"/sessions/{session_id}/process")

        assert response.status_code == 409

    def test_paste_process_summarize(self, session_client, reply):
        """Test the pasted-text workflow."""
        session_id = self.create(session_client)
        session_client.put(
            f"/sessions/{session_id}/paper", json={"paper_text": SAMPLE_PAPER}
        )
        assert session_client.post(f"/sessions/{session_id}/process").json()[
            "is_processed"
        ]
        reply('{"summary": "Deeper nets via residuals."}')

        response = session_client.post(f"/sessions/{session_id}/summarize")

        assert response.json()["data"]["summary"] == "Deeper nets via residuals."
        body = session_client.get(f"/sessions/{session_id}").json()
        assert body["summary"] == "Deeper nets via residuals."

    def test_upload_workflow(self, session_client, sample_pdf):
        """Test an uploaded paper unlocks the session."""
        session_id = self.create(session_client)

        response = session_client.post(
            f"/sessions/{session_id}/upload",
            files={"file": ("paper.pdf", sample_pdf.content, MediaType.PDF.value)},
        )

        assert response.json()["error"] is None
        body = session_client.get(f"/sessions/{session_id}").json()
        assert body["is_processed"] is True
        assert body["upload"] == {
            "status": "extracted",
            "filename": "paper.pdf",
            "error": None,
        }

    def test_suggestions_and_toggle(self, session_client, store, reply):
        """Test suggestions open the first three sections and can be toggled."""
        session_id = self.create(session_client)
        store.get(session_id).set_paper_text(SAMPLE_PAPER)
        store.get(session_id).mark_processed()
        reply(
            '{"suggestions": ['
            '{"sectionName": "Abstract", "suggestion": "a"},'
            '{"sectionName": "Introduction", "suggestion": "b"},'
            '{"sectionName": "Methods", "suggestion": "c"},'
            '{"sectionName": "Results", "suggestion": "d"}]}'
        )

        session_client.post(f"/sessions/{session_id}/suggest-formatting")
        toggled = session_client.post(
            f"/sessions/{session_id}/suggestions/Results/toggle"
        )

        assert toggled.json()["open_sections"] == [
            "Abstract",
            "Introduction",
            "Methods",
            "Results",
        ]
        missing = session_client.post(
            f"/sessions/{session_id}/suggestions/Appendix/toggle"
        )
        assert missing.status_code == 404

    def test_reformat(self, session_client, store, reply):
        """Test a session reformat keeps the HTML."""
        session_id = self.create(session_client)
        store.get(session_id).set_paper_text(SAMPLE_PAPER)
        store.get(session_id).mark_processed()
        reply('{"reformattedContent": "<h1>T</h1>"}')

        session_client.post(
            f"/sessions/{session_id}/reformat", json={"template_format": "ACM"}
        )

        assert store.get(session_id).reformatted_html == "<h1>T</h1>"

    def test_chat_history(self, session_client, store, reply):
        """Test chat turns are returned with the history."""
        session_id = self.create(session_client)
        store.get(session_id).set_paper_text(SAMPLE_PAPER)
        store.get(session_id).mark_processed()
        reply('{"answer": "Residual blocks."}')

        response = session_client.post(
            f"/sessions/{session_id}/chat", json={"question": "What is new?"}
        )

        history = response.json()["history"]
        assert [(m["role"], m["text"]) for m in history] == [
            ("user", "What is new?"),
            ("bot", "Residual blocks."),
        ]

    def test_playback(self, session_client, store):
        """Test the read-aloud controls."""
        session_id = self.create(session_client)
        base = f"/sessions/{session_id}/playback"

        assert session_client.post(f"{base}/play").status_code == 409

        store.get(session_id).summary = "A summary to read."
        assert session_client.post(f"{base}/play").json()["status"] == "speaking"
        assert session_client.post(f"{base}/pause").json()["status"] == "paused"
        assert session_client.post(f"{base}/play").json()["status"] == "speaking"
        assert session_client.post(f"{base}/stop").json()["status"] == "stopped"
        assert session_client.post(f"{base}/rewind").status_code == 404

    def test_playback_error(self, session_client, store):
        """Test a speech failure stops playback and keeps the message."""
        session_id = self.create(session_client)
        base = f"/sessions/{session_id}/playback"
        store.get(session_id).summary = "A summary to read."

        assert session_client.post(f"{base}/error").status_code == 409

        session_client.post(f"{base}/play")
        response = session_client.post(
            f"{base}/error", params={"message": "Voice unavailable"}
        )

        assert response.json() == {"status": "stopped", "error": "Voice unavailable"}
        assert store.get(session_id).playback.error == "Voice unavailable"

        session_client.post(f"{base}/play")
        response = session_client.post(f"{base}/error")
        assert response.json()["error"] == PLAYBACK_ERROR_MESSAGE
