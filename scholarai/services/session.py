"""Per-user session state for the paper assistant.

A ``PaperSession`` holds what one user is working on: the paper text, the
latest summary, formatting suggestions, the chat history and two small state
machines (file upload and summary read-aloud playback). Sessions live in a
``SessionStore`` handed to request handlers; there is no module-level state.
"""

import threading
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from scholarai.models.schemas import ChatMessage, SectionSuggestion
from scholarai.utils.logging import LoggerMixin

# Number of suggestion sections expanded when new suggestions arrive.
DEFAULT_OPEN_SECTIONS = 3


class InvalidTransitionError(Exception):
    """Raised when an event is not allowed in the current state."""


class SessionNotFoundError(KeyError):
    """Raised when a session id is unknown."""


class UploadStatus(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    ERROR = "error"


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    PAUSED = "paused"
    STOPPED = "stopped"


class _StateMachine:
    """Table-driven transitions: (state, event) -> next state."""

    TRANSITIONS: Dict[Tuple[Any, str], Any] = {}

    def __init__(self, initial: Any):
        self.status = initial

    def _fire(self, event: str) -> None:
        key = (self.status, event)
        if key not in self.TRANSITIONS:
            raise InvalidTransitionError(
                f"Cannot {event} while {self.status.value}"
            )
        self.status = self.TRANSITIONS[key]

    def can(self, event: str) -> bool:
        return (self.status, event) in self.TRANSITIONS


class UploadState(_StateMachine):
    """Idle -> Extracting -> Extracted | Error; a new upload may start anytime
    extraction is not already running."""

    TRANSITIONS = {
        (UploadStatus.IDLE, "start"): UploadStatus.EXTRACTING,
        (UploadStatus.EXTRACTED, "start"): UploadStatus.EXTRACTING,
        (UploadStatus.ERROR, "start"): UploadStatus.EXTRACTING,
        (UploadStatus.EXTRACTING, "succeed"): UploadStatus.EXTRACTED,
        (UploadStatus.EXTRACTING, "fail"): UploadStatus.ERROR,
    }

    def __init__(self) -> None:
        super().__init__(UploadStatus.IDLE)
        self.filename: Optional[str] = None
        self.error: Optional[str] = None

    def start(self, filename: Optional[str]) -> None:
        self._fire("start")
        self.filename = filename
        self.error = None

    def succeed(self) -> None:
        self._fire("succeed")

    def fail(self, error: str) -> None:
        self._fire("fail")
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "filename": self.filename, "error": self.error}


class PlaybackState(_StateMachine):
    """Read-aloud control for the current summary."""

    TRANSITIONS = {
        (PlaybackStatus.IDLE, "play"): PlaybackStatus.SPEAKING,
        (PlaybackStatus.STOPPED, "play"): PlaybackStatus.SPEAKING,
        (PlaybackStatus.PAUSED, "play"): PlaybackStatus.SPEAKING,
        (PlaybackStatus.SPEAKING, "pause"): PlaybackStatus.PAUSED,
        (PlaybackStatus.SPEAKING, "stop"): PlaybackStatus.STOPPED,
        (PlaybackStatus.PAUSED, "stop"): PlaybackStatus.STOPPED,
        (PlaybackStatus.SPEAKING, "end"): PlaybackStatus.STOPPED,
        (PlaybackStatus.PAUSED, "end"): PlaybackStatus.STOPPED,
        (PlaybackStatus.SPEAKING, "error"): PlaybackStatus.STOPPED,
        (PlaybackStatus.PAUSED, "error"): PlaybackStatus.STOPPED,
    }

    def __init__(self) -> None:
        super().__init__(PlaybackStatus.IDLE)
        self.error: Optional[str] = None

    def play(self, text: str) -> None:
        """Start speaking, or resume when paused."""
        if not text or not text.strip():
            raise InvalidTransitionError("Nothing to read aloud")
        self._fire("play")
        self.error = None

    def pause(self) -> None:
        self._fire("pause")

    def stop(self) -> None:
        # Stopping when nothing is playing is a no-op.
        if self.status in (PlaybackStatus.IDLE, PlaybackStatus.STOPPED):
            return
        self._fire("stop")

    def end(self) -> None:
        self._fire("end")

    def error_occurred(self, message: str) -> None:
        self._fire("error")
        self.error = message

    def reset(self) -> None:
        self.status = PlaybackStatus.IDLE
        self.error = None

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "error": self.error}


class PaperSession:
    """State of one user's work on one paper."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.paper_text = ""
        self.is_processed = False
        self.summary = ""
        self.suggestions: List[SectionSuggestion] = []
        self.open_sections: List[str] = []
        self.reformatted_html = ""
        self.chat_history: List[ChatMessage] = []
        self.upload = UploadState()
        self.playback = PlaybackState()
        self.created_at = datetime.utcnow()
        self.updated_at = self.created_at

    def _touch(self) -> None:
        self.updated_at = datetime.utcnow()

    def set_paper_text(self, text: str) -> None:
        """Replace the paper; results derived from the old text are dropped."""
        if text == self.paper_text:
            return
        self.paper_text = text
        self.is_processed = False
        self.set_summary("")
        self.set_suggestions([])
        self.reformatted_html = ""
        self._touch()

    def mark_processed(self) -> None:
        if not self.paper_text.strip():
            raise InvalidTransitionError("Paper content is empty")
        self.is_processed = True
        self._touch()

    def set_summary(self, summary: str) -> None:
        self.playback.stop()
        self.playback.reset()
        self.summary = summary
        self._touch()

    def set_suggestions(self, suggestions: List[SectionSuggestion]) -> None:
        self.suggestions = list(suggestions)
        self.open_sections = [
            s.section_name for s in self.suggestions[:DEFAULT_OPEN_SECTIONS]
        ]
        self._touch()

    def toggle_section(self, section_name: str) -> List[str]:
        """Expand or collapse one suggestion section."""
        if section_name not in {s.section_name for s in self.suggestions}:
            raise KeyError(section_name)
        if section_name in self.open_sections:
            self.open_sections.remove(section_name)
        else:
            self.open_sections.append(section_name)
        self._touch()
        return list(self.open_sections)

    def add_message(self, role: str, text: str) -> ChatMessage:
        message = ChatMessage(role=role, text=text)
        self.chat_history.append(message)
        self._touch()
        return message

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for API responses."""
        return {
            "session_id": self.session_id,
            "paper_text": self.paper_text,
            "is_processed": self.is_processed,
            "summary": self.summary,
            "suggestions": [s.model_dump(by_alias=True) for s in self.suggestions],
            "open_sections": list(self.open_sections),
            "reformatted_html": self.reformatted_html,
            "chat_history": [m.model_dump(mode="json") for m in self.chat_history],
            "upload": self.upload.to_dict(),
            "playback": self.playback.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class SessionStore(LoggerMixin):
    """In-memory registry of sessions, safe to share between requests."""

    def __init__(self, max_sessions: int = 1000):
        self.max_sessions = max_sessions
        self._sessions: Dict[str, PaperSession] = {}
        self._lock = threading.Lock()

    def create(self) -> PaperSession:
        session = PaperSession()
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                oldest = min(self._sessions.values(), key=lambda s: s.updated_at)
                del self._sessions[oldest.session_id]
                self.logger.info("Evicted idle session %s", oldest.session_id)
            self._sessions[session.session_id] = session
        self.logger.info("Created session %s", session.session_id)
        return session

    def get(self, session_id: str) -> PaperSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(session_id)
        self.logger.info("Deleted session %s", session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
