"""API configuration and dependency injection."""

from functools import lru_cache

from scholarai.config.settings import Settings
from scholarai.processors.document import TextExtractor
from scholarai.services.actions import PaperActions
from scholarai.services.invoker import CapabilityInvoker
from scholarai.services.model_manager import ModelManager
from scholarai.services.session import SessionStore


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@lru_cache
def get_model_manager() -> ModelManager:
    """Get cached model manager instance."""
    settings = get_settings()
    return ModelManager(
        openai_api_key=settings.OPENAI_API_KEY,
        anthropic_api_key=settings.ANTHROPIC_API_KEY,
        default_provider=settings.DEFAULT_MODEL,
        openai_model=settings.OPENAI_MODEL,
        anthropic_model=settings.ANTHROPIC_MODEL,
        temperature=settings.MODEL_TEMPERATURE,
        timeout=settings.MODEL_TIMEOUT,
    )


@lru_cache
def get_text_extractor() -> TextExtractor:
    """Get cached text extractor instance."""
    return TextExtractor()


@lru_cache
def get_paper_actions() -> PaperActions:
    """Get cached action layer instance."""
    return PaperActions(CapabilityInvoker(get_model_manager()), get_text_extractor())


@lru_cache
def get_session_store() -> SessionStore:
    """Get the session registry."""
    return SessionStore()
