"""Model manager for handling different LLM providers."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from scholarai.models.schemas import ModelProvider
from scholarai.utils.logging import LoggerMixin, log_execution_time

MIN_API_KEY_LENGTH = 20


class ModelError(Exception):
    """Base class for model-related errors."""


class APIKeyError(ModelError):
    """Raised when there are issues with API keys."""


class RateLimitError(ModelError):
    """Raised when the local request budget for a provider is exhausted."""


class ModelManager(LoggerMixin):
    """Owns the chat models for each configured provider and sends messages.

    Every call reaches the provider at most once: the client-side retries of
    the LangChain models are disabled, and the only retry here is the local
    rate-limit wait, which happens before anything is sent.
    """

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        default_provider: ModelProvider = ModelProvider.OPENAI,
        openai_model: str = "gpt-4o-mini",
        anthropic_model: str = "claude-3-5-haiku-latest",
        temperature: float = 0.2,
        timeout: int = 60,
    ):
        """
        Initialize the model manager.

        Args:
            openai_api_key: OpenAI API key, if that provider is used.
            anthropic_api_key: Anthropic API key, if that provider is used.
            default_provider: Provider used when a call does not name one.
            openai_model: OpenAI chat model name.
            anthropic_model: Anthropic chat model name.
            temperature: Sampling temperature for both providers.
            timeout: Timeout in seconds for a single call.
        """
        self._validate_api_keys(openai_api_key, anthropic_api_key)

        self.timeout = timeout
        self._model_names = {
            ModelProvider.OPENAI.value: openai_model,
            ModelProvider.ANTHROPIC.value: anthropic_model,
        }

        self._call_history: Dict[str, List[float]] = {"openai": [], "anthropic": []}
        self._rate_limits = {
            "openai": {"requests_per_min": 60},
            "anthropic": {"requests_per_min": 50},
        }

        self._models: Dict[str, BaseChatModel] = {}
        if openai_api_key:
            self._models[ModelProvider.OPENAI.value] = ChatOpenAI(
                api_key=openai_api_key,
                model=openai_model,
                temperature=temperature,
                max_retries=0,
                timeout=timeout,
            )
        if anthropic_api_key:
            self._models[ModelProvider.ANTHROPIC.value] = ChatAnthropic(
                api_key=anthropic_api_key,
                model=anthropic_model,
                temperature=temperature,
                max_retries=0,
                timeout=timeout,
            )

        self._default_provider = self._coerce_provider(default_provider)
        if self._default_provider.value not in self._models:
            fallback = next(iter(self._models))
            self.logger.warning(
                "No API key for default provider %s, using %s",
                self._default_provider.value,
                fallback,
            )
            self._default_provider = ModelProvider(fallback)

    def _validate_api_keys(
        self, openai_key: Optional[str], anthropic_key: Optional[str]
    ) -> None:
        """At least one key must be present and every given key well-formed."""
        if not openai_key and not anthropic_key:
            raise APIKeyError("No API key configured for any model provider")
        if openai_key and len(openai_key) < MIN_API_KEY_LENGTH:
            raise APIKeyError("Invalid OpenAI API key")
        if anthropic_key and len(anthropic_key) < MIN_API_KEY_LENGTH:
            raise APIKeyError("Invalid Anthropic API key")

    @staticmethod
    def _coerce_provider(provider: ModelProvider | str) -> ModelProvider:
        if isinstance(provider, ModelProvider):
            return provider
        if isinstance(provider, str):
            try:
                return ModelProvider(provider.lower())
            except ValueError:
                raise ValueError(f"Unsupported provider string: {provider}") from None
        raise ValueError(f"Unsupported provider type: {provider}")

    def _check_rate_limit(self, provider: str) -> None:
        """
        Check if we're within rate limits.

        Args:
            provider: The provider to check.

        Raises:
            RateLimitError: If rate limit would be exceeded.
        """
        now = time.time()
        updated_history = [t for t in self._call_history[provider] if (now - t) <= 60]
        self._call_history[provider] = updated_history

        if len(updated_history) >= self._rate_limits[provider]["requests_per_min"]:
            raise RateLimitError(f"Rate limit exceeded for {provider}")

        updated_history.append(now)

    async def _handle_rate_limit(self, provider: str) -> None:
        """Wait once if the local budget is exhausted, then re-check."""
        try:
            self._check_rate_limit(provider)
        except RateLimitError:
            self.logger.warning(
                "Rate limit reached for %s, waiting 2s before retrying...", provider
            )
            await asyncio.sleep(2)
            self._check_rate_limit(provider)

    def resolve_provider(
        self, provider: Optional[ModelProvider | str] = None
    ) -> ModelProvider:
        """Return the provider a call will use, checking that it is configured."""
        resolved = (
            self._default_provider if provider is None else self._coerce_provider(provider)
        )
        if resolved.value not in self._models:
            raise APIKeyError(f"No API key configured for {resolved.value}")
        return resolved

    def switch_provider(self, provider: ModelProvider | str) -> None:
        """Change the default provider."""
        self._default_provider = self.resolve_provider(provider)
        self.logger.info("Switched default provider to: %s", self._default_provider.value)

    def get_current_provider(self) -> ModelProvider:
        """Get the default model provider."""
        return self._default_provider

    @property
    def available_models(self) -> Dict[str, Any]:
        """Configured providers and the model each one uses."""
        return {
            provider: {"model": self._model_names[provider], "timeout": self.timeout}
            for provider in self._models
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type(RateLimitError),
        reraise=True,
    )
    @log_execution_time()
    async def invoke(
        self,
        messages: List[Any],
        provider: Optional[ModelProvider | str] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Send messages to a chat model.

        Args:
            messages: LangChain messages to send.
            provider: Provider for this call; the default provider when None.
            **kwargs: Additional arguments to pass to the model.

        Returns:
            The AIMessage from the invoked model.

        Raises:
            RateLimitError: If the local request budget stays exhausted.
            ModelError: If the provider call fails.
        """
        resolved = self.resolve_provider(provider)
        await self._handle_rate_limit(resolved.value)

        try:
            model = self._models[resolved.value]
            return await self._call_model_invoke(model, messages, **kwargs)
        except Exception as e:
            self.logger.error(
                "Error generating response from %s: %s", resolved.value, str(e)
            )
            raise ModelError(f"Failed to generate response: {str(e)}") from e

    async def _call_model_invoke(
        self, model: BaseChatModel, messages: List[Any], **kwargs: Any
    ) -> Any:
        """Run the blocking model call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: model.invoke(messages, **kwargs))
