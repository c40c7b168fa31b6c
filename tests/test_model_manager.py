"""Tests for model manager."""

import time
from unittest.mock import AsyncMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from scholarai.models.schemas import ModelProvider
from scholarai.services.model_manager import (
    APIKeyError,
    ModelError,
    ModelManager,
    RateLimitError,
)

# Since we're testing implementation details, we need to access protected members
# pylint: disable=protected-access

OPENAI_KEY = "sk-test-key-openai-123456789"
ANTHROPIC_KEY = "sk-test-key-anthropic-123456789"


class TestModelManager:
    """Tests for ModelManager class."""

    @pytest.fixture
    def manager(self):
        """Provide a model manager instance."""
        return ModelManager(
            openai_api_key=OPENAI_KEY,
            anthropic_api_key=ANTHROPIC_KEY,
            default_provider=ModelProvider.OPENAI,
            timeout=30,
        )

    def test_api_key_validation(self):
        """Test API key validation."""
        with pytest.raises(APIKeyError):
            ModelManager(openai_api_key="invalid", anthropic_api_key=ANTHROPIC_KEY)

        with pytest.raises(APIKeyError):
            ModelManager(openai_api_key=OPENAI_KEY, anthropic_api_key="invalid")

    def test_requires_a_key(self):
        """Test at least one provider must be configured."""
        with pytest.raises(APIKeyError, match="No API key"):
            ModelManager()

    def test_single_provider(self):
        """Test only configured providers are offered."""
        manager = ModelManager(anthropic_api_key=ANTHROPIC_KEY)

        assert list(manager.available_models) == ["anthropic"]
        # The default falls back to the configured provider.
        assert manager.get_current_provider() == ModelProvider.ANTHROPIC
        with pytest.raises(APIKeyError):
            manager.resolve_provider(ModelProvider.OPENAI)

    def test_model_switching(self, manager):
        """Test model provider switching."""
        assert manager.get_current_provider() == ModelProvider.OPENAI

        manager.switch_provider(ModelProvider.ANTHROPIC)
        assert manager.get_current_provider() == ModelProvider.ANTHROPIC

        # Switch with string
        manager.switch_provider("openai")
        assert manager.get_current_provider() == ModelProvider.OPENAI

        # Invalid string
        with pytest.raises(ValueError, match="Unsupported provider string"):
            manager.switch_provider("invalid_provider")

    def test_client_retries_disabled(self, manager):
        """Test the provider clients never retry on their own."""
        for model in manager._models.values():
            assert model.max_retries == 0

    @pytest.mark.asyncio
    async def test_invoke(self, manager):
        """Test successful invocation."""
        messages = [HumanMessage(content="Hello, how are you?")]
        mock_response = AIMessage(content="I'm doing well, thank you!")

        with patch.object(
            manager, "_call_model_invoke", return_value=mock_response
        ) as mock_call:
            response = await manager.invoke(messages)
            assert response.content == "I'm doing well, thank you!"
            mock_call.assert_called_once()

    @pytest.mark.asyncio
    async def test_invoke_with_provider(self, manager):
        """Test a call can use a provider other than the default."""
        messages = [HumanMessage(content="Hi")]

        with patch.object(
            manager, "_call_model_invoke", return_value=AIMessage(content="ok")
        ) as mock_call:
            await manager.invoke(messages, provider="anthropic")

        model = mock_call.call_args.args[0]
        assert model is manager._models["anthropic"]
        assert manager.get_current_provider() == ModelProvider.OPENAI

    def test_timeout_handling(self, manager):
        """Test timeout configuration."""
        assert manager.timeout == 30

        custom_manager = ModelManager(
            openai_api_key=OPENAI_KEY,
            anthropic_api_key=ANTHROPIC_KEY,
            timeout=60,
        )
        assert custom_manager.timeout == 60

    def test_available_models(self, manager):
        """Test available models information."""
        models = manager.available_models
        assert models["openai"]["model"] == "gpt-4o-mini"
        assert models["anthropic"]["model"] == "claude-3-5-haiku-latest"
        assert models["openai"]["timeout"] == 30

    @pytest.mark.asyncio
    async def test_error_handling(self, manager):
        """Test error handling during invocation."""
        messages = [HumanMessage(content="Test message")]

        with patch.object(
            manager, "_call_model_invoke", side_effect=Exception("API Error")
        ) as mock_call:
            with pytest.raises(ModelError) as exc_info:
                await manager.invoke(messages)
            assert "Failed to generate response" in str(exc_info.value)
            # Provider failures are not retried.
            mock_call.assert_called_once()

    @pytest.mark.asyncio
    async def test_rate_limiting(self, manager):
        """Test an exhausted budget waits on the event loop, then succeeds."""
        messages = [HumanMessage(content="Test message")]
        mock_response = AIMessage(content="Test response")

        async def clear_history(*args):
            manager._call_history["openai"].clear()

        with (
            patch.object(manager, "_call_model_invoke", return_value=mock_response),
            patch(
                "scholarai.services.model_manager.asyncio.sleep",
                new=AsyncMock(side_effect=clear_history),
            ) as mock_sleep,
            patch("time.sleep") as blocking_sleep,
        ):
            # Set low rate limit for testing
            manager._rate_limits["openai"]["requests_per_min"] = 1

            # First call should work
            await manager.invoke(messages)

            # Second call should trigger rate limit, wait, then succeed
            response = await manager.invoke(messages)
            assert response.content == "Test response"
            mock_sleep.assert_awaited_once_with(2)
            blocking_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limit_still_exhausted(self, manager):
        """Test the call fails when the budget is still spent after waiting."""
        messages = [HumanMessage(content="Test message")]

        with (
            patch.object(manager, "_call_model_invoke") as mock_call,
            patch(
                "scholarai.services.model_manager.asyncio.sleep", new=AsyncMock()
            ),
        ):
            manager._rate_limits["openai"]["requests_per_min"] = 1
            manager._check_rate_limit("openai")

            with pytest.raises(RateLimitError):
                await manager.invoke(messages)
            mock_call.assert_not_called()

    def test_rate_limit_check(self, manager):
        """Test the rate limit checking logic."""
        provider = "openai"
        current_time = time.time()

        manager._call_history[provider] = [
            current_time - 70,  # Old call that should be removed
            current_time - 30,
            current_time - 10,
        ]

        manager._check_rate_limit(provider)

        assert len(manager._call_history[provider]) == 3
        assert all(t > current_time - 60 for t in manager._call_history[provider])

    def test_rate_limit_exceeded(self, manager):
        """Test the budget is enforced."""
        manager._rate_limits["openai"]["requests_per_min"] = 1
        manager._check_rate_limit("openai")

        with pytest.raises(RateLimitError):
            manager._check_rate_limit("openai")
