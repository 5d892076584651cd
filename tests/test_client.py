"""Tests for reasoning providers and the provider registry.

Tests cover:
- Exception hierarchy attributes and messages
- Status code and SDK exception mapping
- GeminiProvider with a mocked google-genai client
- OpenAICompatibleProvider over an httpx mock transport
- StaticProvider routing
- ProviderRegistry and build_registry from the catalog
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from dreamcut.ai.client import (
    AIAuthenticationError,
    AIBadRequestError,
    AIClientError,
    AIQuotaExceededError,
    AIRateLimitError,
    AIServerError,
    AITimeoutError,
    AIUnavailableError,
    ContentBlockedError,
    GeminiProvider,
    GenerationOptions,
    MalformedResponseError,
    ModelNotAvailableError,
    OpenAICompatibleProvider,
    ProviderRegistry,
    StaticProvider,
    TokenLimitExceededError,
    UnconfiguredProvider,
    build_registry,
    error_for_status,
    map_provider_exception,
)
from dreamcut.ai.offline import OfflineProvider
from dreamcut.config import AIConfig, AppConfig, ProviderBackend, ProviderSpec


# =============================================================================
# Fixtures
# =============================================================================


def chat_response(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def make_openai_provider(handler) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        "together",
        "meta-llama/test",
        "https://api.example.test/v1/",
        "secret-key",
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def mock_genai_client():
    """Patch the google-genai client constructor."""
    with patch("dreamcut.ai.client.genai.Client") as client_cls:
        client = MagicMock()
        client_cls.return_value = client
        yield client_cls, client


@pytest.fixture
def no_provider_keys(monkeypatch):
    monkeypatch.delenv("TOGETHER_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


# =============================================================================
# Exception Tests
# =============================================================================


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_base_error_str(self):
        """Test str() is the message."""
        error = AIClientError("boom", retriable=True, details={"a": 1})

        assert str(error) == "boom"
        assert error.retriable is True
        assert error.details == {"a": 1}

    def test_unavailable_default_message(self):
        """Test default reason messages."""
        error = AIUnavailableError("no_api_key")

        assert error.reason == "no_api_key"
        assert "No API key configured" in str(error)
        assert error.retriable is False

    def test_rate_limit_message(self):
        """Test the retry-after hint is included."""
        error = AIRateLimitError(retry_after_seconds=3)

        assert str(error) == "Provider rate limit exceeded (retry after 3s)"
        assert error.retriable is True

    def test_server_error_is_retriable(self):
        """Test 5xx errors are retriable."""
        error = AIServerError(502)

        assert error.status_code == 502
        assert error.retriable is True

    def test_timeout_is_retriable(self):
        """Test timeouts are retriable."""
        error = AITimeoutError(2.5)

        assert "2.5 seconds" in str(error)
        assert error.retriable is True

    def test_model_not_available(self):
        """Test the model name is kept."""
        error = ModelNotAvailableError("gemini-9")

        assert error.model == "gemini-9"
        assert str(error) == "Model not available: gemini-9"

    @pytest.mark.parametrize(
        "error_cls",
        [AIAuthenticationError, AIQuotaExceededError, ContentBlockedError, TokenLimitExceededError],
    )
    def test_non_retriable_defaults(self, error_cls):
        """Test permanent failures are not retriable."""
        assert error_cls().retriable is False


# =============================================================================
# Mapping Tests
# =============================================================================


class TestErrorForStatus:
    """Tests for HTTP status mapping."""

    @pytest.mark.parametrize(
        "status,message,expected",
        [
            (401, "unauthorized", AIAuthenticationError),
            (403, "forbidden", AIAuthenticationError),
            (404, "no such model", ModelNotAvailableError),
            (408, "request timeout", AITimeoutError),
            (429, "slow down", AIRateLimitError),
            (429, "quota exceeded for project", AIQuotaExceededError),
            (500, "oops", AIServerError),
            (503, "overloaded", AIServerError),
            (400, "maximum token length exceeded", TokenLimitExceededError),
            (400, "bad json", AIBadRequestError),
        ],
    )
    def test_status_mapping(self, status, message, expected):
        """Test each status maps to its exception type."""
        assert isinstance(error_for_status(status, message, "m"), expected)

    def test_retry_after_kept(self):
        """Test retry-after reaches the rate limit error."""
        error = error_for_status(429, "slow down", "m", retry_after_seconds=3.0)

        assert error.retry_after_seconds == 3.0


class TestMapProviderException:
    """Tests for SDK and transport exception mapping."""

    def test_client_error_passthrough(self):
        """Test our own errors are returned unchanged."""
        error = AIServerError(500)

        assert map_provider_exception(error, "m", 10) is error

    def test_httpx_timeout(self):
        """Test transport timeouts map to AITimeoutError."""
        error = map_provider_exception(httpx.ReadTimeout("slow"), "m", 10)

        assert isinstance(error, AITimeoutError)
        assert error.timeout_seconds == 10

    def test_httpx_connect_error(self):
        """Test connection failures map to offline."""
        error = map_provider_exception(httpx.ConnectError("refused"), "m", 10)

        assert isinstance(error, AIUnavailableError)
        assert error.reason == "offline"

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("429 Resource exhausted", AIRateLimitError),
            ("Response blocked for safety", ContentBlockedError),
            ("401 Unauthorized", AIAuthenticationError),
            ("billing account disabled", AIQuotaExceededError),
            ("Deadline exceeded", AITimeoutError),
            ("503 Service Unavailable", AIServerError),
            ("model foo not found", ModelNotAvailableError),
        ],
    )
    def test_message_heuristics(self, message, expected):
        """Test generic exceptions are classified by message."""
        assert isinstance(map_provider_exception(Exception(message), "foo", 10), expected)

    def test_unknown_error(self):
        """Test unclassified errors become a non-retriable base error."""
        error = map_provider_exception(RuntimeError("weird"), "m", 10)

        assert type(error) is AIClientError
        assert str(error) == "weird"
        assert error.retriable is False


# =============================================================================
# GenerationOptions Tests
# =============================================================================


def test_generation_options_from_config():
    """Test options copy the shared generation parameters."""
    options = GenerationOptions.from_config(AIConfig(temperature=0.1, max_output_tokens=512))

    assert options.temperature == 0.1
    assert options.max_output_tokens == 512
    assert options.stop_sequences == []


# =============================================================================
# GeminiProvider Tests
# =============================================================================


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    def test_generate_text(self, mock_genai_client):
        """Test a successful call returns the response text."""
        client_cls, client = mock_genai_client
        client.models.generate_content.return_value = MagicMock(text="A bright shot.")
        provider = GeminiProvider("gemini_flash", "gemini-2.0-flash", "key-123", 30)

        text = provider.generate("describe", GenerationOptions(temperature=0.2))

        assert text == "A bright shot."
        assert client_cls.call_args.kwargs["api_key"] == "key-123"
        call = client.models.generate_content.call_args.kwargs
        assert call["model"] == "gemini-2.0-flash"
        assert call["contents"] == "describe"
        assert call["config"].temperature == 0.2

    def test_client_created_once(self, mock_genai_client):
        """Test the SDK client is created lazily and reused."""
        client_cls, client = mock_genai_client
        client.models.generate_content.return_value = MagicMock(text="ok")
        provider = GeminiProvider("g", "gemini-2.0-flash", "key")

        assert client_cls.call_count == 0
        provider.generate("one")
        provider.generate("two")

        assert client_cls.call_count == 1

    def test_blocked_prompt(self, mock_genai_client):
        """Test an empty answer with a block reason raises ContentBlockedError."""
        _, client = mock_genai_client
        response = MagicMock(text=None)
        response.prompt_feedback.block_reason = "SAFETY"
        client.models.generate_content.return_value = response
        provider = GeminiProvider("g", "gemini-2.0-flash", "key")

        with pytest.raises(ContentBlockedError):
            provider.generate("describe")

    def test_empty_response(self, mock_genai_client):
        """Test an empty answer without feedback is malformed."""
        _, client = mock_genai_client
        response = MagicMock(text="")
        response.prompt_feedback = None
        client.models.generate_content.return_value = response
        provider = GeminiProvider("g", "gemini-2.0-flash", "key")

        with pytest.raises(MalformedResponseError, match="g returned an empty response"):
            provider.generate("describe")

    def test_sdk_exception_mapped(self, mock_genai_client):
        """Test SDK exceptions are mapped onto the hierarchy."""
        _, client = mock_genai_client
        client.models.generate_content.side_effect = Exception("429 Resource exhausted")
        provider = GeminiProvider("g", "gemini-2.0-flash", "key")

        with pytest.raises(AIRateLimitError) as exc_info:
            provider.generate("describe")

        assert exc_info.value.retriable is True


# =============================================================================
# OpenAICompatibleProvider Tests
# =============================================================================


class TestOpenAICompatibleProvider:
    """Tests for OpenAICompatibleProvider."""

    def test_successful_completion(self):
        """Test the request shape and the parsed content."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return chat_response("hello")

        provider = make_openai_provider(handler)

        text = provider.generate("prompt text", GenerationOptions(max_output_tokens=100))

        assert text == "hello"
        assert seen["url"] == "https://api.example.test/v1/chat/completions"
        assert seen["auth"] == "Bearer secret-key"
        assert seen["body"]["model"] == "meta-llama/test"
        assert seen["body"]["messages"] == [{"role": "user", "content": "prompt text"}]
        assert seen["body"]["max_tokens"] == 100
        assert "stop" not in seen["body"]

    def test_stop_sequences_sent(self):
        """Test stop sequences are forwarded."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return chat_response("ok")

        make_openai_provider(handler).generate("p", GenerationOptions(stop_sequences=["END"]))

        assert seen["body"]["stop"] == ["END"]

    def test_rate_limit_with_retry_after(self):
        """Test 429 responses carry retry-after."""
        provider = make_openai_provider(
            lambda request: httpx.Response(429, text="slow down", headers={"retry-after": "3"})
        )

        with pytest.raises(AIRateLimitError) as exc_info:
            provider.generate("p")

        assert exc_info.value.retry_after_seconds == 3.0
        assert str(exc_info.value) == "Provider rate limit exceeded (retry after 3s)"

    def test_authentication_failure(self):
        """Test 401 responses raise AIAuthenticationError."""
        provider = make_openai_provider(lambda request: httpx.Response(401, text="bad key"))

        with pytest.raises(AIAuthenticationError):
            provider.generate("p")

    def test_server_error(self):
        """Test 5xx responses raise AIServerError."""
        provider = make_openai_provider(lambda request: httpx.Response(503, text="busy"))

        with pytest.raises(AIServerError) as exc_info:
            provider.generate("p")

        assert exc_info.value.status_code == 503

    def test_unexpected_payload(self):
        """Test payloads without choices are malformed."""
        provider = make_openai_provider(lambda request: httpx.Response(200, json={"data": []}))

        with pytest.raises(MalformedResponseError, match="unexpected payload shape"):
            provider.generate("p")

    def test_null_content(self):
        """Test null content is treated as empty."""
        provider = make_openai_provider(lambda request: chat_response(None))

        with pytest.raises(MalformedResponseError, match="empty response"):
            provider.generate("p")

    def test_transport_timeout(self):
        """Test transport timeouts map to AITimeoutError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(AITimeoutError):
            make_openai_provider(handler).generate("p")

    def test_connection_refused(self):
        """Test connection errors map to offline."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AIUnavailableError) as exc_info:
            make_openai_provider(handler).generate("p")

        assert exc_info.value.reason == "offline"


# =============================================================================
# StaticProvider Tests
# =============================================================================


class TestStaticProvider:
    """Tests for StaticProvider."""

    def test_single_response(self):
        """Test a single string answers every prompt."""
        provider = StaticProvider("s", "always")

        assert provider.generate("a") == "always"
        assert provider.generate("b") == "always"
        assert provider.calls == ["a", "b"]

    def test_first_matching_route_wins(self):
        """Test routes are checked in order."""
        provider = StaticProvider("s", [("alpha", "first"), ("alp", "second")])

        assert provider.generate("xx alpha yy") == "first"
        assert provider.generate("alp") == "second"

    def test_default_used(self):
        """Test unmatched prompts use the default."""
        provider = StaticProvider("s", [("alpha", "first")], default="fallback")

        assert provider.generate("beta") == "fallback"

    def test_unmatched_without_default(self):
        """Test unmatched prompts raise without a default."""
        provider = StaticProvider("s", [("alpha", "first")])

        with pytest.raises(AIBadRequestError, match="no canned response"):
            provider.generate("beta")

    def test_empty_canned_response(self):
        """Test an empty canned response is malformed."""
        with pytest.raises(MalformedResponseError):
            StaticProvider("s", "   ").generate("p")


def test_unconfigured_provider_raises():
    """Test a provider without credentials is unavailable."""
    provider = UnconfiguredProvider("llama", "meta-llama/x", "TOGETHER_API_KEY")

    with pytest.raises(AIUnavailableError) as exc_info:
        provider.generate("p")

    assert exc_info.value.reason == "no_api_key"
    assert "$TOGETHER_API_KEY" in str(exc_info.value)


# =============================================================================
# Registry Tests
# =============================================================================


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_register_and_get(self):
        """Test providers are looked up by name."""
        provider = StaticProvider("a", "x")
        registry = ProviderRegistry([provider])

        assert registry.get("a") is provider
        assert "a" in registry
        assert len(registry) == 1

    def test_duplicate_rejected(self):
        """Test duplicate names are rejected unless replacing."""
        registry = ProviderRegistry([StaticProvider("a", "x")])
        replacement = StaticProvider("a", "y")

        with pytest.raises(ValueError):
            registry.register(StaticProvider("a", "z"))
        registry.register(replacement, replace=True)

        assert registry.get("a") is replacement

    def test_get_unknown(self):
        """Test unknown names raise KeyError listing the available ones."""
        registry = ProviderRegistry([StaticProvider("a", "x")])

        with pytest.raises(KeyError, match="Available providers: a"):
            registry.get("b")

    def test_resolve_skips_unknown(self):
        """Test resolve keeps order and skips unknown names."""
        a, b = StaticProvider("a", "x"), StaticProvider("b", "y")
        registry = ProviderRegistry([a, b])

        assert registry.resolve(["b", "missing", "a"]) == [b, a]
        assert registry.names() == ["a", "b"]


class TestBuildRegistry:
    """Tests for build_registry."""

    def test_offline_registry(self):
        """Test offline mode replaces every catalog entry."""
        config = AppConfig()

        registry = build_registry(config, offline=True)

        assert registry.names() == config.provider_names()
        assert all(isinstance(registry.get(n), OfflineProvider) for n in registry.names())

    def test_missing_keys_give_unconfigured(self, no_provider_keys):
        """Test entries without keys are placeholders."""
        registry = build_registry(AppConfig())

        assert isinstance(registry.get("llama31_405b"), UnconfiguredProvider)
        assert isinstance(registry.get("gemini_flash"), UnconfiguredProvider)

    def test_keys_create_real_providers(self, no_provider_keys, monkeypatch):
        """Test configured keys create backend providers."""
        monkeypatch.setenv("GEMINI_API_KEY", "g-key")
        monkeypatch.setenv("TOGETHER_API_KEY", "t-key")

        registry = build_registry(AppConfig())

        assert isinstance(registry.get("gemini_pro"), GeminiProvider)
        provider = registry.get("qwen25_72b")
        assert isinstance(provider, OpenAICompatibleProvider)
        assert provider.base_url == "https://api.together.xyz/v1"

    def test_static_backend(self):
        """Test static catalog entries use their canned response."""
        config = AppConfig(
            providers=[ProviderSpec(name="canned", backend=ProviderBackend.STATIC, response="hi")]
        )

        assert build_registry(config).get("canned").generate("p") == "hi"

    def test_env_reference_syntax(self, monkeypatch):
        """Test ${VAR} key references are resolved."""
        monkeypatch.setenv("LOCAL_LLM_KEY", "abc")
        config = AppConfig(
            providers=[
                ProviderSpec(
                    name="local",
                    base_url="http://localhost:8000/v1",
                    model="qwen",
                    api_key_env="${LOCAL_LLM_KEY}",
                )
            ]
        )

        assert isinstance(build_registry(config).get("local"), OpenAICompatibleProvider)

    def test_missing_base_url(self, monkeypatch):
        """Test compatible providers need a base_url."""
        monkeypatch.setenv("LOCAL_LLM_KEY", "abc")
        config = AppConfig(providers=[ProviderSpec(name="local", api_key_env="LOCAL_LLM_KEY")])

        with pytest.raises(ValueError, match="needs a base_url"):
            build_registry(config)
