"""Unit tests for LLMClient."""

import pytest
import httpx
from unittest.mock import AsyncMock, Mock, patch
import json

from redraft.services.llm_client import LLMClient
from redraft.models.config import LLMConfig


def create_mock_response(lines, status_code=200, headers=None):
    """Create a mock streaming HTTP response yielding the given lines."""
    class MockResponse:
        def __init__(self):
            self.status_code = status_code
            self.headers = headers or {}
            self.raise_for_status = Mock()

        async def aiter_lines(self):
            for line in lines:
                yield line

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc_val, exc_tb):
            return None

    return MockResponse()


def create_mock_client(stream):
    """Create a mock httpx.AsyncClient whose stream() is `stream`."""
    mock_client = AsyncMock()
    mock_client.stream = stream
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    return mock_client


def openai_line(text):
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}, "finish_reason": None}]})


class TestLLMClient:
    """Test LLMClient class."""

    @pytest.fixture
    def llm_config(self):
        """Create test LLM configuration."""
        return LLMConfig(
            endpoint="https://api.test.com/v1",
            api_key="test-key",
        )

    @pytest.fixture
    def llm_client(self, llm_config):
        """Create LLM client with provider detection short-circuited to OpenAI."""
        client = LLMClient(llm_config)
        client._is_ollama = False
        return client

    async def _collect(self, llm_client, **kwargs):
        fragments = []
        async for fragment in llm_client.stream_text(
            prompt="Test prompt",
            system_prompt="Test system",
            **kwargs
        ):
            fragments.append(fragment)
        return fragments

    def test_client_initialization(self, llm_client, llm_config):
        """Test LLM client initializes correctly."""
        assert llm_client.config == llm_config
        assert llm_client.timeout.connect == 10.0
        assert llm_client.timeout.read is None

    @pytest.mark.asyncio
    async def test_stream_text_openai_sse(self, llm_client):
        """Test fragments are extracted from OpenAI SSE chunks in order."""
        mock_lines = [
            openai_line("Once"),
            "",
            openai_line(" upon"),
            openai_line(" a time."),
            "data: [DONE]",
        ]
        mock_client = create_mock_client(Mock(return_value=create_mock_response(mock_lines)))

        with patch("httpx.AsyncClient", return_value=mock_client):
            fragments = await self._collect(llm_client)

        assert fragments == ["Once", " upon", " a time."]

    @pytest.mark.asyncio
    async def test_stream_text_sends_resolved_model(self, llm_client):
        """Test the model selector is mapped to the provider model id."""
        stream = Mock(return_value=create_mock_response([openai_line("x")]))
        mock_client = create_mock_client(stream)

        with patch("httpx.AsyncClient", return_value=mock_client):
            await self._collect(llm_client, model="haiku")

        args, kwargs = stream.call_args
        assert args == ("POST", "https://api.test.com/v1/chat/completions")
        assert kwargs["json"]["model"] == llm_client.config.models["haiku"]
        assert kwargs["json"]["stream"] is True
        assert kwargs["json"]["messages"][0] == {"role": "system", "content": "Test system"}
        assert kwargs["headers"] == {"Authorization": "Bearer test-key"}

    @pytest.mark.asyncio
    async def test_stream_text_skips_malformed_json(self, llm_client):
        """Test malformed lines and SSE control fields are skipped."""
        mock_lines = [
            openai_line("a"),
            "data: {invalid json}",
            "event: message",
            ": keep-alive",
            openai_line("b"),
        ]
        mock_client = create_mock_client(Mock(return_value=create_mock_response(mock_lines)))

        with patch("httpx.AsyncClient", return_value=mock_client):
            fragments = await self._collect(llm_client)

        assert fragments == ["a", "b"]

    @pytest.mark.asyncio
    async def test_stream_text_skips_empty_deltas(self, llm_client):
        """Test chunks without content (role/finish markers) yield nothing."""
        mock_lines = [
            "data: " + json.dumps({"choices": [{"delta": {"role": "assistant"}}]}),
            openai_line("text"),
            "data: " + json.dumps({"choices": [{"delta": {}, "finish_reason": "stop"}]}),
        ]
        mock_client = create_mock_client(Mock(return_value=create_mock_response(mock_lines)))

        with patch("httpx.AsyncClient", return_value=mock_client):
            fragments = await self._collect(llm_client)

        assert fragments == ["text"]

    @pytest.mark.asyncio
    async def test_stream_text_ollama_native(self, llm_config):
        """Test Ollama /api/chat NDJSON lines."""
        client = LLMClient(llm_config)
        client._is_ollama = True
        mock_lines = [
            json.dumps({"message": {"role": "assistant", "content": "Hel"}, "done": False}),
            json.dumps({"message": {"role": "assistant", "content": "lo"}, "done": False}),
            json.dumps({"message": {"role": "assistant", "content": ""}, "done": True}),
        ]
        stream = Mock(return_value=create_mock_response(mock_lines))
        mock_client = create_mock_client(stream)

        with patch("httpx.AsyncClient", return_value=mock_client):
            fragments = await self._collect(client)

        assert fragments == ["Hel", "lo"]
        assert stream.call_args[0][1] == "https://api.test.com/api/chat"
        assert stream.call_args[1]["json"]["options"] == {"num_ctx": 32768}

    @pytest.mark.asyncio
    async def test_stream_text_retry_on_connect_error(self, llm_client):
        """Test automatic retry when the connection fails before any text."""
        attempts = [0]

        def mock_stream_factory(*args, **kwargs):
            attempts[0] += 1
            if attempts[0] == 1:
                raise httpx.ConnectError("Connection refused")
            return create_mock_response([openai_line("ok")])

        mock_client = create_mock_client(mock_stream_factory)

        with patch("httpx.AsyncClient", return_value=mock_client):
            with patch("asyncio.sleep", new_callable=AsyncMock):
                fragments = await self._collect(llm_client, max_retries=1, retry_delay=0.1)

        assert fragments == ["ok"]
        assert attempts[0] == 2

    @pytest.mark.asyncio
    async def test_stream_text_fails_after_max_retries(self, llm_client):
        """Test the error propagates once retries are exhausted."""
        def mock_stream_factory(*args, **kwargs):
            raise httpx.ConnectError("Connection refused")

        mock_client = create_mock_client(mock_stream_factory)

        with patch("httpx.AsyncClient", return_value=mock_client):
            with patch("asyncio.sleep", new_callable=AsyncMock):
                with pytest.raises(httpx.ConnectError):
                    await self._collect(llm_client, max_retries=2)

    @pytest.mark.asyncio
    async def test_stream_text_no_retry_after_fragments(self, llm_client):
        """Test a mid-stream connection failure is not retried."""
        attempts = [0]

        class FailingResponse:
            status_code = 200
            headers = {}
            raise_for_status = Mock()

            async def aiter_lines(self):
                yield openai_line("partial")
                raise httpx.ConnectError("Connection reset")

            async def __aenter__(self):
                return self

            async def __aexit__(self, exc_type, exc_val, exc_tb):
                return None

        def mock_stream_factory(*args, **kwargs):
            attempts[0] += 1
            return FailingResponse()

        mock_client = create_mock_client(mock_stream_factory)
        received = []

        with patch("httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(httpx.ConnectError):
                async for fragment in llm_client.stream_text("p", "s", max_retries=3):
                    received.append(fragment)

        assert received == ["partial"]
        assert attempts[0] == 1

    @pytest.mark.asyncio
    async def test_stream_text_http_error_not_retried(self, llm_client):
        """Test HTTP status errors propagate immediately."""
        request = httpx.Request("POST", "https://api.test.com/v1/chat/completions")
        response = httpx.Response(401, request=request)
        mock_response = create_mock_response([])
        mock_response.raise_for_status = Mock(
            side_effect=httpx.HTTPStatusError("Unauthorized", request=request, response=response)
        )
        stream = Mock(return_value=mock_response)
        mock_client = create_mock_client(stream)

        with patch("httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(httpx.HTTPStatusError):
                await self._collect(llm_client)

        assert stream.call_count == 1

    @pytest.mark.asyncio
    async def test_detect_ollama_caches_result(self, llm_config):
        """Test provider detection probes once."""
        client = LLMClient(llm_config)
        mock_client = AsyncMock()
        mock_client.get = AsyncMock(return_value=Mock(status_code=200))
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=None)

        with patch("httpx.AsyncClient", return_value=mock_client):
            assert await client._detect_ollama() is True
            assert await client._detect_ollama() is True

        mock_client.get.assert_called_once_with("https://api.test.com/api/version")

    @pytest.mark.asyncio
    async def test_detect_ollama_falls_back_to_openai(self, llm_config):
        """Test a failed probe means OpenAI-compatible."""
        client = LLMClient(llm_config)
        mock_client = AsyncMock()
        mock_client.get = AsyncMock(side_effect=httpx.ConnectError("nope"))
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=None)

        with patch("httpx.AsyncClient", return_value=mock_client):
            assert await client._detect_ollama() is False
