"""Model client that streams plain text fragments."""

import httpx
import json
from typing import AsyncIterator, Dict, Any, Optional
import asyncio

from redraft.utils.logging import get_logger
from redraft.models.config import LLMConfig


logger = get_logger(__name__)


def _extract_content_from_openai_chunk(data: Dict[str, Any]) -> str | None:
    """
    Extract content from OpenAI-style streaming chunk.

    OpenAI-compatible APIs return chunks like:
    {
        "choices": [{
            "delta": {"content": "..."},
            "finish_reason": null
        }]
    }

    Args:
        data: Parsed JSON chunk

    Returns:
        Content string if present, None otherwise
    """
    try:
        if "choices" in data and len(data["choices"]) > 0:
            choice = data["choices"][0]
            if "delta" in choice and "content" in choice["delta"]:
                return choice["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        pass
    return None


def _extract_content_from_ollama_chunk(data: Dict[str, Any]) -> str | None:
    """
    Extract content from Ollama native streaming chunk.

    Ollama's /api/chat returns chunks like:
    {
        "model": "...",
        "message": {
            "role": "assistant",
            "content": "..."
        },
        "done": false
    }

    Args:
        data: Parsed JSON chunk from Ollama /api/chat

    Returns:
        Content string if present, None otherwise
    """
    try:
        if "message" in data and "content" in data["message"]:
            return data["message"]["content"]
    except (KeyError, TypeError):
        pass
    return None


class LLMClient:
    """
    HTTP client that turns a prompt into a stream of text fragments.

    Supports OpenAI-compatible APIs and Ollama's native chat endpoint, with
    automatic retry on connection errors that happen before any text arrives.
    """

    def __init__(self, config: LLMConfig):
        """
        Initialize model client.

        Args:
            config: Model API configuration (endpoint, API key, model map)
        """
        self.config = config
        self.timeout = httpx.Timeout(
            connect=10.0,
            read=None,  # Generation may pause arbitrarily long; callers cancel instead
            write=10.0,
            pool=10.0
        )
        self._is_ollama: bool | None = None  # Cached provider detection

    def _base_url(self) -> str:
        """Endpoint without trailing slash or OpenAI-compatible /v1 suffix."""
        base_url = str(self.config.endpoint).rstrip("/")
        if base_url.endswith("/v1"):
            base_url = base_url[:-3]
        return base_url

    async def _detect_ollama(self) -> bool:
        """
        Detect if the endpoint is Ollama by probing /api/version.

        This detection is cached after the first call.

        Returns:
            True if Ollama detected, False otherwise
        """
        if self._is_ollama is not None:
            return self._is_ollama

        version_url = f"{self._base_url()}/api/version"

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(5.0)) as client:
                logger.debug(
                    "llm_provider_detection",
                    version_url=version_url,
                )

                response = await client.get(version_url)

                if response.status_code == 200:
                    logger.info(
                        "llm_provider_detected",
                        provider="ollama",
                        version_url=version_url,
                    )
                    self._is_ollama = True
                    return True

        except httpx.HTTPError as e:
            logger.debug(
                "llm_provider_detection_failed",
                error=str(e),
                assumed_provider="openai",
            )

        logger.info(
            "llm_provider_detected",
            provider="openai",
        )
        self._is_ollama = False
        return False

    def _headers(self) -> Dict[str, str]:
        if self.config.api_key:
            return {"Authorization": f"Bearer {self.config.api_key}"}
        return {}

    async def stream_text(
        self,
        prompt: str,
        system_prompt: str,
        model: Optional[str] = None,
        max_retries: int = 1,
        retry_delay: float = 2.0,
        request_id: Optional[str] = None
    ) -> AsyncIterator[str]:
        """
        Stream generated text for a single-turn prompt.

        Fragments are yielded in the order the API produces them. Lines that
        cannot be parsed are logged and skipped.

        Args:
            prompt: User prompt
            system_prompt: System prompt
            model: Model selector ("sonnet", "opus", "haiku"); None uses the default
            max_retries: Retries on connection errors before the first fragment
            retry_delay: Delay in seconds between retries
            request_id: Optional identifier for this request (for logging/tracing)

        Yields:
            Text fragments

        Raises:
            httpx.HTTPError: On network or HTTP errors after retries exhausted

        Example:
            >>> async for fragment in client.stream_text(prompt, EDIT_SYSTEM_PROMPT, "haiku"):
            ...     print(fragment, end="")
        """
        if not request_id:
            current_task = asyncio.current_task()
            task_name = current_task.get_name() if current_task else None
            request_id = task_name if task_name and task_name != "None" else "unknown"

        is_ollama = await self._detect_ollama()
        model_name = self.config.resolve_model(model)

        payload: Dict[str, Any] = {
            "model": model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt}
            ],
            "stream": True,
            "temperature": self.config.temperature,
        }

        if is_ollama and self.config.num_ctx:
            payload["options"] = {"num_ctx": self.config.num_ctx}

        if is_ollama:
            url = self._base_url() + "/api/chat"
        else:
            url = str(self.config.endpoint).rstrip("/") + "/chat/completions"

        logger.info(
            "llm_request_started",
            request_id=request_id,
            model=model_name,
            endpoint=str(self.config.endpoint),
            provider="ollama" if is_ollama else "openai",
            prompt_length=len(prompt),
            system_prompt_length=len(system_prompt),
        )

        logger.debug(
            "llm_request_payload",
            request_id=request_id,
            payload=payload,
        )

        attempt = 0
        fragment_count = 0

        while attempt <= max_retries:
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    async with client.stream("POST", url, json=payload, headers=self._headers()) as response:
                        response.raise_for_status()

                        async for line in response.aiter_lines():
                            if not line.strip():
                                continue

                            json_line = line
                            if line.startswith("data:"):
                                json_line = line[5:].strip()
                                if json_line == "[DONE]":
                                    logger.debug(
                                        "llm_response_sse_done",
                                        request_id=request_id,
                                    )
                                    continue
                            elif line.startswith(("event:", "id:", "retry:", ":")):
                                continue  # SSE fields that carry no text

                            try:
                                data = json.loads(json_line)
                            except json.JSONDecodeError as e:
                                logger.warning(
                                    "llm_malformed_json",
                                    request_id=request_id,
                                    line=line,
                                    error=str(e)
                                )
                                continue

                            if is_ollama:
                                fragment = _extract_content_from_ollama_chunk(data)
                            else:
                                fragment = _extract_content_from_openai_chunk(data)

                            if fragment:
                                fragment_count += 1
                                logger.debug(
                                    "llm_response_fragment",
                                    request_id=request_id,
                                    fragment_num=fragment_count,
                                    length=len(fragment),
                                )
                                yield fragment

                logger.info(
                    "llm_request_completed",
                    request_id=request_id,
                    fragment_count=fragment_count
                )
                return

            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                attempt += 1

                # Text already relayed cannot be taken back; retrying would duplicate it
                if fragment_count > 0 or attempt > max_retries:
                    logger.error(
                        "llm_request_failed",
                        request_id=request_id,
                        attempts=attempt,
                        fragment_count=fragment_count,
                        error=str(e)
                    )
                    raise

                logger.warning(
                    "llm_request_retry",
                    request_id=request_id,
                    attempt=attempt,
                    max_retries=max_retries,
                    error=str(e),
                    retry_delay=retry_delay
                )
                await asyncio.sleep(retry_delay)

            except httpx.HTTPStatusError as e:
                # Don't retry on HTTP status errors (bad request, auth, etc.)
                logger.error(
                    "llm_http_error",
                    request_id=request_id,
                    status_code=e.response.status_code,
                    error=str(e)
                )
                raise
