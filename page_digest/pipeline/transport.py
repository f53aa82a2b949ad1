"""Gemini REST transport for batch and streamed generation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import orjson

from .models import GenerationResult

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], Awaitable[None]]

DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GenerationTransport(ABC):
    """Sends request content to a generation API."""

    @abstractmethod
    async def generate(
        self, api_key: str, model_id: str, contents: List[Dict[str, Any]]
    ) -> GenerationResult:
        """Return the complete reply in a single response."""

    @abstractmethod
    async def stream_generate(
        self,
        api_key: str,
        model_id: str,
        contents: List[Dict[str, Any]],
        on_text: TextCallback,
    ) -> GenerationResult:
        """Stream the reply, passing the text received so far to ``on_text``."""


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"error": {"message": response.text}}
    if isinstance(body, list) and body:
        body = body[0]
    if not isinstance(body, dict):
        return {"error": {"message": response.text}}
    return body


def _candidate_text(candidate: Dict[str, Any]) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class StreamAggregator:
    """Fold streamed ``GenerateContentResponse`` events into a single reply body."""

    def __init__(self) -> None:
        self.text = ""
        self.finish_reason: Optional[str] = None
        self.prompt_feedback: Optional[Dict[str, Any]] = None
        self.usage_metadata: Optional[Dict[str, Any]] = None
        self.seen_candidate = False

    def add(self, event: Dict[str, Any]) -> str:
        """Merge one event and return the text it carried."""
        if "promptFeedback" in event:
            self.prompt_feedback = event["promptFeedback"]
        if "usageMetadata" in event:
            self.usage_metadata = event["usageMetadata"]

        candidates = event.get("candidates") or []
        if not candidates:
            return ""

        candidate = candidates[0]
        self.seen_candidate = True
        if candidate.get("finishReason"):
            self.finish_reason = candidate["finishReason"]
        text = _candidate_text(candidate)
        self.text += text
        return text

    def body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.seen_candidate:
            candidate: Dict[str, Any] = {
                "content": {"role": "model", "parts": [{"text": self.text}]},
            }
            if self.finish_reason:
                candidate["finishReason"] = self.finish_reason
            body["candidates"] = [candidate]
        if self.prompt_feedback is not None:
            body["promptFeedback"] = self.prompt_feedback
        if self.usage_metadata is not None:
            body["usageMetadata"] = self.usage_metadata
        return body


class GeminiTransport(GenerationTransport):
    """Gemini ``generateContent`` / ``streamGenerateContent`` over httpx."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            base_url: API root, without the ``/models`` segment
            timeout: Request timeout in seconds; ``None`` waits indefinitely
            transport: Optional httpx transport, used by tests to mock the API
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _url(self, model_id: str, method: str) -> str:
        return f"{self.base_url}/models/{model_id}:{method}"

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": api_key}

    async def generate(
        self, api_key: str, model_id: str, contents: List[Dict[str, Any]]
    ) -> GenerationResult:
        logger.debug(f"Requesting generateContent from {model_id}")
        async with self._client() as client:
            response = await client.post(
                self._url(model_id, "generateContent"),
                headers=self._headers(api_key),
                content=orjson.dumps({"contents": contents}),
            )

        if response.is_success:
            return GenerationResult(ok=True, status=response.status_code, body=response.json())

        logger.warning(f"Gemini returned HTTP {response.status_code} for {model_id}")
        return GenerationResult(
            ok=False, status=response.status_code, body=_error_body(response)
        )

    async def stream_generate(
        self,
        api_key: str,
        model_id: str,
        contents: List[Dict[str, Any]],
        on_text: TextCallback,
    ) -> GenerationResult:
        logger.debug(f"Requesting streamGenerateContent from {model_id}")
        aggregator = StreamAggregator()

        async with self._client() as client:
            async with client.stream(
                "POST",
                self._url(model_id, "streamGenerateContent"),
                params={"alt": "sse"},
                headers=self._headers(api_key),
                content=orjson.dumps({"contents": contents}),
            ) as response:
                if not response.is_success:
                    await response.aread()
                    logger.warning(
                        f"Gemini returned HTTP {response.status_code} for {model_id}"
                    )
                    return GenerationResult(
                        ok=False,
                        status=response.status_code,
                        body=_error_body(response),
                    )

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if not data:
                        continue
                    if aggregator.add(orjson.loads(data)):
                        await on_text(aggregator.text)

                status_code = response.status_code

        return GenerationResult(ok=True, status=status_code, body=aggregator.body())
