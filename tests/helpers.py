"""Fakes shared by the pipeline and API tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import anyio

from page_digest.config import Settings
from page_digest.pipeline.captions import YouTubeCaptionFetcher
from page_digest.pipeline.models import GenerationResult
from page_digest.pipeline.presentation import Presentation
from page_digest.pipeline.service import DigestService, create_digest_service
from page_digest.pipeline.session_store import InMemorySessionStore
from page_digest.pipeline.transport import GenerationTransport

SCREENSHOT = "data:image/jpeg;base64,/9j/4AAQSkZJRg=="
VIDEO_URL = "https://www.youtube.com/watch?v=abc123"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "GEMINI_API_KEY": "test-key",
        "language_model": "2.0-flash",
        "stream_poll_interval_ms": 10,
        "status_interval_ms": 10,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def ok_result(text: str, finish_reason: str = "STOP") -> GenerationResult:
    return GenerationResult(
        ok=True,
        status=200,
        body={
            "candidates": [
                {
                    "content": {"role": "model", "parts": [{"text": text}]},
                    "finishReason": finish_reason,
                }
            ]
        },
    )


def error_result(status: int, message: str) -> GenerationResult:
    return GenerationResult(
        ok=False, status=status, body={"error": {"code": status, "message": message}}
    )


class FakeTransport(GenerationTransport):
    """Replays queued results and records every request."""

    def __init__(self, results: Optional[List[GenerationResult]] = None) -> None:
        self.results = list(results or [])
        self.calls: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def _next(self, api_key: str, model_id: str, contents: List[Dict[str, Any]], streamed: bool):
        self.calls.append(
            {"api_key": api_key, "model_id": model_id, "contents": contents, "streamed": streamed}
        )
        if self.error is not None:
            raise self.error
        return self.results.pop(0)

    async def generate(self, api_key, model_id, contents):
        return self._next(api_key, model_id, contents, streamed=False)

    async def stream_generate(self, api_key, model_id, contents, on_text):
        result = self._next(api_key, model_id, contents, streamed=True)
        text = result.body["candidates"][0]["content"]["parts"][0]["text"]
        await on_text(text[: len(text) // 2])
        await anyio.sleep(0.05)
        await on_text(text)
        await anyio.sleep(0.05)
        return result


class FakeCaptionFetcher(YouTubeCaptionFetcher):
    def __init__(self, captions: str = "", error: Optional[Exception] = None) -> None:
        super().__init__()
        self.captions = captions
        self.error = error
        self.calls: List[tuple[str, str]] = []

    async def fetch(self, video_url: str, language_code: str) -> str:
        self.calls.append((video_url, language_code))
        if self.error is not None:
            raise self.error
        return self.captions


class FakeExtractor:
    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error

    def extract(self, html: str) -> Optional[str]:
        if self.error is not None:
            raise self.error
        return self.text


@dataclass
class FakePage:
    url: str = "https://example.com/article"
    selection: str = ""
    page_html: str = "<html><body></body></html>"
    page_text: str = ""
    screenshot: Optional[str] = SCREENSHOT
    selection_error: Optional[Exception] = None
    captures: int = 0

    async def selected_text(self) -> str:
        if self.selection_error is not None:
            raise self.selection_error
        return self.selection

    async def html(self) -> str:
        return self.page_html

    async def body_text(self) -> str:
        return self.page_text

    async def capture_visible_area(self) -> str:
        self.captures += 1
        if not self.screenshot:
            raise RuntimeError("capture failed")
        return self.screenshot


@dataclass
class RecordingPresentation(Presentation):
    statuses: List[str] = field(default_factory=list)
    renders: List[str] = field(default_factory=list)
    busy: List[bool] = field(default_factory=list)

    async def show_status(self, message: str) -> None:
        self.statuses.append(message)

    async def clear_status(self) -> None:
        self.statuses.append("")

    async def set_busy(self, busy: bool) -> None:
        self.busy.append(busy)

    async def render(self, content: str) -> None:
        self.renders.append(content)


def make_service(
    results: Optional[List[GenerationResult]] = None,
    settings: Optional[Settings] = None,
    captions: str = "",
    article: Optional[str] = None,
    transport: Optional[FakeTransport] = None,
) -> tuple[DigestService, FakeTransport]:
    transport = transport or FakeTransport(results)
    service = create_digest_service(
        settings=settings or make_settings(),
        store=InMemorySessionStore(),
        transport=transport,
        caption_fetcher=FakeCaptionFetcher(captions),
        extractor=FakeExtractor(article),
    )
    return service, transport
