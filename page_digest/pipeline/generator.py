"""Generate content for a single chunk and record successful replies."""

from __future__ import annotations

import dataclasses
import functools
import logging

from page_digest.config import Settings

from .cache import ResponseCache, request_fingerprint
from .limits import get_model_id
from .models import ChunkRequest, GenerationResult
from .prompts import build_api_content, build_system_prompt
from .session_store import SessionStore
from .transport import GenerationTransport

logger = logging.getLogger(__name__)

STREAM_CONTENT_KEY = "streamContent"


def stream_content_key(run_id: str) -> str:
    return f"{STREAM_CONTENT_KEY}_{run_id}"


class ContentGenerator:
    def __init__(
        self,
        settings: Settings,
        transport: GenerationTransport,
        store: SessionStore,
        cache: ResponseCache,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.store = store
        self.cache = cache

    async def _write_stream_content(self, key: str, text: str) -> None:
        await self.store.set(key, text)

    async def generate(
        self,
        request: ChunkRequest,
        streaming: bool,
        stream_key: str = STREAM_CONTENT_KEY,
    ) -> GenerationResult:
        """
        Send one chunk to the model.

        Streamed text is mirrored under ``stream_key``; concurrent runs must
        each pass their own key.

        The returned result echoes the request content, and is added to the
        response cache when the API accepted the request.
        """
        model_id = get_model_id(request.language_model)
        system_prompt = build_system_prompt(
            request.action_type,
            request.media_type,
            request.language_code,
            len(request.task_input),
            self.settings,
        )
        api_content = build_api_content(
            system_prompt, request.media_type, request.task_input
        )

        if streaming:
            await self._write_stream_content(stream_key, "")
            result = await self.transport.stream_generate(
                self.settings.api_key,
                model_id,
                [api_content],
                functools.partial(self._write_stream_content, stream_key),
            )
        else:
            result = await self.transport.generate(
                self.settings.api_key, model_id, [api_content]
            )

        result = dataclasses.replace(result, request_api_content=api_content)

        if result.ok:
            await self.cache.store_result(request_fingerprint(request), result)
        else:
            logger.warning(f"Generation failed with status {result.status}")

        return result
