"""Drive a complete run: resolve content, chunk it, generate chunk by chunk."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from uuid import uuid4
from enum import Enum, auto
from typing import Callable, Dict, List, Optional

import anyio

from page_digest.config import Settings

from .cache import ResponseCache, request_fingerprint
from .chunker import chunk_text
from .generator import ContentGenerator, stream_content_key
from .limits import get_character_limit, get_model_id
from .messages import MessageCatalog
from .models import (
    FINISH_REASON_STOP,
    ChunkRequest,
    GenerationResult,
    MediaType,
    RunOutcome,
    SessionResult,
    TaskInformation,
    Trigger,
)
from .page import Page
from .presentation import Presentation
from .prompts import loading_message
from .resolver import ContentSourceResolver, ResolveContext
from .session_store import SessionStore
from .status import status_ticker

logger = logging.getLogger(__name__)

RESULT_INDEX_KEY = "resultIndex"
RESULT_SLOTS = 10


def result_key(index: int) -> str:
    return f"r_{index}"


class ChunkVerdict(Enum):
    CONTENT = auto()
    ERROR = auto()
    PROMPT_BLOCKED = auto()
    RESPONSE_BLOCKED = auto()
    UNEXPECTED = auto()


def candidate_text(result: GenerationResult) -> Optional[str]:
    candidate = result.first_candidate or {}
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) else None


def classify(result: GenerationResult) -> ChunkVerdict:
    if not result.ok:
        return ChunkVerdict.ERROR
    if result.block_reason:
        return ChunkVerdict.PROMPT_BLOCKED
    candidate = result.first_candidate
    if candidate is None:
        return ChunkVerdict.UNEXPECTED
    if candidate.get("finishReason") != FINISH_REASON_STOP:
        return ChunkVerdict.RESPONSE_BLOCKED
    if candidate_text(result) is not None:
        return ChunkVerdict.CONTENT
    return ChunkVerdict.UNEXPECTED


class GenerationOrchestrator:
    """
    Runs the pipeline for one trigger.

    Chunks are sent strictly one after another. The first error or block stops
    the run; output accumulated before it is kept. Whatever happens, the final
    content is rendered and saved in the rotating result slots.
    """

    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        resolver: ContentSourceResolver,
        generator: ContentGenerator,
        cache: ResponseCache,
        catalog: MessageCatalog,
    ) -> None:
        self.settings = settings
        self.store = store
        self.resolver = resolver
        self.generator = generator
        self.cache = cache
        self.catalog = catalog
        self._failure_formatters: Dict[
            ChunkVerdict, Callable[[GenerationResult], str]
        ] = {
            ChunkVerdict.ERROR: self._format_error,
            ChunkVerdict.PROMPT_BLOCKED: self._format_prompt_blocked,
            ChunkVerdict.RESPONSE_BLOCKED: self._format_response_blocked,
            ChunkVerdict.UNEXPECTED: self._format_unexpected,
        }

    # -- result slots -------------------------------------------------------

    async def next_result_index(self) -> int:
        return await self.store.update(
            RESULT_INDEX_KEY, lambda index: (index + 1) % RESULT_SLOTS, -1
        )

    async def current_result_index(self) -> int:
        return await self.store.get(RESULT_INDEX_KEY, -1)

    async def get_result(self, index: int) -> Optional[SessionResult]:
        data = await self.store.get(result_key(index))
        if data is None:
            return None
        return SessionResult.from_dict(data)

    async def _save_result(self, index: int, result: SessionResult) -> None:
        await self.store.set(result_key(index), result.to_dict())

    # -- messages -----------------------------------------------------------

    def _format_error(self, result: GenerationResult) -> str:
        message = f"Error: {result.status}\n\n{result.error_message}"
        if not self.settings.api_key:
            message += f"\n\n{self.catalog.get('popup_no_apikey')}"
        return message

    def _format_prompt_blocked(self, result: GenerationResult) -> str:
        return f"{self.catalog.get('popup_prompt_blocked')} Reason: {result.block_reason}"

    def _format_response_blocked(self, result: GenerationResult) -> str:
        reason = (result.first_candidate or {}).get("finishReason")
        return f"{self.catalog.get('popup_response_blocked')} Reason: {reason}"

    def _format_unexpected(self, result: GenerationResult) -> str:
        return self.catalog.get("popup_unexpected_response")

    def describe_failure(self, verdict: ChunkVerdict, result: GenerationResult) -> str:
        return self._failure_formatters[verdict](result)

    # -- generation ---------------------------------------------------------

    def split_task_input(self, task: TaskInformation, language_model: str) -> List[str]:
        if task.media_type is MediaType.IMAGE:
            return [task.task_input]
        chunk_size = get_character_limit(get_model_id(language_model), task.action_type)
        return chunk_text(task.task_input, chunk_size)

    async def _poll_stream(
        self, stream_key: str, content: str, presentation: Presentation
    ) -> None:
        interval = self.settings.stream_poll_interval_ms / 1000
        while True:
            await anyio.sleep(interval)
            stream_content = await self.store.get(stream_key, "")
            if stream_content:
                await presentation.render(f"{content}\n\n{stream_content}\n\n")

    async def _dispatch(
        self,
        request: ChunkRequest,
        streaming: bool,
        stream_key: str,
        content: str,
        presentation: Presentation,
    ) -> GenerationResult:
        if not streaming:
            return await self.generator.generate(request, streaming=False)

        async with anyio.create_task_group() as tg:
            tg.start_soon(self._poll_stream, stream_key, content, presentation)
            try:
                return await self.generator.generate(
                    request, streaming=True, stream_key=stream_key
                )
            finally:
                tg.cancel_scope.cancel()

    async def run(
        self,
        page: Page,
        trigger: Trigger = Trigger.DEFAULT,
        language_model: Optional[str] = None,
        language_code: Optional[str] = None,
        use_cache: bool = True,
        presentation: Optional[Presentation] = None,
        streaming: Optional[bool] = None,
    ) -> RunOutcome:
        presentation = presentation or Presentation()
        language_model = language_model or self.settings.language_model
        language_code = language_code or self.settings.language_code
        if streaming is None:
            streaming = self.settings.streaming

        index = await self.next_result_index()
        outcome = RunOutcome(result_index=index, content="")
        content = ""
        last_result: Optional[GenerationResult] = None

        stream_key = stream_content_key(uuid4().hex)
        stack = AsyncExitStack()
        try:
            task = await self.resolver.resolve(
                page, trigger, ResolveContext(language_code, presentation)
            )
            outcome.action_type = task.action_type
            outcome.media_type = task.media_type

            await presentation.render("")
            await presentation.clear_status()
            await presentation.set_busy(True)
            await stack.enter_async_context(
                status_ticker(
                    presentation,
                    loading_message(task.action_type, task.media_type, self.catalog),
                    self.settings.status_interval_ms,
                )
            )

            outcome.chunks = self.split_task_input(task, language_model)
            logger.info(
                f"Processing {len(outcome.chunks)} chunk(s) of {task.media_type.value} "
                f"for {task.action_type.value}"
            )

            for chunk in outcome.chunks:
                request = ChunkRequest(
                    action_type=task.action_type,
                    media_type=task.media_type,
                    task_input=chunk,
                    language_model=language_model,
                    language_code=language_code,
                )
                cached = None
                if use_cache:
                    cached = await self.cache.lookup(request_fingerprint(request))

                if cached is not None:
                    logger.debug("Using cached response")
                    result = cached
                else:
                    result = await self._dispatch(
                        request, streaming, stream_key, content, presentation
                    )
                last_result = result

                verdict = classify(result)
                if verdict is ChunkVerdict.CONTENT:
                    content += f"{candidate_text(result)}\n\n"
                    await presentation.render(content)
                    continue

                logger.info(f"Stopping after {verdict.name.lower()} reply")
                content += self.describe_failure(verdict, result)
                break
        except Exception:
            logger.exception("Failed to process the page")
            content += self.catalog.get("popup_miscellaneous_error")
        finally:
            try:
                await stack.aclose()
            finally:
                # a cancelled run still clears the busy state and keeps its slot
                with anyio.CancelScope(shield=True):
                    await self.store.remove(stream_key)
                    await presentation.clear_status()
                    await presentation.set_busy(False)
                    await presentation.render(content)
                    request_api_content = (
                        last_result.request_api_content if last_result else None
                    )
                    await self._save_result(
                        index, SessionResult(request_api_content, content)
                    )
                    outcome.content = content
                    outcome.request_api_content = request_api_content

        return outcome
