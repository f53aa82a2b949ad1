"""Assemble the pipeline from settings and its collaborators."""

from __future__ import annotations

import logging
from typing import Optional

from page_digest.config import Settings, get_settings

from .cache import ResponseCache
from .captions import YouTubeCaptionFetcher
from .extraction import ReadabilityExtractor
from .generator import ContentGenerator
from .messages import MessageCatalog, get_message_catalog
from .models import SessionResult
from .orchestrator import GenerationOrchestrator
from .resolver import ContentSourceResolver
from .session_store import InMemorySessionStore, SessionStore
from .transport import GeminiTransport, GenerationTransport

logger = logging.getLogger(__name__)


class DigestService:
    """Holds the session store and the orchestrator built on top of it."""

    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        cache: ResponseCache,
        orchestrator: GenerationOrchestrator,
        catalog: MessageCatalog,
    ) -> None:
        self.settings = settings
        self.store = store
        self.cache = cache
        self.orchestrator = orchestrator
        self.catalog = catalog

    async def get_result(self, index: int) -> Optional[SessionResult]:
        return await self.orchestrator.get_result(index)

    async def latest_result(self) -> tuple[int, Optional[SessionResult]]:
        index = await self.orchestrator.current_result_index()
        if index < 0:
            return index, None
        return index, await self.orchestrator.get_result(index)


def create_digest_service(
    settings: Optional[Settings] = None,
    store: Optional[SessionStore] = None,
    transport: Optional[GenerationTransport] = None,
    caption_fetcher: Optional[YouTubeCaptionFetcher] = None,
    extractor: Optional[ReadabilityExtractor] = None,
    catalog: Optional[MessageCatalog] = None,
) -> DigestService:
    settings = settings or get_settings()
    store = store or InMemorySessionStore()
    catalog = catalog or get_message_catalog()
    transport = transport or GeminiTransport(
        base_url=settings.api_base_url,
        timeout=settings.generation_timeout_seconds,
    )

    cache = ResponseCache(store)
    resolver = ContentSourceResolver.default(
        settings, catalog, caption_fetcher=caption_fetcher, extractor=extractor
    )
    generator = ContentGenerator(settings, transport, store, cache)
    orchestrator = GenerationOrchestrator(
        settings, store, resolver, generator, cache, catalog
    )

    if not settings.api_key:
        logger.warning("Gemini API key not configured; requests will be rejected")

    return DigestService(settings, store, cache, orchestrator, catalog)
