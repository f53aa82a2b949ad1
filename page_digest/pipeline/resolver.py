"""Pick the content source for a run: selection, captions, article or screenshot."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from page_digest.config import Settings

from .captions import YouTubeCaptionFetcher
from .errors import SourceUnavailableError
from .extraction import ReadabilityExtractor
from .messages import MessageCatalog
from .models import ActionType, MediaType, TaskInformation, Trigger
from .page import Page
from .presentation import Presentation
from .status import status_ticker

logger = logging.getLogger(__name__)

SELECTION_OVERRIDES: Dict[Trigger, ActionType] = {
    Trigger.CUSTOM_ACTION_1: ActionType.TEXT_CUSTOM_1,
    Trigger.CUSTOM_ACTION_2: ActionType.TEXT_CUSTOM_2,
}

NO_SELECTION_OVERRIDES: Dict[Trigger, ActionType] = {
    Trigger.CUSTOM_ACTION_1: ActionType.NO_TEXT_CUSTOM_1,
    Trigger.CUSTOM_ACTION_2: ActionType.NO_TEXT_CUSTOM_2,
}


@dataclass
class ResolveContext:
    language_code: str
    presentation: Presentation = field(default_factory=Presentation)


class ContentSource(ABC):
    """One step of the fallback chain.

    ``acquire`` never raises: a failing source counts as empty so the next
    source gets its turn.
    """

    name: str
    media_type: MediaType
    uses_selection: bool = False

    def applies_to(self, page: Page) -> bool:
        return True

    async def acquire(self, page: Page, context: ResolveContext) -> str:
        try:
            return await self._acquire(page, context) or ""
        except Exception as e:
            logger.info(f"Content source '{self.name}' failed: {e}")
            return ""

    @abstractmethod
    async def _acquire(self, page: Page, context: ResolveContext) -> Optional[str]:
        """Return the task input, or an empty value when nothing is available."""


class SelectionSource(ContentSource):
    name = "selection"
    media_type = MediaType.TEXT
    uses_selection = True

    async def _acquire(self, page: Page, context: ResolveContext) -> Optional[str]:
        return await page.selected_text()


class CaptionsSource(ContentSource):
    name = "captions"
    media_type = MediaType.CAPTIONS

    def __init__(
        self,
        fetcher: YouTubeCaptionFetcher,
        status_message: str = "",
        status_interval_ms: int = 500,
    ) -> None:
        self.fetcher = fetcher
        self.status_message = status_message
        self.status_interval_ms = status_interval_ms

    def applies_to(self, page: Page) -> bool:
        return self.fetcher.supports(page.url)

    async def _acquire(self, page: Page, context: ResolveContext) -> Optional[str]:
        async with status_ticker(
            context.presentation, self.status_message, self.status_interval_ms
        ):
            return await self.fetcher.fetch(page.url, context.language_code)


class ArticleSource(ContentSource):
    name = "article"
    media_type = MediaType.TEXT

    def __init__(self, extractor: Optional[ReadabilityExtractor] = None) -> None:
        self.extractor = extractor or ReadabilityExtractor()

    async def _acquire(self, page: Page, context: ResolveContext) -> Optional[str]:
        try:
            text = self.extractor.extract(await page.html())
        except Exception as e:
            logger.info(f"Article extraction failed: {e}")
            text = None

        if text:
            return text

        logger.info("Failed to parse the article. Using the page body text instead.")
        return await page.body_text()


class ScreenshotSource(ContentSource):
    name = "screenshot"
    media_type = MediaType.IMAGE

    async def _acquire(self, page: Page, context: ResolveContext) -> Optional[str]:
        return await page.capture_visible_area()


class ContentSourceResolver:
    """Try each content source in order until one yields task input."""

    def __init__(
        self,
        settings: Settings,
        sources: Sequence[ContentSource],
    ) -> None:
        self.settings = settings
        self.sources: List[ContentSource] = list(sources)

    @classmethod
    def default(
        cls,
        settings: Settings,
        catalog: MessageCatalog,
        caption_fetcher: Optional[YouTubeCaptionFetcher] = None,
        extractor: Optional[ReadabilityExtractor] = None,
    ) -> "ContentSourceResolver":
        fetcher = caption_fetcher or YouTubeCaptionFetcher(
            timeout=settings.caption_timeout_seconds
        )
        return cls(
            settings,
            [
                SelectionSource(),
                CaptionsSource(
                    fetcher,
                    status_message=catalog.get("popup_retrieving_captions"),
                    status_interval_ms=settings.status_interval_ms,
                ),
                ArticleSource(extractor),
                ScreenshotSource(),
            ],
        )

    def action_for(self, trigger: Trigger, uses_selection: bool) -> ActionType:
        if uses_selection:
            overrides, default = SELECTION_OVERRIDES, self.settings.text_action
        else:
            overrides, default = NO_SELECTION_OVERRIDES, self.settings.no_text_action
        return overrides.get(trigger, ActionType(default))

    async def resolve(
        self, page: Page, trigger: Trigger, context: ResolveContext
    ) -> TaskInformation:
        if trigger is Trigger.SCREENSHOT:
            logger.info("Screenshot trigger, capturing the visible area")
            return TaskInformation(
                action_type=ActionType(self.settings.no_text_action),
                media_type=MediaType.IMAGE,
                task_input=await page.capture_visible_area(),
            )

        for source in self.sources:
            if not source.applies_to(page):
                continue
            task_input = await source.acquire(page, context)
            if task_input:
                logger.info(f"Task input acquired from '{source.name}'")
                return TaskInformation(
                    action_type=self.action_for(trigger, source.uses_selection),
                    media_type=source.media_type,
                    task_input=task_input,
                )

        raise SourceUnavailableError(f"No content could be acquired from {page.url!r}")
