"""Bounded response cache keyed by a canonical request fingerprint."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import orjson

from .models import ChunkRequest, GenerationResult
from .session_store import SessionStore

logger = logging.getLogger(__name__)

CACHE_KEY = "responseCacheQueue"
CACHE_SIZE = 10


def request_fingerprint(request: ChunkRequest) -> str:
    """Serialize the logical request with sorted keys so equal requests match."""
    return orjson.dumps(
        {
            "actionType": request.action_type.value,
            "mediaType": request.media_type.value,
            "taskInput": request.task_input,
            "languageModel": request.language_model,
            "languageCode": request.language_code,
        },
        option=orjson.OPT_SORT_KEYS,
    ).decode()


class ResponseCache:
    """
    The last ``size`` successful generation results, oldest first.

    Hits do not reorder entries; storing an existing fingerprint moves it to
    the newest position.
    """

    def __init__(self, store: SessionStore, size: int = CACHE_SIZE) -> None:
        self.store = store
        self.size = size

    async def entries(self) -> List[dict[str, Any]]:
        return list(await self.store.get(CACHE_KEY, []))

    async def lookup(self, fingerprint: str) -> Optional[GenerationResult]:
        for item in await self.entries():
            if item["key"] == fingerprint:
                return item["value"]
        return None

    async def store_result(self, fingerprint: str, result: GenerationResult) -> None:
        if not result.ok:
            logger.debug("Refusing to cache a failed generation result")
            return

        def _append(queue: List[dict[str, Any]]) -> List[dict[str, Any]]:
            updated = [item for item in queue if item["key"] != fingerprint]
            updated.append({"key": fingerprint, "value": result})
            return updated[-self.size :]

        await self.store.update(CACHE_KEY, _append, [])
