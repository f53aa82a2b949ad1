"""Access to the page the user is looking at."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import SourceUnavailableError


class Page(Protocol):
    url: str

    async def selected_text(self) -> str: ...

    async def html(self) -> str: ...

    async def body_text(self) -> str: ...

    async def capture_visible_area(self) -> str:
        """Return the visible viewport as a ``data:image/...;base64,`` URI."""
        ...


@dataclass
class SnapshotPage:
    """A page captured by the browser and posted to the service."""

    url: str = ""
    selection: str = ""
    page_html: str = ""
    page_text: str = ""
    screenshot: Optional[str] = None

    async def selected_text(self) -> str:
        return self.selection

    async def html(self) -> str:
        return self.page_html

    async def body_text(self) -> str:
        return self.page_text

    async def capture_visible_area(self) -> str:
        if not self.screenshot:
            raise SourceUnavailableError("The page snapshot has no screenshot.")
        return self.screenshot
