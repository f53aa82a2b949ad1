"""Presentation sink consumed by the pipeline."""

from __future__ import annotations

import re

_TRAILING_NEWLINES = re.compile(r"\n+$")


class Presentation:
    """Receives status, partial output and final output of a run.

    The base implementation discards everything; surfaces override the hooks
    they can display.
    """

    async def show_status(self, message: str) -> None:
        pass

    async def clear_status(self) -> None:
        pass

    async def set_busy(self, busy: bool) -> None:
        """Disable (``True``) or re-enable the run/copy/results affordances."""

    async def render(self, content: str) -> None:
        pass


def clipboard_text(content: str) -> str:
    """Text exported by the copy command: trailing newlines collapsed to one blank line."""
    return _TRAILING_NEWLINES.sub("", content) + "\n\n"
