"""Main-body text extraction from page HTML."""

from __future__ import annotations

import logging
from typing import Optional

import lxml.html
from readability import Document

logger = logging.getLogger(__name__)


class ReadabilityExtractor:
    """Extract an article's text with readability-lxml."""

    def extract(self, html: str) -> Optional[str]:
        if not html or not html.strip():
            return None

        summary_html = Document(html).summary(html_partial=True)
        text = lxml.html.fromstring(summary_html).text_content().strip()
        return text or None
