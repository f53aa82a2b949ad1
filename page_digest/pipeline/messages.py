"""User-facing message catalog loaded from YAML locale files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

import yaml

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
DEFAULT_LOCALE = "en"


class MessageCatalog:
    """Lookup of message keys such as ``popup_prompt_blocked``."""

    def __init__(self, messages: Optional[Dict[str, str]] = None) -> None:
        self._messages: Dict[str, str] = dict(messages or {})

    @classmethod
    def load(
        cls, locale: str = DEFAULT_LOCALE, locales_dir: str | Path = LOCALES_DIR
    ) -> "MessageCatalog":
        """
        Load the catalog for ``locale``, falling back to the default locale.

        Args:
            locale: Locale name matching a ``<locale>.yaml`` file
            locales_dir: Directory containing the locale files

        Raises:
            FileNotFoundError: If neither the locale nor the default exists
        """
        locales_path = Path(locales_dir)
        path = locales_path / f"{locale}.yaml"
        if not path.exists():
            logger.warning(f"Locale not found: {locale}, using {DEFAULT_LOCALE}")
            path = locales_path / f"{DEFAULT_LOCALE}.yaml"

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        logger.debug(f"Loaded {len(data)} messages from {path}")
        return cls({str(key): str(value) for key, value in data.items()})

    def get(self, key: str) -> str:
        message = self._messages.get(key)
        if message is None:
            logger.warning(f"Missing message key: {key}")
            return key
        return message


_catalog: Optional[MessageCatalog] = None


def get_message_catalog() -> MessageCatalog:
    """Get the default catalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = MessageCatalog.load()
    return _catalog
