"""System prompts and Gemini request content for each action."""

from __future__ import annotations

from typing import Any, Dict

from page_digest.config import Settings

from .messages import MessageCatalog
from .models import ActionType, MediaType

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "de": "German",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
    "pt_br": "Brazilian Portuguese",
    "vi": "Vietnamese",
    "ru": "Russian",
    "ar": "Arabic",
    "hi": "Hindi",
    "bn": "Bengali",
    "zh_cn": "Simplified Chinese",
    "zh_tw": "Traditional Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}

# "zz" stands for the user-configured language
USER_LANGUAGE_CODE = "zz"

LIST_FORMAT = "Format:\n1. First point.\n2. Second point.\n3. Third point."


def language_name(language_code: str, settings: Settings) -> str:
    if language_code == USER_LANGUAGE_CODE:
        return settings.user_language
    return LANGUAGE_NAMES.get(language_code, LANGUAGE_NAMES["en"])


def summary_item_count(task_input_length: int) -> int:
    return min(10, 3 + task_input_length // 2000)


def _custom_prompt(action_type: ActionType, settings: Settings) -> str:
    prompts = {
        ActionType.TEXT_CUSTOM: settings.text_custom_prompt,
        ActionType.TEXT_CUSTOM_1: settings.text_custom_prompt_1,
        ActionType.TEXT_CUSTOM_2: settings.text_custom_prompt_2,
        ActionType.NO_TEXT_CUSTOM: settings.no_text_custom_prompt,
        ActionType.NO_TEXT_CUSTOM_1: settings.no_text_custom_prompt_1,
        ActionType.NO_TEXT_CUSTOM_2: settings.no_text_custom_prompt_2,
    }
    return prompts[action_type]


def build_system_prompt(
    action_type: ActionType,
    media_type: MediaType,
    language_code: str,
    task_input_length: int,
    settings: Settings,
) -> str:
    language = language_name(language_code, settings)

    if action_type is ActionType.SUMMARIZE:
        if media_type is MediaType.IMAGE:
            return (
                "Summarize the image as Markdown numbered list "
                f"in {language} and reply only with the list.\n" + LIST_FORMAT
            )
        num_items = summary_item_count(task_input_length)
        return (
            f"Summarize the entire text as up to {num_items}-item Markdown numbered list "
            f"in {language} and reply only with the list.\n" + LIST_FORMAT
        )

    if action_type is ActionType.TRANSLATE:
        if media_type is MediaType.IMAGE:
            return (
                f"Translate the image into {language} "
                "and reply only with the translated result."
            )
        return (
            f"Translate the entire text into {language} "
            "and reply only with the translated result."
        )

    return _custom_prompt(action_type, settings)


def split_data_uri(data_uri: str) -> tuple[str, str]:
    """Return ``(mime_type, base64_data)`` for ``data:<mime>;base64,<data>``."""
    media_info, _, media_data = data_uri.partition(",")
    mime_type = media_info.split(":", 1)[1].split(";", 1)[0]
    return mime_type, media_data


def build_api_content(
    system_prompt: str, media_type: MediaType, task_input: str
) -> Dict[str, Any]:
    """Build the single user turn sent to the generation API."""
    if media_type is MediaType.IMAGE:
        mime_type, data = split_data_uri(task_input)
        return {
            "role": "user",
            "parts": [
                {"text": system_prompt},
                {"inline_data": {"mime_type": mime_type, "data": data}},
            ],
        }

    return {
        "role": "user",
        "parts": [{"text": f"{system_prompt}\nText:\n{task_input}"}],
    }


def loading_message_key(action_type: ActionType, media_type: MediaType) -> str:
    if action_type is ActionType.SUMMARIZE:
        verb = "summarizing"
    elif action_type is ActionType.TRANSLATE:
        verb = "translating"
    else:
        return "popup_processing"

    if media_type is MediaType.CAPTIONS:
        return f"popup_{verb}_captions"
    if media_type is MediaType.IMAGE:
        return f"popup_{verb}_image"
    return f"popup_{verb}"


def loading_message(
    action_type: ActionType, media_type: MediaType, catalog: MessageCatalog
) -> str:
    return catalog.get(loading_message_key(action_type, media_type))
