"""Per-model character budgets.

Summarize and custom actions are bounded by the model's input token limit
(reduced for the 2.0 flash family, which fails with internal errors near the
limit). Translation is bounded by the output token limit, since the reply is
about as long as the input.
"""

from __future__ import annotations

from typing import Dict

from .errors import UnknownModelError
from .models import ActionType

TRANSLATE_LIMIT = 8192


def _limits(input_limit: int) -> Dict[ActionType, int]:
    limits = {action: input_limit for action in ActionType}
    limits[ActionType.TRANSLATE] = TRANSLATE_LIMIT
    return limits


CHARACTER_LIMITS: Dict[str, Dict[ActionType, int]] = {
    "gemini-2.5-flash": _limits(1048576),
    "gemini-2.5-pro": _limits(1048576),
    "gemini-2.5-flash-lite": _limits(1048576),
    "gemini-2.0-flash": _limits(786432),
    "gemini-2.0-flash-lite-preview-02-05": _limits(786432),
    "gemini-2.0-flash-exp": _limits(786432),
    "gemini-2.0-pro-exp-02-05": _limits(1572864),
    "gemini-1.5-pro": _limits(1500000),
    "gemini-1.5-flash": _limits(750000),
    "gemini-1.5-flash-8b": _limits(750000),
}


def get_model_id(language_model: str) -> str:
    """Map a model selection such as ``"2.5-flash:0"`` to ``"gemini-2.5-flash"``."""
    base = language_model.split(":", 1)[0]
    if base.startswith("gemini-"):
        return base
    return f"gemini-{base}"


def is_known_model(language_model: str) -> bool:
    return get_model_id(language_model) in CHARACTER_LIMITS


def get_character_limit(model_id: str, action_type: ActionType | str) -> int:
    try:
        model_limits = CHARACTER_LIMITS[model_id]
    except KeyError:
        raise UnknownModelError(model_id) from None

    try:
        return model_limits[ActionType(action_type)]
    except (KeyError, ValueError):
        raise UnknownModelError(model_id, str(action_type)) from None
