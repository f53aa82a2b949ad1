"""Domain models shared across the digest pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ActionType(str, Enum):
    SUMMARIZE = "summarize"
    TRANSLATE = "translate"
    NO_TEXT_CUSTOM = "noTextCustom"
    TEXT_CUSTOM = "textCustom"
    NO_TEXT_CUSTOM_1 = "noTextCustom1"
    NO_TEXT_CUSTOM_2 = "noTextCustom2"
    TEXT_CUSTOM_1 = "textCustom1"
    TEXT_CUSTOM_2 = "textCustom2"


class MediaType(str, Enum):
    TEXT = "text"
    CAPTIONS = "captions"
    IMAGE = "image"


class Trigger(str, Enum):
    DEFAULT = ""
    SCREENSHOT = "screenshot"
    CUSTOM_ACTION_1 = "custom-action-1"
    CUSTOM_ACTION_2 = "custom-action-2"


FINISH_REASON_STOP = "STOP"


@dataclass(slots=True)
class TaskInformation:
    action_type: ActionType
    media_type: MediaType
    task_input: str


@dataclass(slots=True, frozen=True)
class ChunkRequest:
    """A single generation request for one chunk of the task input."""

    action_type: ActionType
    media_type: MediaType
    task_input: str
    language_model: str
    language_code: str


@dataclass(slots=True, frozen=True)
class GenerationResult:
    """Raw reply from the generation API, echoed with the content that was sent."""

    ok: bool
    status: int
    body: Dict[str, Any] = field(default_factory=dict)
    request_api_content: Optional[Dict[str, Any]] = None

    @property
    def block_reason(self) -> Optional[str]:
        feedback = self.body.get("promptFeedback")
        if isinstance(feedback, dict):
            return feedback.get("blockReason")
        return None

    @property
    def first_candidate(self) -> Optional[Dict[str, Any]]:
        candidates = self.body.get("candidates")
        if isinstance(candidates, list) and candidates:
            candidate = candidates[0]
            if isinstance(candidate, dict):
                return candidate
        return None

    @property
    def error_message(self) -> str:
        error = self.body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", ""))
        return ""


@dataclass(slots=True)
class SessionResult:
    request_api_content: Optional[Dict[str, Any]]
    response_content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestApiContent": self.request_api_content,
            "responseContent": self.response_content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionResult":
        return cls(
            request_api_content=data.get("requestApiContent"),
            response_content=data.get("responseContent", ""),
        )


@dataclass(slots=True)
class RunOutcome:
    result_index: int
    content: str
    action_type: Optional[ActionType] = None
    media_type: Optional[MediaType] = None
    chunks: List[str] = field(default_factory=list)
    request_api_content: Optional[Dict[str, Any]] = None
