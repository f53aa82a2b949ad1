from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from page_digest.pipeline.models import ActionType


class Settings(BaseSettings):
    """
    Centralized application settings leveraging environment overrides.
    """

    app_name: str = "Page Digest"
    environment: str = Field("local", validation_alias="ENVIRONMENT")
    log_level: str = "INFO"
    allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    max_payload_bytes: int = Field(20 * 1024 * 1024, ge=1024)  # screenshots included

    # Gemini API
    api_key: str = Field("", validation_alias="GEMINI_API_KEY")
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    language_model: str = "2.5-flash:0"
    language_code: str = "en"
    user_language: str = Field("Turkish", description="Language used for code 'zz'")
    streaming: bool = False
    generation_timeout_seconds: Optional[float] = Field(
        None, gt=0, description="Unset means generation requests never time out"
    )

    # Default actions when no custom action is triggered
    text_action: ActionType = Field(ActionType.TRANSLATE, description="Action for selected text")
    no_text_action: ActionType = Field(
        ActionType.SUMMARIZE, description="Action without selection"
    )

    # Custom prompts
    text_custom_prompt: str = ""
    text_custom_prompt_1: str = ""
    text_custom_prompt_2: str = ""
    no_text_custom_prompt: str = ""
    no_text_custom_prompt_1: str = ""
    no_text_custom_prompt_2: str = ""

    # Timers
    stream_poll_interval_ms: int = Field(1000, ge=10)
    status_interval_ms: int = Field(500, ge=10)

    # Captions
    caption_timeout_seconds: float = Field(30.0, gt=0)

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
