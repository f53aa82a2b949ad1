# page_digest/api/schemas.py
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from page_digest.pipeline.limits import is_known_model
from page_digest.pipeline.models import RunOutcome, SessionResult, Trigger
from page_digest.pipeline.page import SnapshotPage


class PageSnapshotModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    url: str = Field(default="", description="URL of the active page.")
    selection: str = Field(default="", description="Currently selected text.")
    html: str = Field(default="", description="Serialized document HTML.")
    text: str = Field(
        default="",
        validation_alias=AliasChoices("text", "body_text"),
        description="The page body's rendered text.",
    )
    screenshot: Optional[str] = Field(
        default=None, description="Visible area as a base64 image data URI."
    )

    @field_validator("screenshot")
    @classmethod
    def ensure_image_data_uri(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.startswith("data:image/") or ";base64," not in value:
            raise ValueError("`screenshot` must be a base64 image data URI.")
        return value

    def to_page(self) -> SnapshotPage:
        return SnapshotPage(
            url=self.url,
            selection=self.selection,
            page_html=self.html,
            page_text=self.text,
            screenshot=self.screenshot,
        )


class DigestRequestModel(BaseModel):
    model_config = ConfigDict(
        protected_namespaces=(), populate_by_name=True, extra="forbid"
    )

    page: PageSnapshotModel
    trigger: Trigger = Field(default=Trigger.DEFAULT)
    language_model: Optional[str] = Field(
        default=None, description="Model selection, e.g. '2.5-flash:0'."
    )
    language_code: Optional[str] = Field(default=None)
    use_cache: bool = Field(
        default=True, description="False re-runs every chunk against the API."
    )
    streaming: Optional[bool] = Field(
        default=None, description="Stream from the API; defaults to the configuration."
    )
    stream: bool = Field(default=False, description="Emit Server-Sent Events when true.")

    @field_validator("language_model")
    @classmethod
    def ensure_known_model(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_known_model(value):
            raise ValueError(f"Unknown language model: {value}")
        return value


class DigestResponseModel(BaseModel):
    result_index: int
    content: str
    action_type: Optional[str] = None
    media_type: Optional[str] = None
    chunk_count: int = 0

    @classmethod
    def from_domain(cls, outcome: RunOutcome) -> "DigestResponseModel":
        return cls(
            result_index=outcome.result_index,
            content=outcome.content,
            action_type=outcome.action_type.value if outcome.action_type else None,
            media_type=outcome.media_type.value if outcome.media_type else None,
            chunk_count=len(outcome.chunks),
        )


class ResultModel(BaseModel):
    index: int
    request_api_content: Optional[Dict[str, Any]] = None
    response_content: str

    @classmethod
    def from_domain(cls, index: int, result: SessionResult) -> "ResultModel":
        return cls(
            index=index,
            request_api_content=result.request_api_content,
            response_content=result.response_content,
        )


class ModelLimitsModel(BaseModel):
    model_id: str
    limits: Dict[str, int]


class ModelsResponseModel(BaseModel):
    default_language_model: str
    models: List[ModelLimitsModel]
