"""Exceptions raised by the digest pipeline."""


class PageDigestError(Exception):
    """Base class for pipeline errors."""


class SourceUnavailableError(PageDigestError):
    """No content source produced any input for the page."""


class UnknownModelError(PageDigestError, KeyError):
    """The model identifier or action has no character budget."""

    def __init__(self, model_id: str, action: str | None = None) -> None:
        self.model_id = model_id
        self.action = action
        if action is None:
            message = f"Unknown model: {model_id}"
        else:
            message = f"No character limit for action '{action}' on model {model_id}"
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]
