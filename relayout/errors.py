"""
Error taxonomy for the relayout pipelines.

Every fatal condition aborts the whole request; batch-level retries are
handled inside the orchestrator and never surface unless the retry budget
is exhausted.
"""


class RelayoutError(Exception):
    """Base class for all pipeline errors."""


class InvalidInput(RelayoutError):
    """Malformed image, or an empty/degenerate text segment."""


class SchemaViolation(RelayoutError):
    """A completion response failed structural validation (retryable)."""


class ExhaustedRetries(RelayoutError):
    """A retryable failure persisted past the retry budget."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class CollaboratorFailure(RelayoutError):
    """An external collaborator (OCR, completion, inpainting) call failed."""


class LayoutOverflow(RelayoutError):
    """A text segment cannot be placed inside the image bounds."""
