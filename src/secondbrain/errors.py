"""Error taxonomy shared across the sync and query pipelines."""

from __future__ import annotations

from pathlib import Path


class SecondBrainError(Exception):
    """Base class for errors reported to the command line as a single message."""


class ConfigurationError(SecondBrainError):
    """Missing or unusable settings. Raised before any side effect."""


class NotFoundError(SecondBrainError):
    """A required folder or file does not exist."""


class DocumentImportError(SecondBrainError):
    """A single document could not be imported."""


class KnowledgeBaseError(SecondBrainError):
    """The knowledge base rejected an import or a search."""


class ProviderError(SecondBrainError):
    """A text-generation provider returned an error or an unusable response."""

    def __init__(
        self, message: str, *, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
        return message


class StateWriteError(SecondBrainError):
    """Persisted state could not be written and integrity cannot be assumed."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path
