"""Error taxonomy for the lesson audio builder.

Every failure carries the stage it happened in and, where a remote
collaborator answered, the raw response body.
"""
from typing import Optional


class LessonAudioError(Exception):
    """Base class for all failures that abort a run."""

    stage = "unknown"

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    def describe(self) -> str:
        """Render the error for an operator: stage, message, raw response."""
        text = f"[{self.stage}] {self}"
        if self.status_code is not None:
            text += f" (HTTP {self.status_code})"
        if self.response_body:
            text += f"\n  response: {self.response_body[:2000]}"
        return text


class ConfigError(LessonAudioError):
    """Raised when a required setting, credential file or table is missing."""
    stage = "config"


class AuthError(LessonAudioError):
    """Raised when the token assertion cannot be signed or exchanged."""
    stage = "auth"


class SynthesisError(LessonAudioError):
    """Raised when the speech API fails or returns no audio."""
    stage = "synthesis"


class GenerationError(LessonAudioError):
    """Raised when the text-generation API fails or returns no sentence."""
    stage = "generation"


class StorageError(LessonAudioError):
    """Raised when a table or the finished audio cannot be written."""
    stage = "storage"
