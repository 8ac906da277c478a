"""Exception taxonomy for the schedule assistant.

Fatal paths (configuration, generation) surface to the caller as short
human-readable messages. Remote-stage failures are raised as ``LLMError``
subclasses so the best-effort stages can catch exactly those and fall back.
"""

from typing import Optional


class AssistantError(Exception):
    """Base class for all assistant errors."""


class ConfigurationError(AssistantError):
    """Required configuration (usually the API credential) is missing."""


class LLMError(AssistantError):
    """A call to the text-generation service failed."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class LLMTransportError(LLMError):
    """Network failure, timeout or non-2xx response."""

    def __init__(self, message: str, stage: Optional[str] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, stage)
        self.status_code = status_code


class MalformedResponseError(LLMError):
    """Response body or structured output did not have the expected shape."""


class EmptyCompletionError(LLMError):
    """The service answered but returned no content."""


class GenerationError(AssistantError):
    """The core answer could not be produced. Fatal for the query."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
