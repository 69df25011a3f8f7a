"""Exception types shared by the tutoring backend.

Every error carries the HTTP status and public label used by the API's
exception handlers, so the orchestration code can raise without knowing
anything about FastAPI.
"""

from typing import Optional


class TutorError(Exception):
    """Base class for errors reported back to the HTTP caller."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str = "", details: Optional[str] = None):
        super().__init__(message or self.error)
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class InvalidSession(TutorError):
    """Missing or unknown session identifier."""

    status_code = 400
    error = "Invalid session"


class InvalidRequest(TutorError):
    status_code = 400
    error = "Invalid request"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message, details)
        self.error = message


class RetrievalFailure(TutorError):
    """Search provider unreachable, unconfigured or returned an error."""

    error = "Retrieval failed"


class UpstreamError(TutorError):
    """Generation provider unreachable, non-success or malformed payload."""

    error = "Upstream API Error"

    def __init__(self, message: str = "", details: Optional[str] = None, provider: str = ""):
        super().__init__(message, details)
        self.provider = provider
        if provider:
            self.error = f"{provider.capitalize()} API Error"


class UpstreamTimeout(UpstreamError):
    error = "Upstream timeout"

    def __init__(self, message: str = "", details: Optional[str] = None, provider: str = ""):
        super().__init__(message, details, provider)
        if provider:
            self.error = f"{provider.capitalize()} API Timeout"


class TeachingFailed(TutorError):
    """Raised when a mandatory retrieval step fails."""

    error = "Teaching failed"
