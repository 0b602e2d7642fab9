"""Error taxonomy shared by the pipeline and the API layer.

Every error carries an HTTP status, a stable machine-readable code, and a
details dict; FastAPI handlers in docintel.main render them with to_dict().
Extraction and naming failures are not represented here: those paths degrade
and log instead of raising.
"""
from typing import Any, Dict, Optional


class DocIntelError(Exception):
    """Base exception for all DocIntel errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the structured {error, code, details} body."""
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(DocIntelError):
    """Bad or missing client input (unsupported upload, empty query)."""

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, code="VALIDATION_ERROR", details=details)


class NotFoundError(DocIntelError):
    """Requested document or session does not exist."""

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=404, code="NOT_FOUND", details=details)


class IndexUnavailableError(DocIntelError):
    """Vector collection missing or the index backend unreachable."""

    def __init__(
        self,
        message: str = "Vector index unavailable",
        collection: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if collection:
            error_details["collection"] = collection
        super().__init__(message, status_code=503, code="INDEX_UNAVAILABLE", details=error_details)


class GenerativeModelError(DocIntelError):
    """No usable answer from the generative model, or missing credentials."""

    def __init__(
        self,
        message: str = "Generative model failed",
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if model:
            error_details["model"] = model
        super().__init__(message, status_code=502, code="GENERATION_FAILED", details=error_details)
