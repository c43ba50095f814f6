"""Error taxonomy for the search service."""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to an error payload."""
        payload = {"code": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ServiceUnavailableError(AppError):
    """External service unavailable."""

    def __init__(self, service: str, message: str | None = None, details: dict | None = None):
        super().__init__(
            message=message or f"Service '{service}' is unavailable",
            error_code="SERVICE_UNAVAILABLE",
            status_code=503,
            details={"service": service, **(details or {})},
        )
        self.service = service


class SearchBackendError(ServiceUnavailableError):
    """Search backend request failed."""

    def __init__(self, message: str, status: int | None = None):
        details = {"status": status} if status is not None else None
        super().__init__("search_backend", message=message, details=details)
        self.status = status


class PayloadTooLargeError(SearchBackendError):
    """Backend rejected the request body as too large (embedding size)."""

    def __init__(self, message: str = "Request payload too large"):
        super().__init__(message, status=413)
        self.error_code = "PAYLOAD_TOO_LARGE"


class EmbeddingError(ServiceUnavailableError):
    """Embedding provider failed."""

    def __init__(self, message: str):
        super().__init__("embedding_provider", message=message)


class IntentAnalysisError(AppError):
    """Intent analyzer unreachable or returned unusable content."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            error_code="INTENT_ANALYSIS_FAILED",
            status_code=502,
            details=details,
        )
