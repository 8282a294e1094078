from __future__ import annotations


class ProviderError(RuntimeError):
    pass


class ProviderNotConfiguredError(ProviderError):
    pass


class ValidationError(ValueError):
    """Bad client input. ``code`` is the machine-readable error code returned to clients."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class DocumentNotFoundError(LookupError):
    def __init__(self, document_id: object) -> None:
        super().__init__(f"Document not found: {document_id!r}")
        self.document_id = document_id


class RateLimitExceededError(RuntimeError):
    def __init__(self, message: str, *, retry_after_ms: int) -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms
