"""Domain errors raised by services and rendered by the API layer."""

from typing import Any


class AppError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra


class NotFound(AppError):
    code = "not_found"
    status_code = 404


class Forbidden(AppError):
    """Ownership mismatch or exhausted entitlement -- ``reason`` tells them apart."""

    code = "forbidden"
    status_code = 403

    def __init__(self, message: str, reason: str, **extra: Any) -> None:
        super().__init__(message, reason=reason, **extra)
        self.reason = reason


class InsufficientCredit(Forbidden):
    def __init__(self, kind: str) -> None:
        super().__init__(
            f"Premium subscription or {kind} credit required",
            reason="entitlement",
            credits_remaining=0,
        )
        self.kind = kind


class BadRequest(AppError):
    code = "bad_request"
    status_code = 400


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class ExternalServiceError(AppError):
    code = "external_service_error"
    status_code = 502


class ExtractionError(ExternalServiceError):
    pass


class AnalysisError(ExternalServiceError):
    pass


class PaymentProviderError(ExternalServiceError):
    pass


class SignatureError(AppError):
    code = "signature_invalid"
    status_code = 400
