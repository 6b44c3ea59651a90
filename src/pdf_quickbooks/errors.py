from typing import Any


class PipelineError(Exception):
    """Base error; carries the HTTP status and a machine-readable code."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class InputValidationError(PipelineError):
    status_code = 400
    code = "validation_error"


class FieldValidationError(InputValidationError):
    code = "invalid_field"

    def __init__(self, field: str, message: str, value: Any = None) -> None:
        super().__init__(message, field=field, value=value)
        self.field = field
        self.value = value


class AuthenticationError(PipelineError):
    status_code = 401
    code = "unauthorized"


class AuthorizationError(PipelineError):
    status_code = 403
    code = "forbidden"


class SubscriptionRequiredError(AuthorizationError):
    code = "subscription_required"


class CapacityError(PipelineError):
    status_code = 400
    code = "usage_limit_exceeded"

    def __init__(
        self,
        current_usage: int,
        requested_pages: int,
        limit: int,
        reserved_pages: int = 0,
    ) -> None:
        super().__init__(
            f"This batch would exceed your monthly limit of {limit} pages",
            current_usage=current_usage,
            reserved_pages=reserved_pages,
            requested_pages=requested_pages,
            limit=limit,
        )
        self.current_usage = current_usage
        self.reserved_pages = reserved_pages
        self.requested_pages = requested_pages
        self.limit = limit


class BatchStateError(PipelineError):
    status_code = 409
    code = "invalid_batch_state"


class NotFoundError(PipelineError):
    status_code = 404
    code = "not_found"


class ExtractionError(PipelineError):
    """The upstream AI engine failed or returned unusable output."""

    status_code = 502
    code = "extraction_failed"
