"""Custom exceptions and error handlers for the HTTP surface."""

from fastapi import Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from repo_migrations.logger import get_logger
from repo_migrations.result import MigrationResult

log = get_logger(__name__)


class ErrorDetail(BaseModel):
    """Error body of failed migrations."""

    error: str = Field(..., description="Short failure summary")
    details: str = Field(default="", description="Underlying error message")
    code: str = Field(..., description="Error code")


class RequestRejectedError(Exception):
    """A request refused before any migration ran, answered in plain text."""

    def __init__(
        self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class UnauthorizedError(RequestRejectedError):
    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(RequestRejectedError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class MigrationFailedError(Exception):
    """A migration returned an error result."""

    def __init__(
        self,
        error: str,
        details: str,
        code: str,
        status_code: int = status.HTTP_424_FAILED_DEPENDENCY,
    ) -> None:
        self.error = error
        self.details = details
        self.code = code
        self.status_code = status_code
        super().__init__(f"{error}: {details}")

    @classmethod
    def from_result(cls, error: str, result: MigrationResult) -> "MigrationFailedError":
        return cls(
            error=error,
            details=result.error_message or "",
            code=result.error_code or "",
            status_code=result.status_code,
        )


async def request_rejected_handler(  # noqa: RUF029 - FastAPI requires async exception handlers
    request: Request, exc: RequestRejectedError
) -> PlainTextResponse:
    """Handle RequestRejectedError exceptions."""
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def migration_failed_handler(  # noqa: RUF029 - FastAPI requires async exception handlers
    request: Request, exc: MigrationFailedError
) -> JSONResponse:
    """Handle MigrationFailedError exceptions."""
    log.warning(
        "migration failed",
        extra={"path": request.url.path, "code": exc.code, "details": exc.details},
    )
    error_detail = ErrorDetail(error=exc.error, details=exc.details, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=error_detail.model_dump())


async def general_exception_handler(  # noqa: RUF029 - FastAPI requires async exception handlers
    request: Request, exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions."""
    log.error(
        "unhandled exception",
        extra={"path": request.url.path},
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    error_detail = ErrorDetail(
        error="Internal server error", details=str(exc), code="INTERNAL_ERROR"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_detail.model_dump(),
    )
