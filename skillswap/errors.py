"""Swap lifecycle error kinds and their HTTP rendering."""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class SwapError(Exception):
    """Base for every error the lifecycle core raises. Terminal for the call."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(SwapError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(SwapError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(SwapError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(SwapError):
    status_code = status.HTTP_409_CONFLICT


class ConflictError(SwapError):
    status_code = status.HTTP_409_CONFLICT


class AlreadyRatedError(SwapError):
    status_code = status.HTTP_409_CONFLICT


async def swap_error_handler(request: Request, exc: SwapError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": exc.kind})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Same shape as ValidationError so clients handle one taxonomy
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": errors, "error": ValidationError.__name__},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SwapError, swap_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
