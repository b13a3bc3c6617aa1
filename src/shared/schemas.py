"""Shared schemas: camelCase wire format and the response envelope."""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.shared.result import ErrorCode, Result


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys; accepts snake_case on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse[T](CamelModel):
    """Envelope returned by every auth endpoint."""

    succeeded: bool
    data: T | None = None
    errors: list[str] = []
    error_code: str | None = None

    @classmethod
    def success(cls, data: T | None = None) -> "ApiResponse[T]":
        return cls(succeeded=True, data=data)

    @classmethod
    def failure(cls, errors: str | list[str], error_code: ErrorCode | str) -> "ApiResponse[T]":
        messages = [errors] if isinstance(errors, str) else list(errors)
        return cls(succeeded=False, errors=messages, error_code=str(error_code))


def envelope(response: ApiResponse[Any], status_code: int = 200, headers: dict[str, str] | None = None) -> JSONResponse:
    """Render an envelope as a JSON response."""
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


def failure_response(result: Result[Any]) -> JSONResponse:
    """Render a failed workflow result; UNAUTHORIZED maps to 401, anything else to 400."""
    error_code = result.error_code or ErrorCode.INTERNAL_ERROR
    status_code = 401 if error_code == ErrorCode.UNAUTHORIZED else 400
    return envelope(ApiResponse.failure(result.errors, error_code), status_code=status_code)
