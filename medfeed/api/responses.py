"""Uniform ``{success, message, data}`` response envelope."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(status_code: int, message: str, data: Any = None) -> JSONResponse:
    """Build a JSON response; ``success`` follows the status code only."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": 200 <= status_code < 300,
            "message": message,
            "data": jsonable_encoder(data),
        },
    )


def ok(message: str, data: Any = None) -> JSONResponse:
    return envelope(200, message, data)


def created(message: str, data: Any = None) -> JSONResponse:
    return envelope(201, message, data)
