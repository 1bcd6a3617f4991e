from typing import Any, Optional

from pydantic import BaseModel


class ErrorBody(BaseModel):
    error: str


class ApiResponse(BaseModel):
    """Normalized result of a call made through the client helper."""

    ok: bool
    status: int
    data: Optional[Any] = None
    error: Optional[str] = None
