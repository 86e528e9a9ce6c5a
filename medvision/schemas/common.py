from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    ok: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Success body shared by every endpoint."""
    body = {"ok": True, "data": data}
    if message:
        body["message"] = message
    return body


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
