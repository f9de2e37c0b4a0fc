from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Standard success wrapper: {"success": true, "data": ...}."""
    success: bool = True
    data: T
    message: Optional[str] = None


def ok(data, message: Optional[str] = None) -> dict:
    return {"success": True, "data": data, "message": message}
