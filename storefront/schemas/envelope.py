from typing import Any

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Uniform `{success, data, error}` envelope returned by every backend call."""

    success: bool = False
    data: Any = None
    message: str | None = None
    error: str | None = None
    details: Any = None
