"""Response bodies shared by every analysis endpoint."""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """JSON body of 4xx/5xx answers, as produced by the exception handlers."""

    detail: str


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
