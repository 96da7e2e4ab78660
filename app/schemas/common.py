from pydantic import BaseModel
from typing import Optional


class ErrorOut(BaseModel):
    error: str
    details: Optional[list[str]] = None


# OpenAPI documentation for routes that raise ServiceError
ERROR_RESPONSES = {
    status: {"model": ErrorOut}
    for status in (400, 403, 404, 409, 429, 500)
}
