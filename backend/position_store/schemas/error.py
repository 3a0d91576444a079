from pydantic import BaseModel
from typing import Optional, Dict, Any

from position_store.utils.exceptions import PositionStoreError


class ErrorDetail(BaseModel):
    code: str
    message: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
    request_id: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: PositionStoreError, request_id: Optional[str] = None) -> "ErrorResponse":
        return cls(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                field=exc.field,
                details=exc.details or None,
            ),
            request_id=request_id,
        )
