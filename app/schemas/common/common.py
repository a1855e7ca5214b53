# app/schemas/common.py
from pydantic import BaseModel
from typing import Optional, Any

class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[Any] = None
    error: str

class CancelResponse(BaseModel):
    cancelled: bool

class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    collection: dict
