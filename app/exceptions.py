from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

class APIException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

class BagNotFoundError(APIException):
    def __init__(self, bag_id: str):
        super().__init__(status_code=404, detail=f"Bag {bag_id} not found")

class InvalidFieldError(APIException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class AnalysisInputError(APIException):
    """Raised before any network call when the collection cannot be analyzed yet."""
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class AnalysisInProgressError(APIException):
    def __init__(self):
        super().__init__(status_code=409, detail="An analysis is already in progress")

class AnalysisFailedError(APIException):
    """Transport, provider, timeout and cancellation failures all land here."""
    def __init__(self, message: str):
        super().__init__(
            status_code=502,
            detail=f"Analysis failed: {message}. Please check your API key and try again.",
        )

def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }

def create_success_response(data) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )
