# file:src/fast_api/custom_exceptions.py
from fastapi import HTTPException, status


class CustomHTTPException(HTTPException):
    def __init__(self, status_code: int, error: str, detail: str = None):
        super().__init__(
            status_code=status_code,
            detail={"error": error, "detail": detail or error}
        )


class NotFoundException(CustomHTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, "Not Found", detail)


class UnauthorizedException(CustomHTTPException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Unauthorized", detail)
