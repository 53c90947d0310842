from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    CASINO_NOT_FOUND = "CASINO_NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CASINO_ALREADY_EXISTS = "CASINO_ALREADY_EXISTS"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class RegistryError(Exception):
    """Expected protocol outcome that maps to a stable error code."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, details: Any = None) -> None:
        if message is not None:
            self.message = message
        self.details = details
        super().__init__(self.message)


class InvalidSignature(RegistryError):
    code = ErrorCode.INVALID_SIGNATURE
    status_code = 401
    message = "Signature verification failed"


class CasinoNotFound(RegistryError):
    code = ErrorCode.CASINO_NOT_FOUND
    status_code = 404
    message = "Casino not found"


class CasinoAlreadyExists(RegistryError):
    code = ErrorCode.CASINO_ALREADY_EXISTS
    status_code = 409
    message = "Casino with this public key is already registered"


class InvalidRequest(RegistryError):
    code = ErrorCode.INVALID_REQUEST
    status_code = 400
    message = "Invalid request"


class Unauthorized(RegistryError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 401
    message = "Unauthorized"


class RateLimited(RegistryError):
    code = ErrorCode.RATE_LIMITED
    status_code = 429
    message = "Too many requests, please try again later"
