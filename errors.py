"""
Error types raised by the domain modules.

They subclass HTTPException so a helper can raise them directly and FastAPI
turns them into responses without extra handlers.
"""
from typing import Dict, Optional

from fastapi import HTTPException


class InvalidCredentials(HTTPException):
    def __init__(self, detail: str = "Invalid email or password"):
        super().__init__(status_code=401, detail=detail)


class NotAuthenticated(HTTPException):
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(status_code=401, detail=detail)


class AccountDisabled(HTTPException):
    def __init__(self, detail: str = "This account has been disabled"):
        super().__init__(status_code=403, detail=detail)


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Not allowed"):
        super().__init__(status_code=403, detail=detail)


class TooManyAttempts(HTTPException):
    def __init__(self, detail: str = "Too many failed attempts. Please try again later"):
        super().__init__(status_code=429, detail=detail)


class NotFound(HTTPException):
    def __init__(self, what: str = "Resource"):
        super().__init__(status_code=404, detail=f"{what} not found")


class EmailAlreadyRegistered(HTTPException):
    def __init__(self):
        super().__init__(status_code=400, detail="Email already registered")


class ValidationFailed(HTTPException):
    """Carries one message per offending field."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__(status_code=400, detail={"message": "Validation failed", "errors": errors})


class InvalidTransition(HTTPException):
    def __init__(self, kind: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(status_code=409, detail=f"Cannot move {kind} from '{current}' to '{target}'")


class StaleWrite(HTTPException):
    def __init__(self, what: str = "Document"):
        super().__init__(status_code=409, detail=f"{what} was modified concurrently, reload and retry")


class VerificationFailed(HTTPException):
    def __init__(self, detail: str = "Payment verification failed", message: Optional[str] = "Invalid signature"):
        body = {"error": detail}
        if message:
            body["message"] = message
        super().__init__(status_code=400, detail=body)


class PaymentCancelled(HTTPException):
    def __init__(self, detail: str = "Payment cancelled by user"):
        super().__init__(status_code=400, detail=detail)
