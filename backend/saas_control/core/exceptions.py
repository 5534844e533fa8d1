"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class SessionExpiredError(AuthenticationError):
    """Session cookie has expired or is not readable"""
    def __init__(self):
        super().__init__("Session expired", details={"sign_in_url": "/api/v1/auth/sign-in"})


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions", permission: Optional[str] = None):
        details = {"required_permission": permission} if permission else None
        super().__init__(message, status_code=403, details=details)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, status_code=status_code)


class DecisionAlreadyFinalError(BusinessLogicError):
    """Decision has already left the pending state"""
    def __init__(self, decision_id: str, current: str):
        super().__init__(
            f"Decision {decision_id} is already {current}",
            status_code=409,
        )


# System Errors
class StoreError(BaseAPIException):
    """Underlying store operation failed"""
    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message, status_code=500)


class AuditEmissionError(Exception):
    """Audit row could not be appended. Never crosses the request boundary."""


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429)
