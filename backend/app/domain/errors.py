"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class InvalidCredentialError(DomainError):
    """Bearer credential missing, malformed, expired, or unknown principal"""
    error_code = "INVALID_CREDENTIAL"
    http_status = 401


class ForbiddenError(DomainError):
    """Permission or ownership check failed"""
    error_code = "FORBIDDEN"
    http_status = 403


class AccessRevokedError(ForbiddenError):
    """Access link resolves to an inactive grant"""
    error_code = "ACCESS_REVOKED"


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class InvalidStatusError(ValidationError):
    """Ticket status outside the allowed set"""
    error_code = "INVALID_STATUS"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class PrincipalNotFoundError(NotFoundError):
    error_code = "PRINCIPAL_NOT_FOUND"


class TicketNotFoundError(NotFoundError):
    error_code = "TICKET_NOT_FOUND"


class ResponseNotFoundError(NotFoundError):
    error_code = "RESPONSE_NOT_FOUND"


class RoleNotFoundError(NotFoundError):
    error_code = "ROLE_NOT_FOUND"


class NotificationNotFoundError(NotFoundError):
    error_code = "NOTIFICATION_NOT_FOUND"


class EnterpriseNotConfiguredError(DomainError):
    """No enterprise admin could be resolved for a sub-user"""
    error_code = "ENTERPRISE_NOT_CONFIGURED"
    http_status = 422

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message or "No enterprise admin found for this account. Please contact your administrator.",
            details=details
        )


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


class NotGrantedError(ConflictError):
    """Operation requires an active product grant"""
    error_code = "NOT_GRANTED"


# External collaborators
class CollaboratorUnavailableError(DomainError):
    """Storage or another collaborator failed before the mutation committed"""
    error_code = "COLLABORATOR_UNAVAILABLE"
    http_status = 503
