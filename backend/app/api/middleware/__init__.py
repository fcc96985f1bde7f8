"""HTTP middleware: correlation ids and the DomainError -> JSON mapping"""

from .correlation import CorrelationIdMiddleware
from .error_handlers import register_error_handlers

__all__ = ["CorrelationIdMiddleware", "register_error_handlers"]
