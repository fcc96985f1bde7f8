"""API module - Routes and dependencies"""
from .deps import get_current_principal_dep, require_permission

__all__ = ["get_current_principal_dep", "require_permission"]
