"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, create_indexes
from .principal_repo import PrincipalRepository
from .ticket_repo import TicketRepository
from .audit_repo import AuditRepository
from .role_repo import EnterpriseRoleRepository
from .inapp_notification_repo import InAppNotificationRepository

__all__ = [
    "get_database",
    "get_collection",
    "create_indexes",
    "PrincipalRepository",
    "TicketRepository",
    "AuditRepository",
    "EnterpriseRoleRepository",
    "InAppNotificationRepository",
]
