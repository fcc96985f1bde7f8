"""Service modules - Business logic layer"""
from .access_service import AccessService
from .principal_service import PrincipalService
from .ticket_service import TicketService
from .notification_service import NotificationFanout
from .role_service import RoleService
from .channel_registry import ChannelRegistry, get_channel_registry

__all__ = [
    "AccessService",
    "PrincipalService",
    "TicketService",
    "NotificationFanout",
    "RoleService",
    "ChannelRegistry",
    "get_channel_registry",
]
