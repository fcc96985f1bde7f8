"""Decision engine - permissions, product access ledger, ticket routing"""
from .permission_resolver import PermissionResolver, get_permission_resolver
from .access_ledger import ProductAccessLedger
from .ticket_router import TicketRouter
from .audit_writer import AuditWriter

__all__ = [
    "PermissionResolver",
    "get_permission_resolver",
    "ProductAccessLedger",
    "TicketRouter",
    "AuditWriter",
]
