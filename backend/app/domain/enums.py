"""Domain Enumerations - Roles, permission modules, ticket states"""
from enum import Enum


class Role(str, Enum):
    """Principal role"""
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    USER = "user"


class Module(str, Enum):
    """Modules covered by the custom permission matrix"""
    PRODUCTS = "products"
    SERVICES = "services"
    LEADS = "leads"
    USERS = "users"
    CUSTOMERS = "customers"
    ACTIVITIES = "activities"
    ROLES = "roles"
    TICKETS = "tickets"


class Action(str, Enum):
    """Actions within a module"""
    VIEW = "view"
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ProductCode(str, Enum):
    """Products known to the legacy boolean permission set"""
    CRM = "crm"
    HRM = "hrm"
    JOB_PORTAL = "job_portal"
    JOB_BOARD = "job_board"
    PROJECT_MANAGEMENT = "project_management"


class TicketStatus(str, Enum):
    """Ticket-level status"""
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class TicketPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class TicketEventKind(str, Enum):
    """Ticket changes that trigger notification fan-out"""
    CREATED = "created"
    UPDATED = "updated"
    FORWARDED = "forwarded"


class AuditAction(str, Enum):
    """Actions written to the audit sink"""
    PRODUCT_GRANTED = "PRODUCT_GRANTED"
    PRODUCT_REVOKED = "PRODUCT_REVOKED"
    ACCESS_LINK_REGENERATED = "ACCESS_LINK_REGENERATED"
    ADMIN_CREATED = "ADMIN_CREATED"
    USER_CREATED = "USER_CREATED"
    ENTERPRISE_UPDATED = "ENTERPRISE_UPDATED"
    PERMISSIONS_UPDATED = "PERMISSIONS_UPDATED"
    PRINCIPAL_DELETED = "PRINCIPAL_DELETED"
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_UPDATED = "TICKET_UPDATED"
    TICKET_FORWARDED = "TICKET_FORWARDED"
    TICKET_DELETED = "TICKET_DELETED"
    RESPONSE_EDITED = "RESPONSE_EDITED"
    RESPONSE_REMOVED = "RESPONSE_REMOVED"
    ROLE_CREATED = "ROLE_CREATED"
    ROLE_UPDATED = "ROLE_UPDATED"
    ROLE_DELETED = "ROLE_DELETED"
    ROLE_ASSIGNED = "ROLE_ASSIGNED"


class InAppNotificationCategory(str, Enum):
    """Stored notification kinds shown in the notification bell"""
    TICKET_RESPONSE = "TICKET_RESPONSE"
    TICKET_FORWARDED = "TICKET_FORWARDED"
