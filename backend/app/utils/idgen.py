"""ID Generation Utilities"""
import re
import secrets
import uuid
from typing import Optional

from .time import utc_now


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Examples:
        >>> generate_id('TKT')
        'TKT-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_principal_id() -> str:
    """Generate principal ID"""
    return generate_id("USR")


def generate_ticket_id() -> str:
    """Generate ticket ID"""
    return generate_id("TKT")


def generate_response_id() -> str:
    """Generate ticket response ID"""
    return generate_id("RSP")


def generate_audit_event_id() -> str:
    """Generate audit event ID"""
    return generate_id("AUD")


def generate_role_id() -> str:
    """Generate enterprise role ID"""
    return generate_id("ROL")


def generate_notification_id() -> str:
    """Generate in-app notification ID"""
    return generate_id("NTF")


def generate_correlation_id() -> str:
    """Generate a correlation ID for request tracing"""
    timestamp = utc_now().strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"


def generate_access_token() -> str:
    """Opaque per-grant access token (32 hex chars)"""
    return secrets.token_hex(16)


def slugify(value: str, max_length: int = 30) -> str:
    """Lower-case, dash-separated slug trimmed to max_length"""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def generate_access_link(name: Optional[str] = None) -> str:
    """
    Tenant-facing access link for a product grant.

    Prefixed with a slug of the enterprise (or person) name when one is
    available, e.g. ``acme-corp-3f9a1c0b7d2e4f60``.
    """
    suffix = secrets.token_hex(8)
    slug = slugify(name) if name else ""
    if slug:
        return f"{slug}-{suffix}"
    return suffix
