"""Utility modules"""
from .logger import get_logger, setup_logging, set_correlation_id, get_correlation_id
from .idgen import generate_id, generate_correlation_id, generate_access_link
from .time import utc_now, ensure_utc, format_iso, parse_iso
from .jwt import CredentialVerifier, get_credential_verifier

__all__ = [
    "get_logger",
    "setup_logging",
    "set_correlation_id",
    "get_correlation_id",
    "generate_id",
    "generate_correlation_id",
    "generate_access_link",
    "utc_now",
    "ensure_utc",
    "format_iso",
    "parse_iso",
    "CredentialVerifier",
    "get_credential_verifier",
]
