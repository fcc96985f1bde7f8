"""
Backend Scripts Module

Maintenance scripts for database setup and data repair.

Available scripts:
    - bootstrap_superadmin.py: Creates the platform superadmin
    - backfill_user_enterprise.py: Copies admin enterprise details onto sub-users
    - sync_legacy_crm_flag.py: Re-derives permissions.crm_access from the CRM grant

Usage:
    python -m scripts.bootstrap_superadmin
"""
