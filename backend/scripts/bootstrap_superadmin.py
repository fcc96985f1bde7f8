"""
Bootstrap Superadmin - creates the platform superadmin if none exists
Run: python -m scripts.bootstrap_superadmin
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config.settings import settings
from app.repositories.mongo_client import create_indexes
from app.repositories.principal_repo import PrincipalRepository
from app.domain.models import Principal, PrincipalProfile
from app.domain.enums import Role
from app.utils.idgen import generate_principal_id
from app.utils.time import utc_now


def main():
    create_indexes()
    repo = PrincipalRepository()

    existing = repo.list_superadmin_ids()
    if existing:
        print(f"Superadmin already present: {', '.join(existing)}")
        return

    now = utc_now()
    principal = repo.create(Principal(
        principal_id=generate_principal_id(),
        email=settings.bootstrap_superadmin_email.lower(),
        role=Role.SUPERADMIN,
        profile=PrincipalProfile(full_name=settings.bootstrap_superadmin_name),
        created_at=now,
        updated_at=now,
    ))
    print(f"Created superadmin {principal.principal_id} <{principal.email}>")


if __name__ == "__main__":
    main()
