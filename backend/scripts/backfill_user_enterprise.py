"""
Copy each admin's enterprise block onto the sub-users it created.

Users created before enterprise details were copied at creation time have
no enterprise, so their tickets cannot be routed.
Run: python -m scripts.backfill_user_enterprise [--dry-run]
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.repositories.mongo_client import get_collection, PRINCIPALS
from app.domain.enums import Role
from app.utils.time import utc_now


def main(dry_run: bool = False):
    principals = get_collection(PRINCIPALS)

    users = list(principals.find({
        "role": Role.USER.value,
        "$or": [{"enterprise": None}, {"enterprise.enterprise_id": {"$in": [None, ""]}}],
    }))
    print(f"Found {len(users)} users without an enterprise")

    updated = 0
    for user in users:
        creator = principals.find_one({"principal_id": user.get("created_by")})
        # Sub-users created by sub-users inherit from the owning admin
        seen = {user["principal_id"]}
        while creator and creator.get("role") == Role.USER.value:
            if creator["principal_id"] in seen:
                break
            seen.add(creator["principal_id"])
            creator = principals.find_one({"principal_id": creator.get("created_by")})

        if creator and creator.get("role") == Role.USER.value:
            print(f"  Skipped {user['principal_id']}: created_by cycle through {creator['principal_id']}")
            continue

        if not creator or not creator.get("enterprise"):
            print(f"  Skipped {user['principal_id']}: creator has no enterprise")
            continue

        if not dry_run:
            principals.update_one(
                {"principal_id": user["principal_id"]},
                {"$set": {"enterprise": creator["enterprise"], "updated_at": utc_now()}}
            )
        updated += 1
        print(f"  {user['principal_id']} -> {creator['enterprise'].get('enterprise_id')}")

    print(f"\nTotal {'to update' if dry_run else 'updated'}: {updated}")
    return updated


if __name__ == "__main__":
    main(dry_run="--dry-run" in sys.argv)
