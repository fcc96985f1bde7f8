"""Re-derive permissions.crm_access from the CRM grant record"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.repositories.mongo_client import get_collection, PRINCIPALS
from app.domain.enums import ProductCode


def main():
    principals = get_collection(PRINCIPALS)
    crm = ProductCode.CRM.value

    fixed = 0
    for doc in principals.find({"product_access.product_id": crm}):
        grant = next(g for g in doc.get("product_access", []) if g.get("product_id") == crm)
        expected = bool(grant.get("has_access"))
        if bool((doc.get("permissions") or {}).get("crm_access")) == expected:
            continue

        principals.update_one(
            {"principal_id": doc["principal_id"]},
            {"$set": {"permissions.crm_access": expected}}
        )
        fixed += 1
        print(f"Fixed {doc['principal_id']}: crm_access={expected}")

    print(f"\nTotal fixed: {fixed}")


if __name__ == "__main__":
    main()
