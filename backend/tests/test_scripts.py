"""Maintenance scripts against an in-memory principals collection"""
from unittest.mock import MagicMock

import pytest

from scripts import backfill_user_enterprise


def _principals(*docs):
    by_id = {d["principal_id"]: d for d in docs}
    col = MagicMock()
    col.find.return_value = [d for d in docs if d["role"] == "user" and not d.get("enterprise")]
    col.find_one.side_effect = lambda query: by_id.get(query["principal_id"])
    return col


@pytest.fixture
def principals(monkeypatch):
    holder = {}

    def install(*docs):
        holder["col"] = _principals(*docs)
        monkeypatch.setattr(backfill_user_enterprise, "get_collection", lambda name: holder["col"])
        return holder["col"]

    return install


def test_copies_enterprise_through_nested_creators(principals):
    col = principals(
        {"principal_id": "A1", "role": "admin", "enterprise": {"enterprise_id": "E1"}},
        {"principal_id": "U1", "role": "user", "created_by": "A1", "enterprise": None},
        {"principal_id": "U2", "role": "user", "created_by": "U1", "enterprise": None},
    )

    assert backfill_user_enterprise.main() == 2
    targets = [call.args[0]["principal_id"] for call in col.update_one.call_args_list]
    assert targets == ["U1", "U2"]
    assert col.update_one.call_args.args[1]["$set"]["enterprise"] == {"enterprise_id": "E1"}


def test_created_by_cycle_is_skipped(principals):
    col = principals(
        {"principal_id": "A1", "role": "admin", "enterprise": {"enterprise_id": "E1"}},
        {"principal_id": "U1", "role": "user", "created_by": "U2", "enterprise": None},
        {"principal_id": "U2", "role": "user", "created_by": "U1", "enterprise": None},
        {"principal_id": "U3", "role": "user", "created_by": "A1", "enterprise": None},
    )

    assert backfill_user_enterprise.main() == 1
    col.update_one.assert_called_once()
    assert col.update_one.call_args.args[0] == {"principal_id": "U3"}


def test_self_created_user_is_skipped(principals):
    col = principals({"principal_id": "U1", "role": "user", "created_by": "U1", "enterprise": None})

    assert backfill_user_enterprise.main() == 0
    col.update_one.assert_not_called()


def test_dry_run_writes_nothing(principals):
    col = principals(
        {"principal_id": "A1", "role": "admin", "enterprise": {"enterprise_id": "E1"}},
        {"principal_id": "U1", "role": "user", "created_by": "A1", "enterprise": None},
    )

    assert backfill_user_enterprise.main(dry_run=True) == 1
    col.update_one.assert_not_called()
