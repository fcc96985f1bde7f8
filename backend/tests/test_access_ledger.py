"""Product access ledger: one record per product, history kept"""
import pytest

from app.domain.enums import Role
from app.domain.errors import NotGrantedError, AccessRevokedError, NotFoundError, PrincipalNotFoundError
from app.engine.access_ledger import build_access_url

from tests.fakes import build_principal


def test_first_grant_creates_active_record(ledger, principal_repo, user):
    grant = ledger.grant(user.principal_id, "hrm", granted_by="A1")

    assert grant.has_access
    assert grant.granted_by == "A1"
    assert grant.access_token and len(grant.access_token) == 32
    assert grant.access_link.startswith("acme-corp-")
    assert grant.access_url.endswith(grant.access_link)
    assert len(principal_repo.get(user.principal_id).product_access) == 1


def test_grant_revoke_grant_keeps_a_single_record(ledger, principal_repo, user):
    first = ledger.grant(user.principal_id, "hrm", granted_by="A1")
    revoked = ledger.revoke(user.principal_id, "hrm", revoked_by="A1")
    second = ledger.grant(user.principal_id, "hrm", granted_by="SA1")

    records = principal_repo.get(user.principal_id).product_access
    assert len(records) == 1
    assert not revoked.has_access
    assert second.has_access
    assert second.granted_at > first.granted_at
    assert second.granted_by == "SA1"
    # revoke history survives the re-grant
    assert second.revoked_at == revoked.revoked_at
    assert second.revoked_by == "A1"
    assert second.access_token != first.access_token


def test_regrant_of_active_grant_refreshes_token(ledger, user):
    first = ledger.grant(user.principal_id, "crm", granted_by="A1")
    second = ledger.grant(user.principal_id, "crm", granted_by="A1")
    assert second.has_access
    assert second.access_link != first.access_link
    assert second.granted_at > first.granted_at


def test_revoke_of_inactive_grant_is_a_no_op(ledger, user):
    ledger.grant(user.principal_id, "hrm", granted_by="A1")
    first = ledger.revoke(user.principal_id, "hrm", revoked_by="A1")
    again = ledger.revoke(user.principal_id, "hrm", revoked_by="SA1")
    assert again.revoked_by == "A1"
    assert again.revoked_at == first.revoked_at


def test_revoke_without_record_is_not_granted(ledger, user):
    with pytest.raises(NotGrantedError):
        ledger.revoke(user.principal_id, "hrm", revoked_by="A1")


def test_grant_unknown_principal(ledger):
    with pytest.raises(PrincipalNotFoundError):
        ledger.grant("USR-missing", "crm", granted_by="SA1")


def test_regenerate_rotates_active_link(ledger, user):
    granted = ledger.grant(user.principal_id, "hrm", granted_by="A1")
    rotated = ledger.regenerate_link(user.principal_id, "hrm")
    assert rotated.access_token != granted.access_token
    assert rotated.access_link != granted.access_link
    assert rotated.granted_at == granted.granted_at


def test_regenerate_on_revoked_grant_changes_nothing(ledger, principal_repo, user):
    ledger.grant(user.principal_id, "hrm", granted_by="A1")
    ledger.revoke(user.principal_id, "hrm", revoked_by="A1")
    before = principal_repo.get(user.principal_id).grant_for("hrm")

    with pytest.raises(NotGrantedError):
        ledger.regenerate_link(user.principal_id, "hrm")

    assert principal_repo.get(user.principal_id).grant_for("hrm") == before


def test_regenerate_never_granted(ledger, user):
    with pytest.raises(NotGrantedError):
        ledger.regenerate_link(user.principal_id, "crm")


def test_resolve_by_link_counts_access(ledger, user):
    grant = ledger.grant(user.principal_id, "hrm", granted_by="A1")

    principal, resolved = ledger.resolve_by_link(grant.access_link)
    assert principal.principal_id == user.principal_id
    assert resolved.access_count == 1
    assert resolved.usage_summary.total_actions == 1
    assert resolved.last_accessed is not None


def test_resolve_revoked_link(ledger, user):
    grant = ledger.grant(user.principal_id, "hrm", granted_by="A1")
    ledger.revoke(user.principal_id, "hrm", revoked_by="A1")

    with pytest.raises(AccessRevokedError):
        ledger.resolve_by_link(grant.access_link)


def test_resolve_rotated_away_link_is_not_found(ledger, user):
    grant = ledger.grant(user.principal_id, "hrm", granted_by="A1")
    ledger.regenerate_link(user.principal_id, "hrm")

    with pytest.raises(NotFoundError):
        ledger.resolve_by_link(grant.access_link)


def test_crm_grant_mirrors_legacy_flag(ledger, principal_repo):
    admin = principal_repo.create(build_principal("A1", Role.ADMIN, enterprise_id="ENT1"))

    granted = ledger.grant("A1", "crm", granted_by="A1")
    assert principal_repo.get("A1").permissions.crm_access is True

    revoked = ledger.revoke("A1", "crm", revoked_by="A1")
    stored = principal_repo.get(admin.principal_id)
    assert stored.permissions.crm_access is False
    record = stored.grant_for("crm")
    assert record.granted_at == granted.granted_at
    assert record.revoked_at == revoked.revoked_at
    assert record.revoked_at is not None


def test_non_crm_grant_leaves_legacy_flags_alone(ledger, principal_repo, user):
    ledger.grant(user.principal_id, "hrm", granted_by="A1")
    assert principal_repo.get(user.principal_id).permissions.hrm_access is False


def test_access_url_development(monkeypatch):
    from app.config.settings import settings
    monkeypatch.setattr(settings, "environment", "development")
    monkeypatch.setattr(settings, "frontend_url", "http://localhost:3000/")
    assert build_access_url("acme-1") == "http://localhost:3000/products/access/acme-1"


def test_access_url_production_uses_subdomain(monkeypatch):
    from app.config.settings import settings
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "frontend_url", "https://app.tenantdesk.io")
    assert build_access_url("acme-1") == "https://acme-1.app.tenantdesk.io"
