"""
Pytest Configuration and Fixtures

Services are wired to in-memory repositories from tests.fakes, so no
MongoDB is needed.
"""

import pytest

from app.domain.models import Principal
from app.domain.enums import Role
from app.engine.access_ledger import ProductAccessLedger
from app.engine.audit_writer import AuditWriter
from app.engine.permission_resolver import PermissionResolver
from app.engine.ticket_router import TicketRouter
from app.services.access_service import AccessService
from app.services.notification_service import NotificationFanout
from app.services.principal_service import PrincipalService
from app.services.role_service import RoleService
from app.services.ticket_service import TicketService
from tests.fakes import (
    FakePrincipalRepository, FakeTicketRepository, FakeAuditRepository, FakeEnterpriseRoleRepository,
    FakeNotificationRepository, RecordingRegistry, build_principal
)


@pytest.fixture
def principal_repo() -> FakePrincipalRepository:
    return FakePrincipalRepository()


@pytest.fixture
def ticket_repo() -> FakeTicketRepository:
    return FakeTicketRepository()


@pytest.fixture
def audit_repo() -> FakeAuditRepository:
    return FakeAuditRepository()


@pytest.fixture
def role_repo() -> FakeEnterpriseRoleRepository:
    return FakeEnterpriseRoleRepository()


@pytest.fixture
def notification_repo() -> FakeNotificationRepository:
    return FakeNotificationRepository()


@pytest.fixture
def audit(audit_repo) -> AuditWriter:
    return AuditWriter(audit_repo)


@pytest.fixture
def registry() -> RecordingRegistry:
    return RecordingRegistry()


@pytest.fixture
def resolver() -> PermissionResolver:
    return PermissionResolver()


@pytest.fixture
def ledger(principal_repo) -> ProductAccessLedger:
    return ProductAccessLedger(principal_repo)


@pytest.fixture
def ticket_router(principal_repo) -> TicketRouter:
    return TicketRouter(principal_repo)


@pytest.fixture
def ticket_service(ticket_repo, principal_repo, ticket_router, registry, notification_repo, audit) -> TicketService:
    return TicketService(
        ticket_repo=ticket_repo,
        principal_repo=principal_repo,
        router=ticket_router,
        fanout=NotificationFanout(registry, notification_repo=notification_repo, principal_repo=principal_repo),
        audit=audit,
    )


@pytest.fixture
def access_service(principal_repo, ledger, audit, resolver) -> AccessService:
    return AccessService(principal_repo=principal_repo, ledger=ledger, audit=audit, resolver=resolver)


@pytest.fixture
def principal_service(principal_repo, ticket_repo, role_repo, ledger, audit, resolver) -> PrincipalService:
    return PrincipalService(
        principal_repo=principal_repo, ticket_repo=ticket_repo, ledger=ledger, audit=audit, resolver=resolver,
        role_repo=role_repo
    )


@pytest.fixture
def role_service(role_repo, principal_repo, audit, resolver) -> RoleService:
    return RoleService(role_repo=role_repo, principal_repo=principal_repo, audit=audit, resolver=resolver)


# =============================================================================
# Principal factories
# =============================================================================

@pytest.fixture
def superadmin(principal_repo) -> Principal:
    return principal_repo.create(build_principal("SA1", Role.SUPERADMIN))


@pytest.fixture
def admin(principal_repo) -> Principal:
    return principal_repo.create(build_principal("A1", Role.ADMIN, enterprise_id="E1"))


@pytest.fixture
def user(principal_repo, admin) -> Principal:
    return principal_repo.create(build_principal("U1", Role.USER, enterprise_id="E1", created_by=admin.principal_id))
