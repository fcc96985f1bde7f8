"""Audit Writer - Append-only audit events"""
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..domain.models import AuditEvent
from ..domain.enums import AuditAction
from ..utils.idgen import generate_audit_event_id
from ..utils.time import utc_now
from ..utils.logger import get_logger, get_correlation_id

if TYPE_CHECKING:
    from ..repositories.audit_repo import AuditRepository

logger = get_logger(__name__)


class AuditWriter:
    """
    Write-only audit sink.

    Called after a mutation has committed, so a failure here is logged and
    dropped; it never undoes or fails the mutation.
    """

    def __init__(self, repo: "AuditRepository" = None):
        if repo is None:
            from ..repositories.audit_repo import AuditRepository
            repo = AuditRepository()
        self.repo = repo

    def record(
        self,
        action: AuditAction,
        actor_id: Optional[str],
        target_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
        target: Optional[str] = None,
        enterprise_id: Optional[str] = None
    ) -> Optional[AuditEvent]:
        event = AuditEvent(
            audit_event_id=generate_audit_event_id(),
            action=action,
            actor_id=actor_id,
            target=target,
            target_id=target_id,
            enterprise_id=enterprise_id,
            details=details or {},
            correlation_id=get_correlation_id(),
            timestamp=utc_now()
        )
        try:
            return self.repo.create_event(event)
        except Exception as e:
            logger.warning(
                f"Failed to write audit event {action.value}: {e}",
                extra={"action": action.value, "actor_id": actor_id}
            )
            return None
