"""Best-effort audit trail."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker

from labelprint.models.audit import AuditEvent

log = logging.getLogger(__name__)


class AuditRecorder:
    """
    Appends audit events in a session of its own.

    Recording is fire-and-forget: a failure is logged and dropped, never
    raised, and because the event is written in a separate transaction it can
    never roll back the action it describes. No retries (at most once).
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record(
        self,
        actor_id: str,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None
    ) -> None:
        db = None
        try:
            db = self.session_factory()
            db.add(AuditEvent(
                user_id=actor_id,
                action=action,
                details=details or {},
                ip_address=ip_address,
            ))
            db.commit()
        except Exception:
            # close() below discards the failed transaction
            log.exception("Failed to record audit event %s for %s", action, actor_id)
        finally:
            if db is not None:
                db.close()
