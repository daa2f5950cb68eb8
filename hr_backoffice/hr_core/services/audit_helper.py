import logging
from typing import Optional

from ..models import AuditLog

logger = logging.getLogger(__name__)


def log_action(
    *,
    action: str,
    instance,
    user_id: Optional[int] = None,
    company_id: Optional[int] = None,
    changes: Optional[dict] = None,
) -> AuditLog:
    """
    Append one AuditLog row for a write on `instance`.
    Runs inside the caller's transaction: a rolled back write leaves no entry.
    """
    entry = AuditLog.objects.create(
        company_id=company_id or getattr(instance, "company_id", None),
        user_id=user_id,
        action=action,
        object_type=type(instance).__name__,
        object_id=str(instance.pk),
        changes=changes or None,
    )
    logger.debug("audit: %s %s#%s by user=%s", action, entry.object_type, entry.object_id, user_id)
    return entry
