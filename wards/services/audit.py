"""Append-only audit trail for logins and ward mutations."""
import logging
from typing import Any, Dict, Optional

from wards.models import AuditEvent, User

logger = logging.getLogger(__name__)


def log_action(*, user, action: str, object_type: Optional[str] = None, object_id: Optional[int] = None,
               detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    actor = user if isinstance(user, User) and user.pk else None
    event = AuditEvent.objects.create(
        user=actor,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=detail or {},
    )
    logger.debug('audit %s by user %s on %s#%s', action, getattr(actor, 'pk', None), object_type, object_id)
    return event
