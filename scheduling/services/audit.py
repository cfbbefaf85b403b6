from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from scheduling.models import AuditEvent

User = get_user_model()

def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[Any]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if isinstance(user, User) else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )

def recent_actions(object_type: str, object_id: Any, limit: int = 20) -> list[dict]:
    events = AuditEvent.objects.filter(object_type=object_type, object_id=str(object_id)).select_related('user').order_by('-created_at', '-id')[:limit]
    return [{
        'action': e.action,
        'user': e.user.username if e.user else None,
        'detail': e.detail,
        'createdAt': e.created_at.isoformat(),
    } for e in events]
