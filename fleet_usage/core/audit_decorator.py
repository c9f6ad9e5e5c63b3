import logging
from functools import wraps
from typing import Any, Callable, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from fleet_usage.core.enums import AuditAction
from fleet_usage.core.metrics import audit_logs_created
from fleet_usage.models.audit import Audit
from fleet_usage.utils.hashing import audit_fingerprint

logger = logging.getLogger(__name__)


def _audited_payload(kwargs: dict) -> dict:
    payload = kwargs.get("payload")
    if hasattr(payload, "model_dump"):
        data = payload.model_dump(mode="json", exclude_unset=True)
    elif isinstance(payload, dict):
        data = dict(payload)
    else:
        data = {}
    # Path parameters identify the target of the action.
    for key, value in kwargs.items():
        if key.endswith("_id") and isinstance(value, int):
            data[key] = value
    return data


def _target_id(kwargs: dict, result: Any) -> Optional[int]:
    for key, value in kwargs.items():
        if key.endswith("_id") and isinstance(value, int):
            return value
    if isinstance(result, dict):
        return result.get("id")
    return getattr(result, "id", None)


def audit_log(action: AuditAction) -> Callable:
    """Record who performed ``action`` once the wrapped endpoint succeeded."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)

            db: AsyncSession = kwargs.get("db")
            current_user = kwargs.get("current_user")

            if not db or not current_user:
                return result

            try:
                db.add(Audit(
                    user_id=int(current_user.id),
                    action=str(action),
                    target_id=_target_id(kwargs, result),
                    payload_hash=audit_fingerprint(str(action), _audited_payload(kwargs)),
                ))
                await db.commit()
                audit_logs_created.labels(action=str(action)).inc()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Audit logging failed for {action}: {e}")

            return result

        return wrapper
    return decorator
