import json
import logging
from fleet_usage.core.redis import get_redis, is_redis_ready
from fleet_usage.core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "idemp:trip:"


def idempotency_key_for(user_id: int, key: str) -> str:
    # Keys are per requester: another user sending the same key gets a new trip.
    return f"{KEY_PREFIX}{user_id}:{key}"


async def get_idempotent(user_id: int, key: str):
    if not key:
        return None
    if not is_redis_ready():
        logger.warning(f"Redis unavailable, Idempotency-Key {key} not checked")
        return None
    redis = get_redis()
    v = await redis.get(idempotency_key_for(user_id, key))
    return json.loads(v) if v else None


async def set_idempotent(user_id: int, key: str, value: dict):
    if not is_redis_ready():
        return
    redis = get_redis()
    await redis.set(
        idempotency_key_for(user_id, key),
        json.dumps(value, default=str),
        ex=settings.IDEMPOTENCY_TTL,
    )
