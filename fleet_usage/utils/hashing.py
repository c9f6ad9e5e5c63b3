import hashlib
import json
from typing import Any, Mapping


def audit_fingerprint(action: str, payload: Mapping[str, Any]) -> str:
    """SHA-256 over the action and its canonical JSON payload."""
    body = json.dumps(
        {"action": action, "payload": payload},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(body.encode("utf-8")).hexdigest()
