import json
from collections.abc import Mapping
from typing import Any

from doctranslate.broker.exceptions import MessageDecodeError
from doctranslate.store.models import JobRecord


def encode(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MessageDecodeError(f"Message body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MessageDecodeError("Message body must be a JSON object")
    return payload


def decode_job(body: bytes) -> JobRecord:
    """Decode a queue message into the (possibly stale) JobRecord it carries."""
    payload = decode(body)
    try:
        return JobRecord.from_dict(payload)
    except (ValueError, TypeError) as exc:
        raise MessageDecodeError(f"Message is not a job record: {exc}") from exc
