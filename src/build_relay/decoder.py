import base64
import binascii
import json
from typing import Any

from sanic.log import logger

from build_relay.exceptions import DecodeError
from build_relay.models import BuildEvent, PubSubMessage

# BuildEvent field -> key in the decoded payload
FIELD_KEYS = {
    "build_id": "buildId",
    "end_time": "finishTime",
    "start_time": "startTime",
    "project_id": "projectId",
    "status": "status",
    "trigger_id": "buildTriggerId",
}

SKIPPED_STATUSES = ("QUEUED",)


def _as_optional_str(key: str, value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise DecodeError(f"Expected a scalar value for '{key}'")
    if isinstance(value, str):
        return value
    return json.dumps(value)


def decode_payload(data: str) -> dict[str, Any]:
    """Decode the base64 JSON object carried in a Pub/Sub message."""
    try:
        raw = base64.b64decode(data, validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Malformed message data: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")

    return payload


def decode_build_event(message: PubSubMessage) -> BuildEvent:
    payload = decode_payload(message.data)

    values = {
        field: _as_optional_str(key, payload.get(key))
        for field, key in FIELD_KEYS.items()
    }

    # Cloud Build publishes the Build resource itself, keyed by "id", and
    # repeats the id in the message attributes.
    if values["build_id"] is None:
        values["build_id"] = _as_optional_str("id", payload.get("id")) or (
            message.attributes.get("buildId")
        )

    event = BuildEvent(**values)
    logger.debug(
        "Decoded build %s (status %s, trigger %s)",
        event.build_id,
        event.status,
        event.trigger_id,
    )
    return event


def should_notify(event: BuildEvent) -> bool:
    """Only builds past the queue that belong to a known trigger are reported."""
    if event.status in SKIPPED_STATUSES:
        return False
    if not event.trigger_id:
        return False
    return True
