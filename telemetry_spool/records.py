"""
Record builders for the spool wire format.

Every record is a compact JSON object written as one line. Field names are
the short keys the analytics endpoint expects:

- session-open:  {"dt":"s","ct":...,"u":...}
- event:         {"dt":"e","ct":...,"u":...,"su":...,"n":...,"attrs":{...}}
- session-close: {"dt":"c","u":...,"ss":...,"su":...,"ct":...}
- upload-header: {"dt":"h","pa":...,"seq":...,"u":...,"attrs":{"dt":"a",...}}
"""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .device import DeviceAttributes

SESSION_OPEN = "s"
EVENT = "e"
SESSION_CLOSE = "c"
UPLOAD_HEADER = "h"
HEADER_ATTRIBUTES = "a"


def unix_time(moment: datetime | None = None) -> int:
    """Seconds since the Unix epoch, rounded to the nearest second."""
    if moment is None:
        return round(time.time())
    return round(moment.timestamp())


def new_uuid() -> str:
    return str(uuid.uuid4())


def encode_record(record: Mapping[str, Any]) -> str:
    """Serialize a record as one newline-terminated JSON line."""
    return json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n"


def normalize_attributes(attributes: Mapping[Any, Any]) -> dict[str, str]:
    """Flatten an attribute map to ``str -> str``.

    Missing keys or values become empty strings instead of failing.
    """
    normalized: dict[str, str] = {}
    for key, value in attributes.items():
        normalized["" if key is None else str(key)] = "" if value is None else str(value)
    return normalized


def session_open_record(session_id: str, client_time: int) -> dict[str, Any]:
    return {"dt": SESSION_OPEN, "ct": client_time, "u": session_id}


def event_record(
    session_id: str,
    name: str,
    client_time: int,
    attributes: Mapping[Any, Any] | None = None,
    record_id: str | None = None,
) -> dict[str, Any]:
    """Build an event record. ``attrs`` is omitted when no map is given."""
    record: dict[str, Any] = {
        "dt": EVENT,
        "ct": client_time,
        "u": record_id or new_uuid(),
        "su": session_id,
        "n": name,
    }
    if attributes is not None:
        record["attrs"] = normalize_attributes(attributes)
    return record


def session_close_record(
    session_id: str,
    session_start: int,
    client_time: int,
    record_id: str | None = None,
) -> dict[str, Any]:
    return {
        "dt": SESSION_CLOSE,
        "u": record_id or new_uuid(),
        "ss": session_start,
        "su": session_id,
        "ct": client_time,
    }


def upload_header_record(
    blob_id: str,
    sequence: int,
    store_created: int,
    install_id: str,
    app_key: str,
    device: DeviceAttributes,
) -> dict[str, Any]:
    """Build the header written once at the top of every upload blob.

    Args:
        blob_id: Unique id of the blob; stays the same on re-upload
        sequence: Sequence number consumed for this blob
        store_created: Unix time the metadata store was created
        install_id: Install UUID from the metadata store
        app_key: Application key
        device: Device and application attributes
    """
    return {
        "dt": UPLOAD_HEADER,
        "pa": store_created,
        "seq": sequence,
        "u": blob_id,
        "attrs": {
            "dt": HEADER_ATTRIBUTES,
            "au": app_key,
            "du": device.device_hash,
            "lv": device.library_version,
            "av": device.app_version,
            "dp": device.platform,
            "dll": device.locale,
            "dmo": device.model,
            "dov": device.os_version,
            "iu": install_id,
        },
    }


def parse_records(contents: str) -> list[dict[str, Any]]:
    """Parse newline-delimited records, skipping blank lines."""
    return [json.loads(line) for line in contents.splitlines() if line.strip()]
