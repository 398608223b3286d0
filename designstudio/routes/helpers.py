from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timezone


def request_data(request) -> dict:
    """JSON body, falling back to form fields for multipart posts."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def clean_str(val) -> str | None:
    if val is None:
        return None
    val = str(val).strip()
    return val or None


def parse_bool(val, default: bool = False) -> bool:
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(val, default=None):
    try:
        return int(val)
    except (TypeError, ValueError):
        return default


def parse_datetime(val) -> datetime | None:
    if not val:
        return None
    val = str(val).strip()
    if val.endswith("Z"):
        val = val[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(val)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        # stored naive in UTC
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


def decode_image_data(value: str) -> tuple[bytes, str]:
    """Decode a data URL or bare base64 string. Returns (bytes, mime type)."""
    mime = "image/jpeg"
    match = _DATA_URL_RE.match(value.strip())
    if match:
        mime = match.group("mime")
        value = match.group("data")
    try:
        return base64.b64decode(value, validate=True), mime
    except (binascii.Error, ValueError):
        raise ValueError("Invalid base64 image data")


def file_to_b64(file_storage) -> str | None:
    if not file_storage or not file_storage.filename:
        return None
    data = file_storage.read()
    if not data:
        return None
    return base64.b64encode(data).decode("ascii")
