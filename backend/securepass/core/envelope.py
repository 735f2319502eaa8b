import json
from typing import Any

from securepass.models import BackupEnvelope
from securepass.core.errors import InvalidJSON, MalformedEnvelope, MissingEnvelopeFields


def parse_envelope(text: str) -> BackupEnvelope:
    """
    Parse backup file text into its ``data``/``hash`` pair.

    Both fields must be present and non-empty strings; their contents are not
    interpreted here.
    """
    try:
        parsed: Any = json.loads(text)
    except ValueError as exc:
        raise InvalidJSON() from exc
    if not isinstance(parsed, dict):
        raise MalformedEnvelope()

    data = parsed.get("data")
    key_material = parsed.get("hash")
    if not data or not key_material:
        raise MissingEnvelopeFields()
    if not isinstance(data, str) or not isinstance(key_material, str):
        raise MissingEnvelopeFields()
    return BackupEnvelope(data=data, hash=key_material)
