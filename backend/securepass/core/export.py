import json
import logging
from typing import Any

from securepass.models import BackupEnvelope
from securepass.core.crypto import encrypt_value, generate_key_material

logger = logging.getLogger(__name__)


def export_backup(store: Any) -> BackupEnvelope:
    """
    Build a self-contained backup: every secret moved from the master key to
    a fresh export key, the record array encrypted under that same key, and
    the key shipped alongside as ``hash``.
    """
    key_material = generate_key_material()
    export_key = bytes.fromhex(key_material)
    records = []
    for record in store.list_secrets():
        plaintext = store.decrypt(record.secret)
        records.append(record.model_copy(update={"secret": encrypt_value(plaintext, export_key)}).model_dump())
    data = encrypt_value(json.dumps(records), export_key)
    logger.info("exported %d secret(s)", len(records))
    return BackupEnvelope(data=data, hash=key_material)
