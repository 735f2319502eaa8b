import asyncio
import json
import os
from typing import Dict, List, Optional

from securepass.core.crypto import KEY_LEN, decrypt_value, encrypt_value
from securepass.models import SecretRecord


class FakeUpload:
    """Stand-in for an uploaded file handle."""

    def __init__(self, content: bytes = b"", filename: str = "backup.json",
                 content_type: str = "application/json", size: Optional[int] = None):
        self.filename = filename
        self.content_type = content_type
        self.size = len(content) if size is None else size
        self._content = content
        self.reads = 0

    async def read(self, size: int = -1) -> bytes:
        self.reads += 1
        return self._content if size < 0 else self._content[:size]


class BlockingUpload(FakeUpload):
    """Upload whose read parks until ``release`` is set."""

    def __init__(self, content: bytes, **kwargs):
        super().__init__(content, **kwargs)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def read(self, size: int = -1) -> bytes:
        self.started.set()
        await self.release.wait()
        return await super().read(size)


class MemoryStore:
    """In-memory store with its own active key."""

    def __init__(self, records: Optional[List[SecretRecord]] = None):
        self.master_key = os.urandom(KEY_LEN)
        self.records: Dict[str, SecretRecord] = {r.id: r for r in records or []}
        self.calls: List[tuple] = []

    def encrypt(self, plaintext: str) -> str:
        return encrypt_value(plaintext, self.master_key)

    def decrypt(self, ciphertext: str) -> str:
        return decrypt_value(ciphertext, self.master_key)

    def find_by_id(self, secret_id: str) -> Optional[SecretRecord]:
        return self.records.get(secret_id)

    def insert(self, record: SecretRecord, imported: bool = False):
        self.calls.append(("insert", record.id, imported))
        self.records[record.id] = record

    def update(self, secret_id: str, record: SecretRecord, imported: bool = False):
        self.calls.append(("update", secret_id, imported))
        self.records[secret_id] = record


class AsyncMemoryStore(MemoryStore):
    async def find_by_id(self, secret_id: str):
        await asyncio.sleep(0)
        return super().find_by_id(secret_id)

    async def insert(self, record: SecretRecord, imported: bool = False):
        await asyncio.sleep(0)
        super().insert(record, imported)

    async def update(self, secret_id: str, record: SecretRecord, imported: bool = False):
        await asyncio.sleep(0)
        super().update(secret_id, record, imported)


def new_key_material() -> str:
    return os.urandom(KEY_LEN).hex()


def record(id="a", title="T", secret="X", created_at=1, updated_at=1, key_material=None, **extra) -> dict:
    """Raw backup record; ``secret`` is encrypted when key material is given."""
    if key_material is not None:
        secret = encrypt_value(secret, bytes.fromhex(key_material))
    return {"id": id, "title": title, "secret": secret, "created_at": created_at, "updated_at": updated_at, **extra}


def build_backup(records: List[dict], key_material: str) -> bytes:
    data = encrypt_value(json.dumps(records), bytes.fromhex(key_material))
    return json.dumps({"data": data, "hash": key_material}).encode("utf-8")


def stored(store: MemoryStore, secret: str = "old", **fields) -> SecretRecord:
    """Seed ``store`` with a record already encrypted under its active key."""
    values = {"id": "a", "title": "Old", "created_at": 1, "updated_at": 1}
    values.update(fields)
    rec = SecretRecord(secret=store.encrypt(secret), **values)
    store.records[rec.id] = rec
    return rec
