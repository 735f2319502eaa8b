import base64
import json
import logging
import os
import secrets
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from securepass.models import SecretRecord, SecretView
from securepass.core.crypto import (
    encrypt_value,
    decrypt_value,
    generate_master_key,
    _derive_key,
)
from securepass.core.secret_codec import generate_secret, is_ciphertext

logger = logging.getLogger(__name__)


class VaultLockedError(Exception):
    """Raised when sensitive data access is attempted while the vault is locked."""


class SecretNotFoundError(Exception):
    pass


class SecretValidationError(ValueError):
    pass


class StorageEngine:
    """
    File-backed secret store for one workspace.

    Records live in ``secrets.json`` with their ``secret`` field encrypted
    under the workspace master key; the master key itself is wrapped by the
    user's passphrase in ``.securepass/vault.key``.
    """

    def __init__(self, workspace_dir: str | None = None):
        workspace_dir = workspace_dir or os.getenv("SECUREPASS_WORKSPACE", "./workspace")
        self.base_dir = Path(workspace_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.master_key: bytes | None = None
        self._cache: Dict[str, SecretRecord] | None = None
        self._batch_depth = 0
        self._dirty = False
        self.vault_initialized = self._vault_path().exists()

    # --- Vault helpers ---
    def _vault_path(self) -> Path:
        return self.base_dir / ".securepass" / "vault.key"

    def _ensure_vault_dir(self):
        (self.base_dir / ".securepass").mkdir(parents=True, exist_ok=True)

    def _write_vault(self, master: bytes, passphrase: str):
        salt = secrets.token_bytes(16)
        key = _derive_key(passphrase, salt)
        iv = secrets.token_bytes(12)
        aes = AESGCM(key)
        ct = aes.encrypt(iv, master, None)
        payload = base64.b64encode(salt + iv + ct).decode()
        self._atomic_write(self._vault_path(), {"v": 1, "data": payload})
        self.vault_initialized = True

    def _load_vault(self, passphrase: str) -> bytes:
        data = json.loads(self._vault_path().read_text())
        blob = base64.b64decode(data["data"])
        salt, iv, ct = blob[:16], blob[16:28], blob[28:]
        key = _derive_key(passphrase, salt)
        aes = AESGCM(key)
        return aes.decrypt(iv, ct, None)

    def set_encryption_passphrase(self, passphrase: str | None):
        """
        Lock clears master from memory. Providing a passphrase unlocks existing vault
        or initializes a new one with a fresh master key.
        """
        if passphrase is None:
            self.master_key = None
            if not self._dirty:
                self._cache = None
            return

        self._ensure_vault_dir()
        if self._vault_path().exists():
            self.master_key = self._load_vault(passphrase)
            self.vault_initialized = True
            return

        master = generate_master_key()
        self._write_vault(master, passphrase)
        self.master_key = master
        logger.info("initialized new vault in %s", self.base_dir)

    def unlock_workspace(self, passphrase: str) -> bool:
        try:
            self.set_encryption_passphrase(passphrase)
        except Exception:
            logger.warning("unlock failed for workspace %s", self.base_dir)
            return False
        return self.master_key is not None

    def rotate_passphrase(self, old: str, new: str) -> bool:
        """Re-wrap the master key under ``new``; stored ciphertext is untouched."""
        if not self.unlock_workspace(old):
            return False
        self._write_vault(self.master_key, new)
        return True

    def has_vault(self) -> bool:
        return self._vault_path().exists()

    def is_locked(self) -> bool:
        return self.master_key is None

    def _require_unlocked(self) -> bytes:
        if not self.master_key:
            raise VaultLockedError("workspace locked")
        return self.master_key

    # --- Active key cipher ---
    def encrypt(self, plaintext: str) -> str:
        return encrypt_value(plaintext, self._require_unlocked())

    def decrypt(self, ciphertext: str) -> str:
        return decrypt_value(ciphertext, self._require_unlocked())

    # --- File helpers ---
    def _now(self) -> int:
        return int(time.time() * 1000)

    def _secrets_path(self) -> Path:
        return self.base_dir / "secrets.json"

    def _atomic_write(self, target_path: Path, data: Any):
        target_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = target_path.with_suffix(".tmp")
        payload = json.dumps(data, indent=2)
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, target_path)

    def _records(self) -> Dict[str, SecretRecord]:
        """Id-indexed records, loaded from disk once and kept in memory."""
        if self._cache is None:
            path = self._secrets_path()
            items = []
            if path.exists():
                with open(path, "r", encoding="utf-8") as f:
                    items = json.load(f).get("secrets", [])
            self._cache = {item["id"]: SecretRecord(**item) for item in items}
        return self._cache

    def _commit(self):
        if self._batch_depth:
            self._dirty = True
            return
        self._flush()

    def _flush(self):
        records = [r.model_dump() for r in self._records().values()]
        self._atomic_write(self._secrets_path(), {"v": 1, "secrets": records})
        self._dirty = False

    @contextmanager
    def batch(self):
        """
        Defer writes to ``secrets.json`` until the outermost batch exits.
        Changes applied inside the batch are flushed even when it raises.
        """
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._flush()

    # --- Lookup ---
    def list_secrets(self, query: Optional[str] = None) -> List[SecretRecord]:
        self._require_unlocked()
        records = list(self._records().values())
        if query:
            needle = query.strip().lower()
            records = [r for r in records if needle in r.title.lower()]
        records.sort(key=lambda r: r.title.lower())
        return records

    def find_by_id(self, secret_id: str) -> Optional[SecretRecord]:
        self._require_unlocked()
        return self._records().get(secret_id)

    def get_secret(self, secret_id: str) -> SecretRecord:
        record = self.find_by_id(secret_id)
        if record is None:
            raise SecretNotFoundError(secret_id)
        return record

    def reveal_secret(self, secret_id: str) -> SecretView:
        record = self.get_secret(secret_id)
        return SecretView(
            id=record.id,
            title=record.title,
            secret=self.decrypt(record.secret),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    # --- Mutations ---
    def _validate_interactive(self, title: str) -> str:
        title = (title or "").strip()
        if not title:
            raise SecretValidationError("title is required")
        return title

    def insert(self, record: SecretRecord, imported: bool = False) -> SecretRecord:
        """
        Persist a new record. Interactive inserts carry plaintext in ``secret``
        and get encrypted and stamped here; imported ones are already
        ciphertext under the active key and are written as given.
        """
        self._require_unlocked()
        records = self._records()
        if record.id in records:
            raise SecretValidationError(f"secret {record.id} already exists")

        if imported:
            if not is_ciphertext(record.secret):
                raise SecretValidationError("imported secret must be ciphertext")
            stored = record
        else:
            now = self._now()
            stored = record.model_copy(
                update={
                    "title": self._validate_interactive(record.title),
                    "secret": self.encrypt(record.secret),
                    "created_at": now,
                    "updated_at": now,
                }
            )
        records[stored.id] = stored
        self._commit()
        logger.debug("inserted secret %s (imported=%s)", stored.id, imported)
        return stored

    def update(self, secret_id: str, record: SecretRecord, imported: bool = False) -> SecretRecord:
        self._require_unlocked()
        records = self._records()
        current = records.get(secret_id)
        if current is None:
            raise SecretNotFoundError(secret_id)
        if imported:
            if not is_ciphertext(record.secret):
                raise SecretValidationError("imported secret must be ciphertext")
            stored = record.model_copy(update={"id": secret_id})
        else:
            stored = record.model_copy(
                update={
                    "id": secret_id,
                    "title": self._validate_interactive(record.title),
                    "secret": self.encrypt(record.secret),
                    "created_at": current.created_at,
                    "updated_at": self._now(),
                }
            )
        records[secret_id] = stored
        self._commit()
        logger.debug("updated secret %s (imported=%s)", secret_id, imported)
        return stored

    def create_secret(self, title: str, secret: Optional[str] = None) -> SecretRecord:
        draft = SecretRecord(
            id=uuid4().hex,
            title=title,
            secret=secret if secret is not None else generate_secret(),
            created_at=0,
            updated_at=0,
        )
        return self.insert(draft)

    def edit_secret(self, secret_id: str, title: Optional[str] = None, secret: Optional[str] = None) -> SecretRecord:
        current = self.reveal_secret(secret_id)
        draft = SecretRecord(
            id=secret_id,
            title=title if title is not None else current.title,
            secret=secret if secret is not None else current.secret,
            created_at=current.created_at,
            updated_at=current.updated_at,
        )
        return self.update(secret_id, draft)

    def delete_secret(self, secret_id: str):
        self._require_unlocked()
        records = self._records()
        if secret_id not in records:
            raise SecretNotFoundError(secret_id)
        del records[secret_id]
        self._commit()


storage = StorageEngine()
