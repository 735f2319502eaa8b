import json
import logging
from contextlib import nullcontext
from typing import Any, Awaitable, Callable, Optional

from fastapi.concurrency import run_in_threadpool

from securepass.models import ImportResult, ImportStats
from securepass.core.envelope import parse_envelope
from securepass.core.errors import (
    EmptyFile,
    FileReadError,
    FileTooLarge,
    ImportInProgress,
    InvalidDecryptedPayload,
    InvalidJSON,
    SecretImportError,
)
from securepass.core.file_gate import MAX_IMPORT_BYTES, validate_upload
from securepass.core.reconcile import reconcile
from securepass.core.rekey import Rekeyer
from securepass.core.schema import validate_records

logger = logging.getLogger(__name__)

Reader = Callable[[Any], Awaitable[str]]


async def read_upload(file: Any) -> str:
    """
    Read an upload as UTF-8 text, never pulling more than the size ceiling
    plus one byte into memory.
    """
    try:
        raw = await file.read(MAX_IMPORT_BYTES + 1)
    except Exception as exc:
        raise FileReadError(f"Error reading file: {exc}") from exc
    if len(raw) > MAX_IMPORT_BYTES:
        raise FileTooLarge()
    if not raw:
        raise EmptyFile()
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise InvalidJSON() from exc


def _reject_constant(token: str):
    # NaN and Infinity are not JSON and never valid timestamps.
    raise ValueError(f"non-standard JSON constant {token}")


def get_success_message(stats: ImportStats) -> str:
    messages = []
    if stats.imported > 0:
        messages.append(f"{stats.imported} new secret(s) imported")
    if stats.updated > 0:
        messages.append(f"{stats.updated} secret(s) updated")
    if stats.skipped > 0:
        messages.append(f"{stats.skipped} secret(s) skipped")

    if stats.imported + stats.updated == 0:
        return "Import finished!\nNothing new to process."
    return "\n".join(["Import completed successfully!", *messages])


class ImportManager:
    """
    Runs backup imports end to end against a secret store.

    Only one import runs at a time per manager; a second call made while one
    is in flight is rejected, not queued.
    """

    def __init__(self, store: Any, cipher: Any = None, reader: Optional[Reader] = None):
        self.store = store
        self.rekeyer = Rekeyer(cipher if cipher is not None else store)
        self.reader = reader or read_upload
        self.is_processing = False

    async def process_file(self, file: Any) -> ImportResult:
        if self.is_processing:
            exc = ImportInProgress()
            return ImportResult(success=False, error=str(exc), code=type(exc).__name__)

        self.is_processing = True
        try:
            validate_upload(file)
            content = await self.reader(file)
            envelope = parse_envelope(content)
            secrets = await run_in_threadpool(self._decrypt_and_validate, envelope.data, envelope.hash)
            with self._batch():
                stats = await reconcile(self.store, self.rekeyer, secrets, envelope.hash)
            logger.info(
                "import finished: %d total, %d imported, %d updated, %d skipped",
                stats.total,
                stats.imported,
                stats.updated,
                stats.skipped,
            )
            return ImportResult(success=True, stats=stats, message=get_success_message(stats))
        except SecretImportError as exc:
            logger.warning("import failed: %s", exc)
            return ImportResult(success=False, error=str(exc), code=type(exc).__name__)
        except Exception:
            logger.exception("unexpected error during import")
            return ImportResult(success=False, error=SecretImportError.message, code=SecretImportError.__name__)
        finally:
            self.is_processing = False

    def _batch(self):
        # Stores that can defer writes flush once per run.
        batch = getattr(self.store, "batch", None)
        return batch() if batch is not None else nullcontext()

    def _decrypt_and_validate(self, data: str, key_material: str):
        plaintext = self.rekeyer.decrypt_envelope(data, key_material)
        try:
            payload = json.loads(plaintext, parse_constant=_reject_constant)
        except ValueError as exc:
            raise InvalidDecryptedPayload() from exc
        return validate_records(payload)
