import inspect
import logging
from typing import Any, Iterable, List

from fastapi.concurrency import run_in_threadpool

from securepass.models import ImportOutcome, ImportStats, SecretRecord
from securepass.core.errors import PerRecordProcessingError, SecretImportError
from securepass.core.rekey import Rekeyer

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    # Store collaborators may be sync or async.
    if inspect.isawaitable(value):
        return await value
    return value


async def _rekeyed(rekeyer: Rekeyer, record: SecretRecord, key_material: str) -> SecretRecord:
    # AES work stays off the event loop.
    secret = await run_in_threadpool(rekeyer.rekey_secret, record.secret, key_material)
    return record.model_copy(update={"secret": secret})


async def reconcile_record(store: Any, rekeyer: Rekeyer, record: SecretRecord, key_material: str) -> ImportOutcome:
    """
    Merge one incoming record into ``store`` using last-write-wins on
    ``updated_at``. Equal timestamps keep the existing record.
    """
    existing = await _resolve(store.find_by_id(record.id))

    if existing is None:
        incoming = await _rekeyed(rekeyer, record, key_material)
        await _resolve(store.insert(incoming, imported=True))
        return ImportOutcome(action="created", secret=incoming)

    if existing.updated_at < record.updated_at:
        incoming = await _rekeyed(rekeyer, record, key_material)
        await _resolve(store.update(existing.id, incoming, imported=True))
        return ImportOutcome(action="updated", secret=incoming)

    return ImportOutcome(action="skipped", secret=existing)


async def reconcile(store: Any, rekeyer: Rekeyer, records: Iterable[SecretRecord], key_material: str) -> ImportStats:
    """
    Reconcile ``records`` strictly in order and fold the outcomes into stats.

    The first failing record aborts the run; records before it stay applied.
    """
    outcomes: List[ImportOutcome] = []
    for record in records:
        try:
            outcome = await reconcile_record(store, rekeyer, record, key_material)
        except Exception as exc:
            applied = sum(1 for o in outcomes if o.action != "skipped")
            logger.error("import aborted at secret %s after %d applied change(s)", record.id, applied)
            reason = str(exc) if isinstance(exc, SecretImportError) else None
            raise PerRecordProcessingError(record.title, reason) from exc
        outcomes.append(outcome)
    return ImportStats.from_outcomes(outcomes)
