import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from securepass.core.crypto import decrypt_value, encrypt_value
from securepass.core.export import export_backup
from securepass.core.importer import ImportManager
from securepass.core.secret_codec import AUTO_SECRET_LENGTH, is_ciphertext
from securepass.core.storage import (
    SecretNotFoundError,
    SecretValidationError,
    StorageEngine,
    VaultLockedError,
)
from securepass.models import SecretRecord
from support import FakeUpload


def unlocked(tmp_path, passphrase="pass-phrase") -> StorageEngine:
    engine = StorageEngine(workspace_dir=str(tmp_path))
    assert engine.unlock_workspace(passphrase)
    return engine


def test_locked_store_refuses_access(tmp_path):
    engine = StorageEngine(workspace_dir=str(tmp_path))
    assert engine.is_locked()
    with pytest.raises(VaultLockedError):
        engine.list_secrets()
    with pytest.raises(VaultLockedError):
        engine.encrypt("x")


def test_interactive_create_encrypts_and_stamps(tmp_path):
    engine = unlocked(tmp_path)
    rec = engine.create_secret("  Email  ", "hunter2")

    assert rec.title == "Email"
    assert is_ciphertext(rec.secret)
    assert rec.created_at == rec.updated_at > 0
    on_disk = json.loads((tmp_path / "secrets.json").read_text())
    assert "hunter2" not in json.dumps(on_disk)
    assert engine.reveal_secret(rec.id).secret == "hunter2"


def test_create_generates_secret_when_missing(tmp_path):
    engine = unlocked(tmp_path)
    rec = engine.create_secret("Generated")
    assert len(engine.reveal_secret(rec.id).secret) == AUTO_SECRET_LENGTH


def test_interactive_create_requires_title(tmp_path):
    engine = unlocked(tmp_path)
    with pytest.raises(SecretValidationError):
        engine.create_secret("   ", "x")


def test_imported_insert_keeps_fields(tmp_path):
    engine = unlocked(tmp_path)
    rec = SecretRecord(id="a", title="", secret=engine.encrypt("v"), created_at=1, updated_at=2)
    engine.insert(rec, imported=True)
    assert engine.find_by_id("a") == rec


def test_imported_insert_rejects_plaintext(tmp_path):
    engine = unlocked(tmp_path)
    rec = SecretRecord(id="a", title="T", secret="plain", created_at=1, updated_at=1)
    with pytest.raises(SecretValidationError):
        engine.insert(rec, imported=True)


def test_edit_and_delete(tmp_path):
    engine = unlocked(tmp_path)
    rec = engine.create_secret("Bank", "one")
    edited = engine.edit_secret(rec.id, secret="two")

    assert edited.title == "Bank"
    assert edited.created_at == rec.created_at
    assert engine.reveal_secret(rec.id).secret == "two"

    engine.delete_secret(rec.id)
    assert engine.find_by_id(rec.id) is None
    with pytest.raises(SecretNotFoundError):
        engine.delete_secret(rec.id)


def test_search_is_case_insensitive(tmp_path):
    engine = unlocked(tmp_path)
    engine.create_secret("GitHub", "a")
    engine.create_secret("Bank", "b")
    assert [r.title for r in engine.list_secrets("git")] == ["GitHub"]
    assert [r.title for r in engine.list_secrets()] == ["Bank", "GitHub"]


def test_relock_and_wrong_passphrase(tmp_path):
    engine = unlocked(tmp_path, "right")
    engine.set_encryption_passphrase(None)
    assert engine.is_locked()
    assert not engine.unlock_workspace("wrong")
    assert engine.unlock_workspace("right")


def test_rotate_keeps_master_key(tmp_path):
    engine = unlocked(tmp_path, "old")
    rec = engine.create_secret("Note", "kept")
    assert engine.rotate_passphrase("old", "new")

    reopened = StorageEngine(workspace_dir=str(tmp_path))
    assert not reopened.unlock_workspace("old")
    assert reopened.unlock_workspace("new")
    assert reopened.reveal_secret(rec.id).secret == "kept"


def test_export_then_import_into_another_workspace(tmp_path):
    source = unlocked(tmp_path / "source")
    source.create_secret("Mail", "m41l")
    source.create_secret("Wifi", "w1f1")
    envelope = export_backup(source)

    payload = json.loads(decrypt_value(envelope.data, envelope.hash))
    assert {r["title"] for r in payload} == {"Mail", "Wifi"}
    assert all(decrypt_value(r["secret"], envelope.hash) in ("m41l", "w1f1") for r in payload)

    target = unlocked(tmp_path / "target")
    upload = FakeUpload(envelope.model_dump_json().encode("utf-8"))
    result = asyncio.run(ImportManager(target).process_file(upload))

    assert result.success and result.stats.imported == 2
    revealed = {target.reveal_secret(r.id).title: target.reveal_secret(r.id).secret for r in target.list_secrets()}
    assert revealed == {"Mail": "m41l", "Wifi": "w1f1"}


def test_passphrase_sealed_record_secrets_are_refused(tmp_path):
    target = unlocked(tmp_path)
    passphrase = "shared backup passphrase"
    records = [{"id": "p", "title": "P", "secret": encrypt_value("pw", passphrase), "created_at": 1, "updated_at": 1}]
    body = {"data": encrypt_value(json.dumps(records), passphrase), "hash": passphrase}

    result = asyncio.run(ImportManager(target).process_file(FakeUpload(json.dumps(body).encode())))

    assert not result.success
    assert result.code == "PerRecordProcessingError"
    assert target.find_by_id("p") is None


def test_batch_defers_the_write_until_exit(tmp_path):
    engine = unlocked(tmp_path)
    secrets_file = tmp_path / "secrets.json"
    with engine.batch():
        for n in range(3):
            rec = SecretRecord(id=str(n), title="T", secret=engine.encrypt("v"), created_at=1, updated_at=1)
            engine.insert(rec, imported=True)
        assert not secrets_file.exists()
        assert engine.find_by_id("2") is not None
    on_disk = json.loads(secrets_file.read_text())
    assert [r["id"] for r in on_disk["secrets"]] == ["0", "1", "2"]


def test_batch_flushes_applied_changes_on_error(tmp_path):
    engine = unlocked(tmp_path)
    rec = SecretRecord(id="a", title="T", secret=engine.encrypt("v"), created_at=1, updated_at=1)
    with pytest.raises(RuntimeError):
        with engine.batch():
            engine.insert(rec, imported=True)
            raise RuntimeError("boom")
    reopened = StorageEngine(workspace_dir=str(tmp_path))
    assert reopened.unlock_workspace("pass-phrase")
    assert reopened.find_by_id("a") == rec
