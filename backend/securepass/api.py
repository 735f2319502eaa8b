from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from securepass.models import (
    BackupEnvelope,
    ImportResult,
    SecretDraft,
    SecretPatch,
    SecretRecord,
    SecretView,
)
from securepass.core.export import export_backup
from securepass.core.importer import ImportManager
from securepass.core.storage import (
    storage,
    SecretNotFoundError,
    SecretValidationError,
    VaultLockedError,
)

router = APIRouter()
importer = ImportManager(storage)


# --- Workspace ---
@router.get("/workspace/status")
async def get_workspace_status():
    return {
        "path": str(storage.base_dir.resolve()),
        "has_vault": storage.has_vault(),
        "locked": storage.is_locked(),
    }


@router.post("/workspace/unlock")
async def unlock_workspace(payload: Dict[str, Any] = Body(...)):
    passphrase = payload.get("passphrase") if payload else None
    if not passphrase:
        raise HTTPException(status_code=400, detail="passphrase required")
    if not storage.unlock_workspace(str(passphrase)):
        raise HTTPException(status_code=401, detail="incorrect passphrase")
    return {"status": "unlocked"}


@router.post("/workspace/lock")
async def lock_workspace():
    storage.set_encryption_passphrase(None)
    return {"status": "locked"}


@router.post("/workspace/rotate")
async def rotate_workspace(payload: Dict[str, Any] = Body(...)):
    old = (payload or {}).get("old")
    new = (payload or {}).get("new")
    if not old or not new:
        raise HTTPException(status_code=400, detail="old and new passphrases required")
    if not storage.rotate_passphrase(str(old), str(new)):
        raise HTTPException(status_code=401, detail="incorrect passphrase")
    return {"status": "rotated"}


# --- Secrets ---
@router.get("/secrets", response_model=List[SecretRecord])
async def list_secrets(q: Optional[str] = None):
    try:
        return storage.list_secrets(q)
    except VaultLockedError:
        raise HTTPException(status_code=423, detail="workspace locked")


@router.post("/secrets", response_model=SecretRecord)
async def create_secret(draft: SecretDraft):
    try:
        return storage.create_secret(draft.title, draft.secret)
    except VaultLockedError:
        raise HTTPException(status_code=423, detail="workspace locked")
    except SecretValidationError as ex:
        raise HTTPException(status_code=400, detail=str(ex))


@router.get("/secrets/{secret_id}", response_model=SecretView)
async def reveal_secret(secret_id: str):
    try:
        return storage.reveal_secret(secret_id)
    except VaultLockedError:
        raise HTTPException(status_code=423, detail="workspace locked")
    except SecretNotFoundError:
        raise HTTPException(status_code=404, detail="secret not found")


@router.put("/secrets/{secret_id}", response_model=SecretRecord)
async def edit_secret(secret_id: str, patch: SecretPatch):
    try:
        return storage.edit_secret(secret_id, title=patch.title, secret=patch.secret)
    except VaultLockedError:
        raise HTTPException(status_code=423, detail="workspace locked")
    except SecretNotFoundError:
        raise HTTPException(status_code=404, detail="secret not found")
    except SecretValidationError as ex:
        raise HTTPException(status_code=400, detail=str(ex))


@router.delete("/secrets/{secret_id}")
async def delete_secret(secret_id: str):
    try:
        storage.delete_secret(secret_id)
    except VaultLockedError:
        raise HTTPException(status_code=423, detail="workspace locked")
    except SecretNotFoundError:
        raise HTTPException(status_code=404, detail="secret not found")
    return {"status": "ok"}


# --- Backup ---
@router.post("/secrets/export", response_model=BackupEnvelope)
async def export_secrets():
    try:
        return export_backup(storage)
    except VaultLockedError:
        raise HTTPException(status_code=423, detail="workspace locked")


@router.post("/secrets/import", response_model=ImportResult)
async def import_secrets(file: UploadFile = File(...)):
    if storage.is_locked():
        raise HTTPException(status_code=423, detail="workspace locked")
    try:
        result = await importer.process_file(file)
    finally:
        await file.close()
    if result.success:
        return result
    status_code = 409 if result.code == "ImportInProgress" else 400
    return JSONResponse(status_code=status_code, content=result.model_dump())
