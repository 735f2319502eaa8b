from __future__ import annotations
from typing import List, Optional, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, confloat

# JSON numbers: ints and finite floats, never booleans
Timestamp = Union[StrictInt, confloat(strict=True, allow_inf_nan=False)]


# --- Secret Models ---

class SecretRecord(BaseModel):
    # Imported records may carry extra keys; they are persisted as-is.
    model_config = ConfigDict(extra="allow")

    id: StrictStr
    title: StrictStr
    secret: StrictStr  # always enc: ciphertext at rest
    created_at: Timestamp
    updated_at: Timestamp


class SecretView(BaseModel):
    """Decrypted projection returned to the UI for a single secret."""
    id: str
    title: str
    secret: str
    created_at: Timestamp
    updated_at: Timestamp


class SecretDraft(BaseModel):
    title: str
    secret: Optional[str] = None  # generated when omitted


class SecretPatch(BaseModel):
    title: Optional[str] = None
    secret: Optional[str] = None


# --- Backup / Import Models ---

class BackupEnvelope(BaseModel):
    data: str  # ciphertext of the JSON-encoded record array
    hash: str  # key material able to decrypt `data`


ImportAction = Literal["created", "updated", "skipped"]


class ImportOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: ImportAction
    secret: SecretRecord


class ImportStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    results: List[ImportOutcome] = Field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: List[ImportOutcome]) -> "ImportStats":
        """Build the stats value for a finished run, outcomes in input order."""
        actions = [o.action for o in outcomes]
        return cls(
            total=len(actions),
            imported=actions.count("created"),
            updated=actions.count("updated"),
            skipped=actions.count("skipped"),
            results=list(outcomes),
        )


class ImportResult(BaseModel):
    success: bool
    stats: Optional[ImportStats] = None
    message: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None  # failure class name, e.g. "ImportInProgress"
