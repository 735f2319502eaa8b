from typing import Any, List

from pydantic import TypeAdapter, ValidationError

from securepass.models import SecretRecord
from securepass.core.errors import InvalidRecordSchema

_records_adapter = TypeAdapter(List[SecretRecord])


def is_valid_data_structure(value: Any) -> bool:
    if not isinstance(value, list):
        return False
    return all(isinstance(item, dict) for item in value)


def validate_records(value: Any) -> List[SecretRecord]:
    """
    All-or-nothing: a single non-conforming element rejects the whole batch.
    """
    if not is_valid_data_structure(value):
        raise InvalidRecordSchema()
    try:
        return _records_adapter.validate_python(value)
    except ValidationError as exc:
        raise InvalidRecordSchema() from exc
