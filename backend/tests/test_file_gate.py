import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from securepass.core.errors import EmptyFile, FileTooLarge, InvalidFileType, NoFileSelected
from securepass.core.file_gate import MAX_IMPORT_BYTES, validate_upload
from support import FakeUpload


def test_missing_file():
    with pytest.raises(NoFileSelected):
        validate_upload(None)


@pytest.mark.parametrize("content_type", ["application/json", "text/json", "text/plain", "application/json; charset=utf-8"])
def test_json_media_types_accepted(content_type):
    validate_upload(FakeUpload(b"{}", filename="backup.bin", content_type=content_type))


def test_json_extension_accepted_with_any_media_type():
    validate_upload(FakeUpload(b"{}", filename="backup.json", content_type="application/octet-stream"))


def test_other_files_rejected():
    with pytest.raises(InvalidFileType):
        validate_upload(FakeUpload(b"{}", filename="photo.png", content_type="image/png"))


def test_type_checked_before_size():
    with pytest.raises(InvalidFileType):
        validate_upload(FakeUpload(b"", filename="photo.png", content_type="image/png"))


def test_empty_file():
    upload = FakeUpload(b"")
    with pytest.raises(EmptyFile):
        validate_upload(upload)
    assert upload.reads == 0


def test_eleven_mib_rejected_without_reading():
    upload = FakeUpload(b"{}", size=11 * 1024 * 1024)
    with pytest.raises(FileTooLarge):
        validate_upload(upload)
    assert upload.reads == 0


def test_exactly_at_ceiling_is_allowed():
    validate_upload(FakeUpload(b"{}", size=MAX_IMPORT_BYTES))
