class SecretImportError(Exception):
    """Base for failures surfaced to the user by the import pipeline.

    ``str(exc)`` is the user-facing message.
    """

    message = "Unexpected error during import"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class NoFileSelected(SecretImportError):
    message = "No file selected"


class InvalidFileType(SecretImportError):
    message = "Invalid file type. Please select a JSON file."


class EmptyFile(SecretImportError):
    message = "The selected file is empty"


class FileTooLarge(SecretImportError):
    message = "File too large. Maximum size: 10MB"


class FileReadError(SecretImportError):
    message = "Error reading file"


class MalformedEnvelope(SecretImportError):
    message = "Invalid file format"


class MissingEnvelopeFields(SecretImportError):
    message = 'Invalid backup file structure. The "data" and "hash" properties are required.'


class InvalidJSON(MalformedEnvelope):
    message = "Invalid or corrupted JSON file"


class DecryptionFailure(SecretImportError):
    message = "Could not decrypt the data. Check that the file is correct."


class InvalidDecryptedPayload(SecretImportError):
    message = "Invalid decrypted data"


class InvalidRecordSchema(SecretImportError):
    message = "Invalid data structure. Check that the file contains valid secrets."


class PerRecordProcessingError(SecretImportError):
    def __init__(self, title: str, reason: str | None = None):
        self.title = title
        detail = f'Error processing secret "{title}"'
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


class ImportInProgress(SecretImportError):
    message = "An import is already in progress"
