class PositionStoreError(Exception):
    """Base exception for signature position store errors"""
    def __init__(self, code: str, message: str, status_code: int = 400, field: str = None, details: dict = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.field = field
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(PositionStoreError):
    def __init__(self, message: str, field: str = None, details: dict = None):
        super().__init__("VALIDATION_ERROR", message, 400, field, details)


class MalformedRecordError(PositionStoreError):
    """A matched block is missing one of the required integer fields"""
    def __init__(self, template_key: str, missing_fields: list, block_text: str = None):
        message = f"Signature position for {template_key} is missing fields: {', '.join(missing_fields)}"
        super().__init__(
            "MALFORMED_RECORD",
            message,
            422,
            details={"template_key": template_key, "missing_fields": list(missing_fields), "block": block_text}
        )


class CatalogueFormatError(PositionStoreError):
    """The catalogue text has no closing delimiter to insert before"""
    def __init__(self, template_key: str, reason: str = None):
        message = f"Cannot insert signature position for {template_key}"
        if reason:
            message += f": {reason}"
        super().__init__("CATALOGUE_FORMAT_ERROR", message, 500, details={"template_key": template_key})


class FileOperationError(PositionStoreError):
    def __init__(self, operation: str, file_path: str, reason: str = None, details: dict = None):
        message = f"File {operation} failed for {file_path}"
        if reason:
            message += f": {reason}"
        merged = {"operation": operation, "file_path": file_path}
        merged.update(details or {})
        super().__init__("FILE_OPERATION_ERROR", message, 500, details=merged)


class StorageUnavailableError(FileOperationError):
    """Catalogue text could not be read or written"""
    def __init__(self, operation: str, file_path: str, reason: str = None, details: dict = None):
        super().__init__(operation, file_path, reason, details)
        self.code = "STORAGE_UNAVAILABLE"
        self.status_code = 503
