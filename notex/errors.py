"""
Error taxonomy for the document store.

These exceptions never leave the store: its public operations catch them and
return a result model carrying `error` and `error_kind` instead.

    NotexError
    ├── NotFoundError         record or path missing
    ├── MalformedRecordError  record file could not be parsed
    ├── InvalidNameError      name or path unusable after sanitizing
    └── IOFailureError        write / rename / mkdir failure
"""

from typing import Optional


class NotexError(Exception):
    """Base error for store and codec failures"""

    kind = "error"

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)


class NotFoundError(NotexError):
    kind = "not_found"


class MalformedRecordError(NotexError):
    kind = "malformed_record"


class InvalidNameError(NotexError):
    kind = "invalid_name"


class IOFailureError(NotexError):
    kind = "io_failure"


def as_notex_error(exc: Exception, path: Optional[str] = None) -> NotexError:
    """
    Map an arbitrary exception onto the store taxonomy.

    Args:
        exc: Exception raised while touching storage
        path: Storage path the operation targeted

    Returns:
        NotexError subclass instance describing the failure
    """
    if isinstance(exc, NotexError):
        if exc.path is None:
            exc.path = path
        return exc
    if isinstance(exc, FileNotFoundError):
        return NotFoundError(f"Path not found: {path}", path=path)
    if isinstance(exc, OSError):
        return IOFailureError(exc.strerror or str(exc), path=path)
    return IOFailureError(str(exc), path=path)
