# npzkit/exceptions.py
"""Custom exception types for the npzkit library."""

from typing import Optional, Union
import os


class NpyError(Exception):
    """Base exception for all errors raised by this library."""
    pass


class FormatError(NpyError, ValueError):
    """
    Error raised when bytes do not form a valid NPY v1.0 header or payload.

    Covers a bad magic string, an unsupported version, a malformed
    dictionary, a big-endian descriptor and a truncated payload.

    Attributes:
        message (str): The primary error message.
        fragment (str | None): The offending piece of header text, if any.
    """
    def __init__(self, message: str, *, fragment: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.fragment = fragment

    def __str__(self) -> str:
        if self.fragment is None:
            return self.message
        return f"{self.message} (in {self.fragment!r})"


class CompatibilityError(NpyError, ValueError):
    """
    Error raised when data cannot be appended to an existing array.

    The target file is never modified when this is raised.
    """
    def __init__(self, message: str, *, path: Union[str, os.PathLike, None] = None):
        super().__init__(message)
        self.message = message
        self.path = None if path is None else os.fspath(path)

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message} (path='{self.path}')"


class StorageError(NpyError, OSError):
    """
    Error raised when a file or archive cannot be opened, read or mapped.

    Attributes:
        message (str): The primary error message.
        path (str | None): The file or archive involved.
        entry (str | None): The archive entry involved, if any.
    """
    def __init__(
        self,
        message: str,
        *,
        path: Union[str, os.PathLike, None] = None,
        entry: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.path = None if path is None else os.fspath(path)
        self.entry = entry

    def __str__(self) -> str:
        context = []
        if self.path is not None:
            context.append(f"path='{self.path}'")
        if self.entry is not None:
            context.append(f"entry='{self.entry}'")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"

    @classmethod
    def from_os_error(
        cls,
        os_error: OSError,
        action: str,
        *,
        path: Union[str, os.PathLike, None] = None,
        entry: Optional[str] = None
    ) -> "StorageError":
        """Factory method to wrap an OSError raised while touching `path`."""
        reason = os_error.strerror or str(os_error)
        err = cls(f"{action}: {reason}", path=path, entry=entry)
        err.errno = os_error.errno
        return err


class UsageError(NpyError, ValueError):
    """Error raised when the library is called with inconsistent arguments."""
    pass
