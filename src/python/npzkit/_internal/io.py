# npzkit/_internal/io.py

"""
Internal helpers for blocking reads, OS error translation and atomic
file replacement.
"""

import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Optional, Union

from ..exceptions import NpyError, StorageError

_DISCARD_CHUNK = 64 * 1024


@contextmanager
def storage_errors(
    path: Union[str, os.PathLike],
    action: str,
    entry: Optional[str] = None
) -> Iterator[None]:
    """Re-raises OSErrors from the body as StorageError carrying `path`."""
    try:
        yield
    except NpyError:
        raise
    except OSError as e:
        raise StorageError.from_os_error(e, action, path=path, entry=entry) from e


def readinto_exact(
    fp: BinaryIO,
    out: memoryview,
    *,
    path: Union[str, os.PathLike],
    entry: Optional[str] = None
) -> None:
    """Fills `out` completely from `fp` or fails with a short-read StorageError."""
    total = 0
    while total < len(out):
        n = fp.readinto(out[total:])
        if not n:
            raise StorageError(
                f"Short read: expected {len(out)} payload bytes, got {total}",
                path=path, entry=entry,
            )
        total += n


def discard(
    fp: BinaryIO,
    nbytes: int,
    *,
    path: Union[str, os.PathLike],
    entry: Optional[str] = None
) -> None:
    """Reads and drops `nbytes` from a stream that cannot seek."""
    left = nbytes
    while left:
        chunk = fp.read(min(left, _DISCARD_CHUNK))
        if not chunk:
            raise StorageError(
                f"Short read: could not skip {nbytes} header bytes",
                path=path, entry=entry,
            )
        left -= len(chunk)


def _default_mode() -> int:
    # os.umask can only be read by setting it
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


@contextmanager
def replacing(
    path: Union[str, os.PathLike],
    action: str,
    *,
    keep_existing: bool = False
) -> Iterator[str]:
    """
    Yields the path of a temporary sibling of `path` that replaces it on success.

    The temporary file is removed if the body raises, so `path` is either left
    untouched or swapped for the complete new content.

    Args:
        path: The file to replace (it may not exist yet).
        action: Error message prefix for OS failures.
        keep_existing: Start from a copy of the current file instead of an
                       empty one.
    """
    path = os.fspath(path)
    directory = os.path.dirname(os.path.abspath(path))
    suffix = os.path.splitext(path)[1]
    existed = os.path.exists(path)

    with storage_errors(path, action):
        fd, tmp_path = tempfile.mkstemp(prefix=".npzkit-", suffix=suffix, dir=directory)
        os.close(fd)
        try:
            if keep_existing and existed:
                shutil.copyfile(path, tmp_path)
            yield tmp_path
            if existed:
                shutil.copymode(path, tmp_path)
            else:
                os.chmod(tmp_path, _default_mode())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
