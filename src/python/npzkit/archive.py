# npzkit/archive.py
"""
Reading and writing NPZ archives: zip files holding one `<name>.npy` entry
per variable.

Entries are written through the pull-based `NpyStreamSource`, so an array
produced by an iterator is never materialized in memory.
"""

import logging
import os
import zipfile
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from .array import NpyArray
from .buffer import OwnedBuffer
from .exceptions import CompatibilityError, FormatError, StorageError, UsageError
from .settings import Compression, config
from .stream.writers import NpyStreamSource, write_entry
from .types import MemoryOrder, WriteMode
from ._internal import payload as payload_utils
from ._internal.header import create_header, parse_header
from ._internal.io import discard, readinto_exact, replacing, storage_errors
from ._internal.layout import DTypeLike

logger = logging.getLogger(__name__.split(".")[0])

NPY_SUFFIX = ".npy"

PathLike = Union[str, os.PathLike]


@contextmanager
def _open_archive(
    path: PathLike,
    mode: str = 'r',
    *,
    file: Optional[PathLike] = None
) -> Iterator[zipfile.ZipFile]:
    # `file` is what gets opened when it differs from the path reported in errors
    try:
        archive = zipfile.ZipFile(path if file is None else file, mode=mode, allowZip64=True)
    except zipfile.BadZipFile as e:
        raise StorageError(f"Not a valid zip archive: {e}", path=path) from e
    except OSError as e:
        raise StorageError.from_os_error(e, "Unable to open archive", path=path) from e

    with storage_errors(path, "Archive I/O failed"), archive:
        yield archive


def _entry_name(name: str) -> str:
    if not name:
        raise UsageError("Archive variable name must not be empty.")
    return name + NPY_SUFFIX


# =============================================================================
# Reading
# =============================================================================

def _load_entry(archive: zipfile.ZipFile, info: zipfile.ZipInfo, path: PathLike) -> NpyArray:
    """Reads one .npy entry into an owned buffer."""
    entry = info.filename
    reopen = False

    with archive.open(info) as fp:
        head = fp.read(config.max_header_read)
        header = parse_header(head)
        payload_end = header.header_length + header.num_bytes

        if info.file_size < payload_end:
            raise FormatError(
                f"Entry '{entry}' holds {info.file_size} bytes but its header "
                f"declares {payload_end}."
            )

        buffer = OwnedBuffer(header.num_bytes)
        if len(head) >= payload_end:
            buffer.data()[:] = head[header.header_length:payload_end]
        elif info.compress_type == zipfile.ZIP_STORED:
            fp.seek(header.header_length)
            readinto_exact(fp, buffer.data(), path=path, entry=entry)
        else:
            reopen = True

    if reopen:
        # Seeking backwards in a compressed entry re-inflates from the start,
        # so reopen and skip the header instead.
        with archive.open(info) as stream:
            discard(stream, header.header_length, path=path, entry=entry)
            readinto_exact(stream, buffer.data(), path=path, entry=entry)

    logger.debug(f"Read archive entry '{entry}' with shape {header.shape}")
    return NpyArray(header.shape, header.fields, header.memory_order, buffer)


def load_archive(path: PathLike) -> Dict[str, NpyArray]:
    """
    Loads every array stored in an NPZ archive.

    Entries whose name does not end with '.npy' are skipped with a warning.

    Args:
        path: Path to the archive.

    Returns:
        A dict mapping variable names (without the '.npy' suffix) to arrays.

    Raises:
        StorageError: If the archive cannot be opened or read.
        FormatError: If an entry holds an invalid or truncated array.
    """
    arrays: Dict[str, NpyArray] = {}
    with _open_archive(path) as archive:
        for info in archive.infolist():
            if info.is_dir() or not info.filename.endswith(NPY_SUFFIX):
                logger.warning(f"Skipping non-.npy archive entry '{info.filename}' in '{os.fspath(path)}'")
                continue
            name = info.filename[:-len(NPY_SUFFIX)]
            arrays[name] = _load_entry(archive, info, path)
    return arrays


def load_archive_entry(path: PathLike, name: str) -> NpyArray:
    """
    Loads a single variable from an NPZ archive.

    Raises:
        StorageError: If the archive cannot be opened or has no such variable.
    """
    entry = _entry_name(name)
    with _open_archive(path) as archive:
        try:
            info = archive.getinfo(entry)
        except KeyError:
            raise StorageError(
                f"Variable '{name}' not found in archive", path=path, entry=entry
            ) from None
        return _load_entry(archive, info, path)


def list_archive(path: PathLike) -> List[str]:
    """Names of the variables stored in an NPZ archive, in archive order."""
    with _open_archive(path) as archive:
        return [
            info.filename[:-len(NPY_SUFFIX)]
            for info in archive.infolist()
            if info.filename.endswith(NPY_SUFFIX)
        ]

# =============================================================================
# Writing
# =============================================================================

def _compression(compression: Optional[Union[Compression, int]]) -> int:
    if compression is None:
        return config.compression_method()
    if isinstance(compression, int):
        if compression not in (zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED,
                               zipfile.ZIP_BZIP2, zipfile.ZIP_LZMA):
            raise UsageError(f"Unsupported compression method {compression}.")
        return compression
    try:
        return config.compression_method(compression)
    except KeyError:
        raise UsageError(
            f"Unsupported compression '{compression}'. "
            "Must be 'stored', 'deflated', 'bzip2' or 'lzma'."
        ) from None


def _write_payload(
    path: PathLike,
    name: str,
    payload: payload_utils.Payload,
    mode: WriteMode,
    compression: Optional[Union[Compression, int]],
    chunk_size: Optional[int]
) -> None:
    entry = _entry_name(name)
    method = _compression(compression)
    header = create_header(payload.shape, payload.layout.fields, payload.order)
    source = NpyStreamSource(header, payload.producer)

    # The entry is written into a copy of the archive, so a source failing
    # midway leaves the original untouched.
    appending = mode is WriteMode.APPEND and os.path.exists(path)
    with replacing(path, "Unable to write archive", keep_existing=appending) as tmp_path:
        with _open_archive(path, 'a' if appending else 'w', file=tmp_path) as archive:
            if appending and entry in archive.namelist():
                raise CompatibilityError(
                    f"Variable '{name}' already exists in archive.", path=path
                )
            write_entry(archive, entry, source, compression=method, chunk_size=chunk_size)


def save_to_archive(
    path: PathLike,
    name: str,
    data: Any,
    shape: Optional[Sequence[int]] = None,
    mode: str = 'w',
    order: Optional[MemoryOrder] = None,
    *,
    dtype: Optional[DTypeLike] = None,
    compression: Optional[Union[Compression, int]] = None,
    chunk_size: Optional[int] = None
) -> None:
    """
    Stores an array as variable `name` of an NPZ archive.

    Args:
        path: Path to the archive.
        name: Variable name; the entry is stored as '<name>.npy'.
        data: Same sources as `npzkit.save`.
        shape: Optional explicit shape.
        mode: 'w' (replace the archive) or 'a' (add to an existing archive,
              creating it if missing).
        order: MemoryOrder.C (default) or MemoryOrder.FORTRAN.
        dtype: Element type for iterable sources, or a cast for arrays.
        compression: 'stored', 'deflated', 'bzip2', 'lzma' or a zipfile
                     constant; defaults to `config.archive_compression`.
        chunk_size: Bytes pulled per write; defaults to
                    `config.stream_chunk_size`.

    Raises:
        CompatibilityError: In 'a' mode, if `name` already exists.
        StorageError: If the archive cannot be opened or written.
        UsageError: If the arguments are inconsistent.
    """
    write_mode = WriteMode.parse(mode)
    payload = payload_utils.prepare(data, shape, order, dtype)
    _write_payload(path, name, payload, write_mode, compression, chunk_size)


def save_structured_to_archive(
    path: PathLike,
    name: str,
    labels: Sequence[str],
    records: Any,
    shape: Optional[Sequence[int]] = None,
    mode: str = 'w',
    order: Optional[MemoryOrder] = None,
    *,
    field_types: Optional[Sequence[DTypeLike]] = None,
    compression: Optional[Union[Compression, int]] = None,
    chunk_size: Optional[int] = None
) -> None:
    """Stores records with named fields as variable `name` of an NPZ archive."""
    write_mode = WriteMode.parse(mode)
    payload = payload_utils.prepare_structured(labels, records, shape, order, field_types)
    _write_payload(path, name, payload, write_mode, compression, chunk_size)
