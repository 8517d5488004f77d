# npzkit/file.py
"""Saving, appending to and loading single-array .npy files."""

import logging
import os
import shutil
from typing import Any, Optional, Sequence, Union

from .array import NpyArray
from .buffer import MappedBuffer, OwnedBuffer
from .dataclasses import HeaderInfo
from .exceptions import CompatibilityError, FormatError
from .settings import config
from .types import MemoryOrder, WriteMode
from ._internal import payload as payload_utils
from ._internal.header import create_header, parse_header
from ._internal.io import readinto_exact, replacing, storage_errors
from ._internal.layout import DTypeLike

logger = logging.getLogger(__name__.split(".")[0])

PathLike = Union[str, os.PathLike]


def save(
    path: PathLike,
    data: Any,
    shape: Optional[Sequence[int]] = None,
    mode: str = 'w',
    order: Optional[MemoryOrder] = None,
    *,
    dtype: Optional[DTypeLike] = None
) -> None:
    """
    Saves an array to a .npy file, or appends it to an existing one.

    Args:
        path: Path to the .npy file.
        data: A NumPy array, an NpyArray, a list, or any iterable of scalars.
              Iterables that are not arrays require `shape` and `dtype`.
        shape: Optional explicit shape. When given, `data` is read as a flat
               sequence of elements in storage order.
        mode: 'w' (write; an existing file is only replaced once the whole
              array is written) or 'a' (append along the growth dimension,
              or create if missing).
        order: MemoryOrder.C (default) or MemoryOrder.FORTRAN.
        dtype: Element type for iterable sources, or a cast for arrays.

    Raises:
        CompatibilityError: If appending data that does not match the file.
        UsageError: If the arguments are inconsistent.
        StorageError: If the file cannot be written.
    """
    write_mode = WriteMode.parse(mode)
    payload = payload_utils.prepare(data, shape, order, dtype)
    _write(path, payload, write_mode)


def save_structured(
    path: PathLike,
    labels: Sequence[str],
    records: Any,
    shape: Optional[Sequence[int]] = None,
    mode: str = 'w',
    order: Optional[MemoryOrder] = None,
    *,
    field_types: Optional[Sequence[DTypeLike]] = None
) -> None:
    """
    Saves records with named fields to a .npy file (structured dtype).

    Args:
        path: Path to the .npy file.
        labels: One name per record field.
        records: A structured NumPy array or an iterable of tuples.
        shape: Optional explicit shape; defaults to the number of records.
        mode: 'w' or 'a', as for `save`.
        order: MemoryOrder.C (default) or MemoryOrder.FORTRAN.
        field_types: Per-field types; required unless `records` is a
                     structured array.
    """
    write_mode = WriteMode.parse(mode)
    payload = payload_utils.prepare_structured(labels, records, shape, order, field_types)
    _write(path, payload, write_mode)


def read_header(path: PathLike) -> HeaderInfo:
    """Parses the header of a .npy file without reading its payload."""
    with storage_errors(path, "Unable to read header"):
        with open(path, 'rb') as fp:
            return parse_header(fp)


def load(path: PathLike, memory_mapped: bool = False) -> NpyArray:
    """
    Loads a .npy file.

    Args:
        path: Path to the .npy file.
        memory_mapped: If True, the payload is mapped read-only instead of
                       being copied into memory.

    Returns:
        The loaded NpyArray.

    Raises:
        FormatError: If the header is invalid.
        StorageError: If the file is missing or shorter than declared.
    """
    with storage_errors(path, "Unable to load file"):
        with open(path, 'rb') as fp:
            info = parse_header(fp)
            if memory_mapped:
                buffer = MappedBuffer(path, info.header_length, info.num_bytes)
            else:
                buffer = OwnedBuffer(info.num_bytes)
                readinto_exact(fp, buffer.data(), path=path)

    return NpyArray(info.shape, info.fields, info.memory_order, buffer)

# =============================================================================
# Writing and appending
# =============================================================================

def _write(path: PathLike, payload: payload_utils.Payload, mode: WriteMode) -> None:
    if mode is WriteMode.APPEND and os.path.exists(path):
        _append(path, payload)
        return

    header = create_header(payload.shape, payload.layout.fields, payload.order)
    with replacing(path, "Unable to write file") as tmp_path:
        with open(tmp_path, 'wb') as fp:
            fp.write(header)
            payload.producer.write_to(fp, config.write_batch_elements)


def _check_compatible(path: PathLike, existing: HeaderInfo, payload: payload_utils.Payload) -> None:
    """Raises CompatibilityError unless `payload` can extend `existing`."""
    fields = payload.layout.fields

    if len(existing.fields) != len(fields):
        raise CompatibilityError(
            f"Appending failed: file has {len(existing.fields)} fields, "
            f"data has {len(fields)}.", path=path,
        )
    if tuple(f.width for f in existing.fields) != payload.layout.widths:
        raise CompatibilityError("Appending failed: element sizes not matching.", path=path)
    if tuple(f.code for f in existing.fields) != payload.layout.codes:
        raise CompatibilityError(
            "Appending failed: data type descriptors not matching.", path=path
        )
    if tuple(f.label for f in existing.fields) != payload.layout.labels:
        raise CompatibilityError("Appending failed: field labels not matching.", path=path)
    if existing.memory_order != payload.order:
        raise CompatibilityError("Appending failed: memory order does not match.", path=path)
    if len(existing.shape) != len(payload.shape):
        raise CompatibilityError(
            f"Appending failed: ranks not matching "
            f"({len(existing.shape)} vs {len(payload.shape)}).", path=path,
        )

    axis = payload.order.growth_axis % len(payload.shape)
    for i, (old, new) in enumerate(zip(existing.shape, payload.shape)):
        if i != axis and old != new:
            raise CompatibilityError(
                f"Attempting to append misshaped data: shape {payload.shape} "
                f"does not extend {existing.shape}.", path=path,
            )


def _append(path: PathLike, payload: payload_utils.Payload) -> None:
    """
    Validates `payload` against the existing file, then grows it.

    Nothing is written before validation has passed. When the new header has
    the same length as the old one it is overwritten in place; otherwise the
    file is rebuilt in a temporary sibling and swapped in atomically.
    """
    existing = read_header(path)
    _check_compatible(path, existing, payload)

    with storage_errors(path, "Unable to inspect file"):
        file_size = os.path.getsize(path)
    expected = existing.header_length + existing.num_bytes
    if file_size != expected:
        raise FormatError(
            f"File '{os.fspath(path)}' holds {file_size} bytes but its header "
            f"declares {expected}; refusing to append."
        )

    axis = payload.order.growth_axis
    grown = list(existing.shape)
    grown[axis] += payload.shape[axis]
    header = create_header(grown, existing.fields, existing.memory_order)

    if len(header) == existing.header_length:
        _append_in_place(path, header, payload, file_size)
    else:
        logger.debug(
            f"Header of '{os.fspath(path)}' grows from {existing.header_length} "
            f"to {len(header)} bytes; rewriting file"
        )
        _append_by_rewrite(path, header, payload, existing.header_length)
    logger.debug(f"Appended {payload.shape} to '{os.fspath(path)}', new shape {tuple(grown)}")


def _append_in_place(path: PathLike, header: bytes, payload: payload_utils.Payload, file_size: int) -> None:
    with storage_errors(path, "Unable to append to file"):
        with open(path, 'r+b') as fp:
            fp.seek(0, os.SEEK_END)
            try:
                payload.producer.write_to(fp, config.write_batch_elements)
            except BaseException:
                # leave the file exactly as it was
                fp.truncate(file_size)
                raise
            fp.seek(0)
            fp.write(header)


def _append_by_rewrite(path: PathLike, header: bytes, payload: payload_utils.Payload, old_header_length: int) -> None:
    with replacing(path, "Unable to rewrite file") as tmp_path:
        with open(tmp_path, 'wb') as out, open(path, 'rb') as src:
            out.write(header)
            src.seek(old_header_length)
            shutil.copyfileobj(src, out)
            payload.producer.write_to(out, config.write_batch_elements)
