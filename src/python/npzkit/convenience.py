# npzkit/convenience.py
"""
High-level convenience functions for common multi-array operations.
"""
import os
from typing import Any, Dict, Optional, Union

from .archive import Compression, load_archive, save_to_archive
from .array import NpyArray
from .exceptions import FormatError
from .file import load
from .types import WriteMode
from ._internal.header import MAGIC
from ._internal.io import storage_errors

_ZIP_MAGIC = b"PK"


def savez(
    path: Union[str, os.PathLike],
    mode: str = 'w',
    *,
    compression: Optional[Compression] = None,
    **arrays: Any
) -> None:
    """
    Saves several arrays into one NPZ archive, one entry per keyword.

    Example:
        savez("data.npz", prices=prices, volumes=volumes)

    Args:
        path: Path to the archive.
        mode: 'w' replaces the archive; 'a' adds entries to it.
        compression: (Optional) Compression for every entry. Defaults to
                     `config.archive_compression`.
        **arrays: Variable name to array (anything `save_to_archive` accepts).
    """
    write_mode = WriteMode.parse(mode)
    for name, data in arrays.items():
        save_to_archive(path, name, data, mode=write_mode.value, compression=compression)
        # subsequent entries go into the archive just written
        write_mode = WriteMode.APPEND


def load_npy_or_npz(
    path: Union[str, os.PathLike],
    memory_mapped: bool = False
) -> Union[NpyArray, Dict[str, NpyArray]]:
    """
    Loads a .npy file or an NPZ archive, based on its leading bytes.

    Returns:
        An NpyArray for a .npy file, a dict of NpyArrays for an archive.

    Raises:
        FormatError: If the file is neither.
    """
    with storage_errors(path, "Unable to open file"):
        with open(path, 'rb') as fp:
            magic = fp.read(len(MAGIC))

    if magic == MAGIC:
        return load(path, memory_mapped=memory_mapped)
    if magic.startswith(_ZIP_MAGIC):
        return load_archive(path)
    raise FormatError(
        f"'{os.fspath(path)}' is neither an NPY file nor an NPZ archive.",
        fragment=magic.decode("latin1"),
    )
