# npzkit/buffer.py
"""
Byte storage for array payloads: owned heap memory or a memory-mapped window.
"""

import mmap
import os
from typing import Optional, Union

from .abc import BufferBase
from .exceptions import StorageError

# Mapping offsets must be multiples of this value.
MAP_ALIGNMENT = mmap.ALLOCATIONGRANULARITY


class OwnedBuffer(BufferBase):
    """A writable, heap-allocated buffer of a fixed size."""

    def __init__(self, size: int):
        if size < 0:
            raise ValueError(f"Buffer size must be non-negative, got {size}.")
        self._bytes: Optional[bytearray] = bytearray(size)

    @classmethod
    def from_bytes(cls, payload: Union[bytes, bytearray, memoryview]) -> "OwnedBuffer":
        view = memoryview(payload).cast('B')
        buf = cls(view.nbytes)
        buf.data()[:] = view
        return buf

    def data(self) -> memoryview:
        if self._bytes is None:
            raise ValueError("Operation attempted on a closed buffer.")
        return memoryview(self._bytes)

    def __len__(self) -> int:
        return 0 if self._bytes is None else len(self._bytes)

    @property
    def readonly(self) -> bool:
        return False

    def close(self) -> None:
        self._bytes = None

    @property
    def closed(self) -> bool:
        return self._bytes is None


class MappedBuffer(BufferBase):
    """
    A read-only memory-mapped window over a region of a file.

    The mapping starts at `offset` rounded down to `MAP_ALIGNMENT`; the
    remainder is kept as a sub-offset so that `data()` begins exactly at
    `offset`.

    `close()` unmaps the file. It raises `BufferError` while NumPy arrays or
    memoryviews obtained from this buffer are still alive.
    """

    def __init__(self, path: Union[str, os.PathLike], offset: int, length: int):
        if offset < 0 or length < 0:
            raise ValueError("Offset and length must be non-negative.")

        self.path = os.fspath(path)
        self.length = length
        self._sub_offset = offset % MAP_ALIGNMENT
        self._closed = False
        self._mmap: Optional[mmap.mmap] = None

        base = offset - self._sub_offset
        map_length = self._sub_offset + length
        try:
            with open(self.path, 'rb') as fp:
                file_size = os.fstat(fp.fileno()).st_size
                if offset + length > file_size:
                    raise StorageError(
                        f"Cannot map {length} bytes at offset {offset}: "
                        f"file is only {file_size} bytes long",
                        path=self.path,
                    )
                # mmap refuses empty mappings
                if map_length > 0:
                    self._mmap = mmap.mmap(
                        fp.fileno(), map_length, access=mmap.ACCESS_READ, offset=base
                    )
        except StorageError:
            raise
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to map file: {e}", path=self.path) from e

    def data(self) -> memoryview:
        if self._closed:
            raise ValueError("Operation attempted on a closed buffer.")
        if self._mmap is None:
            return memoryview(b"")
        view = memoryview(self._mmap)
        return view[self._sub_offset:self._sub_offset + self.length]

    def __len__(self) -> int:
        return self.length

    @property
    def readonly(self) -> bool:
        return True

    def close(self) -> None:
        if self._closed:
            return
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed
