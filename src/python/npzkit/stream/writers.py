# npzkit/stream/writers.py
"""
Pull-based streaming of NPY entries into an archive.

The archive decides how many bytes it wants and when (`readinto` calls of
arbitrary size); the data arrives one element at a time from a producer.
`NpyStreamSource` bridges the two without ever holding more than the header
and a single element in memory.
"""
import io
import logging
import time
import zipfile
from typing import Optional

from ..exceptions import UsageError
from ..settings import config
from .sources import ElementProducer

logger = logging.getLogger(__name__.split(".")[0])


class NpyStreamSource(io.RawIOBase):
    """
    A readable stream producing an NPY header followed by its payload.

    State carried across `readinto` calls:
        - the number of header bytes not yet sent,
        - a side buffer holding at most one element that did not fit in the
          previous request,
        - how many bytes of that side buffer have already been sent.

    Each request is served in a fixed order: header bytes, then pending
    side-buffer bytes, then fresh elements written directly into the
    caller's buffer. When the space left cannot hold a whole element, one
    element is produced into the side buffer and as much of it as fits is
    copied out; the rest goes first in the next request.

    Every call returns `min(len(buffer), bytes left)`, so a return value of
    zero only ever means the stream is exhausted.
    """

    def __init__(self, header: bytes, producer: ElementProducer):
        super().__init__()
        self._header = memoryview(header)
        self._header_remaining = len(header)
        self._producer = producer
        self._side = bytearray(producer.itemsize)
        self._side_size = 0      # Bytes held in the side buffer
        self._side_consumed = 0  # Bytes of the side buffer already sent

    @property
    def total_size(self) -> int:
        """Total number of bytes the stream produces, header included."""
        return len(self._header) + self._producer.nbytes

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        out = memoryview(buffer).cast('B')
        length = len(out)
        written = 0

        # 1. header
        if self._header_remaining:
            start = len(self._header) - self._header_remaining
            n = min(length, self._header_remaining)
            out[:n] = self._header[start:start + n]
            self._header_remaining -= n
            written = n

        if self._header_remaining:
            return written

        # 2. element left over from the previous request
        written += self._drain_side(out[written:])

        # 3. fresh elements, only once the side buffer is empty
        if self._side_size == 0 and written < length:
            written += self._produce(out[written:])

        return written

    def _drain_side(self, out: memoryview) -> int:
        pending = self._side_size - self._side_consumed
        n = min(pending, len(out))
        if n:
            out[:n] = self._side[self._side_consumed:self._side_consumed + n]
            self._side_consumed += n
        if self._side_consumed == self._side_size:
            # copied completely, treat as empty again
            self._side_size = 0
            self._side_consumed = 0
        return n

    def _produce(self, out: memoryview) -> int:
        producer = self._producer
        itemsize = producer.itemsize

        whole = min(len(out) // itemsize, producer.remaining)
        written = producer.fill(out, whole)

        if producer.remaining and written < len(out):
            # Space left that cannot hold a whole element: stage one element
            # in the side buffer and hand out its head now.
            producer.fill(memoryview(self._side), 1)
            self._side_size = itemsize
            written += self._drain_side(out[written:])

        return written


def write_entry(
    archive: zipfile.ZipFile,
    entry_name: str,
    source: NpyStreamSource,
    *,
    compression: Optional[int] = None,
    chunk_size: Optional[int] = None
) -> int:
    """
    Adds `entry_name` to an archive opened for writing, pulling its content
    from `source` in requests of `chunk_size` bytes.

    Args:
        archive: A ZipFile opened in 'w' or 'a' mode.
        entry_name: The full entry name, e.g. 'x.npy'.
        source: The stream producing the entry bytes.
        compression: A zipfile compression constant; defaults to the
                     configured `archive_compression`.
        chunk_size: Bytes requested per pull; defaults to the configured
                    `stream_chunk_size`.

    Returns:
        The number of uncompressed bytes written.
    """
    chunk_size = chunk_size or config.stream_chunk_size
    if chunk_size <= 0:
        raise UsageError(f"chunk_size must be positive, got {chunk_size}.")

    info = zipfile.ZipInfo(entry_name, time.localtime()[:6])
    info.compress_type = config.compression_method() if compression is None else compression
    # Declaring the size lets zipfile pick zip64 for large entries.
    info.file_size = source.total_size

    chunk = bytearray(chunk_size)
    view = memoryview(chunk)
    total = 0
    with archive.open(info, mode='w') as dest:
        while n := source.readinto(view):
            dest.write(view[:n])
            total += n

    if total != source.total_size:
        raise UsageError(
            f"Entry '{entry_name}' produced {total} bytes, expected {source.total_size}."
        )
    logger.debug(f"Wrote archive entry '{entry_name}' ({total} bytes)")
    return total
