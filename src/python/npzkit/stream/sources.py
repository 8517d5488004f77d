# npzkit/stream/sources.py
"""
Element producers: fill caller-provided byte buffers one whole element at a time.

A producer knows its element size and how many elements are left, and writes
exactly the number of elements it is asked for. It never splits an element;
bridging partial elements is the job of the stream that drives it.
"""
import abc
from itertools import islice
from typing import Any, Iterable, Iterator, Union

import numpy as np

from ..exceptions import UsageError


class ElementProducer(abc.ABC):
    """Source of fixed-size elements, consumed front to back exactly once."""

    def __init__(self, itemsize: int, count: int):
        if itemsize <= 0:
            raise UsageError(f"Element size must be positive, got {itemsize}.")
        if count < 0:
            raise UsageError(f"Element count must be non-negative, got {count}.")
        self.itemsize = itemsize
        self.count = count
        self._produced = 0

    @property
    def remaining(self) -> int:
        """Number of elements not yet produced."""
        return self.count - self._produced

    @property
    def nbytes(self) -> int:
        return self.count * self.itemsize

    def fill(self, out: memoryview, count: int) -> int:
        """
        Writes the next `count` elements to the start of `out`.

        Returns:
            The number of bytes written (`count * itemsize`).
        """
        if count > self.remaining:
            raise UsageError(
                f"Requested {count} elements but only {self.remaining} remain."
            )
        nbytes = count * self.itemsize
        if nbytes > len(out):
            raise UsageError(
                f"Output buffer of {len(out)} bytes cannot hold {count} elements."
            )
        if count:
            self._fill(out[:nbytes], count)
            self._produced += count
        return nbytes

    @abc.abstractmethod
    def _fill(self, out: memoryview, count: int) -> None:
        raise NotImplementedError

    def write_to(self, fp, batch_elements: int) -> int:
        """Drains every remaining element into a writable binary file."""
        batch = min(self.remaining, batch_elements)
        scratch = bytearray(batch * self.itemsize)
        view = memoryview(scratch)
        written = 0
        while self.remaining:
            n = self.fill(view, min(batch, self.remaining))
            fp.write(view[:n])
            written += n
        return written


class ArraySource(ElementProducer):
    """Elements taken from contiguous payload bytes (e.g. a serialized array)."""

    def __init__(self, payload: Union[bytes, bytearray, memoryview], itemsize: int):
        view = memoryview(payload).cast('B')
        if view.nbytes % itemsize:
            raise UsageError(
                f"Payload of {view.nbytes} bytes is not a whole number of "
                f"{itemsize}-byte elements."
            )
        super().__init__(itemsize, view.nbytes // itemsize)
        self._payload = view

    @classmethod
    def from_array(cls, arr: np.ndarray, order: str = 'C') -> "ArraySource":
        """Serializes `arr` in the given order ('C' or 'F')."""
        return cls(arr.tobytes(order=order), arr.dtype.itemsize)

    def _fill(self, out: memoryview, count: int) -> None:
        start = self._produced * self.itemsize
        out[:] = self._payload[start:start + len(out)]


class IterSource(ElementProducer):
    """
    Elements drawn lazily from an iterable of scalars or tuples.

    Each batch is packed through `dtype` (a scalar dtype for plain arrays, a
    structured dtype for records), so the iterable is never materialized as
    a whole.
    """

    def __init__(self, items: Iterable[Any], dtype: np.dtype, count: int):
        super().__init__(np.dtype(dtype).itemsize, count)
        self.dtype = np.dtype(dtype)
        self._items: Iterator[Any] = iter(items)

    def _fill(self, out: memoryview, count: int) -> None:
        batch = list(islice(self._items, count))
        if len(batch) != count:
            raise UsageError(
                f"Source exhausted after {self._produced + len(batch)} of "
                f"{self.count} elements."
            )
        try:
            packed = np.array(batch, dtype=self.dtype)
        except (TypeError, ValueError, OverflowError) as e:
            raise UsageError(f"Cannot pack elements as {self.dtype}: {e}") from e
        if packed.shape != (count,):
            raise UsageError(
                f"Elements do not match {self.dtype}: packed to shape {packed.shape}."
            )
        out[:] = packed.tobytes()
