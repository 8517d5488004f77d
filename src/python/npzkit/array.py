# npzkit/array.py
"""The loaded (or caller-built) array: metadata plus one owned Buffer."""

from math import prod
from typing import Any, Iterator, Sequence, Tuple

import numpy as np

from .abc import BufferBase
from .buffer import OwnedBuffer
from .dataclasses import FieldDescriptor
from .exceptions import UsageError
from ._internal.layout import RecordLayout
from .types import MemoryOrder


class NpyArray:
    """
    An NPY array: shape, field layout, memory order and payload bytes.

    Instances are never mutated after construction. Views returned by
    `view()`, `column()` and `records()` share memory with the buffer; they
    are read-only when the buffer is memory-mapped.

    Usage:
        with npzkit.load("arr.npy", memory_mapped=True) as arr:
            total = arr.view(np.uint32).sum()
    """

    def __init__(
        self,
        shape: Sequence[int],
        fields: Sequence[FieldDescriptor],
        memory_order: MemoryOrder,
        buffer: BufferBase
    ):
        self._shape: Tuple[int, ...] = tuple(int(d) for d in shape)
        if not self._shape:
            raise UsageError("NpyArray needs a shape of rank >= 1.")
        if any(d < 0 for d in self._shape):
            raise UsageError(f"Negative dimension in shape {self._shape}.")

        self._layout = RecordLayout(fields)
        self._memory_order = MemoryOrder(memory_order)
        self._buffer = buffer

        if len(buffer) != self.num_bytes:
            raise UsageError(
                f"Buffer holds {len(buffer)} bytes but shape {self._shape} with "
                f"record size {self.total_value_size} needs {self.num_bytes}."
            )

    @classmethod
    def from_numpy(cls, arr: np.ndarray, order: MemoryOrder = MemoryOrder.C) -> "NpyArray":
        """Copies a NumPy array (plain or packed structured) into an owned buffer."""
        arr = np.asarray(arr)
        layout = RecordLayout.from_dtype(arr.dtype)
        little = arr.astype(layout.numpy_dtype(), copy=False)
        order = MemoryOrder(order)
        buffer = OwnedBuffer.from_bytes(little.tobytes(order=order.numpy_order))
        return cls(arr.shape or (1,), layout.fields, order, buffer)

    # --- Metadata ---

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._shape

    @property
    def layout(self) -> RecordLayout:
        return self._layout

    @property
    def fields(self) -> Tuple[FieldDescriptor, ...]:
        return self._layout.fields

    @property
    def word_sizes(self) -> Tuple[int, ...]:
        return self._layout.widths

    @property
    def type_codes(self) -> Tuple[str, ...]:
        return self._layout.codes

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._layout.labels

    @property
    def memory_order(self) -> MemoryOrder:
        return self._memory_order

    @property
    def num_vals(self) -> int:
        return prod(self._shape)

    @property
    def total_value_size(self) -> int:
        return self._layout.stride

    @property
    def num_bytes(self) -> int:
        return self.num_vals * self.total_value_size

    def compare_metadata(self, other: "NpyArray") -> bool:
        return (
            self.shape == other.shape
            and self.word_sizes == other.word_sizes
            and self.labels == other.labels
            and self.memory_order == other.memory_order
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NpyArray):
            return NotImplemented
        return self.compare_metadata(other) and self.data() == other.data()

    __hash__ = None  # mutable payload for owned buffers

    def __len__(self) -> int:
        return self.num_vals

    def __repr__(self) -> str:
        return (
            f"NpyArray(shape={self.shape}, layout={self._layout!r}, "
            f"memory_order={self.memory_order.name})"
        )

    # --- Views ---

    def data(self) -> memoryview:
        """The raw payload bytes."""
        return self._buffer.data()

    def view(self, dtype: Any = None) -> np.ndarray:
        """
        A flat typed view over the payload of a plain (single-field) array.

        Args:
            dtype: The element type to read as. Its width must equal the
                   stored width. Defaults to the stored type.

        Raises:
            UsageError: For structured arrays or on a width mismatch.
        """
        if len(self.fields) != 1:
            raise UsageError(
                f"Array has {len(self.fields)} fields; use records() or column()."
            )
        stored = self.fields[0]
        dtype = stored.dtype if dtype is None else np.dtype(dtype)
        if dtype.itemsize != stored.width:
            raise UsageError(
                f"Word size of requested type ({dtype.itemsize}) does not match "
                f"stored word size ({stored.width})."
            )
        return np.frombuffer(self.data(), dtype=dtype, count=self.num_vals)

    def to_numpy(self) -> np.ndarray:
        """The payload as an N-dimensional array in its stored memory order."""
        flat = np.frombuffer(self.data(), dtype=self._layout.numpy_dtype(), count=self.num_vals)
        return flat.reshape(self.shape, order=self.memory_order.numpy_order)

    def column(self, name: str, dtype: Any = None) -> np.ndarray:
        """
        A strided view over one field of every record.

        The view steps by the record stride regardless of the field width.

        Raises:
            UsageError: If `name` is not a label or `dtype` has the wrong width.
        """
        index = self._layout.index_of(name)
        stored = self.fields[index]
        dtype = stored.dtype if dtype is None else np.dtype(dtype)
        if dtype.itemsize != stored.width:
            raise UsageError(
                f"Word sizes of requested type ({dtype.itemsize}) and field "
                f"'{name}' ({stored.width}) do not match."
            )
        return np.ndarray(
            shape=(self.num_vals,),
            dtype=dtype,
            buffer=self.data(),
            offset=self._layout.offsets[index],
            strides=(self.total_value_size,),
        )

    def records(self, *types: Any) -> np.ndarray:
        """
        A flat structured view with one entry per record.

        Args:
            *types: Optional per-field types; when given, their widths are
                    checked against the stored widths and used for the view.
        """
        if types:
            self._layout.check_types(types)
            dtype = np.dtype({
                "names": [label or f"f{i}" for i, label in enumerate(self.labels)],
                "formats": [np.dtype(t) for t in types],
                "offsets": list(self._layout.offsets),
                "itemsize": self.total_value_size,
            })
        else:
            dtype = self._layout.numpy_dtype()
            if not self._layout.is_structured:
                dtype = np.dtype([("f0", dtype)])
        return np.frombuffer(self.data(), dtype=dtype, count=self.num_vals)

    def tuples(self, *types: Any) -> Iterator[Tuple[Any, ...]]:
        """Iterates over records as tuples of Python scalars."""
        for record in self.records(*types):
            yield record.item()

    # --- Lifetime ---

    def close(self) -> None:
        self._buffer.close()

    @property
    def closed(self) -> bool:
        return self._buffer.closed

    def __enter__(self) -> "NpyArray":
        if self.closed:
            raise ValueError("Cannot enter context with a closed array.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
