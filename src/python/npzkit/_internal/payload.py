# npzkit/_internal/payload.py

"""
Internal normalization of caller data into (layout, shape, order, producer).

Both the plain-file writer and the archive writer accept the same kinds of
sources, so the rules live here:

- `NpyArray`: written as stored; its memory order is the default order.
- NumPy arrays (and lists/tuples, which are converted): without an explicit
  shape, the logical array is serialized in the requested memory order. With
  an explicit shape, the elements are taken as a flat storage-order sequence
  in C iteration order.
- Any other iterable: consumed lazily; requires an explicit shape and dtype
  (or field types for records).
"""

from collections.abc import Iterable, Sized
from dataclasses import dataclass
from math import prod
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from ..array import NpyArray
from ..exceptions import UsageError
from ..stream.sources import ArraySource, ElementProducer, IterSource
from ..types import MemoryOrder
from .layout import DTypeLike, RecordLayout


@dataclass(frozen=True, slots=True)
class Payload:
    """Everything a writer needs: what the records are and where they come from."""
    layout: RecordLayout
    shape: Tuple[int, ...]
    order: MemoryOrder
    producer: ElementProducer


def normalize_shape(shape: Sequence[int]) -> Tuple[int, ...]:
    """Validates a caller shape; rank 0 is stored as (1,)."""
    dims = tuple(int(d) for d in shape)
    if any(d < 0 for d in dims):
        raise UsageError(f"Shape {dims} has a negative dimension.")
    return dims or (1,)


def _check_count(shape: Tuple[int, ...], count: int) -> None:
    if prod(shape) != count:
        raise UsageError(
            f"Shape {shape} needs {prod(shape)} elements but the data has {count}."
        )


def _from_ndarray(
    arr: np.ndarray,
    layout: RecordLayout,
    shape: Optional[Sequence[int]],
    order: MemoryOrder
) -> Payload:
    little = arr.astype(layout.numpy_dtype(), copy=False)
    if shape is None:
        dims = normalize_shape(arr.shape)
        producer = ArraySource.from_array(little, order.numpy_order)
    else:
        dims = normalize_shape(shape)
        _check_count(dims, arr.size)
        producer = ArraySource.from_array(little, 'C')
    return Payload(layout, dims, order, producer)


def _from_iterable(
    items: Iterable[Any],
    layout: RecordLayout,
    shape: Optional[Sequence[int]],
    order: MemoryOrder
) -> Payload:
    if shape is None:
        if not isinstance(items, Sized):
            raise UsageError("An explicit shape is required for iterator sources.")
        shape = (len(items),)
    dims = normalize_shape(shape)
    if isinstance(items, Sized):
        _check_count(dims, len(items))
    producer = IterSource(items, layout.numpy_dtype(), prod(dims))
    return Payload(layout, dims, order, producer)


def prepare(
    data: Any,
    shape: Optional[Sequence[int]] = None,
    order: Optional[MemoryOrder] = None,
    dtype: Optional[DTypeLike] = None
) -> Payload:
    """Normalizes the source of a plain (or pre-structured) array."""
    if isinstance(data, NpyArray):
        dims = data.shape if shape is None else normalize_shape(shape)
        _check_count(dims, data.num_vals)
        order = data.memory_order if order is None else MemoryOrder(order)
        if order != data.memory_order and shape is None:
            raise UsageError(
                f"Cannot write a {data.memory_order.name}-ordered NpyArray "
                f"as {order.name} without an explicit shape."
            )
        producer = ArraySource(data.data(), data.total_value_size)
        return Payload(data.layout, dims, order, producer)

    order = MemoryOrder.C if order is None else MemoryOrder(order)

    if isinstance(data, (np.ndarray, list, tuple)) or np.isscalar(data):
        arr = np.asarray(data, dtype=dtype)
        return _from_ndarray(arr, RecordLayout.from_dtype(arr.dtype), shape, order)

    if isinstance(data, Iterable):
        if dtype is None:
            raise UsageError("A dtype is required for iterator sources.")
        return _from_iterable(data, RecordLayout.from_dtype(dtype), shape, order)

    raise UsageError(f"Cannot write data of type {type(data).__name__}.")


def prepare_structured(
    labels: Sequence[str],
    records: Any,
    shape: Optional[Sequence[int]] = None,
    order: Optional[MemoryOrder] = None,
    field_types: Optional[Sequence[DTypeLike]] = None
) -> Payload:
    """Normalizes a record source whose fields are named by `labels`."""
    labels = [str(label) for label in labels]
    order = MemoryOrder.C if order is None else MemoryOrder(order)

    if isinstance(records, np.ndarray) and records.dtype.names is not None:
        names = records.dtype.names
        if len(labels) != len(names):
            raise UsageError(
                f"Number of labels ({len(labels)}) does not match the number "
                f"of record fields ({len(names)})."
            )
        if field_types is None:
            field_types = [records.dtype.fields[name][0] for name in names]
        layout = RecordLayout.from_types(labels, field_types)

        # Copy field by field, matching by position rather than by name
        packed = np.empty(records.shape, dtype=layout.numpy_dtype())
        for src, dst in zip(names, layout.labels):
            packed[dst] = records[src]
        return _from_ndarray(packed, layout, shape, order)

    if field_types is None:
        raise UsageError("field_types is required unless records is a structured array.")
    layout = RecordLayout.from_types(labels, field_types)
    if not isinstance(records, Iterable):
        raise UsageError(f"Cannot write records of type {type(records).__name__}.")
    return _from_iterable(records, layout, shape, order)
