# npzkit/_internal/layout.py

"""
Internal utilities mapping NumPy dtypes to NPY field descriptors.

A record type is described once by a `RecordLayout`: the type code and byte
width of every field, the offset of each field inside one record and the
record stride. Everything downstream (header generation, packing, strided
views) reads these tables instead of recomputing offsets.
"""

import re
from itertools import accumulate
from typing import Any, Iterable, Sequence, Tuple, TypeAlias

import numpy as np

from ..dataclasses import FieldDescriptor
from ..exceptions import UsageError

DTypeLike: TypeAlias = Any

# --- Mappings ---

# Maps NumPy dtype kinds to the NPY type code.
_KIND_TO_CODE: dict[str, str] = {
    'i': 'i',
    'u': 'u',
    'f': 'f',
    'b': 'b',
    'c': 'c',
}

# Field labels must survive the header grammar unescaped
_LABEL_RE = re.compile(r"\w+", re.ASCII)

# --- Functions ---

def check_label(label: str) -> str:
    """
    Returns `label` if it can be written as a field name in an NPY header.

    Raises:
        UsageError: If the label is empty or holds anything besides ASCII
                    letters, digits and underscores.
    """
    if not _LABEL_RE.fullmatch(label):
        raise UsageError(
            f"Invalid field label {label!r}: labels must be non-empty and use "
            "only ASCII letters, digits and underscores."
        )
    return label


def field_from_dtype(dtype_like: DTypeLike, label: str = "") -> FieldDescriptor:
    """
    Builds the descriptor for a single scalar field.

    Args:
        dtype_like: Anything `np.dtype()` accepts (np.uint32, 'f8', ...).
        label: The field name; empty for plain arrays.

    Returns:
        The FieldDescriptor for the type.

    Raises:
        UsageError: If the type is not a plain integer, float, bool or complex
                    type, or if a bool is wider than one byte.
    """
    try:
        dtype = np.dtype(dtype_like)
    except TypeError as e:
        raise UsageError(f"Cannot interpret {dtype_like!r} as a dtype: {e}") from e

    if dtype.fields is not None or dtype.subdtype is not None:
        raise UsageError(
            f"Field '{label}' must be a scalar type, got nested dtype '{dtype}'."
        )

    try:
        code = _KIND_TO_CODE[dtype.kind]
    except KeyError:
        supported = ", ".join(sorted(_KIND_TO_CODE))
        raise UsageError(
            f"Unsupported dtype '{dtype}' for field '{label}'. "
            f"Supported kinds are: {supported}"
        ) from None

    if code == 'b' and dtype.itemsize != 1:
        raise UsageError(
            f"Boolean field '{label}' has width {dtype.itemsize}; "
            "only 1-byte booleans are representable."
        )

    return FieldDescriptor(label=label, code=code, width=dtype.itemsize)


class RecordLayout:
    """
    Byte layout of one record (element) of an array.

    Fields are packed contiguously with no padding: field `k` starts at the
    sum of the widths of fields `0..k-1` and the stride is the sum of all
    widths.
    """
    __slots__ = ("fields", "offsets", "stride")

    def __init__(self, fields: Iterable[FieldDescriptor]):
        self.fields: Tuple[FieldDescriptor, ...] = tuple(fields)
        if not self.fields:
            raise UsageError("A record layout needs at least one field.")

        widths = [f.width for f in self.fields]
        self.offsets: Tuple[int, ...] = (0, *accumulate(widths[:-1]))
        self.stride: int = sum(widths)

    @classmethod
    def from_types(
        cls,
        labels: Sequence[str],
        types: Sequence[DTypeLike]
    ) -> "RecordLayout":
        """Layout of a record whose k-th field is named labels[k] and typed types[k]."""
        labels = list(labels)
        types = list(types)
        if len(labels) != len(types):
            raise UsageError(
                f"Number of labels ({len(labels)}) does not match the number "
                f"of field types ({len(types)})."
            )
        return cls(
            field_from_dtype(t, check_label(str(label))) for label, t in zip(labels, types)
        )

    @classmethod
    def from_dtype(cls, dtype_like: DTypeLike) -> "RecordLayout":
        """
        Layout of a plain or structured NumPy dtype.

        Structured dtypes must already be packed (no gaps between fields), as
        NPY list descriptors cannot express padding.
        """
        dtype = np.dtype(dtype_like)
        if dtype.names is None:
            return cls([field_from_dtype(dtype)])

        layout = cls(
            field_from_dtype(dtype.fields[name][0], check_label(name)) for name in dtype.names
        )
        actual = tuple(dtype.fields[name][1] for name in dtype.names)
        if actual != layout.offsets or dtype.itemsize != layout.stride:
            raise UsageError(
                f"Structured dtype {dtype} is not packed; "
                f"expected offsets {layout.offsets} and itemsize {layout.stride}."
            )
        return layout

    # --- Derived tables ---

    @property
    def widths(self) -> Tuple[int, ...]:
        return tuple(f.width for f in self.fields)

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(f.code for f in self.fields)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(f.label for f in self.fields)

    @property
    def is_structured(self) -> bool:
        """False only for a single unlabeled field, i.e. a plain array."""
        return len(self.fields) > 1 or self.fields[0].label != ""

    def index_of(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError:
            raise UsageError(f"Field '{label}' not found in labels {self.labels}") from None

    def numpy_dtype(self) -> np.dtype:
        """
        The little-endian NumPy dtype of one record.

        Plain layouts give a scalar dtype. Structured layouts give a dtype
        with the explicit offsets and itemsize of this table.
        """
        if not self.is_structured:
            return self.fields[0].dtype
        return np.dtype({
            "names": list(self.labels),
            "formats": [f.dtype for f in self.fields],
            "offsets": list(self.offsets),
            "itemsize": self.stride,
        })

    def check_types(self, types: Sequence[DTypeLike]) -> None:
        """
        Verifies that caller-requested field types match the stored widths.

        Raises:
            UsageError: On a field count or width mismatch.
        """
        requested = [np.dtype(t).itemsize for t in types]
        if tuple(requested) != self.widths:
            raise UsageError(
                f"Word sizes of requested types {tuple(requested)} do not match "
                f"stored word sizes {self.widths}."
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordLayout):
            return NotImplemented
        return self.fields == other.fields

    def __hash__(self) -> int:
        return hash(self.fields)

    def __repr__(self) -> str:
        descr = ", ".join(f"{f.label or '_'}:{f.descr}" for f in self.fields)
        return f"RecordLayout({descr}; stride={self.stride})"
