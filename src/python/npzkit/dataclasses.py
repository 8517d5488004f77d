# npzkit/dataclasses.py
"""
Dataclasses for structured data within the npzkit library.
"""
from dataclasses import dataclass
from math import prod
from typing import Tuple

import numpy as np

from .types import MemoryOrder


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """One field of a record: its label, type code and byte width."""
    label: str
    code: str  # One of 'i', 'u', 'f', 'b', 'c'
    width: int

    @property
    def endian(self) -> str:
        # Single bytes have no byte order
        return '|' if self.width == 1 else '<'

    @property
    def descr(self) -> str:
        """The descriptor text written to headers, e.g. '<u4'."""
        return f"{self.endian}{self.code}{self.width}"

    @property
    def dtype(self) -> np.dtype:
        """The little-endian NumPy dtype for this field."""
        return np.dtype(self.descr)


@dataclass(frozen=True, slots=True)
class HeaderInfo:
    """Everything a parsed NPY header declares."""
    fields: Tuple[FieldDescriptor, ...]
    shape: Tuple[int, ...]
    memory_order: MemoryOrder
    header_length: int  # Preamble plus dictionary, i.e. the payload offset

    @property
    def num_vals(self) -> int:
        return prod(self.shape)

    @property
    def record_size(self) -> int:
        return sum(f.width for f in self.fields)

    @property
    def num_bytes(self) -> int:
        return self.num_vals * self.record_size
