# npzkit/types.py

"""
Core enumerations for the npzkit library.
"""
from enum import Enum, IntEnum

from .exceptions import UsageError


class MemoryOrder(IntEnum):
    """
    Layout of a multi-dimensional payload.

    The member decides which shape dimension grows when data is appended:
    the first one for C (row-major) order, the last one for Fortran
    (column-major) order.
    """
    FORTRAN = 0
    C = 1

    # Aliases
    COLUMN_MAJOR = 0
    ROW_MAJOR = 1

    @property
    def is_fortran(self) -> bool:
        return self is MemoryOrder.FORTRAN

    @property
    def numpy_order(self) -> str:
        """The `order=` letter NumPy uses for this layout."""
        return 'F' if self.is_fortran else 'C'

    @property
    def growth_axis(self) -> int:
        """Index of the dimension that grows on append."""
        return -1 if self.is_fortran else 0


class TypeCode(str, Enum):
    """One-character type codes used in NPY descriptors."""
    SIGNED = 'i'
    UNSIGNED = 'u'
    FLOAT = 'f'
    BOOL = 'b'
    COMPLEX = 'c'


class WriteMode(str, Enum):
    """File modes accepted by the save functions."""
    WRITE = 'w'
    APPEND = 'a'

    @classmethod
    def parse(cls, mode: "str | WriteMode") -> "WriteMode":
        try:
            return cls(mode)
        except ValueError:
            raise UsageError(
                f"Unsupported mode: '{mode}'. Must be 'w' or 'a'."
            ) from None
