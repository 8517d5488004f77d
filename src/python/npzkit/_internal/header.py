# npzkit/_internal/header.py

"""
Internal functions to build and parse NPY v1.0 headers.

Layout of a header:

    bytes 0-5    magic string b'\\x93NUMPY'
    byte  6      major version (1)
    byte  7      minor version (0)
    bytes 8-9    little-endian uint16 length L of the dictionary
    bytes 10..   the ASCII dictionary, space padded and terminated by '\\n'
                 so that 10 + L is a multiple of 16

Parsing is done by pure functions over the dictionary text; nothing here
keeps state between calls.
"""

import re
import struct
from typing import BinaryIO, Sequence, Tuple, Union

from ..dataclasses import FieldDescriptor, HeaderInfo
from ..exceptions import FormatError, UsageError
from ..types import MemoryOrder, TypeCode
from .layout import check_label

MAGIC = b"\x93NUMPY"
VERSION = (1, 0)
PREAMBLE_SIZE = 10
HEADER_ALIGNMENT = 16
MAX_DICT_LENGTH = 0xFFFF

_PREAMBLE = struct.Struct("<6sBBH")

_FORTRAN_RE = re.compile(r"'fortran_order': (True|False)")
_DIGITS_RE = re.compile(r"\d+")
_SIMPLE_DESCR_RE = re.compile(r"'([<>|])([a-zA-Z])(\d+)'")
_TUPLE_DESCR_RE = re.compile(r"\('(\w+)', '([<>|])([a-zA-Z])(\d+)'\)")

_SHAPE_KEY = "'shape': ("
_DESCR_KEY = "'descr': "
_VALID_CODES = frozenset(c.value for c in TypeCode)

# --- Generation ---

def _format_shape(shape: Sequence[int]) -> str:
    dims = ", ".join(str(int(d)) for d in shape)
    # one-tuple convention
    return f"({dims},)" if len(shape) == 1 else f"({dims})"


def _format_descr(fields: Sequence[FieldDescriptor]) -> str:
    if len(fields) == 1 and fields[0].label == "":
        return f"'{fields[0].descr}'"
    items = ", ".join(f"('{check_label(f.label)}', '{f.descr}')" for f in fields)
    if len(fields) == 1:
        items += ","
    return f"[{items}]"


def create_header(
    shape: Sequence[int],
    fields: Sequence[FieldDescriptor],
    memory_order: MemoryOrder = MemoryOrder.C
) -> bytes:
    """
    Builds a complete NPY v1.0 header (preamble plus padded dictionary).

    Args:
        shape: The array shape; must have at least one dimension.
        fields: One descriptor for a plain array, several for a record type.
        memory_order: C or Fortran layout of the payload.

    Returns:
        The header bytes; their length is always a multiple of 16.
    """
    if len(shape) == 0:
        raise UsageError("Cannot write a header for a rank-0 shape.")
    if not fields:
        raise UsageError("Cannot write a header without fields.")

    fortran = "True" if MemoryOrder(memory_order).is_fortran else "False"
    text = (
        f"{{'descr': {_format_descr(fields)}, "
        f"'fortran_order': {fortran}, "
        f"'shape': {_format_shape(shape)}, }}"
    )

    # Pad with spaces so that preamble + dict is a multiple of 16; the last
    # padding byte becomes the terminating newline.
    padding = HEADER_ALIGNMENT - (PREAMBLE_SIZE + len(text)) % HEADER_ALIGNMENT
    dictionary = (text + " " * padding)[:-1] + "\n"

    if len(dictionary) > MAX_DICT_LENGTH:
        raise FormatError(
            f"Header dictionary of {len(dictionary)} bytes exceeds the "
            f"version 1.0 limit of {MAX_DICT_LENGTH} bytes.",
            fragment=text[:80],
        )

    preamble = _PREAMBLE.pack(MAGIC, *VERSION, len(dictionary))
    return preamble + dictionary.encode("latin1")

# --- Parsing ---

def _parse_preamble(preamble: bytes) -> int:
    """Validates the fixed 10-byte preamble and returns the dictionary length."""
    if len(preamble) < PREAMBLE_SIZE:
        raise FormatError(
            f"Header truncated: expected {PREAMBLE_SIZE} preamble bytes, "
            f"got {len(preamble)}."
        )
    magic, major, minor, dict_length = _PREAMBLE.unpack(preamble[:PREAMBLE_SIZE])
    if magic != MAGIC:
        raise FormatError("NPY magic string not found.", fragment=repr(magic))
    if (major, minor) != VERSION:
        raise FormatError(f"NPY format version {major}.{minor} not supported.")
    return dict_length


def _parse_memory_order(text: str) -> MemoryOrder:
    match = _FORTRAN_RE.search(text)
    if match is None:
        raise FormatError("Invalid header: missing 'fortran_order'.", fragment=text)
    return MemoryOrder.FORTRAN if match.group(1) == "True" else MemoryOrder.C


def _parse_shape(text: str) -> Tuple[int, ...]:
    start = text.find(_SHAPE_KEY)
    if start == -1:
        raise FormatError("Invalid header: missing 'shape'.", fragment=text)
    end = text.find(")", start)
    if end == -1:
        raise FormatError("Invalid header: malformed 'shape'.", fragment=text[start:])

    shape = tuple(int(d) for d in _DIGITS_RE.findall(text, start, end))
    # scalars are stored as shape ()
    return shape or (1,)


def _field(label: str, endian: str, code: str, width: str, fragment: str) -> FieldDescriptor:
    if endian == ">":
        raise FormatError(
            "Data stored in big-endian format (not supported).", fragment=fragment
        )
    if code not in _VALID_CODES:
        raise FormatError(f"Unsupported type code '{code}'.", fragment=fragment)
    return FieldDescriptor(label=label, code=code, width=int(width))


def _parse_descr(text: str) -> Tuple[FieldDescriptor, ...]:
    start = text.find(_DESCR_KEY)
    if start == -1:
        raise FormatError("Invalid header: missing 'descr'.", fragment=text)
    start += len(_DESCR_KEY)
    opener = text[start:start + 1]

    if opener == "'":
        match = _SIMPLE_DESCR_RE.match(text, start)
        if match is None:
            raise FormatError(
                "Could not parse data type descriptor.", fragment=text[start:start + 32]
            )
        return (_field("", *match.groups(), fragment=match.group(0)),)

    if opener == "[":
        end = text.find("]", start)
        if end == -1:
            raise FormatError("Invalid header: malformed list in 'descr'.", fragment=text[start:])
        items = text[start + 1:end]
        fields = [
            _field(*m.groups(), fragment=m.group(0))
            for m in _TUPLE_DESCR_RE.finditer(items)
        ]
        # every tuple must have been read as one field
        leftover = _TUPLE_DESCR_RE.sub("", items).strip(" ,")
        if leftover:
            raise FormatError(
                "Invalid header: unsupported field in 'descr' list.", fragment=leftover[:64]
            )
        if not fields:
            raise FormatError("Invalid header: empty 'descr' list.", fragment=text[start:end + 1])
        return tuple(fields)

    raise FormatError("Invalid header: malformed 'descr'.", fragment=text[start:start + 32])


def parse_dict(text: str) -> Tuple[Tuple[FieldDescriptor, ...], Tuple[int, ...], MemoryOrder]:
    """
    Parses the header dictionary text.

    Returns:
        (fields, shape, memory_order)

    Raises:
        FormatError: If the dictionary is malformed or declares big-endian data.
    """
    if not text.endswith("\n"):
        raise FormatError("Invalid header: missing terminating newline.", fragment=text[-32:])
    if not text.startswith("{"):
        raise FormatError("Invalid header: malformed dictionary.", fragment=text[:32])

    memory_order = _parse_memory_order(text)
    shape = _parse_shape(text)
    fields = _parse_descr(text)
    return fields, shape, memory_order


def _decode(raw: bytes) -> str:
    return raw.decode("latin1")


def parse_header(source: Union[BinaryIO, bytes, bytearray, memoryview]) -> HeaderInfo:
    """
    Parses an NPY header from a binary stream or an in-memory buffer.

    A stream is left positioned at the first payload byte.

    Args:
        source: An object with `read()` or a bytes-like object holding at
                least the full header.

    Returns:
        A HeaderInfo describing the array.

    Raises:
        FormatError: On a bad magic string, unsupported version, truncated
                     or malformed header, or big-endian descriptor.
    """
    if hasattr(source, "read"):
        dict_length = _parse_preamble(source.read(PREAMBLE_SIZE))
        raw = source.read(dict_length)
    else:
        buffer = bytes(memoryview(source)[:PREAMBLE_SIZE + MAX_DICT_LENGTH])
        dict_length = _parse_preamble(buffer)
        raw = buffer[PREAMBLE_SIZE:PREAMBLE_SIZE + dict_length]

    if len(raw) != dict_length:
        raise FormatError(
            f"Header truncated: expected {dict_length} dictionary bytes, got {len(raw)}."
        )

    fields, shape, memory_order = parse_dict(_decode(raw))
    return HeaderInfo(
        fields=fields,
        shape=shape,
        memory_order=memory_order,
        header_length=PREAMBLE_SIZE + dict_length,
    )
