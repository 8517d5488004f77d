# npzkit/__init__.py
"""
Reading, writing and appending NumPy .npy files and .npz archives.
"""
from .logging import logger
from .settings import config, override
from .types import MemoryOrder, TypeCode, WriteMode
from .dataclasses import FieldDescriptor, HeaderInfo
from .exceptions import CompatibilityError, FormatError, NpyError, StorageError, UsageError
from .buffer import MappedBuffer, OwnedBuffer
from .array import NpyArray
from .file import load, read_header, save, save_structured
from .archive import (
    list_archive,
    load_archive,
    load_archive_entry,
    save_structured_to_archive,
    save_to_archive,
)
from .convenience import load_npy_or_npz, savez

__version__ = "0.1.0"

# Define what gets imported with 'from npzkit import *'
__all__ = [
    'save',
    'save_structured',
    'load',
    'read_header',
    'save_to_archive',
    'save_structured_to_archive',
    'load_archive',
    'load_archive_entry',
    'list_archive',
    'savez',
    'load_npy_or_npz',
    'NpyArray',
    'OwnedBuffer',
    'MappedBuffer',
    'FieldDescriptor',
    'HeaderInfo',
    'MemoryOrder',
    'TypeCode',
    'WriteMode',
    'NpyError',
    'FormatError',
    'CompatibilityError',
    'StorageError',
    'UsageError',
    'config',
    'override',
    '__version__',
]
