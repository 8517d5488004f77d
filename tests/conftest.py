# tests/conftest.py
"""
Pytest configuration and shared fixtures for the test suite.
"""
import pytest
from pathlib import Path
import numpy as np

import npzkit


@pytest.fixture
def cube_u32() -> np.ndarray:
    """The uint32 array 1..64 with shape (8, 4, 2)."""
    return np.arange(1, 65, dtype=np.uint32).reshape(8, 4, 2)


@pytest.fixture
def trades() -> np.ndarray:
    """A packed structured array with fields of widths 4, 1 and 2."""
    dtype = np.dtype([("id", "<i4"), ("side", "u1"), ("qty", "<u2")])
    arr = np.zeros(5, dtype=dtype)
    arr["id"] = [10, 20, 30, 40, 50]
    arr["side"] = [0, 1, 1, 0, 1]
    arr["qty"] = [100, 200, 300, 400, 500]
    return arr


@pytest.fixture
def cube_file(tmp_path: Path, cube_u32: np.ndarray) -> Path:
    """A .npy file holding `cube_u32` in C order."""
    filepath = tmp_path / "cube.npy"
    npzkit.save(filepath, cube_u32)
    return filepath


@pytest.fixture
def debug_logging():
    """Raises the package log level to DEBUG for the duration of a test."""
    with npzkit.override(loglevel="DEBUG"):
        yield
