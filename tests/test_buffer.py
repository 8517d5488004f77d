# tests/test_buffer.py
"""
Tests for owned and memory-mapped buffers.
"""
import mmap

import pytest
from pathlib import Path

from npzkit import MappedBuffer, OwnedBuffer, StorageError


def test_owned_buffer():
    with OwnedBuffer.from_bytes(b"abcdef") as buf:
        assert len(buf) == 6
        assert not buf.readonly
        buf.data()[0] = ord("z")
        assert bytes(buf.data()) == b"zbcdef"
    assert buf.closed
    with pytest.raises(ValueError, match="closed"):
        buf.data()


@pytest.mark.parametrize("offset", [0, 1, 100, mmap.ALLOCATIONGRANULARITY - 1, mmap.ALLOCATIONGRANULARITY + 3])
def test_mapped_buffer_unaligned_offset(tmp_path: Path, offset: int):
    filepath = tmp_path / "blob.bin"
    content = bytes(range(256)) * ((2 * mmap.ALLOCATIONGRANULARITY) // 256 + 1)
    filepath.write_bytes(content)

    buf = MappedBuffer(filepath, offset, 50)
    assert len(buf) == 50
    assert buf.readonly
    assert bytes(buf.data()) == content[offset:offset + 50]
    buf.close()
    assert buf.closed


def test_mapped_buffer_beyond_end(tmp_path: Path):
    filepath = tmp_path / "small.bin"
    filepath.write_bytes(b"0123456789")
    with pytest.raises(StorageError, match="file is only 10 bytes"):
        MappedBuffer(filepath, 4, 7)


def test_mapped_buffer_missing_file(tmp_path: Path):
    with pytest.raises(StorageError, match="Failed to map") as excinfo:
        MappedBuffer(tmp_path / "missing.bin", 0, 1)
    assert excinfo.value.path == str(tmp_path / "missing.bin")
