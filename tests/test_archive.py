# tests/test_archive.py
"""
Tests for reading and writing NPZ archives.
"""
import logging
import zipfile

import pytest
import numpy as np
from pathlib import Path

import npzkit
from npzkit import CompatibilityError, FormatError, MemoryOrder, StorageError, UsageError
from npzkit._internal.header import create_header

# --- Writing ---

def test_archive_round_trip(tmp_path: Path, cube_u32: np.ndarray, trades: np.ndarray):
    archive = tmp_path / "data.npz"
    npzkit.save_to_archive(archive, "cube", cube_u32)
    npzkit.save_structured_to_archive(archive, "trades", ["id", "side", "qty"], trades, mode="a")

    assert npzkit.list_archive(archive) == ["cube", "trades"]
    arrays = npzkit.load_archive(archive)
    assert set(arrays) == {"cube", "trades"}
    np.testing.assert_array_equal(arrays["cube"].to_numpy(), cube_u32)
    np.testing.assert_array_equal(arrays["trades"].column("qty"), trades["qty"])


def test_archive_is_readable_by_numpy(tmp_path: Path, cube_u32: np.ndarray):
    archive = tmp_path / "np.npz"
    npzkit.save_to_archive(archive, "cube", cube_u32, order=MemoryOrder.FORTRAN)
    with np.load(archive) as npz:
        np.testing.assert_array_equal(npz["cube"], cube_u32)


def test_load_numpy_written_archive(tmp_path: Path, cube_u32: np.ndarray):
    archive = tmp_path / "from_numpy.npz"
    np.savez_compressed(archive, a=cube_u32, b=np.arange(3.0))

    arrays = npzkit.load_archive(archive)
    np.testing.assert_array_equal(arrays["a"].to_numpy(), cube_u32)
    np.testing.assert_array_equal(arrays["b"].view(), [0.0, 1.0, 2.0])


def test_write_mode_replaces_archive(tmp_path: Path):
    archive = tmp_path / "replace.npz"
    npzkit.save_to_archive(archive, "a", np.arange(3))
    npzkit.save_to_archive(archive, "b", np.arange(4))
    assert npzkit.list_archive(archive) == ["b"]


def test_duplicate_name_in_append_mode(tmp_path: Path):
    archive = tmp_path / "dup.npz"
    npzkit.save_to_archive(archive, "a", np.arange(3))
    with pytest.raises(CompatibilityError, match="already exists"):
        npzkit.save_to_archive(archive, "a", np.arange(3), mode="a")
    assert npzkit.list_archive(archive) == ["a"]


def test_streamed_iterator_entry(tmp_path: Path):
    archive = tmp_path / "stream.npz"
    npzkit.save_to_archive(
        archive, "squares", (i * i for i in range(1000)), shape=(1000,),
        dtype=np.int64, chunk_size=5,
    )
    np.testing.assert_array_equal(
        npzkit.load_archive_entry(archive, "squares").view(), np.arange(1000) ** 2
    )


@pytest.mark.parametrize("compression", ["stored", "deflated", "bzip2", "lzma"])
def test_compression_methods(tmp_path: Path, cube_u32: np.ndarray, compression: str):
    archive = tmp_path / "compressed.npz"
    npzkit.save_to_archive(archive, "cube", cube_u32, compression=compression)

    expected = npzkit.config.compression_method(compression)
    with zipfile.ZipFile(archive) as zf:
        assert zf.getinfo("cube.npy").compress_type == expected
    np.testing.assert_array_equal(npzkit.load_archive_entry(archive, "cube").to_numpy(), cube_u32)


def test_unknown_compression(tmp_path: Path):
    with pytest.raises(UsageError, match="Unsupported compression"):
        npzkit.save_to_archive(tmp_path / "x.npz", "a", np.arange(3), compression="zstd")


def test_default_compression_follows_settings(tmp_path: Path):
    archive = tmp_path / "default.npz"
    with npzkit.override(archive_compression="stored"):
        npzkit.save_to_archive(archive, "a", np.arange(3))
    with zipfile.ZipFile(archive) as zf:
        assert zf.getinfo("a.npy").compress_type == zipfile.ZIP_STORED

# --- Reading paths ---

@pytest.mark.parametrize("compression", ["stored", "deflated"])
def test_large_entries(tmp_path: Path, compression: str):
    # larger than the header read, so the payload is read separately
    archive = tmp_path / "large.npz"
    big = np.arange(100_000, dtype=np.float64).reshape(1000, 100)
    npzkit.save_to_archive(archive, "big", big, compression=compression)

    arr = npzkit.load_archive_entry(archive, "big")
    assert arr.shape == (1000, 100)
    np.testing.assert_array_equal(arr.to_numpy(), big)


@pytest.mark.parametrize("compression", ["stored", "deflated"])
def test_small_header_read(tmp_path: Path, cube_u32: np.ndarray, compression: str):
    archive = tmp_path / "small_read.npz"
    npzkit.save_to_archive(archive, "cube", cube_u32, compression=compression)
    with npzkit.override(max_header_read=128):
        arr = npzkit.load_archive_entry(archive, "cube")
    np.testing.assert_array_equal(arr.to_numpy(), cube_u32)


def test_non_npy_entries_are_skipped(tmp_path: Path, caplog):
    archive = tmp_path / "mixed.npz"
    npzkit.save_to_archive(archive, "a", np.arange(3))
    with zipfile.ZipFile(archive, "a") as zf:
        zf.writestr("README.txt", "not an array")

    with caplog.at_level(logging.WARNING, logger="npzkit"):
        arrays = npzkit.load_archive(archive)
    assert list(arrays) == ["a"]
    assert "README.txt" in caplog.text
    assert npzkit.list_archive(archive) == ["a"]


def test_missing_entry(tmp_path: Path):
    archive = tmp_path / "missing.npz"
    npzkit.save_to_archive(archive, "a", np.arange(3))
    with pytest.raises(StorageError, match="not found") as excinfo:
        npzkit.load_archive_entry(archive, "b")
    assert excinfo.value.entry == "b.npy"
    assert excinfo.value.path == str(archive)


def test_missing_archive(tmp_path: Path):
    with pytest.raises(StorageError, match="Unable to open archive"):
        npzkit.load_archive(tmp_path / "nope.npz")


def test_not_a_zip(tmp_path: Path):
    bogus = tmp_path / "bogus.npz"
    bogus.write_bytes(b"definitely not a zip file")
    with pytest.raises(StorageError, match="Not a valid zip"):
        npzkit.load_archive(bogus)


def test_truncated_entry(tmp_path: Path):
    archive = tmp_path / "truncated.npz"
    header = create_header((10,), [npzkit.FieldDescriptor("", "i", 4)])
    with zipfile.ZipFile(archive, "w") as zf:
        # header declares 10 elements but only 5 follow
        zf.writestr("x.npy", header + np.arange(5, dtype=np.int32).tobytes())

    with pytest.raises(FormatError, match="declares"):
        npzkit.load_archive_entry(archive, "x")


def test_failed_append_keeps_archive(tmp_path: Path):
    archive = tmp_path / "keep.npz"
    npzkit.save_to_archive(archive, "good", np.arange(4, dtype=np.int16))
    before = archive.read_bytes()

    with pytest.raises(UsageError, match="exhausted"):
        npzkit.save_to_archive(archive, "bad", iter(range(5)), shape=(10,), dtype=np.uint32, mode="a")

    assert archive.read_bytes() == before
    arrays = npzkit.load_archive(archive)
    assert list(arrays) == ["good"]
    np.testing.assert_array_equal(arrays["good"].view(), np.arange(4))
    assert [p.name for p in tmp_path.iterdir()] == ["keep.npz"]


def test_failed_write_keeps_previous_archive(tmp_path: Path):
    archive = tmp_path / "previous.npz"
    npzkit.save_to_archive(archive, "good", np.arange(4, dtype=np.int16))
    before = archive.read_bytes()

    with pytest.raises(UsageError, match="exhausted"):
        npzkit.save_to_archive(archive, "bad", iter(range(5)), shape=(10,), dtype=np.uint32)

    assert archive.read_bytes() == before
    assert [p.name for p in tmp_path.iterdir()] == ["previous.npz"]


def test_failed_first_write_creates_nothing(tmp_path: Path):
    with pytest.raises(UsageError, match="exhausted"):
        npzkit.save_to_archive(tmp_path / "new.npz", "bad", iter(range(5)), shape=(10,), dtype=np.uint32)
    assert list(tmp_path.iterdir()) == []


def test_structured_entry_with_unwritable_label(tmp_path: Path):
    archive = tmp_path / "labels.npz"
    with pytest.raises(UsageError, match="Invalid field label"):
        npzkit.save_structured_to_archive(
            archive, "rec", ["price-usd", "side"], [(1, 2)], field_types=["<i4", "u1"]
        )
    assert not archive.exists()
