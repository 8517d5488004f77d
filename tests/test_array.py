# tests/test_array.py
"""
Tests for record layouts and the NpyArray container.
"""
import pytest
import numpy as np

from npzkit import FieldDescriptor, MemoryOrder, NpyArray, OwnedBuffer, UsageError
from npzkit._internal.layout import RecordLayout, field_from_dtype

# --- RecordLayout ---

def test_layout_offsets_and_stride():
    layout = RecordLayout.from_types(["a", "b", "c"], [np.int32, np.uint8, np.int16])
    assert layout.widths == (4, 1, 2)
    assert layout.offsets == (0, 4, 5)
    assert layout.stride == 7
    assert layout.codes == ("i", "u", "i")
    assert layout.is_structured


def test_layout_numpy_dtype_is_packed():
    layout = RecordLayout.from_types(["a", "b", "c"], [np.int32, np.uint8, np.int16])
    dtype = layout.numpy_dtype()
    assert dtype.itemsize == 7
    assert [dtype.fields[name][1] for name in dtype.names] == [0, 4, 5]


def test_plain_layout():
    layout = RecordLayout.from_dtype(np.float64)
    assert not layout.is_structured
    assert layout.fields == (FieldDescriptor("", "f", 8),)
    assert layout.numpy_dtype() == np.dtype("<f8")


def test_layout_label_count_mismatch():
    with pytest.raises(UsageError, match="Number of labels"):
        RecordLayout.from_types(["a", "b"], [np.int32])


def test_layout_rejects_padded_dtype():
    padded = np.dtype([("a", "<i4"), ("b", "u1")], align=True)
    with pytest.raises(UsageError, match="not packed"):
        RecordLayout.from_dtype(padded)


@pytest.mark.parametrize("dtype", ["U4", "O", "M8[s]", "S3"])
def test_unsupported_dtypes(dtype):
    with pytest.raises(UsageError, match="Unsupported dtype"):
        field_from_dtype(dtype)


def test_big_endian_dtype_maps_to_little_endian_descriptor():
    assert field_from_dtype(">u4") == FieldDescriptor("", "u", 4)


def test_index_of_unknown_label():
    layout = RecordLayout.from_types(["a"], [np.int32])
    with pytest.raises(UsageError, match="not found"):
        layout.index_of("z")

# --- NpyArray ---

def test_from_numpy_metadata(cube_u32):
    arr = NpyArray.from_numpy(cube_u32)
    assert arr.shape == (8, 4, 2)
    assert arr.word_sizes == (4,)
    assert arr.type_codes == ("u",)
    assert arr.labels == ("",)
    assert arr.memory_order == MemoryOrder.C
    assert arr.num_vals == 64
    assert arr.total_value_size == 4
    assert arr.num_bytes == 256
    assert len(arr) == 64


def test_view_and_to_numpy(cube_u32):
    arr = NpyArray.from_numpy(cube_u32)
    np.testing.assert_array_equal(arr.view(), np.arange(1, 65, dtype=np.uint32))
    np.testing.assert_array_equal(arr.to_numpy(), cube_u32)
    # same width, different interpretation
    assert arr.view(np.int32)[0] == 1


def test_fortran_to_numpy(cube_u32):
    arr = NpyArray.from_numpy(cube_u32, MemoryOrder.FORTRAN)
    np.testing.assert_array_equal(arr.view(), cube_u32.ravel(order="F"))
    np.testing.assert_array_equal(arr.to_numpy(), cube_u32)


def test_view_width_mismatch(cube_u32):
    arr = NpyArray.from_numpy(cube_u32)
    with pytest.raises(UsageError, match="Word size"):
        arr.view(np.float64)


def test_view_on_structured_array(trades):
    arr = NpyArray.from_numpy(trades)
    with pytest.raises(UsageError, match="fields"):
        arr.view()


def test_column_is_strided(trades):
    arr = NpyArray.from_numpy(trades)
    assert arr.word_sizes == (4, 1, 2)
    assert arr.total_value_size == 7

    qty = arr.column("qty")
    assert qty.strides == (7,)
    np.testing.assert_array_equal(qty, [100, 200, 300, 400, 500])
    np.testing.assert_array_equal(arr.column("side", np.bool_), [False, True, True, False, True])

    with pytest.raises(UsageError, match="do not match"):
        arr.column("qty", np.uint32)
    with pytest.raises(UsageError, match="not found"):
        arr.column("price")


def test_records_and_tuples(trades):
    arr = NpyArray.from_numpy(trades)
    recs = arr.records()
    np.testing.assert_array_equal(recs["id"], trades["id"])

    typed = arr.records(np.uint32, np.int8, np.int16)
    assert typed.dtype.itemsize == 7
    assert list(arr.tuples())[1] == (20, 1, 200)

    with pytest.raises(UsageError, match="Word sizes"):
        arr.records(np.uint32, np.int8)


def test_equality(cube_u32):
    a = NpyArray.from_numpy(cube_u32)
    b = NpyArray.from_numpy(cube_u32.copy())
    assert a == b
    assert a.compare_metadata(b)

    changed = cube_u32.copy()
    changed[0, 0, 0] = 99
    assert a != NpyArray.from_numpy(changed)
    assert not a.compare_metadata(NpyArray.from_numpy(cube_u32.reshape(16, 4)))


def test_buffer_length_must_match():
    with pytest.raises(UsageError, match="Buffer holds"):
        NpyArray((3,), [FieldDescriptor("", "u", 4)], MemoryOrder.C, OwnedBuffer(8))


def test_close(cube_u32):
    with NpyArray.from_numpy(cube_u32) as arr:
        assert not arr.closed
    assert arr.closed
    with pytest.raises(ValueError, match="closed"):
        arr.data()


@pytest.mark.parametrize("labels", [["price-usd", "side"], ["it's", "b"], ["x y", "b"], ["", "b"]])
def test_layout_rejects_unwritable_labels(labels):
    with pytest.raises(UsageError, match="Invalid field label"):
        RecordLayout.from_types(labels, [np.int32, np.uint8])


def test_from_numpy_rejects_unwritable_field_names():
    arr = np.zeros(3, dtype=[("price-usd", "<i4"), ("side", "u1")])
    with pytest.raises(UsageError, match="Invalid field label"):
        NpyArray.from_numpy(arr)
