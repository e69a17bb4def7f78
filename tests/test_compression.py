"""Tests for XTC coordinate compression."""

import numpy as np
import pytest

from mdxdr.compression import (
    AdaptiveState,
    CompressedBlock,
    compress,
    compress_ints,
    decompress,
    decompress_ints,
    dequantize,
    quantize,
    read_coords,
    write_coords,
)
from mdxdr.compression.coords import FIRST_IDX, LAST_IDX, MAGIC_INTS
from mdxdr.errors import CorruptFrame, InvalidPrecision
from mdxdr.xdr import XDRReader, XDRWriter


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def water_box(rng):
    """300 three-site waters in a 3 nm box."""
    n_waters = 300
    oxygens = rng.uniform(0.0, 3.0, (n_waters, 3))
    h1 = oxygens + rng.uniform(-0.05, 0.05, (n_waters, 3))
    h2 = oxygens + rng.uniform(-0.05, 0.05, (n_waters, 3))
    return np.stack([oxygens, h1, h2], axis=1).reshape(-1, 3)


def tolerance(coords, precision):
    """Quantization bound plus float32 rounding."""
    largest = np.float32(np.abs(coords).max()) if len(coords) else np.float32(1.0)
    return 0.5 / precision + 8 * float(np.spacing(largest))


class TestMagicInts:
    """Tests for the protocol table."""

    def test_table_shape(self):
        """Test table length and index bounds."""
        assert len(MAGIC_INTS) == 73
        assert FIRST_IDX == 9
        assert LAST_IDX == 73
        assert MAGIC_INTS[FIRST_IDX] == 8
        assert MAGIC_INTS[-1] == 16777216

    def test_table_is_increasing(self):
        """Test that widths grow monotonically after the zero prefix."""
        table = np.array(MAGIC_INTS[FIRST_IDX:])
        assert np.all(np.diff(table) > 0)


class TestQuantize:
    """Tests for quantization."""

    def test_round_half_away_from_zero(self):
        """Test rounding direction."""
        ints = quantize([[0.25, -0.25, 0.04]], 10.0)
        np.testing.assert_array_equal(ints, [[3, -3, 0]])

    def test_precision_1000(self):
        """Test typical nanometre values."""
        ints = quantize([[1.0, 2.0, 3.0], [1.001, 2.002, 2.999]], 1000.0)
        np.testing.assert_array_equal(ints, [[1000, 2000, 3000], [1001, 2002, 2999]])

    @pytest.mark.parametrize("precision", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_precision(self, precision):
        """Test that non-positive precision is rejected."""
        with pytest.raises(InvalidPrecision):
            quantize([[0.0, 0.0, 0.0]], precision)

    def test_invalid_precision_is_value_error(self):
        """Test that InvalidPrecision is also a ValueError."""
        with pytest.raises(ValueError):
            quantize([[0.0, 0.0, 0.0]], 0.0)

    def test_overflow(self):
        """Test that values past the int32 range are rejected."""
        with pytest.raises(ValueError):
            quantize([[3.0e6, 0.0, 0.0]], 1000.0)

    def test_non_finite(self):
        """Test that NaN coordinates are rejected."""
        with pytest.raises(ValueError):
            quantize([[np.nan, 0.0, 0.0]], 1000.0)

    def test_dequantize(self):
        """Test scaling back to float32."""
        coords = dequantize([[1000, -500, 0]], 1000.0)
        assert coords.dtype == np.float32
        np.testing.assert_allclose(coords, [[1.0, -0.5, 0.0]], atol=1e-7)

    def test_dequantize_zero_precision(self):
        """Test that a zero precision cannot be decoded."""
        with pytest.raises(CorruptFrame):
            dequantize([[1, 2, 3]], 0.0)


class TestAdaptiveState:
    """Tests for the adaptive delta width state machine."""

    def test_initial_at_first_index(self):
        """Test the starting state at the smallest width."""
        state = AdaptiveState.initial(9)

        assert state.small_idx == 9
        assert state.small_num == 4
        assert state.smaller == 4
        assert state.size_small == 8
        assert state.min_idx == 9
        assert state.max_idx == 17
        assert state.larger == 25

    def test_initial_mid_table(self):
        """Test the starting state in the middle of the table."""
        state = AdaptiveState.initial(15)

        assert state.small_num == 16
        assert state.smaller == 12
        assert state.min_idx == 15
        assert state.max_idx == 23
        assert state.larger == 101

    def test_initial_near_top(self):
        """Test that the search window is clamped to the table."""
        state = AdaptiveState.initial(70)

        assert state.max_idx == LAST_IDX
        assert state.min_idx == LAST_IDX - 8
        assert state.larger == MAGIC_INTS[-1] // 2

    @pytest.mark.parametrize("small_idx", [0, 8, 73, 100])
    def test_initial_out_of_range(self, small_idx):
        """Test rejection of invalid starting indices."""
        with pytest.raises(CorruptFrame):
            AdaptiveState.initial(small_idx)

    def test_grow(self):
        """Test one step up."""
        state = AdaptiveState.initial(15)
        state.transition(1)

        assert state.small_idx == 16
        assert state.smaller == 16
        assert state.small_num == 20
        assert state.size_small == 40

    def test_shrink(self):
        """Test one step down."""
        state = AdaptiveState.initial(15)
        state.transition(-1)

        assert state.small_idx == 14
        assert state.small_num == 12
        assert state.smaller == 10
        assert state.size_small == 25

    def test_shrink_to_bottom(self):
        """Test that the smallest width has no smaller neighbour."""
        state = AdaptiveState.initial(10)
        state.transition(-1)

        assert state.small_idx == FIRST_IDX
        assert state.smaller == 0

    def test_keep(self):
        """Test that zero leaves the state untouched."""
        state = AdaptiveState.initial(20)
        before = AdaptiveState(**vars(state))
        state.transition(0)

        assert state == before

    def test_leave_table(self):
        """Test that leaving the table is corruption."""
        state = AdaptiveState.initial(FIRST_IDX)

        with pytest.raises(CorruptFrame):
            state.transition(-1)

    def test_grow_then_shrink_restores(self):
        """Test that opposite steps cancel."""
        state = AdaptiveState.initial(20)
        start = AdaptiveState(**vars(state))
        state.transition(1)
        state.transition(-1)

        assert state.small_idx == start.small_idx
        assert state.small_num == start.small_num

    def test_proposal_grow(self):
        """Test that a close neighbour proposes a wider delta."""
        state = AdaptiveState.initial(15)
        assert state.proposal([0, 0, 0], [1, 1, 1], 1) == 1

    def test_proposal_first_atom(self):
        """Test that the first atom never proposes growing."""
        state = AdaptiveState.initial(15)
        assert state.proposal([0, 0, 0], [1, 1, 1], 0) == 0

    def test_proposal_shrink(self):
        """Test that a distant atom above min_idx proposes shrinking."""
        state = AdaptiveState.initial(15)
        state.transition(1)
        assert state.proposal([0, 0, 0], [1000, 0, 0], 5) == -1

    def test_is_small(self):
        """Test the delta fit check."""
        state = AdaptiveState.initial(15)
        assert state.is_small([0, 0, 0], [15, -15, 0])
        assert not state.is_small([0, 0, 0], [16, 0, 0])


class TestCompressInts:
    """Tests for integer compression."""

    def test_empty(self):
        """Test zero atoms."""
        block = compress_ints(np.zeros((0, 3), dtype=np.int64))

        assert block.data == b""
        assert decompress_ints(block, 0).shape == (0, 3)

    def test_two_atom_block(self):
        """Test block minima and maxima for two close atoms."""
        block = compress([[1.000, 2.000, 3.000], [1.001, 2.002, 2.999]], 1000.0)

        assert block.minint == (1000, 2000, 2999)
        assert block.maxint == (1001, 2002, 3000)
        assert block.sizes == (2, 3, 2)

        coords = decompress(block, 2, 1000.0)
        np.testing.assert_allclose(
            coords, [[1.000, 2.000, 3.000], [1.001, 2.002, 2.999]], atol=5e-4
        )

    def test_single_atom(self):
        """Test one atom."""
        ints = np.array([[5, -7, 11]])
        block = compress_ints(ints)

        np.testing.assert_array_equal(decompress_ints(block, 1), ints)

    def test_identical_atoms(self):
        """Test atoms that all share one position."""
        ints = np.full((25, 3), 1234)
        block = compress_ints(ints)

        np.testing.assert_array_equal(decompress_ints(block, 25), ints)

    def test_exact_integer_round_trip(self, rng):
        """Test that integer coordinates survive unchanged."""
        ints = rng.integers(-5000, 5000, size=(500, 3))
        block = compress_ints(ints)

        np.testing.assert_array_equal(decompress_ints(block, 500), ints)

    def test_water_round_trip_preserves_order(self, water_box):
        """Test that the swapped run atoms come back in order."""
        ints = quantize(water_box, 1000.0)
        block = compress_ints(ints)

        np.testing.assert_array_equal(decompress_ints(block, len(ints)), ints)

    def test_water_compresses(self, water_box):
        """Test that bonded atoms pack well below raw size."""
        block = compress(water_box, 1000.0)

        assert len(block.data) < 6 * len(water_box)

    def test_chain_of_close_atoms(self):
        """Test long runs of nearby atoms."""
        steps = np.tile([[3, -2, 1], [-1, 4, -3], [2, 2, 2]], (100, 1))
        ints = np.cumsum(steps, axis=0)
        block = compress_ints(ints)

        np.testing.assert_array_equal(decompress_ints(block, len(ints)), ints)

    def test_mixed_scales(self, rng):
        """Test alternating clustered and scattered regions."""
        cluster = rng.integers(0, 20, size=(200, 3))
        scattered = rng.integers(-10**6, 10**6, size=(200, 3))
        ints = np.concatenate([cluster, scattered, cluster + 10**5])
        block = compress_ints(ints)

        np.testing.assert_array_equal(decompress_ints(block, len(ints)), ints)

    def test_wide_axes_use_separate_widths(self):
        """Test ranges too large to pack into one integer."""
        ints = np.array([[0, 0, 0], [2**25, 5, 5], [10, 2**26, 3]] * 5)
        block = compress_ints(ints)

        assert block.bitsize == 0
        np.testing.assert_array_equal(decompress_ints(block, len(ints)), ints)

    def test_deterministic(self, water_box):
        """Test that encoding is a pure function."""
        assert compress(water_box, 1000.0) == compress(water_box, 1000.0)


class TestDecompressValidation:
    """Tests for rejection of corrupt blocks."""

    def test_bad_small_idx(self):
        """Test an initial index outside the table."""
        block = CompressedBlock((0, 0, 0), (10, 10, 10), 5, b"\x00" * 16)

        with pytest.raises(CorruptFrame):
            decompress_ints(block, 10)

    def test_inverted_range(self):
        """Test maxint below minint."""
        block = CompressedBlock((10, 0, 0), (0, 10, 10), 12, b"\x00" * 16)

        with pytest.raises(CorruptFrame):
            decompress_ints(block, 10)

    def test_range_above_max_bits(self):
        """Test a range needing more bits than allowed."""
        block = CompressedBlock((0, 0, 0), (1000, 10, 10), 12, b"\x00" * 16)

        with pytest.raises(CorruptFrame):
            decompress_ints(block, 10, max_bits=8)

    def test_too_many_atoms_for_data(self):
        """Test an atom count the data cannot hold."""
        block = CompressedBlock((0, 0, 0), (10, 10, 10), 12, b"\x00" * 2)

        with pytest.raises(CorruptFrame):
            decompress_ints(block, 100)

    def test_truncated_data(self, rng):
        """Test running out of bits mid-frame."""
        ints = rng.integers(0, 10**5, size=(100, 3))
        block = compress_ints(ints)
        half = block.data[: len(block.data) // 2]
        short = CompressedBlock(block.minint, block.maxint, block.small_idx, half)

        with pytest.raises(CorruptFrame):
            decompress_ints(short, 100)


class TestCoordinateSection:
    """Tests for the on-wire coordinate section."""

    def test_small_frames_are_raw(self):
        """Test that nine or fewer atoms are stored as floats."""
        coords = np.arange(27, dtype=np.float32).reshape(9, 3) / 7
        writer = XDRWriter()
        assert write_coords(writer, coords, 1000.0) is None
        assert len(writer) == 4 + 9 * 12

        decoded, precision = read_coords(XDRReader.from_bytes(writer.getvalue()), 9)
        np.testing.assert_array_equal(decoded, coords)
        assert precision is None

    def test_compressed_section_layout(self, water_box):
        """Test the header fields of a compressed section."""
        writer = XDRWriter()
        block = write_coords(writer, water_box, 1000.0)

        reader = XDRReader.from_bytes(writer.getvalue())
        assert reader.read_i32() == len(water_box)
        assert reader.read_f32() == 1000.0
        assert tuple(reader.read_i32() for _ in range(3)) == block.minint
        assert tuple(reader.read_i32() for _ in range(3)) == block.maxint
        assert reader.read_i32() == block.small_idx
        assert reader.read_i32() == len(block.data)
        assert len(writer) % 4 == 0

    def test_section_round_trip(self, water_box):
        """Test reading back a compressed section."""
        writer = XDRWriter()
        write_coords(writer, water_box, 1000.0)

        reader = XDRReader.from_bytes(writer.getvalue())
        decoded, precision = read_coords(reader, len(water_box))
        assert precision == 1000.0
        assert reader.at_end()
        np.testing.assert_allclose(
            decoded, water_box, rtol=0, atol=tolerance(water_box, 1000.0)
        )

    def test_atom_count_mismatch(self, water_box):
        """Test that the section count must match the header count."""
        writer = XDRWriter()
        write_coords(writer, water_box, 1000.0)

        with pytest.raises(CorruptFrame):
            read_coords(XDRReader.from_bytes(writer.getvalue()), len(water_box) + 1)

    def test_invalid_precision_raw(self):
        """Test that precision is checked even for raw sections."""
        with pytest.raises(InvalidPrecision):
            write_coords(XDRWriter(), np.zeros((2, 3)), -5.0)
