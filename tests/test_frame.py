"""Tests for the Frame data model."""

import numpy as np
import pytest

from mdxdr.frame import Frame


@pytest.fixture
def simple_frame():
    """Create a simple four-atom frame."""
    positions = np.array(
        [
            [0.0, 0.0, 0.0],
            [1.5, 0.0, 0.0],
            [0.0, 1.5, 0.0],
            [1.5, 1.5, 0.0],
        ]
    )
    return Frame.from_coordinates(positions, box=[10.0, 10.0, 10.0], step=3, time=0.3)


class TestFrame:
    """Tests for Frame construction and validation."""

    def test_from_coordinates(self, simple_frame):
        """Test that the atom count follows the coordinates."""
        assert simple_frame.n_atoms == 4
        assert simple_frame.step == 3
        assert simple_frame.time == pytest.approx(0.3)
        assert simple_frame.has_coordinates
        assert not simple_frame.has_velocities
        assert not simple_frame.has_forces

    def test_box_lengths_become_matrix(self, simple_frame):
        """Test conversion of box edge lengths."""
        np.testing.assert_array_equal(simple_frame.box, np.diag([10.0, 10.0, 10.0]))

    def test_bad_box_shape(self):
        """Test that a malformed box is rejected."""
        with pytest.raises(ValueError):
            Frame(n_atoms=0, box=np.ones((2, 2)))

    def test_coordinate_shape_mismatch(self):
        """Test that coordinates must match the atom count."""
        with pytest.raises(ValueError):
            Frame(n_atoms=3, coordinates=np.zeros((4, 3)))

    def test_negative_atom_count(self):
        """Test that the atom count cannot be negative."""
        with pytest.raises(ValueError):
            Frame(n_atoms=-1)

    def test_integer_arrays_are_converted(self):
        """Test that integer input becomes floating point."""
        frame = Frame(n_atoms=1, coordinates=[[1, 2, 3]])
        assert np.issubdtype(frame.coordinates.dtype, np.floating)

    def test_empty_is_not_absent(self):
        """Test the difference between empty and missing sections."""
        empty = Frame(n_atoms=0, coordinates=[])
        missing = Frame(n_atoms=0)

        assert empty.coordinates.shape == (0, 3)
        assert empty.has_coordinates
        assert not missing.has_coordinates

    def test_copy_is_deep(self, simple_frame):
        """Test that copies do not share arrays."""
        clone = simple_frame.copy()
        clone.coordinates[0, 0] = 99.0

        assert simple_frame.coordinates[0, 0] == 0.0
        assert clone.step == simple_frame.step


class TestFrameComparison:
    """Tests for Frame.allclose."""

    def test_equal(self, simple_frame):
        """Test comparing a frame with its copy."""
        assert simple_frame.allclose(simple_frame.copy())

    def test_tolerance(self, simple_frame):
        """Test small perturbations within tolerance."""
        other = simple_frame.copy()
        other.coordinates += 1e-4

        assert other.allclose(simple_frame, atol=1e-3)
        assert not other.allclose(simple_frame, atol=1e-5)

    def test_presence_must_match(self, simple_frame):
        """Test that a missing section differs from a present one."""
        other = simple_frame.copy()
        other.velocities = np.zeros((4, 3))

        assert not simple_frame.allclose(other)

    def test_step_must_match(self, simple_frame):
        """Test that metadata is compared."""
        other = simple_frame.copy()
        other.step += 1

        assert not simple_frame.allclose(other)
