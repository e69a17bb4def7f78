"""Trajectory frame representation."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray


def _as_matrix(name: str, value: ArrayLike | None) -> NDArray[np.floating] | None:
    if value is None:
        return None
    matrix = np.asarray(value)
    if not np.issubdtype(matrix.dtype, np.floating):
        matrix = matrix.astype(np.float64)
    if matrix.shape == (3,):
        # Rectangular box given by its edge lengths
        matrix = np.diag(matrix)
    if matrix.shape != (3, 3):
        raise ValueError(f"{name} must be (3,) or (3, 3), got {matrix.shape}")
    return matrix


def _as_vectors(
    name: str, value: ArrayLike | None, n_atoms: int
) -> NDArray[np.floating] | None:
    if value is None:
        return None
    vectors = np.asarray(value)
    if not np.issubdtype(vectors.dtype, np.floating):
        vectors = vectors.astype(np.float64)
    if vectors.size == 0:
        vectors = vectors.reshape(0, 3)
    if vectors.shape != (n_atoms, 3):
        raise ValueError(
            f"{name} shape {vectors.shape} incompatible with {n_atoms} atoms"
        )
    return vectors


@dataclass
class Frame:
    """
    One simulation snapshot.

    Per-atom sections that are not stored in the file are None, which is
    distinct from a present section with zero atoms (shape (0, 3)).

    Attributes:
        n_atoms: Number of atoms.
        step: Simulation step index.
        time: Simulation time.
        box: Periodic cell as 3x3 row vectors, or None if absent.
        coordinates: Positions, shape (n_atoms, 3), or None.
        velocities: Velocities, shape (n_atoms, 3), or None (TRR only).
        forces: Forces, shape (n_atoms, 3), or None (TRR only).
        lambda_value: Free-energy coupling parameter (TRR only).
        precision: XTC quantization factor; None if not stored.
        virial: Virial tensor (TRR only).
        pressure: Pressure tensor (TRR only).
    """

    n_atoms: int
    step: int = 0
    time: float = 0.0
    box: NDArray[np.floating] | None = None
    coordinates: NDArray[np.floating] | None = None
    velocities: NDArray[np.floating] | None = None
    forces: NDArray[np.floating] | None = None
    lambda_value: float = 0.0
    precision: float | None = None
    virial: NDArray[np.floating] | None = None
    pressure: NDArray[np.floating] | None = None

    def __post_init__(self) -> None:
        """Validate and convert arrays."""
        self.n_atoms = int(self.n_atoms)
        if self.n_atoms < 0:
            raise ValueError(f"n_atoms must be non-negative, got {self.n_atoms}")
        self.step = int(self.step)
        self.time = float(self.time)
        self.lambda_value = float(self.lambda_value)
        if self.precision is not None:
            self.precision = float(self.precision)
        self.box = _as_matrix("box", self.box)
        self.virial = _as_matrix("virial", self.virial)
        self.pressure = _as_matrix("pressure", self.pressure)
        self.coordinates = _as_vectors("coordinates", self.coordinates, self.n_atoms)
        self.velocities = _as_vectors("velocities", self.velocities, self.n_atoms)
        self.forces = _as_vectors("forces", self.forces, self.n_atoms)

    @classmethod
    def from_coordinates(
        cls,
        coordinates: ArrayLike,
        box: ArrayLike | None = None,
        step: int = 0,
        time: float = 0.0,
        **kwargs,
    ) -> Frame:
        """
        Create a frame whose atom count is taken from the coordinates.

        Args:
            coordinates: Positions, shape (N, 3).
            box: Box as lengths (3,) or row vectors (3, 3).
            step: Step index.
            time: Simulation time.
            **kwargs: Remaining Frame fields.

        Returns:
            New Frame instance.
        """
        coordinates = np.asarray(coordinates)
        if coordinates.size == 0:
            coordinates = coordinates.reshape(0, 3)
        return cls(
            n_atoms=len(coordinates),
            step=step,
            time=time,
            box=box,
            coordinates=coordinates,
            **kwargs,
        )

    @property
    def has_box(self) -> bool:
        return self.box is not None

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    @property
    def has_velocities(self) -> bool:
        return self.velocities is not None

    @property
    def has_forces(self) -> bool:
        return self.forces is not None

    def copy(self) -> Frame:
        """Create a deep copy of this frame."""

        def _copy(array):
            return None if array is None else array.copy()

        return Frame(
            n_atoms=self.n_atoms,
            step=self.step,
            time=self.time,
            box=_copy(self.box),
            coordinates=_copy(self.coordinates),
            velocities=_copy(self.velocities),
            forces=_copy(self.forces),
            lambda_value=self.lambda_value,
            precision=self.precision,
            virial=_copy(self.virial),
            pressure=_copy(self.pressure),
        )

    def allclose(self, other: Frame, atol: float = 1e-6) -> bool:
        """
        Compare two frames field by field.

        Sections must be present in both frames or absent in both.

        Args:
            other: Frame to compare with.
            atol: Absolute tolerance for array and time comparisons.
        """
        if self.n_atoms != other.n_atoms or self.step != other.step:
            return False
        if not np.isclose(self.time, other.time, rtol=0.0, atol=atol):
            return False
        for name in ("box", "coordinates", "velocities", "forces", "virial", "pressure"):
            a = getattr(self, name)
            b = getattr(other, name)
            if (a is None) != (b is None):
                return False
            if a is not None and not np.allclose(a, b, rtol=0.0, atol=atol):
                return False
        return True
