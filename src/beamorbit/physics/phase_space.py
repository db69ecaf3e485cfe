"""
Phase-space vectors and particle bunches.

Coordinates are ordered ``(x, xp, y, yp, ct, dp)``: horizontal and vertical
position (m) and angle (rad), longitudinal path-length offset ``ct`` (m) and
relative momentum deviation ``dp``. The transverse-only closed-orbit solve
uses the first four.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence
import math

import numpy as np

COORDINATE_NAMES = ('x', 'xp', 'y', 'yp', 'ct', 'dp')


class PhaseSpaceVector:
    """Six-component particle state.

    Behaves as a value: arithmetic returns new vectors and the constructor
    always copies its input.
    """

    __slots__ = ('_z',)

    def __init__(self, x: float = 0.0, xp: float = 0.0, y: float = 0.0,
                 yp: float = 0.0, ct: float = 0.0, dp: float = 0.0):
        self._z = np.array([x, xp, y, yp, ct, dp], dtype=float)

    @classmethod
    def from_array(cls, values: Sequence[float]) -> 'PhaseSpaceVector':
        values = np.asarray(values, dtype=float).ravel()
        if values.size != 6:
            raise ValueError(f"A phase-space vector has 6 coordinates, got {values.size}")
        return cls(*values)

    @classmethod
    def zeros(cls) -> 'PhaseSpaceVector':
        return cls()

    def to_array(self) -> np.ndarray:
        return self._z.copy()

    def copy(self) -> 'PhaseSpaceVector':
        return PhaseSpaceVector.from_array(self._z)

    x = property(lambda self: float(self._z[0]))
    xp = property(lambda self: float(self._z[1]))
    y = property(lambda self: float(self._z[2]))
    yp = property(lambda self: float(self._z[3]))
    ct = property(lambda self: float(self._z[4]))
    dp = property(lambda self: float(self._z[5]))

    def __len__(self) -> int:
        return 6

    def __getitem__(self, i: int) -> float:
        return float(self._z[i])

    def __iter__(self) -> Iterator[float]:
        return (float(v) for v in self._z)

    def __add__(self, other) -> 'PhaseSpaceVector':
        return PhaseSpaceVector.from_array(self._z + np.asarray(other, dtype=float))

    def __sub__(self, other) -> 'PhaseSpaceVector':
        return PhaseSpaceVector.from_array(self._z - np.asarray(other, dtype=float))

    def __array__(self, dtype=None, copy=None):
        return self._z.astype(dtype) if dtype is not None else self._z.copy()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PhaseSpaceVector):
            return NotImplemented
        return bool(np.array_equal(self._z, other._z))

    def dot(self, other) -> float:
        return float(np.dot(self._z, np.asarray(other, dtype=float)))

    def isclose(self, other, rtol: float = 1e-9, atol: float = 1e-12) -> bool:
        return bool(np.allclose(self._z, np.asarray(other, dtype=float), rtol=rtol, atol=atol))

    def __repr__(self) -> str:
        values = ", ".join(f"{name}={value:.6g}" for name, value in zip(COORDINATE_NAMES, self._z))
        return f"PhaseSpaceVector({values})"


@dataclass(frozen=True)
class ParticleInfo:
    """Particle species: rest mass in GeV/c^2 and charge in units of e."""
    name: str
    mass: float
    charge: float

    def gamma(self, momentum: float) -> float:
        """Lorentz factor at ``momentum`` (GeV/c)."""
        return math.hypot(momentum, self.mass) / self.mass

    def beta(self, momentum: float) -> float:
        return momentum / math.hypot(momentum, self.mass)


ELECTRON = ParticleInfo(name='electron', mass=0.51099895e-3, charge=-1.0)
PROTON = ParticleInfo(name='proton', mass=0.93827208816, charge=1.0)


class Bunch:
    """Ordered collection of particles sharing a reference momentum.

    Coordinates are held in an ``N x 6`` array; particle 0 is the reference
    particle. Engines advance ``coordinates`` in place.

    Args:
        momentum: Reference momentum in GeV/c
        particles: Initial coordinates, an ``N x 6`` array or an iterable of
            PhaseSpaceVector; one particle at the origin when omitted
        particle: Particle species
        total_charge: Bunch population times the species charge, in units of e
    """

    def __init__(self, momentum: float, particles=None, particle: ParticleInfo = PROTON,
                 total_charge: float = 1.0):
        if momentum <= 0.0:
            raise ValueError(f"Reference momentum must be positive, got {momentum}")
        self.momentum = float(momentum)
        self.particle = particle
        self.total_charge = float(total_charge)

        if particles is None:
            coordinates = np.zeros((1, 6))
        elif isinstance(particles, np.ndarray):
            coordinates = np.array(particles, dtype=float, ndmin=2)
        else:
            coordinates = np.array([np.asarray(p, dtype=float) for p in particles], dtype=float).reshape(-1, 6)
        if coordinates.ndim != 2 or coordinates.shape[1] != 6:
            raise ValueError(f"Bunch coordinates must be N x 6, got {coordinates.shape}")
        self.coordinates = coordinates

    @classmethod
    def proton(cls, momentum: float, particles=None, total_charge: float = 1.0) -> 'Bunch':
        return cls(momentum, particles, particle=PROTON, total_charge=total_charge)

    @classmethod
    def electron(cls, momentum: float, particles=None, total_charge: float = -1.0) -> 'Bunch':
        return cls(momentum, particles, particle=ELECTRON, total_charge=total_charge)

    def __len__(self) -> int:
        return self.coordinates.shape[0]

    def __iter__(self) -> Iterator[PhaseSpaceVector]:
        return (PhaseSpaceVector.from_array(row) for row in self.coordinates)

    def __getitem__(self, i: int) -> PhaseSpaceVector:
        return PhaseSpaceVector.from_array(self.coordinates[i])

    def __setitem__(self, i: int, value):
        self.coordinates[i] = np.asarray(value, dtype=float)

    def add_particles(self, particles: Iterable):
        rows = np.array([np.asarray(p, dtype=float) for p in particles], dtype=float).reshape(-1, 6)
        self.coordinates = np.vstack([self.coordinates, rows])

    def first_particle(self) -> PhaseSpaceVector:
        if len(self) == 0:
            raise IndexError("Bunch is empty")
        return self[0]

    def centroid(self) -> PhaseSpaceVector:
        if len(self) == 0:
            raise IndexError("Bunch is empty")
        return PhaseSpaceVector.from_array(self.coordinates.mean(axis=0))

    def copy(self) -> 'Bunch':
        return Bunch(self.momentum, self.coordinates.copy(), particle=self.particle,
                     total_charge=self.total_charge)

    def allclose(self, other: 'Bunch', rtol: float = 1e-12, atol: float = 0.0) -> bool:
        """Same shape, reference momentum and coordinates within tolerance."""
        return (self.coordinates.shape == other.coordinates.shape
                and math.isclose(self.momentum, other.momentum, rel_tol=rtol)
                and bool(np.allclose(self.coordinates, other.coordinates, rtol=rtol, atol=atol)))

    def __repr__(self) -> str:
        return f"Bunch({self.particle.name}, p0={self.momentum:g} GeV/c, {len(self)} particles)"
