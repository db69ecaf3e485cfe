"""
Type definitions, configuration models and exceptions for beamorbit.

This module provides the pydantic configuration models shared by the
tracking engines, the closed-orbit finder and the accelerator facade,
together with the exception taxonomy used across the package.
"""

from enum import Enum
from typing import Dict, Any, Optional, List, Union
from pydantic import Field, field_validator, model_validator
import numpy as np
import os
import yaml

from ..models.base import PhysicsBaseModel
from ..models.validators import validate_matrix_size


class ParticleSpecies(str, Enum):
    """Particle species understood by the engines."""
    ELECTRON = "electron"
    PROTON = "proton"


class EngineConfiguration(PhysicsBaseModel):
    """Base configuration for tracking engines."""
    name: str = Field(description="Engine name")
    context: str = Field(default="cpu", description="Computation context (cpu, cuda, opencl)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Engine-specific configuration can be stored in a flexible dict
    engine_specific: Dict[str, Any] = Field(default_factory=dict, description="Engine-specific settings")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v


class BeamData(PhysicsBaseModel):
    """
    Nominal beam parameters used to create bunches.

    Particle 0 of every generated bunch sits exactly on ``centroid``; the
    remaining ``num_particles - 1`` particles are Gaussian about it, with
    transverse sizes from the emittances and Twiss functions and longitudinal
    sizes from ``sig_z`` and ``sig_dp``. A single-particle bunch is the
    default, which is what orbit work needs.
    """
    momentum: float = Field(gt=0, description="Reference momentum in GeV/c")
    particle: ParticleSpecies = Field(default=ParticleSpecies.PROTON, description="Particle species")
    charge: float = Field(default=1.0, description="Bunch population in units of the species charge")
    num_particles: int = Field(default=1, ge=1, description="Number of macro-particles")

    centroid: List[float] = Field(default_factory=lambda: [0.0] * 6,
                                  description="Bunch centroid (x, xp, y, yp, ct, dp)")

    emittance_x: float = Field(default=0.0, ge=0, description="Horizontal emittance in m*rad")
    emittance_y: float = Field(default=0.0, ge=0, description="Vertical emittance in m*rad")
    beta_x: float = Field(default=1.0, gt=0, description="Horizontal beta function in m")
    beta_y: float = Field(default=1.0, gt=0, description="Vertical beta function in m")
    alpha_x: float = Field(default=0.0, description="Horizontal alpha function")
    alpha_y: float = Field(default=0.0, description="Vertical alpha function")
    sig_z: float = Field(default=0.0, ge=0, description="RMS bunch length in m")
    sig_dp: float = Field(default=0.0, ge=0, description="RMS relative momentum spread")

    seed: Optional[int] = Field(default=None, description="Random seed for particle generation")

    @field_validator('centroid')
    @classmethod
    def validate_centroid(cls, v):
        return validate_matrix_size(v, 6, "centroid")

    def generate_coordinates(self) -> np.ndarray:
        """Return the ``num_particles x 6`` coordinate array described by these parameters."""
        coordinates = np.tile(np.asarray(self.centroid, dtype=float), (self.num_particles, 1))
        n_random = self.num_particles - 1
        if n_random == 0:
            return coordinates

        rng = np.random.default_rng(self.seed)
        for plane, (emit, beta, alpha) in enumerate((
                (self.emittance_x, self.beta_x, self.alpha_x),
                (self.emittance_y, self.beta_y, self.alpha_y))):
            u = rng.standard_normal(n_random)
            v = rng.standard_normal(n_random)
            position = np.sqrt(emit * beta) * u
            angle = np.sqrt(emit / beta) * (v - alpha * u)
            coordinates[1:, 2 * plane] += position
            coordinates[1:, 2 * plane + 1] += angle

        coordinates[1:, 4] += self.sig_z * rng.standard_normal(n_random)
        coordinates[1:, 5] += self.sig_dp * rng.standard_normal(n_random)
        return coordinates


class ClosedOrbitSettings(PhysicsBaseModel):
    """
    Configuration of the closed-orbit Newton iteration.

    ``tolerance`` bounds the squared norm of the Newton update. ``delta`` is
    the finite-difference step, either one value for every coordinate or six
    per-coordinate values. Radiation is integrated with either a fixed number
    of steps per element or a maximum step length; setting neither means one
    step per element.
    """
    transverse_only: bool = Field(default=False, description="Solve for (x, xp, y, yp) only")
    radiation: bool = Field(default=False, description="Attach mean synchrotron radiation while solving")
    rad_num_steps: Optional[int] = Field(default=None, ge=1, description="Radiation steps per element")
    rad_step_size: Optional[float] = Field(default=None, gt=0, description="Maximum radiation step length in m")
    tolerance: float = Field(default=1e-26, ge=0, description="Convergence bound on the squared update norm")
    max_iterations: int = Field(default=20, ge=0, description="Hard cap on Newton passes")
    delta: Union[float, List[float]] = Field(default=1e-9, description="Finite-difference step(s)")
    bend_scale: float = Field(default=0.0, description="Path-length scale factor for bends (0 disables)")
    rcond: float = Field(default=1e-6, gt=0, lt=1, description="Relative singular-value cutoff")

    @field_validator('delta')
    @classmethod
    def validate_delta(cls, v):
        if isinstance(v, list):
            validate_matrix_size(v, 6, "delta")
            if any(d <= 0 for d in v):
                raise ValueError("Every finite-difference step must be positive")
        elif v <= 0:
            raise ValueError("Finite-difference step must be positive")
        return v

    @model_validator(mode='after')
    def validate_radiation_stepping(self):
        if self.rad_num_steps is not None and self.rad_step_size is not None:
            raise ValueError("rad_num_steps and rad_step_size are mutually exclusive")
        return self

    def delta_vector(self) -> np.ndarray:
        """Per-coordinate finite-difference steps as a length-6 array."""
        if isinstance(self.delta, list):
            return np.asarray(self.delta, dtype=float)
        return np.full(6, float(self.delta))

    @property
    def dimension(self) -> int:
        return 4 if self.transverse_only else 6


class AcceleratorSettings(PhysicsBaseModel):
    """Configuration of the accelerator facade and its channel patterns."""
    allow_incremental_tracking: bool = Field(default=False, description="Resume bunches from their cached location")
    monitor_x_pattern: str = Field(default="Monitor.*.X", description="Horizontal monitor channel pattern")
    monitor_y_pattern: str = Field(default="Monitor.*.Y", description="Vertical monitor channel pattern")
    corrector_x_pattern: str = Field(default="Kicker.*.HKICK", description="Horizontal corrector channel pattern")
    corrector_y_pattern: str = Field(default="Kicker.*.VKICK", description="Vertical corrector channel pattern")


class RunSettings(PhysicsBaseModel):
    """All settings of one run, as read from a YAML file."""
    beam: Optional[BeamData] = Field(default=None, description="Nominal beam")
    engine: EngineConfiguration = Field(default_factory=lambda: EngineConfiguration(name="matrix"))
    closed_orbit: ClosedOrbitSettings = Field(default_factory=ClosedOrbitSettings)
    accelerator: AcceleratorSettings = Field(default_factory=AcceleratorSettings)


def load_settings(path: Union[str, os.PathLike]) -> RunSettings:
    """
    Load run settings from a YAML file.

    The file may contain any of the top-level sections ``beam``, ``engine``,
    ``closed_orbit`` and ``accelerator``; missing sections take their defaults.

    Raises:
        ConfigurationError: If the file cannot be read or fails validation
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read settings file '{path}': {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file '{path}' is malformed: root should be a mapping")
    try:
        return RunSettings.from_dict(data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid settings in '{path}': {e}") from e


class SimulationError(Exception):
    """Base exception class for simulation errors."""
    pass


class LatticeConversionError(SimulationError):
    """Raised when lattice conversion fails."""
    pass


class TrackingError(SimulationError):
    """Raised when particle tracking fails."""
    pass


class ConfigurationError(SimulationError):
    """Raised when simulation configuration is invalid."""
    pass


class EngineNotConfigured(SimulationError):
    """Raised when tracking is requested before a tracking engine is attached."""
    pass


class InvalidSegment(SimulationError, ValueError):
    """Raised for an empty, inverted or out-of-range beamline segment."""
    pass


class ConvergenceFailure(SimulationError):
    """Raised when the closed-orbit iteration exhausts its budget.

    Attributes:
        residual: Squared norm of the last Newton update (``None`` if no pass was made)
        iterations: Number of Newton passes made
        guess: Last estimate of the closed orbit
    """

    def __init__(self, residual: Optional[float], iterations: int, guess=None):
        self.residual = residual
        self.iterations = iterations
        self.guess = guess
        super().__init__(
            f"Closed orbit not found after {iterations} iteration(s); last residual {residual}"
        )


class SingularJacobianWarning(UserWarning):
    """Issued when singular values of the closed-orbit Jacobian are discarded."""
    pass
