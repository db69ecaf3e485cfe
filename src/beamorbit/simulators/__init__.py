"""
beamorbit Tracking Engines Package.

This package provides the tracking engines used by the closed-orbit finder
and the accelerator facade, the physical-effect processes they apply, and
the configuration models and exceptions shared across beamorbit.

Key Components:
- BaseTrackingEngine: Abstract base class for all engines
- MatrixTrackingEngine: numpy transfer-matrix engine (always available)
- XSuiteTrackingEngine: XTrack-backed engine, in ``beamorbit.simulators.xsuite_interface``
  (requires xtrack, xpart and xobjects)
- SynchrotronRadiationProcess, PathLengthScaleProcess: processes applied per element

Example Usage:
    from beamorbit.simulators import MatrixTrackingEngine

    engine = MatrixTrackingEngine()
    engine.set_beamline(lattice.get_beamline())
    engine.set_initial_bunch(bunch)
    tracked = engine.track_bunch()
"""

from .types import (
    # Enums
    ParticleSpecies,

    # Configuration models
    EngineConfiguration,
    BeamData,
    ClosedOrbitSettings,
    AcceleratorSettings,
    RunSettings,
    load_settings,

    # Exceptions and warnings
    SimulationError,
    LatticeConversionError,
    TrackingError,
    ConfigurationError,
    EngineNotConfigured,
    InvalidSegment,
    ConvergenceFailure,
    SingularJacobianWarning,
)

from .processes import (
    ProcessKind,
    PhysicsProcess,
    SynchrotronRadiationProcess,
    PathLengthScaleProcess,
)

from .base import BaseTrackingEngine
from .matrix_engine import MatrixTrackingEngine

# Public API
__all__ = [
    # Engines
    "BaseTrackingEngine",
    "MatrixTrackingEngine",

    # Processes
    "ProcessKind",
    "PhysicsProcess",
    "SynchrotronRadiationProcess",
    "PathLengthScaleProcess",

    # Types and configuration
    "ParticleSpecies",
    "EngineConfiguration",
    "BeamData",
    "ClosedOrbitSettings",
    "AcceleratorSettings",
    "RunSettings",
    "load_settings",

    # Exceptions
    "SimulationError",
    "LatticeConversionError",
    "TrackingError",
    "ConfigurationError",
    "EngineNotConfigured",
    "InvalidSegment",
    "ConvergenceFailure",
    "SingularJacobianWarning",
]

# Initialize logging for the package
import logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
