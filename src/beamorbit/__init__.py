"""
beamorbit - closed orbits and incremental bunch tracking for accelerator lattices

A modular framework built around a lattice model, interchangeable tracking
engines, a Newton closed-orbit finder and an accelerator facade that caches
bunches between successive beamline segments.
"""

from .physics import PhaseSpaceVector, Bunch, ParticleInfo, ELECTRON, PROTON
from .machine_portal import Lattice, Segment
from .simulators import (
    MatrixTrackingEngine,
    BeamData,
    ClosedOrbitSettings,
    AcceleratorSettings,
    load_settings,
    SimulationError,
    ConvergenceFailure,
    InvalidSegment,
    EngineNotConfigured,
    SingularJacobianWarning,
)
from .orbit import ClosedOrbitFinder, SegmentSelector, Accelerator

__version__ = "0.1.0"

__all__ = [
    'PhaseSpaceVector',
    'Bunch',
    'ParticleInfo',
    'ELECTRON',
    'PROTON',
    'Lattice',
    'Segment',
    'MatrixTrackingEngine',
    'BeamData',
    'ClosedOrbitSettings',
    'AcceleratorSettings',
    'load_settings',
    'SimulationError',
    'ConvergenceFailure',
    'InvalidSegment',
    'EngineNotConfigured',
    'SingularJacobianWarning',
    'ClosedOrbitFinder',
    'SegmentSelector',
    'Accelerator',
]

import logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
