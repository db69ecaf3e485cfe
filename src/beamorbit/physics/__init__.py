"""
beamorbit physics primitives - phase-space vectors, particle species and bunches
"""

from beamorbit.physics.phase_space import (
    PhaseSpaceVector,
    ParticleInfo,
    ELECTRON,
    PROTON,
    Bunch,
    COORDINATE_NAMES,
)

__all__ = [
    'PhaseSpaceVector',
    'ParticleInfo',
    'ELECTRON',
    'PROTON',
    'Bunch',
    'COORDINATE_NAMES',
]
