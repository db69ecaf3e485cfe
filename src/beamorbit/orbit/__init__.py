"""
beamorbit Orbit Package - closed-orbit finding and incremental bunch tracking
"""

from beamorbit.orbit.closed_orbit import ClosedOrbitFinder, ClosedOrbitResult
from beamorbit.orbit.segment_selector import SegmentSelector
from beamorbit.orbit.accelerator import Accelerator, CachedBunch, ReferenceParticle, Plane

__all__ = [
    'ClosedOrbitFinder',
    'ClosedOrbitResult',
    'SegmentSelector',
    'Accelerator',
    'CachedBunch',
    'ReferenceParticle',
    'Plane',
]
