"""
beamorbit Machine Portal - Lattice modeling, element definitions and channels
"""

from beamorbit.machine_portal.element import Element
from beamorbit.machine_portal.parameter_group import ParameterGroup
from beamorbit.machine_portal.drift import Drift
from beamorbit.machine_portal.bend import Bend
from beamorbit.machine_portal.quadrupole import Quadrupole
from beamorbit.machine_portal.kicker import Kicker
from beamorbit.machine_portal.monitor import Monitor
from beamorbit.machine_portal.marker import Marker
from beamorbit.machine_portal.rfcavity import RFCavity
from beamorbit.machine_portal.taylor_map import TaylorMap
from beamorbit.machine_portal.channels import ROChannel, RWChannel
from beamorbit.machine_portal.segment import Segment
from beamorbit.machine_portal.lattice import Lattice, Beamline, create_element_by_type

__all__ = [
    'Element',
    'ParameterGroup',
    'Drift',
    'Bend',
    'Quadrupole',
    'Kicker',
    'Monitor',
    'Marker',
    'RFCavity',
    'TaylorMap',
    'ROChannel',
    'RWChannel',
    'Segment',
    'Lattice',
    'Beamline',
    'create_element_by_type',
]
