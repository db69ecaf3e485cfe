"""
Shared lattice builders for the beamorbit test suite.
"""

import numpy as np
import pytest

from beamorbit.machine_portal.lattice import Lattice, create_element_by_type


def build_fodo_ring(n_cells: int = 3, kn1: float = 0.5, angle: float = 0.05) -> Lattice:
    """FODO ring of ``n_cells`` ten-element cells: QF D BPM B D QD D COR B D."""
    lattice = Lattice(name="FODORing")

    qf = create_element_by_type("Quadrupole", "QF", length=0.5)
    qf.add_parameter("MagneticMultipoleP", "kn1", kn1)
    qd = create_element_by_type("Quadrupole", "QD", length=0.5)
    qd.add_parameter("MagneticMultipoleP", "kn1", -kn1)
    bend = create_element_by_type("Bend", "B", length=2.0)
    bend.add_parameter("BendP", "angle", angle)
    cor = create_element_by_type("Kicker", "COR", length=0.2)
    cor.add_parameter("KickerP", "hkick", 0.0)
    cor.add_parameter("KickerP", "vkick", 0.0)

    for element in (qf, qd, bend, cor,
                    create_element_by_type("Drift", "D", length=1.0),
                    create_element_by_type("Monitor", "BPM")):
        lattice.add_element(element)

    lattice.add_branch("ring", branch_type="ring")
    for _ in range(n_cells):
        for name in ("QF", "D", "BPM", "B", "D", "QD", "D", "COR", "B", "D"):
            lattice.add_element_to_branch("ring", name)
    return lattice


def build_taylor_lattice(matrix, offset) -> Lattice:
    """One-element lattice whose map is ``z -> matrix z + offset``."""
    lattice = Lattice(name="TaylorLattice")
    element = create_element_by_type("TaylorMap", "M")
    element.set_map(matrix, offset)
    lattice.add_element(element)
    lattice.add_branch("ring", ["M"], branch_type="ring")
    return lattice


def rotation(mu: float) -> np.ndarray:
    return np.array([[np.cos(mu), np.sin(mu)], [-np.sin(mu), np.cos(mu)]])


@pytest.fixture
def fodo_ring():
    return build_fodo_ring()


@pytest.fixture
def linear_map():
    """A 6x6 map with no eigenvalue at 1 and its offset."""
    matrix = np.zeros((6, 6))
    matrix[0:2, 0:2] = rotation(2 * np.pi * 0.23)
    matrix[2:4, 2:4] = rotation(2 * np.pi * 0.31)
    matrix[4:6, 4:6] = [[1.0, 0.1], [-0.05, 0.9]]
    matrix[0, 5] = 0.8
    matrix[1, 5] = 0.02
    offset = np.array([1e-6, -2e-7, 5e-7, 1e-7, 2e-7, -1e-8])
    return matrix, offset
