"""
Test suite for the closed-orbit finder.

Covers the Newton iteration on linear maps with a known fixed point, the
identity and drift maps with singular Jacobians, the iteration cap,
scoped radiation and path-length processes, and the RMS orbit.
"""

import warnings

import numpy as np
import pytest

from beamorbit.machine_portal.lattice import Lattice, create_element_by_type
from beamorbit.machine_portal.segment import Segment
from beamorbit.orbit.closed_orbit import ClosedOrbitFinder
from beamorbit.orbit.segment_selector import SegmentSelector
from beamorbit.physics.phase_space import ELECTRON, Bunch, PhaseSpaceVector
from beamorbit.simulators.matrix_engine import MatrixTrackingEngine
from beamorbit.simulators.processes import SynchrotronRadiationProcess
from beamorbit.simulators.types import (
    ClosedOrbitSettings,
    ConvergenceFailure,
    InvalidSegment,
    SingularJacobianWarning,
)

from conftest import build_fodo_ring, build_taylor_lattice


def one_element_lattice(element_type: str, name: str, length: float = 0.0) -> Lattice:
    lattice = Lattice(name="single")
    lattice.add_element(create_element_by_type(element_type, name, length=length))
    lattice.add_branch("main", [name])
    return lattice


class TestLinearMap:
    """Newton iteration on an affine map z -> R z + c."""

    def test_single_pass_reaches_fixed_point(self, linear_map):
        """One Newton pass lands on (I - R)^-1 c from an arbitrary guess."""
        matrix, offset = linear_map
        expected = np.linalg.solve(np.identity(6) - matrix, offset)

        finder = ClosedOrbitFinder(build_taylor_lattice(matrix, offset), momentum=1.0)
        finder.set_max_iterations(1)
        guess = PhaseSpaceVector(1e-5, 0.0, -1e-5, 0.0, 0.0, 0.0)
        with pytest.raises(ConvergenceFailure) as exc_info:
            finder.find_closed_orbit(guess)

        assert exc_info.value.iterations == 1
        np.testing.assert_allclose(np.asarray(exc_info.value.guess), expected, rtol=1e-9, atol=1e-15)

    def test_converges_to_fixed_point(self, linear_map):
        matrix, offset = linear_map
        expected = np.linalg.solve(np.identity(6) - matrix, offset)

        finder = ClosedOrbitFinder(build_taylor_lattice(matrix, offset), momentum=1.0,
                                   settings=ClosedOrbitSettings(tolerance=1e-20))
        orbit = finder.find_closed_orbit(PhaseSpaceVector())

        np.testing.assert_allclose(np.asarray(orbit), expected, rtol=1e-9, atol=1e-15)
        assert finder.last_result.converged
        assert finder.last_result.iterations == 2
        assert finder.last_result.residual <= 1e-20

    @pytest.mark.parametrize("delta", [1e-9, 1e-6])
    def test_independent_of_delta(self, linear_map, delta):
        matrix, offset = linear_map
        expected = np.linalg.solve(np.identity(6) - matrix, offset)

        finder = ClosedOrbitFinder(build_taylor_lattice(matrix, offset), momentum=1.0)
        finder.set_delta(delta)
        finder.set_tolerance(1e-20)
        orbit = finder.find_closed_orbit()

        np.testing.assert_allclose(np.asarray(orbit), expected, rtol=1e-9, atol=1e-15)

    def test_per_coordinate_delta(self, linear_map):
        matrix, offset = linear_map
        expected = np.linalg.solve(np.identity(6) - matrix, offset)

        finder = ClosedOrbitFinder(build_taylor_lattice(matrix, offset), momentum=1.0)
        finder.set_delta([1e-8, 1e-9, 1e-8, 1e-9, 1e-7, 1e-9])
        finder.set_tolerance(1e-20)
        orbit = finder.find_closed_orbit()

        np.testing.assert_allclose(np.asarray(orbit), expected, rtol=1e-9, atol=1e-15)

    def test_guess_already_on_orbit(self, linear_map):
        """Starting on the fixed point converges within a single pass."""
        matrix, offset = linear_map
        expected = np.linalg.solve(np.identity(6) - matrix, offset)

        finder = ClosedOrbitFinder(build_taylor_lattice(matrix, offset), momentum=1.0,
                                   settings=ClosedOrbitSettings(tolerance=1e-20, max_iterations=1))
        orbit = finder.find_closed_orbit(PhaseSpaceVector.from_array(expected))

        assert finder.last_result.iterations == 1
        np.testing.assert_allclose(np.asarray(orbit), expected, rtol=1e-9, atol=1e-15)


class TestDegenerateMaps:
    """Identity and drift maps, whose Jacobians are singular."""

    def test_identity_map_returns_guess(self):
        finder = ClosedOrbitFinder(one_element_lattice("Marker", "M"), momentum=1.0)
        guess = PhaseSpaceVector(1e-3, -2e-4, 3e-4, 0.0, 1e-3, 1e-4)

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", SingularJacobianWarning)
            orbit = finder.find_closed_orbit(guess)

        assert orbit == guess
        assert finder.last_result.residual == 0.0
        assert finder.last_result.iterations == 1

    def test_identity_map_jacobian_is_zero(self):
        """I - M vanishes for the identity map, so every singular value is dropped."""
        finder = ClosedOrbitFinder(one_element_lattice("Marker", "M"), momentum=1.0)
        with pytest.warns(SingularJacobianWarning, match="6 singular value"):
            orbit = finder.find_closed_orbit(PhaseSpaceVector())
        assert orbit == PhaseSpaceVector()
        assert finder.last_result.singular

    def test_drift_toy_map(self):
        """(x, x') -> (x + 0.1 x', x') has the fixed points x' = 0; the minimum-norm step removes x'."""
        finder = ClosedOrbitFinder(one_element_lattice("Drift", "D", length=0.1), momentum=1.0)
        finder.set_transverse_only(True)
        finder.set_tolerance(1e-12)
        finder.set_max_iterations(20)
        finder.set_delta(1e-9)

        with pytest.warns(SingularJacobianWarning):
            orbit = finder.find_closed_orbit(PhaseSpaceVector(0.0, 1e-3, 0.0, -2e-3, 0.0, 0.0))

        np.testing.assert_allclose(np.asarray(orbit)[:4], [0.0, 0.0, 0.0, 0.0], atol=1e-12)
        assert finder.last_result.converged
        assert finder.last_result.singular

    def test_singular_warning_issued_once(self):
        finder = ClosedOrbitFinder(one_element_lattice("Drift", "D", length=0.1), momentum=1.0,
                                   settings=ClosedOrbitSettings(transverse_only=True, tolerance=1e-12))
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            finder.find_closed_orbit(PhaseSpaceVector(0.0, 1e-3, 0.0, -2e-3, 0.0, 0.0))

        assert finder.last_result.iterations > 1
        assert sum(issubclass(w.category, SingularJacobianWarning) for w in caught) == 1

    def test_drift_toy_map_on_fixed_point(self):
        finder = ClosedOrbitFinder(one_element_lattice("Drift", "D", length=0.1), momentum=1.0,
                                   settings=ClosedOrbitSettings(transverse_only=True, tolerance=1e-12))
        with pytest.warns(SingularJacobianWarning):
            orbit = finder.find_closed_orbit(PhaseSpaceVector())

        assert finder.last_result.iterations == 1
        assert orbit == PhaseSpaceVector()


class TestIterationCap:
    """max_iterations is a hard cap and failure is always reported."""

    def test_zero_iterations_fails_immediately(self, linear_map):
        finder = ClosedOrbitFinder(build_taylor_lattice(*linear_map), momentum=1.0)
        finder.set_max_iterations(0)
        with pytest.raises(ConvergenceFailure) as exc_info:
            finder.find_closed_orbit()
        assert exc_info.value.iterations == 0
        assert exc_info.value.residual is None
        assert not finder.last_result.converged

    def test_failure_carries_residual(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0,
                                   settings=ClosedOrbitSettings(transverse_only=True, max_iterations=1))
        guess = PhaseSpaceVector(1e-3, 0.0, 1e-3, 0.0, 0.0, 0.0)
        with pytest.raises(ConvergenceFailure) as exc_info:
            finder.find_closed_orbit(guess)
        assert exc_info.value.iterations == 1
        assert exc_info.value.residual > finder.settings.tolerance


class TestRingOrbits:
    """Closed orbits of a FODO ring tracked with the matrix engine."""

    def test_on_momentum_orbit_is_zero(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0)
        finder.set_transverse_only(True)
        orbit = finder.find_closed_orbit(PhaseSpaceVector(1e-3, 0.0, -1e-3, 0.0, 0.0, 0.0))
        np.testing.assert_allclose(np.asarray(orbit)[:4], 0.0, atol=1e-12)

    def test_kicked_orbit_is_periodic(self, fodo_ring):
        fodo_ring.get_element("COR_1").add_parameter("KickerP", "hkick", 1e-4)
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0,
                                   settings=ClosedOrbitSettings(transverse_only=True, tolerance=1e-24))
        orbit = finder.find_closed_orbit()
        assert abs(orbit.x) > 1e-6

        engine = MatrixTrackingEngine()
        engine.set_beamline(fodo_ring.get_beamline())
        turn = engine.track_this_bunch(Bunch.proton(10.0, [orbit]))
        np.testing.assert_allclose(turn.coordinates[0, :4], np.asarray(orbit)[:4], atol=1e-11)

    def test_off_momentum_orbit_follows_dispersion(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0,
                                   settings=ClosedOrbitSettings(transverse_only=True, tolerance=1e-24))
        small = finder.find_closed_orbit(PhaseSpaceVector(dp=1e-4))
        large = finder.find_closed_orbit(PhaseSpaceVector(dp=2e-4))
        assert small.dp == 1e-4
        assert small.x != 0.0
        assert large.x == pytest.approx(2 * small.x, rel=1e-3)

    def test_orbit_at_ring_position(self, fodo_ring):
        """The turn starting at element 12 closes on the start orbit carried through [0, 11]."""
        fodo_ring.get_element("COR_1").add_parameter("KickerP", "hkick", 1e-4)
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0,
                                   settings=ClosedOrbitSettings(transverse_only=True, tolerance=1e-24))
        at_start = finder.find_closed_orbit()
        at_bpm = finder.find_closed_orbit(start=12)

        engine = MatrixTrackingEngine()
        engine.set_beamline(fodo_ring.get_beamline(0, 11))
        carried = engine.track_this_bunch(Bunch.proton(10.0, [at_start])).first_particle()
        np.testing.assert_allclose(np.asarray(at_bpm)[:4], np.asarray(carried)[:4], atol=1e-11)

    def test_ring_start_zero_is_whole_ring(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0,
                                   settings=ClosedOrbitSettings(transverse_only=True))
        guess = PhaseSpaceVector(1e-3, 0.0, -1e-3, 0.0, 0.0, 0.0)
        assert finder.find_closed_orbit(guess, start=0) == finder.find_closed_orbit(guess)

    def test_invalid_ring_start(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0)
        with pytest.raises(InvalidSegment):
            finder.find_closed_orbit(PhaseSpaceVector(), start=30)
        with pytest.raises(InvalidSegment):
            finder.find_closed_orbit(PhaseSpaceVector(), start=-1)
        with pytest.raises(ValueError, match="either"):
            finder.find_closed_orbit(PhaseSpaceVector(), (0, 9), start=3)

    def test_monitor_readings_kept(self, fodo_ring):
        engine = MatrixTrackingEngine()
        engine.set_beamline(fodo_ring.get_beamline())
        engine.track_this_bunch(Bunch.proton(10.0, [PhaseSpaceVector(x=1e-4)]))
        monitor = fodo_ring.get_element("BPM_2")
        reading = monitor.reading

        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0, engine=engine,
                                   settings=ClosedOrbitSettings(transverse_only=True))
        finder.find_closed_orbit(PhaseSpaceVector(1e-3, 0.0, 0.0, 0.0, 0.0, 0.0))
        finder.find_rms_orbit(PhaseSpaceVector(x=1e-3))
        assert monitor.reading == reading
        assert engine.record_monitors

    def test_segment_and_selector(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0,
                                   settings=ClosedOrbitSettings(transverse_only=True))
        selector = SegmentSelector(fodo_ring, Segment(0, 9))
        from_selector = finder.find_closed_orbit(PhaseSpaceVector(), selector)
        from_pair = finder.find_closed_orbit(PhaseSpaceVector(), (0, 9))
        assert from_selector == from_pair

    def test_invalid_segment(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=10.0)
        with pytest.raises(InvalidSegment):
            finder.find_closed_orbit(PhaseSpaceVector(), (0, 100))
        with pytest.raises(InvalidSegment):
            finder.find_closed_orbit(PhaseSpaceVector(), (5, 2))


class TestScopedProcesses:
    """Radiation and path-length processes exist only during a solve."""

    def test_processes_removed_after_success(self, fodo_ring):
        engine = MatrixTrackingEngine()
        finder = ClosedOrbitFinder(fodo_ring, momentum=3.0, engine=engine, particle=ELECTRON)
        finder.set_transverse_only(True)
        finder.set_radiation(True)
        finder.scale_bend_path_length(1.0)

        finder.find_closed_orbit()
        assert engine.processes == ()

    def test_processes_removed_after_failure(self, fodo_ring):
        engine = MatrixTrackingEngine()
        finder = ClosedOrbitFinder(fodo_ring, momentum=3.0, engine=engine, particle=ELECTRON)
        finder.set_transverse_only(True)
        finder.set_radiation(True)
        finder.scale_bend_path_length(0.5)
        finder.set_max_iterations(1)

        with pytest.raises(ConvergenceFailure):
            finder.find_closed_orbit(PhaseSpaceVector(1e-3, 0.0, 0.0, 0.0, 0.0, 0.0))
        assert engine.processes == ()

    def test_user_processes_persist(self, fodo_ring):
        engine = MatrixTrackingEngine()
        finder = ClosedOrbitFinder(fodo_ring, momentum=3.0, engine=engine, particle=ELECTRON)
        finder.set_transverse_only(True)
        process = SynchrotronRadiationProcess()
        finder.add_process(process)

        finder.find_closed_orbit()
        assert engine.processes == (process,)
        assert finder.remove_process(process)
        assert engine.processes == ()

    def test_radiation_shifts_orbit(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=3.0, particle=ELECTRON,
                                   settings=ClosedOrbitSettings(transverse_only=True, tolerance=1e-24))
        plain = finder.find_closed_orbit()
        finder.set_radiation(True)
        radiating = finder.find_closed_orbit()
        assert radiating.x != plain.x

    def test_radiation_step_settings_reset_each_other(self, fodo_ring):
        finder = ClosedOrbitFinder(fodo_ring, momentum=3.0)
        finder.set_rad_step_size(0.1)
        assert finder.settings.rad_num_steps is None
        finder.set_rad_num_steps(4)
        assert finder.settings.rad_step_size is None
        assert finder.settings.rad_num_steps == 4
        finder.set_radiation(True)
        assert finder.settings.rad_num_steps == 1


class TestRMSOrbit:
    """Trapezoid-rule RMS excursion of a single particle."""

    def test_constant_offset(self):
        finder = ClosedOrbitFinder(one_element_lattice("Drift", "D", length=2.0), momentum=1.0)
        rms = finder.find_rms_orbit(PhaseSpaceVector(x=1e-3))
        assert rms.x == pytest.approx(1e-3)
        assert rms.xp == 0.0

    def test_linear_excursion(self):
        finder = ClosedOrbitFinder(one_element_lattice("Drift", "D", length=1.0), momentum=1.0)
        rms = finder.find_rms_orbit(PhaseSpaceVector(xp=1e-3))
        assert rms.x == pytest.approx(5e-4)
        assert rms.xp == pytest.approx(1e-3)

    def test_zero_length_beamline(self):
        finder = ClosedOrbitFinder(one_element_lattice("Marker", "M"), momentum=1.0)
        with pytest.raises(InvalidSegment):
            finder.find_rms_orbit(PhaseSpaceVector(x=1e-3))

    def test_empty_beamline(self):
        finder = ClosedOrbitFinder(Lattice(name="empty"), momentum=1.0)
        with pytest.raises(InvalidSegment):
            finder.find_rms_orbit(PhaseSpaceVector())
