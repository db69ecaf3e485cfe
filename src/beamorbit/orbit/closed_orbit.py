"""
Closed-orbit finder.

The closed orbit is the fixed point of the one-pass map of a ring (or of a
beamline segment). It is found by Newton iteration: the Jacobian of the map
is estimated by finite differences from a probe bunch (one reference
particle plus one particle displaced along each solved coordinate), and the
Newton step is taken with a truncated-SVD pseudo-inverse so that maps close
to the identity in some direction still give a bounded update.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Union
import logging
import warnings

import numpy as np

from ..machine_portal.lattice import Lattice
from ..machine_portal.segment import Segment
from ..physics.phase_space import Bunch, ParticleInfo, PhaseSpaceVector, PROTON
from ..simulators.base import BaseTrackingEngine
from ..simulators.matrix_engine import MatrixTrackingEngine
from ..simulators.processes import (
    PathLengthScaleProcess,
    PhysicsProcess,
    SynchrotronRadiationProcess,
)
from ..simulators.types import (
    ClosedOrbitSettings,
    ConvergenceFailure,
    InvalidSegment,
    SingularJacobianWarning,
)
from ..utilities.numerics import rms_from_integral, svd_solve, trapezoid_square

logger = logging.getLogger(__name__)


@dataclass
class ClosedOrbitResult:
    """Outcome of the last ``find_closed_orbit`` call."""
    orbit: PhaseSpaceVector
    iterations: int
    residual: Optional[float]
    converged: bool
    singular: bool = False


class ClosedOrbitFinder:
    """
    Newton solver for the closed orbit of a lattice.

    Args:
        model: Lattice whose beamline (or a segment of it) is tracked
        momentum: Reference momentum in GeV/c
        engine: Tracking engine; a MatrixTrackingEngine when omitted
        settings: Iteration settings; defaults when omitted
        particle: Particle species of the probe bunch

    Example:
        >>> finder = ClosedOrbitFinder(ring, momentum=7000.0)
        >>> finder.set_transverse_only(True)
        >>> orbit = finder.find_closed_orbit(PhaseSpaceVector())
    """

    def __init__(self, model: Lattice, momentum: float,
                 engine: Optional[BaseTrackingEngine] = None,
                 settings: Optional[ClosedOrbitSettings] = None,
                 particle: ParticleInfo = PROTON):
        if momentum <= 0:
            raise ValueError(f"Reference momentum must be positive, got {momentum}")
        self.model = model
        self.momentum = momentum
        self.particle = particle
        self.engine = engine or MatrixTrackingEngine()
        self.settings = settings.model_copy() if settings is not None else ClosedOrbitSettings()
        self.last_result: Optional[ClosedOrbitResult] = None

    # === Configuration ===

    def set_transverse_only(self, flag: bool):
        self.settings.transverse_only = flag

    def set_radiation(self, flag: bool):
        """Switch mean synchrotron radiation on or off; switching on resets to one step per element."""
        self.settings.radiation = flag
        if flag:
            self.set_rad_num_steps(1)

    def set_delta(self, delta: Union[float, Sequence[float]]):
        """Finite-difference step, one value or six per-coordinate values."""
        if isinstance(delta, (int, float)):
            self.settings.delta = float(delta)
        else:
            self.settings.delta = [float(d) for d in delta]

    def set_tolerance(self, tolerance: float):
        self.settings.tolerance = tolerance

    def set_max_iterations(self, max_iterations: int):
        self.settings.max_iterations = max_iterations

    def set_rad_step_size(self, step_size: float):
        self.settings.rad_num_steps = None
        self.settings.rad_step_size = step_size

    def set_rad_num_steps(self, num_steps: int):
        self.settings.rad_step_size = None
        self.settings.rad_num_steps = num_steps

    def scale_bend_path_length(self, scale: float):
        """Attach a bend path-length scale process while solving; 0 disables it."""
        self.settings.bend_scale = scale

    def add_process(self, process: PhysicsProcess):
        """Register a process on the engine for this and all later calls."""
        self.engine.add_process(process)

    def remove_process(self, process: PhysicsProcess) -> bool:
        return self.engine.remove_process(process)

    # === Closed orbit ===

    def _temporary_processes(self) -> List[PhysicsProcess]:
        processes: List[PhysicsProcess] = []
        if self.settings.radiation:
            if self.settings.rad_step_size is not None:
                processes.append(SynchrotronRadiationProcess(priority=1, max_step_size=self.settings.rad_step_size))
            else:
                processes.append(SynchrotronRadiationProcess(priority=1, num_steps=self.settings.rad_num_steps or 1))
        if self.settings.bend_scale != 0:
            processes.append(PathLengthScaleProcess(self.settings.bend_scale, priority=2))
        return processes

    @contextmanager
    def _scoped_processes(self) -> Iterator[List[PhysicsProcess]]:
        """Attach the radiation and path-length processes for the duration of one solve."""
        attached: List[PhysicsProcess] = []
        try:
            for process in self._temporary_processes():
                self.engine.add_process(process)
                attached.append(process)
            yield attached
        finally:
            for process in attached:
                self.engine.remove_process(process)

    def _resolve_segment(self, segment) -> Segment:
        if segment is None:
            return Segment.whole(self.model)
        if isinstance(segment, Segment):
            return segment
        if hasattr(segment, 'active_segment'):
            return segment.active_segment
        first, last = segment
        return Segment(first, last)

    def _beamline_for(self, segment, start: Optional[int]):
        if start is not None:
            if segment is not None:
                raise ValueError("Give either a segment or a ring start, not both")
            return f"turn from element {start}", self.model.get_ring(start)
        segment = self._resolve_segment(segment)
        return str(segment), self.model.get_beamline(segment.first, segment.last)

    def find_closed_orbit(self, initial_guess: Optional[PhaseSpaceVector] = None,
                          segment=None, start: Optional[int] = None) -> PhaseSpaceVector:
        """
        Find the fixed point of the one-pass map through ``segment``.

        With ``start`` the map is one full turn of the ring beginning and ending
        at element ``start``, which gives the closed orbit at that element. Monitor
        readings are left untouched by the probe bunches.

        Args:
            initial_guess: Starting point of the iteration; the origin when omitted.
                With ``transverse_only`` its ``ct`` and ``dp`` are held fixed.
            segment: A Segment, a ``(first, last)`` pair, a SegmentSelector (its
                active segment is used) or None for the whole beamline
            start: Ring element at which to find the orbit; excludes ``segment``

        Returns:
            The closed orbit

        Raises:
            ConvergenceFailure: If ``max_iterations`` passes leave the squared
                update norm above ``tolerance``
            InvalidSegment: If the segment or ring start is not part of the beamline
        """
        label, beamline = self._beamline_for(segment, start)
        self.engine.set_beamline(beamline)

        settings = self.settings
        cpt = settings.dimension
        steps = settings.delta_vector()[:cpt]
        identity = np.identity(cpt)

        guess = np.zeros(6) if initial_guess is None else np.asarray(initial_guess, dtype=float).copy()
        residual: Optional[float] = None
        iteration = 0
        max_dropped = 0

        logger.debug(f"Finding closed orbit through {label} ({cpt} coordinates)")
        with self._scoped_processes(), self.engine.monitors_suspended():
            while iteration < settings.max_iterations:
                # Particle 0 is the reference ray; particle k+1 is displaced along coordinate k
                probe = np.tile(guess, (cpt + 1, 1))
                probe[1:, :cpt] += np.diag(steps)
                tracked = self.engine.track_this_bunch(Bunch(self.momentum, probe, particle=self.particle))
                z = tracked.coordinates

                dg = ((z[1:, :cpt] - z[0, :cpt]) / steps[:, np.newaxis]).T - identity
                g = z[0, :cpt] - guess[:cpt]

                update, n_dropped = svd_solve(dg, g, settings.rcond)
                max_dropped = max(max_dropped, n_dropped)

                guess[:cpt] -= update
                residual = float(np.dot(update, update))
                iteration += 1
                logger.debug(f"Iteration {iteration}: residual {residual:.3e}")

                if residual <= settings.tolerance:
                    break

        if max_dropped:
            warnings.warn(
                f"Closed-orbit Jacobian has {max_dropped} singular value(s) below "
                f"rcond={settings.rcond}; using the pseudo-inverse update",
                SingularJacobianWarning,
                stacklevel=2,
            )

        orbit = PhaseSpaceVector.from_array(guess)
        converged = residual is not None and residual <= settings.tolerance
        self.last_result = ClosedOrbitResult(orbit=orbit, iterations=iteration, residual=residual,
                                              converged=converged, singular=bool(max_dropped))
        if not converged:
            logger.warning(f"Closed orbit not converged after {iteration} iteration(s), residual {residual}")
            raise ConvergenceFailure(residual, iteration, orbit)

        logger.info(f"Closed orbit found in {iteration} iteration(s), residual {residual:.3e}")
        return orbit

    def find_rms_orbit(self, particle: Optional[PhaseSpaceVector] = None) -> PhaseSpaceVector:
        """
        RMS excursion of a single particle along the whole beamline.

        The particle is stepped element by element, and for each coordinate the
        integral of its square over path length is accumulated with the
        trapezoid rule; the result is ``sqrt(integral / total_length)``.

        Raises:
            InvalidSegment: If the beamline is empty or has zero length
        """
        beamline = self.model.get_beamline()
        total_length = beamline.get_total_length()
        if total_length <= 0.0:
            raise InvalidSegment(f"Beamline of '{self.model.name}' has zero length")
        self.engine.set_beamline(beamline)

        start = np.zeros(6) if particle is None else np.asarray(particle, dtype=float)
        bunch = Bunch(self.momentum, start[np.newaxis, :], particle=self.particle)
        self.engine.init_stepper(bunch)

        integral = np.zeros(6)
        previous = start.copy()
        with self.engine.monitors_suspended():
            while self.engine.step_component():
                current = self.engine.tracked_bunch.first_particle().to_array()
                integral += trapezoid_square(previous, current, self.engine.current_component.length)
                previous = current

        return PhaseSpaceVector.from_array(rms_from_integral(integral, total_length))
