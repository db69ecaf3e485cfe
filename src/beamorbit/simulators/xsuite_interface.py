"""
XSuite tracking engine interface for beamorbit.

Tracks bunches element by element through single-element XTrack lines, so
the engine supports the same stepping, process and monitor behaviour as the
matrix engine. Available only when xtrack, xpart and xobjects are installed.
"""

import math
import numpy as np
from typing import Any, Dict, List, Optional, Tuple
import logging

# Import XSuite packages (handled gracefully if not available)
try:
    import xtrack as xt
    import xpart as xp
    import xobjects as xo
    XSUITE_AVAILABLE = True
except ImportError:
    xt = None
    xp = None
    xo = None
    XSUITE_AVAILABLE = False

from ..physics.phase_space import Bunch
from .base import BaseTrackingEngine
from .types import EngineConfiguration, LatticeConversionError, TrackingError

logger = logging.getLogger(__name__)


class XSuiteTrackingEngine(BaseTrackingEngine):
    """
    XSuite implementation of the base tracking engine.

    Each element is converted once to a small XTrack line and cached; the
    cache entry is rebuilt when the element parameters change (for example
    after a corrector channel write). Coordinates are exchanged as
    ``px = xp (1 + dp)``, ``zeta = ct`` and ``delta = dp``.
    """

    def __init__(self, config: Optional[EngineConfiguration] = None):
        if not XSUITE_AVAILABLE:
            raise ImportError("XSuite packages not available. Please install xtrack, xpart, and xobjects.")
        super().__init__(config or EngineConfiguration(name="xsuite"))
        self.context = xo.ContextCpu()
        self._lines: Dict[str, Tuple[str, Any]] = {}  # {element name: (parameter snapshot, xt.Line)}
        self.logger.info("XSuite tracking engine initialized")

    @property
    def available(self) -> bool:
        return XSUITE_AVAILABLE

    def clear_converted_elements(self):
        """Clear the cached element lines."""
        self._lines.clear()
        self.logger.debug("Cleared cached element lines")

    def track_element(self, bunch: Bunch, element) -> None:
        line = self._get_line(element)
        if line is None:
            return

        z = bunch.coordinates
        one_plus_dp = 1.0 + z[:, 5]
        particles = xp.Particles(
            _context=self.context,
            p0c=bunch.momentum * 1e9,
            mass0=bunch.particle.mass * 1e9,
            q0=bunch.particle.charge,
            x=z[:, 0].copy(),
            px=z[:, 1] * one_plus_dp,
            y=z[:, 2].copy(),
            py=z[:, 3] * one_plus_dp,
            zeta=z[:, 4].copy(),
            delta=z[:, 5].copy(),
        )
        try:
            line.track(particles)
        except Exception as e:
            raise TrackingError(f"XTrack failed in element '{element.name}': {e}") from e

        order = np.argsort(np.asarray(particles.particle_id))
        state = np.asarray(particles.state)[order]
        if np.any(state <= 0):
            raise TrackingError(f"{int(np.sum(state <= 0))} particle(s) lost in element '{element.name}'")

        delta = np.asarray(particles.delta)[order]
        z[:, 0] = np.asarray(particles.x)[order]
        z[:, 1] = np.asarray(particles.px)[order] / (1.0 + delta)
        z[:, 2] = np.asarray(particles.y)[order]
        z[:, 3] = np.asarray(particles.py)[order] / (1.0 + delta)
        z[:, 4] = np.asarray(particles.zeta)[order]
        z[:, 5] = delta

    def _get_line(self, element):
        snapshot = repr(element.to_yaml_dict())
        cached = self._lines.get(element.name)
        if cached is not None and cached[0] == snapshot:
            return cached[1]

        xt_elements, names = self._convert_element(element)
        if not xt_elements:
            self._lines[element.name] = (snapshot, None)
            return None
        line = xt.Line(elements=xt_elements, element_names=names)
        line.build_tracker(_context=self.context)
        self._lines[element.name] = (snapshot, line)
        return line

    def _convert_element(self, element) -> Tuple[List[Any], List[str]]:
        """Convert an element to a list of XTrack elements and their names."""
        name = element.name
        length = element.length
        element_type = element.type
        try:
            if element_type in ('Drift', 'Monitor'):
                return [xt.Drift(length=length)], [name]

            if element_type == 'Marker':
                return [], []

            if element_type == 'Quadrupole':
                k1 = element.get_float("MagneticMultipoleP", "kn1")
                if length == 0.0:
                    return [xt.Multipole(knl=[0.0, k1])], [name]
                return [xt.Quadrupole(length=length, k1=k1)], [name]

            if element_type == 'Bend':
                h = element.get_float("BendP", "angle") / length
                return [xt.Bend(length=length, k0=h, h=h)], [name]

            if element_type == 'Kicker':
                kick = xt.Multipole(knl=[-element.get_float("KickerP", "hkick")],
                                    ksl=[element.get_float("KickerP", "vkick")])
                return self._wrap_thin(kick, name, length)

            if element_type == 'RFCavity':
                cavity = xt.Cavity(voltage=element.get_float("RFP", "voltage"),
                                   frequency=element.get_float("RFP", "freq"),
                                   lag=math.degrees(element.get_float("RFP", "phase")))
                return self._wrap_thin(cavity, name, length)

            if element_type == 'TaylorMap':
                return [xt.FirstOrderTaylorMap(length=0.0, m0=element.offset, m1=element.matrix)], [name]

        except Exception as e:
            raise LatticeConversionError(f"Failed to convert element '{name}': {e}") from e

        raise LatticeConversionError(f"Element type '{element_type}' of '{name}' has no XTrack equivalent")

    @staticmethod
    def _wrap_thin(thin_element, name: str, length: float) -> Tuple[List[Any], List[str]]:
        if length == 0.0:
            return [thin_element], [name]
        half = length / 2.0
        return ([xt.Drift(length=half), thin_element, xt.Drift(length=half)],
                [f"{name}_upstream", name, f"{name}_downstream"])
