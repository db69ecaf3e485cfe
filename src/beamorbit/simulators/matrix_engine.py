"""
Transfer-matrix tracking engine.

Tracks bunches element by element with first-order maps evaluated on the
whole ``N x 6`` coordinate array at once. Focusing strengths are scaled by
``1 / (1 + dp)`` per particle, so the maps are chromatic; everything else is
linear in the coordinates.

Element models:
- Drift, Monitor: field-free drift
- Marker: identity
- Quadrupole: thick quadrupole (thin lens when the length is zero)
- Bend: horizontal sector bend with dispersion and path length; drift vertically
- Kicker: thin kick between two half drifts
- RFCavity: thin energy kick ``V sin(phase - 2 pi f ct / c)``
- TaylorMap: ``z -> R z + c``
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional
import math

import numpy as np

from ..physics.phase_space import Bunch
from .base import BaseTrackingEngine
from .types import EngineConfiguration, TrackingError

if TYPE_CHECKING:
    from ..machine_portal.element import Element

SPEED_OF_LIGHT = 299792458.0


def _drift(z: np.ndarray, length: float):
    z[:, 0] += length * z[:, 1]
    z[:, 2] += length * z[:, 3]


def _focusing_terms(k: np.ndarray, length: float):
    """Per-particle (C, S, C', S') of the solution of ``u'' + k u = 0``."""
    root = np.sqrt(np.abs(k))
    phi = root * length
    focusing = k > 0
    defocusing = k < 0

    c = np.ones_like(k)
    s = np.full_like(k, length)
    cp = np.zeros_like(k)
    sp = np.ones_like(k)

    c[focusing] = np.cos(phi[focusing])
    s[focusing] = np.sin(phi[focusing]) / root[focusing]
    cp[focusing] = -root[focusing] * np.sin(phi[focusing])
    sp[focusing] = np.cos(phi[focusing])

    c[defocusing] = np.cosh(phi[defocusing])
    s[defocusing] = np.sinh(phi[defocusing]) / root[defocusing]
    cp[defocusing] = root[defocusing] * np.sinh(phi[defocusing])
    sp[defocusing] = np.cosh(phi[defocusing])
    return c, s, cp, sp


def _apply_plane(z: np.ndarray, i: int, k: np.ndarray, length: float):
    c, s, cp, sp = _focusing_terms(k, length)
    u = z[:, i].copy()
    up = z[:, i + 1].copy()
    z[:, i] = c * u + s * up
    z[:, i + 1] = cp * u + sp * up


class MatrixTrackingEngine(BaseTrackingEngine):
    """
    Pure numpy tracking engine.

    Always available; used as the default engine of the accelerator facade
    and the closed-orbit finder.
    """

    def __init__(self, config: Optional[EngineConfiguration] = None):
        super().__init__(config or EngineConfiguration(name="matrix"))
        self._trackers = {
            'Drift': self._track_drift,
            'Monitor': self._track_drift,
            'Marker': self._track_marker,
            'Quadrupole': self._track_quadrupole,
            'Bend': self._track_bend,
            'Kicker': self._track_kicker,
            'RFCavity': self._track_rfcavity,
            'TaylorMap': self._track_taylor_map,
        }

    @property
    def available(self) -> bool:
        return True

    def track_element(self, bunch: Bunch, element: Element) -> None:
        tracker = self._trackers.get(element.type)
        if tracker is None:
            raise TrackingError(f"Element type '{element.type}' of '{element.name}' is not supported "
                                f"by the {self.name} engine")
        tracker(bunch, element)

    def _track_drift(self, bunch: Bunch, element: Element):
        _drift(bunch.coordinates, element.length)

    def _track_marker(self, bunch: Bunch, element: Element):
        pass

    def _track_quadrupole(self, bunch: Bunch, element: Element):
        z = bunch.coordinates
        kn1 = element.get_float("MagneticMultipoleP", "kn1")
        if kn1 == 0.0:
            _drift(z, element.length)
            return

        k = kn1 / (1.0 + z[:, 5])
        if element.length == 0.0:
            # Thin lens with integrated strength kn1
            z[:, 1] -= k * z[:, 0]
            z[:, 3] += k * z[:, 2]
            return
        _apply_plane(z, 0, k, element.length)
        _apply_plane(z, 2, -k, element.length)

    def _track_bend(self, bunch: Bunch, element: Element):
        z = bunch.coordinates
        length = element.length
        h = element.get_float("BendP", "angle") / length
        if h == 0.0:
            _drift(z, length)
            return

        one_plus_dp = 1.0 + z[:, 5]
        # x'' + k x = h dp with k = h^2 / (1 + dp)
        dp = z[:, 5] / one_plus_dp
        k = h * h / one_plus_dp
        c, s, cp, sp = _focusing_terms(k, length)

        x = z[:, 0].copy()
        xp = z[:, 1].copy()
        z[:, 0] = c * x + s * xp + h * (1.0 - c) / k * dp
        z[:, 1] = cp * x + sp * xp + h * s * dp
        # ct decreases by h times the integral of x along the bend
        z[:, 4] -= h * (s * x + (1.0 - c) / k * xp + h * (length - s) / k * dp)
        z[:, 2] += length * z[:, 3]

    def _track_kicker(self, bunch: Bunch, element: Element):
        z = bunch.coordinates
        half = element.length / 2.0
        _drift(z, half)
        one_plus_dp = 1.0 + z[:, 5]
        z[:, 1] += element.get_float("KickerP", "hkick") / one_plus_dp
        z[:, 3] += element.get_float("KickerP", "vkick") / one_plus_dp
        _drift(z, half)

    def _track_rfcavity(self, bunch: Bunch, element: Element):
        z = bunch.coordinates
        half = element.length / 2.0
        _drift(z, half)
        voltage = element.get_float("RFP", "voltage")
        if voltage != 0.0:
            freq = element.get_float("RFP", "freq")
            phase = element.get_float("RFP", "phase")
            # Energy gain in GeV for unit charge, relative to the reference momentum
            kick = abs(bunch.particle.charge) * voltage * 1e-9 / bunch.momentum
            z[:, 5] += kick * np.sin(phase - 2.0 * math.pi * freq * z[:, 4] / SPEED_OF_LIGHT)
        _drift(z, half)

    def _track_taylor_map(self, bunch: Bunch, element: Element):
        z = bunch.coordinates
        z[:] = z @ element.matrix.T + element.offset
