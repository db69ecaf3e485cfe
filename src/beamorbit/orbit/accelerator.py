"""
Accelerator facade with incremental bunch tracking.

The facade owns a lattice, the nominal beam parameters and a tracking
engine, and keeps one cached bunch per logical state (for example one per
machine configuration). With incremental tracking enabled, a state's bunch
is advanced through the lattice only as far as the start of the active
segment and remembers how far it got, so moving the active segment down the
beamline never re-tracks elements already passed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union
import logging

from ..machine_portal.channels import ROChannel, RWChannel
from ..machine_portal.element import Element
from ..machine_portal.lattice import Lattice
from ..machine_portal.segment import Segment
from ..physics.phase_space import Bunch, PhaseSpaceVector
from ..simulators.base import BaseTrackingEngine
from ..simulators.types import (
    AcceleratorSettings,
    BeamData,
    EngineNotConfigured,
    InvalidSegment,
)
from .segment_selector import SegmentSelector

logger = logging.getLogger(__name__)


class Plane(str, Enum):
    """Transverse plane selection for monitor and corrector channels."""
    X = "x"
    Y = "y"
    XY = "xy"


@dataclass
class CachedBunch:
    """Bunch of one state and the last element index it was tracked to (None: not tracked yet)."""
    initial: Bunch
    bunch: Bunch
    location: Optional[int] = None


class ReferenceParticle:
    """Non-owning handle onto the reference particle (particle 0) of a cached bunch."""

    def __init__(self, bunch: Bunch):
        self._bunch = bunch

    @property
    def coordinates(self) -> PhaseSpaceVector:
        return self._bunch.first_particle()

    @property
    def momentum(self) -> float:
        return self._bunch.momentum

    def __repr__(self) -> str:
        return f"ReferenceParticle(p0={self.momentum:g} GeV/c, {self.coordinates!r})"


class Accelerator:
    """
    A named accelerator: lattice model, nominal beam and tracking engine.

    Args:
        name: Accelerator name used in log messages
        model: Lattice model
        beam_data: Nominal beam parameters for every new bunch
        engine: Tracking engine; tracking calls raise EngineNotConfigured until one is set
        settings: Incremental-tracking flag and channel patterns
    """

    def __init__(self, name: str, model: Lattice, beam_data: BeamData,
                 engine: Optional[BaseTrackingEngine] = None,
                 settings: Optional[AcceleratorSettings] = None):
        self.name = name
        self.model = model
        self.beam_data = beam_data
        self.settings = settings.model_copy() if settings is not None else AcceleratorSettings()
        self.selector = SegmentSelector(model)
        self._engine: Optional[BaseTrackingEngine] = None
        self._cache: List[CachedBunch] = []
        self.reference_particles: List[ReferenceParticle] = []
        if engine is not None:
            self.set_tracking_engine(engine)

    # === Engine and modes ===

    @property
    def engine(self) -> Optional[BaseTrackingEngine]:
        return self._engine

    def set_tracking_engine(self, engine: BaseTrackingEngine):
        """
        Attach a tracking engine and reset every cached state.

        The states are rebuilt with the new engine exactly as ``initialise_tracking``
        would build them, so earlier reference-particle handles go stale.
        """
        self._engine = engine
        logger.info(f"{self.name} using {engine.name} engine")
        if self._cache:
            n_states = len(self._cache)
            logger.debug(f"{self.name} resetting {n_states} cached state(s)")
            self.initialise_tracking(n_states)

    def _require_engine(self) -> BaseTrackingEngine:
        if self._engine is None:
            raise EngineNotConfigured(f"No tracking engine attached to accelerator '{self.name}'")
        return self._engine

    def allow_incremental_tracking(self, flag: bool):
        self.settings.allow_incremental_tracking = flag
        logger.info(f"{self.name} using incremental tracking = {'YES' if flag else 'NO'}")

    @property
    def incremental_tracking(self) -> bool:
        return self.settings.allow_incremental_tracking

    # === Segments ===

    @property
    def active_segment(self) -> Segment:
        return self.selector.active_segment

    def set_active_segment(self, segment: Union[Segment, tuple], last: Optional[int] = None):
        self.selector.set_active_segment(segment, last)
        logger.debug(f"{self.name} active segment set to {self.active_segment}")

    def get_beamline_range(self) -> Segment:
        return self.model.get_beamline_range()

    def get_beamline_indexes(self, pattern: str) -> List[int]:
        """Beamline indexes of the elements whose ``<type>.<name>`` matches ``pattern``."""
        return self.model.get_indexes(pattern)

    # === Tracking ===

    def initialise_tracking(self, n_states: int) -> List[ReferenceParticle]:
        """
        Discard every cached state and create ``n_states`` fresh bunches.

        Returns:
            One reference-particle handle per state, viewing that state's cached bunch
        """
        if n_states < 0:
            raise ValueError(f"Number of states must be non-negative, got {n_states}")
        engine = self._require_engine()

        self._cache = []
        for _ in range(n_states):
            initial = engine.create_bunch(self.beam_data)
            self._cache.append(CachedBunch(initial=initial, bunch=initial.copy()))
        self.reference_particles = [ReferenceParticle(entry.bunch) for entry in self._cache]
        logger.debug(f"{self.name} initialised tracking for {n_states} state(s)")
        return list(self.reference_particles)

    def cached_location(self, state: int) -> Optional[int]:
        """Last element index the bunch of ``state`` was advanced to, or None."""
        return self._entry(state).location

    def _entry(self, state: int) -> CachedBunch:
        if not 0 <= state < len(self._cache):
            raise IndexError(f"State {state} not initialised ({len(self._cache)} state(s) available)")
        return self._cache[state]

    def track_beam(self, state: int) -> Bunch:
        """
        Track the bunch of ``state`` through the active segment and return the result.

        Without incremental tracking, or when the active segment starts at the
        beginning of the beamline, a copy of the state's initial bunch is tracked
        from element 0. With incremental tracking the cached bunch is first
        advanced in place up to the element before the segment, then a copy is
        tracked through the segment. The cached bunch is never changed by the
        segment pass itself.

        Raises:
            EngineNotConfigured: If no tracking engine is attached
            IndexError: If ``state`` was not created by ``initialise_tracking``
            InvalidSegment: If the segment starts behind the cached bunch
        """
        engine = self._require_engine()
        entry = self._entry(state)
        segment = self.active_segment
        incremental = self.incremental_tracking and segment.first != 0

        if incremental:
            expected = 0 if entry.location is None else entry.location + 1
            if segment.first < expected:
                raise InvalidSegment(
                    f"Segment {segment} starts behind state {state}, which was tracked to {entry.location}"
                )
            if segment.first != expected:
                n1, n2 = expected, segment.first - 1
                logger.debug(f"{self.name} advancing state {state} from {n1} to {n2}")
                engine.set_beamline(self.model.get_beamline(n1, n2))
                engine.track_this_bunch(entry.bunch)
                entry.location = n2
            start, source = segment.first, entry.bunch
        else:
            start, source = 0, entry.initial

        engine.set_beamline(self.model.get_beamline(start, segment.last))
        engine.set_initial_bunch(source)
        tracked = engine.track_bunch()
        logger.debug(f"{self.name} tracked state {state} through [{start}, {segment.last}], "
                     f"final momentum {tracked.momentum:g} GeV/c")
        return tracked

    def track_new_bunch_through_model(self) -> Bunch:
        """Track a fresh nominal bunch through the whole beamline; the active segment is kept."""
        engine = self._require_engine()
        engine.set_beamline(self.model.get_beamline())
        bunch = engine.track_this_bunch(engine.create_bunch(self.beam_data))
        logger.debug(f"{self.name} final momentum = {bunch.momentum:g} GeV/c")
        return bunch

    # === Channels and elements ===

    def _active_beamline(self):
        segment = self.active_segment
        return self.model.get_beamline(segment.first, segment.last)

    def get_monitor_channels(self, plane: Union[Plane, str] = Plane.XY) -> List[ROChannel]:
        """Monitor read-out channels in the active segment; horizontal first for ``xy``."""
        plane = Plane(plane)
        beamline = self._active_beamline()
        channels: List[ROChannel] = []
        if plane in (Plane.X, Plane.XY):
            channels.extend(self.model.get_ro_channels(beamline, self.settings.monitor_x_pattern))
        if plane in (Plane.Y, Plane.XY):
            channels.extend(self.model.get_ro_channels(beamline, self.settings.monitor_y_pattern))
        return channels

    def get_corrector_channels(self, plane: Union[Plane, str] = Plane.XY) -> List[RWChannel]:
        """Corrector kick channels in the active segment; horizontal first for ``xy``."""
        plane = Plane(plane)
        beamline = self._active_beamline()
        channels: List[RWChannel] = []
        if plane in (Plane.X, Plane.XY):
            channels.extend(self.model.get_rw_channels(beamline, self.settings.corrector_x_pattern))
        if plane in (Plane.Y, Plane.XY):
            channels.extend(self.model.get_rw_channels(beamline, self.settings.corrector_y_pattern))
        return channels

    def get_typed_elements(self, element_type: str) -> List[Element]:
        """Elements of ``element_type`` in beamline order (by first occurrence)."""
        elements = self.model.extract_typed_elements(element_type)
        return sorted(elements, key=lambda element: self.model.get_element_indexes(element.name)[0])
