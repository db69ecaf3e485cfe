"""
Base tracking engine abstract class for beamorbit.

This module defines the abstract base class that every tracking engine
implements. The base class owns the beamline being tracked, the initial
bunch, the ordered collection of physical-effect processes and the
single-element stepper; subclasses only provide the transport through one
element.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Union
import logging

import numpy as np

from ..physics.phase_space import Bunch, ELECTRON, PROTON
from .processes import PhysicsProcess
from .types import (
    BeamData,
    EngineConfiguration,
    ParticleSpecies,
    TrackingError,
)

if TYPE_CHECKING:
    from ..machine_portal.element import Element
    from ..machine_portal.lattice import Beamline

logger = logging.getLogger(__name__)


class BaseTrackingEngine(ABC):
    """
    Abstract base class for all tracking engines.

    Key features:
    - Tracks a Bunch through the current beamline, either a copy of the
      initial bunch (``track_bunch``) or a given bunch in place
      (``track_this_bunch``)
    - Applies registered processes after every element, lowest priority first
    - Records the bunch centroid on every Monitor passed, unless suspended
    - Single-element stepping through ``init_stepper``/``step_component``
    """

    def __init__(self, config: Optional[EngineConfiguration] = None):
        self.config = config or EngineConfiguration(name="base")
        self.name = self.config.name

        self._beamline: Optional[Beamline] = None
        self._initial_bunch: Optional[Bunch] = None
        self._processes: List[PhysicsProcess] = []
        self.record_monitors = True

        # Stepper state
        self._stepper_bunch: Optional[Bunch] = None
        self._stepper_index = 0
        self._current_component: Optional[Element] = None

        # Setup logging
        self.logger = logging.getLogger(f"{__name__}.{self.name}")
        self.logger.setLevel(getattr(logging, self.config.log_level))

    # === Abstract Properties ===

    @property
    @abstractmethod
    def available(self) -> bool:
        """
        Check if the tracking engine is available.

        Returns:
            True if all dependencies are installed and the engine can be used
        """
        pass

    # === Abstract Methods ===

    @abstractmethod
    def track_element(self, bunch: Bunch, element: Element) -> None:
        """
        Transport ``bunch`` through a single element, in place.

        Processes and monitor readings are handled by the caller.

        Raises:
            TrackingError: If the element cannot be tracked
        """
        pass

    # === Beamline and bunch ===

    def set_beamline(self, beamline: Union[Beamline, Sequence[Element]]):
        """Set the beamline (or ring segment) that subsequent tracking calls run through."""
        if not hasattr(beamline, 'first_index'):
            from ..machine_portal.lattice import Beamline
            elements = list(beamline)
            beamline = Beamline(first_index=0, last_index=len(elements) - 1, elements=elements)
        self._beamline = beamline
        self.logger.debug(f"Beamline set to [{beamline.first_index}, {beamline.last_index}] "
                          f"({len(beamline)} elements)")

    @property
    def beamline(self) -> Optional[Beamline]:
        return self._beamline

    def create_bunch(self, beam_data: BeamData) -> Bunch:
        """Create a bunch at the nominal beam parameters; particle 0 sits on the centroid."""
        species = ELECTRON if beam_data.particle == ParticleSpecies.ELECTRON else PROTON
        return Bunch(
            beam_data.momentum,
            beam_data.generate_coordinates(),
            particle=species,
            total_charge=beam_data.charge * species.charge,
        )

    def set_initial_bunch(self, bunch: Bunch, copy: bool = True):
        """Set the bunch tracked by ``track_bunch``; stored as a copy unless ``copy`` is False."""
        self._initial_bunch = bunch.copy() if copy else bunch

    @property
    def initial_bunch(self) -> Optional[Bunch]:
        return self._initial_bunch

    def track_bunch(self) -> Bunch:
        """Track a copy of the initial bunch through the beamline and return it."""
        if self._initial_bunch is None:
            raise TrackingError(f"Engine '{self.name}' has no initial bunch")
        bunch = self._initial_bunch.copy()
        return self.track_this_bunch(bunch)

    def track_this_bunch(self, bunch: Bunch) -> Bunch:
        """Track ``bunch`` through the beamline in place and return it."""
        beamline = self._require_beamline()
        for element in beamline:
            self._advance(bunch, element)
        return bunch

    # === Processes ===

    def add_process(self, process: PhysicsProcess):
        """Register a process; processes run in ascending priority, ties in registration order."""
        position = len(self._processes)
        for i, existing in enumerate(self._processes):
            if existing.priority > process.priority:
                position = i
                break
        self._processes.insert(position, process)
        self.logger.debug(f"Added process: {process!r}")

    def remove_process(self, process: PhysicsProcess) -> bool:
        """Remove a previously registered process; returns False if it was not registered."""
        for i, existing in enumerate(self._processes):
            if existing is process:
                del self._processes[i]
                self.logger.debug(f"Removed process: {process!r}")
                return True
        return False

    @property
    def processes(self) -> tuple:
        return tuple(self._processes)

    @contextmanager
    def monitors_suspended(self) -> Iterator[None]:
        """Track inside the ``with`` block without updating monitor readings."""
        previous = self.record_monitors
        self.record_monitors = False
        try:
            yield
        finally:
            self.record_monitors = previous

    # === Single-element stepping ===

    def init_stepper(self, bunch: Bunch):
        """Prepare to step ``bunch`` (in place) through the beamline one element at a time."""
        self._require_beamline()
        self._stepper_bunch = bunch
        self._stepper_index = 0
        self._current_component = None

    def step_component(self) -> bool:
        """Track the stepper bunch through the next element; False once the beamline is exhausted."""
        if self._stepper_bunch is None:
            raise TrackingError("Stepper not initialised; call init_stepper first")
        beamline = self._require_beamline()
        if self._stepper_index >= len(beamline):
            return False
        element = beamline[self._stepper_index]
        self._advance(self._stepper_bunch, element)
        self._current_component = element
        self._stepper_index += 1
        return True

    @property
    def current_component(self) -> Optional[Element]:
        """Element most recently tracked by the stepper."""
        return self._current_component

    @property
    def tracked_bunch(self) -> Optional[Bunch]:
        return self._stepper_bunch

    # === Concrete Methods ===

    def _require_beamline(self) -> Beamline:
        if self._beamline is None:
            raise TrackingError(f"Engine '{self.name}' has no beamline")
        return self._beamline

    def _advance(self, bunch: Bunch, element: Element):
        self.track_element(bunch, element)
        for process in self._processes:
            process.apply(bunch, element)

        if not np.all(np.isfinite(bunch.coordinates)):
            raise TrackingError(f"Non-finite coordinates after element '{element.name}'")

        if self.record_monitors and element.type == 'Monitor':
            centroid = bunch.centroid()
            element.record(centroid.x, centroid.y)

    def get_engine_info(self) -> Dict[str, Any]:
        """
        Get engine information.

        Returns:
            Dictionary containing engine metadata
        """
        return {
            'name': self.name,
            'available': self.available,
            'processes': [repr(p) for p in self._processes],
            'config': self.config.model_dump() if self.config else None,
        }
