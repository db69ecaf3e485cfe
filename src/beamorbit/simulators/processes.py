"""
Physical-effect processes applied by tracking engines.

A process is attached to an engine with ``add_process`` and is applied after
every element the engine tracks through, in ascending ``priority`` order.
Processes change the bunch coordinates in place and never the reference
momentum.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional
import logging
import math

from ..physics.phase_space import Bunch, ELECTRON

logger = logging.getLogger(__name__)

# Classical radiation constant for electrons, m / GeV^3
C_GAMMA_ELECTRON = 8.846e-5


class ProcessKind(str, Enum):
    """Capability tag of a process, used by engines that map processes natively."""
    RADIATION = "radiation"
    PATH_LENGTH_SCALE = "path_length_scale"
    CUSTOM = "custom"


class PhysicsProcess(ABC):
    """Base class for processes applied during element traversal."""

    kind: ProcessKind = ProcessKind.CUSTOM

    def __init__(self, priority: int = 0, name: Optional[str] = None):
        self.priority = priority
        self.name = name or type(self).__name__

    @abstractmethod
    def apply(self, bunch: Bunch, element) -> None:
        """Apply the effect of ``element`` to ``bunch`` in place."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


class SynchrotronRadiationProcess(PhysicsProcess):
    """
    Mean (non-stochastic) synchrotron radiation energy loss in bends.

    The loss through a bend is integrated in steps: either ``num_steps`` equal
    steps per element, or steps no longer than ``max_step_size``. The two
    settings are mutually exclusive; setting one clears the other. The bunch
    reference energy is not adjusted, so the loss shows up as a drift of
    ``dp``.
    """

    kind = ProcessKind.RADIATION

    def __init__(self, priority: int = 1, num_steps: Optional[int] = 1,
                 max_step_size: Optional[float] = None):
        super().__init__(priority=priority)
        self._num_steps = None
        self._max_step_size = None
        if max_step_size is not None:
            self.max_step_size = max_step_size
        else:
            self.num_steps = num_steps if num_steps is not None else 1

    @property
    def num_steps(self) -> Optional[int]:
        return self._num_steps

    @num_steps.setter
    def num_steps(self, n: int):
        if n < 1:
            raise ValueError(f"Number of radiation steps must be at least 1, got {n}")
        self._num_steps = int(n)
        self._max_step_size = None

    @property
    def max_step_size(self) -> Optional[float]:
        return self._max_step_size

    @max_step_size.setter
    def max_step_size(self, size: float):
        if size <= 0:
            raise ValueError(f"Radiation step size must be positive, got {size}")
        self._max_step_size = float(size)
        self._num_steps = None

    def steps_for(self, length: float) -> int:
        if self._max_step_size is not None:
            return max(1, math.ceil(length / self._max_step_size))
        return self._num_steps

    @staticmethod
    def loss_coefficient(bunch: Bunch) -> float:
        """``C_gamma * E0^3 / (2 pi)`` for the bunch species, in 1/m."""
        mass_ratio = ELECTRON.mass / bunch.particle.mass
        c_gamma = C_GAMMA_ELECTRON * mass_ratio ** 4
        energy = math.hypot(bunch.momentum, bunch.particle.mass)
        return c_gamma * energy ** 3 / (2.0 * math.pi)

    def apply(self, bunch: Bunch, element) -> None:
        if element.type != 'Bend' or element.length == 0.0:
            return
        h = element.get_float("BendP", "angle") / element.length
        if h == 0.0:
            return

        n = self.steps_for(element.length)
        step = element.length / n
        coefficient = self.loss_coefficient(bunch) * h * h * step
        z = bunch.coordinates
        for _ in range(n):
            one_plus_dp = 1.0 + z[:, 5]
            loss = coefficient * one_plus_dp ** 2
            z[:, 1] *= 1.0 - loss / one_plus_dp
            z[:, 3] *= 1.0 - loss / one_plus_dp
            z[:, 5] -= loss


class PathLengthScaleProcess(PhysicsProcess):
    """
    Scale of the orbit-dependent path length through bends.

    After each bend, ``ct`` changes by ``-scale * angle * x``, i.e. the extra
    path ``h * x * L`` of an off-axis particle, multiplied by ``scale``.
    """

    kind = ProcessKind.PATH_LENGTH_SCALE

    def __init__(self, scale: float, priority: int = 2):
        super().__init__(priority=priority)
        self.scale = float(scale)

    def apply(self, bunch: Bunch, element) -> None:
        if element.type != 'Bend' or self.scale == 0.0:
            return
        angle = element.get_float("BendP", "angle")
        z = bunch.coordinates
        z[:, 4] -= self.scale * angle * z[:, 0]
