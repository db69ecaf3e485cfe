"""
Named channels onto lattice elements.

A channel is a scalar handle identified by ``<type>.<name>.<key>``, e.g.
``Monitor.BPM3_1.X`` or ``Kicker.XCOR1_1.HKICK``. Read-only channels expose
monitor readings and element parameters; read-write channels expose element
parameters that may be adjusted (corrector kicks, quadrupole gradients).
Channels are looked up with shell-style glob patterns.
"""

from fnmatch import fnmatchcase
from typing import Callable, Iterable, List

from .element import Element


class ROChannel:
    """Read-only scalar channel."""

    def __init__(self, element: Element, key: str, getter: Callable[[], float]):
        self.element = element
        self.key = key
        self._getter = getter

    @property
    def id(self) -> str:
        return self.element.channel_id(self.key)

    def read(self) -> float:
        return float(self._getter())

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.id}')"


class RWChannel(ROChannel):
    """Read-write scalar channel backed by an element parameter."""

    def __init__(self, element: Element, key: str, group_type: str, parameter_name: str):
        super().__init__(element, key, lambda: element.get_float(group_type, parameter_name))
        self.group_type = group_type
        self.parameter_name = parameter_name

    def write(self, value: float):
        self.element.add_parameter(self.group_type, self.parameter_name, float(value))

    def increment(self, delta: float):
        self.write(self.read() + delta)


def _ro_channels_for(element: Element) -> List[ROChannel]:
    channels = [ROChannel(element, key, getter) for key, getter in element.readable_channels().items()]
    for key, (group_type, parameter_name) in element.writable_channels().items():
        channels.append(ROChannel(
            element, key,
            lambda g=group_type, p=parameter_name: element.get_float(g, p)
        ))
    return channels


def _rw_channels_for(element: Element) -> List[RWChannel]:
    return [RWChannel(element, key, group_type, parameter_name)
            for key, (group_type, parameter_name) in element.writable_channels().items()]


def find_ro_channels(elements: Iterable[Element], pattern: str) -> List[ROChannel]:
    """Return read-only channels whose id matches ``pattern``, in beamline order."""
    return [ch for element in elements for ch in _ro_channels_for(element) if fnmatchcase(ch.id, pattern)]


def find_rw_channels(elements: Iterable[Element], pattern: str) -> List[RWChannel]:
    """Return read-write channels whose id matches ``pattern``, in beamline order."""
    return [ch for element in elements for ch in _rw_channels_for(element) if fnmatchcase(ch.id, pattern)]
