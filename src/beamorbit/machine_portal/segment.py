"""
Index ranges along the expanded beamline.
"""

from dataclasses import dataclass

from ..simulators.types import InvalidSegment


@dataclass(frozen=True)
class Segment:
    """Contiguous, inclusive range ``[first, last]`` of beamline element indices."""
    first: int
    last: int

    def __post_init__(self):
        if self.first < 0:
            raise InvalidSegment(f"Segment start {self.first} is negative")
        if self.first > self.last:
            raise InvalidSegment(f"Segment start {self.first} is beyond its end {self.last}")

    @classmethod
    def whole(cls, model) -> "Segment":
        """Segment spanning every element of ``model`` (anything with ``get_beamline``)."""
        beamline = model.get_beamline()
        return cls(beamline.first_index, beamline.last_index)

    def __len__(self) -> int:
        return self.last - self.first + 1

    def __iter__(self):
        # Allows ``first, last = segment``
        yield self.first
        yield self.last

    def __contains__(self, index: int) -> bool:
        return self.first <= index <= self.last

    def __str__(self) -> str:
        return f"[{self.first}, {self.last}]"
