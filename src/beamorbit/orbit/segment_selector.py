"""
Active-segment bookkeeping shared by the accelerator facade and the closed-orbit finder.
"""

from typing import Iterator, Optional, Union
import logging

from ..machine_portal.segment import Segment
from ..simulators.types import InvalidSegment

logger = logging.getLogger(__name__)


class SegmentSelector:
    """Holds the currently active beamline segment of a model.

    The initial segment is ``[0, 0]``. Every new segment is checked against
    the model's beamline range.
    """

    def __init__(self, model, segment: Optional[Segment] = None):
        self.model = model
        self._segment = Segment(0, 0)
        if segment is not None:
            self.set_active_segment(segment)

    @property
    def active_segment(self) -> Segment:
        return self._segment

    def set_active_segment(self, segment: Union[Segment, tuple], last: Optional[int] = None):
        """Select ``segment`` (a Segment, a ``(first, last)`` pair, or ``first`` and ``last``).

        Raises:
            InvalidSegment: If the segment is inverted or lies outside the beamline
        """
        if last is not None:
            segment = Segment(segment, last)
        elif not isinstance(segment, Segment):
            segment = Segment(*segment)

        full = Segment.whole(self.model)
        if segment.last > full.last:
            raise InvalidSegment(f"Segment {segment} lies outside the beamline range {full}")
        self._segment = segment
        logger.debug(f"Active segment set to {segment}")

    def select_whole(self):
        self._segment = Segment.whole(self.model)

    def split(self, length: int) -> Iterator[Segment]:
        """Consecutive segments of ``length`` elements covering the beamline; the last may be shorter."""
        if length < 1:
            raise ValueError(f"Segment length must be at least 1, got {length}")
        full = Segment.whole(self.model)
        for first in range(full.first, full.last + 1, length):
            yield Segment(first, min(first + length - 1, full.last))
