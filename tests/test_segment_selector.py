"""
Test suite for the active-segment selector.
"""

import pytest

from beamorbit.machine_portal.segment import Segment
from beamorbit.orbit.segment_selector import SegmentSelector
from beamorbit.simulators.types import InvalidSegment


class TestSegmentSelector:
    """Selecting, validating and splitting beamline segments."""

    def test_initial_segment(self, fodo_ring):
        assert SegmentSelector(fodo_ring).active_segment == Segment(0, 0)
        assert SegmentSelector(fodo_ring, Segment(4, 9)).active_segment == Segment(4, 9)

    @pytest.mark.parametrize("args", [(Segment(2, 5),), ((2, 5),), (2, 5)])
    def test_accepted_forms(self, fodo_ring, args):
        selector = SegmentSelector(fodo_ring)
        selector.set_active_segment(*args)
        assert selector.active_segment == Segment(2, 5)

    def test_out_of_range_keeps_previous(self, fodo_ring):
        selector = SegmentSelector(fodo_ring, Segment(1, 3))
        with pytest.raises(InvalidSegment, match="outside"):
            selector.set_active_segment(20, 30)
        with pytest.raises(InvalidSegment):
            selector.set_active_segment(6, 2)
        assert selector.active_segment == Segment(1, 3)

    def test_select_whole(self, fodo_ring):
        selector = SegmentSelector(fodo_ring)
        selector.select_whole()
        assert selector.active_segment == Segment(0, 29)

    def test_split(self, fodo_ring):
        selector = SegmentSelector(fodo_ring)
        segments = list(selector.split(8))
        assert segments == [Segment(0, 7), Segment(8, 15), Segment(16, 23), Segment(24, 29)]
        assert sum(len(s) for s in segments) == 30
        with pytest.raises(ValueError):
            list(selector.split(0))
