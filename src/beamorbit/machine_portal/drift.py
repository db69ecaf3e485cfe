# Implementation of the drift element for the beamorbit machine portal.
from beamorbit.machine_portal.element import Element
from pydantic import Field


class Drift(Element):
    """Drift space element with Pydantic validation."""

    type: str = Field(default='Drift', description="Element type (always 'Drift')")
    length: float = Field(gt=0.0, description="Drift length must be positive")

    def _check_element_specific_consistency(self):
        """Drift elements have no requirements beyond parameter group validation."""
        return True
