# Implementation of the sector bend element for the beamorbit machine portal.
from beamorbit.machine_portal.element import Element
from pydantic import Field, field_validator


class Bend(Element):
    """Sector dipole with Pydantic validation.

    The bending angle is stored in the ``BendP`` group. The horizontal
    curvature is ``angle / length``.
    """
    type: str = Field(default='Bend', description="Element type")
    length: float = Field(gt=0.0, description="Bend arc length must be positive")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        if v != 'Bend':
            raise ValueError("Type of a bend element must be 'Bend'.")
        return v

    @property
    def angle(self) -> float:
        return self.get_float("BendP", "angle")

    @property
    def curvature(self) -> float:
        return self.angle / self.length

    def writable_channels(self):
        return {'ANGLE': ("BendP", "angle")}
