from .element import Element
from pydantic import Field, field_validator


class Marker(Element):
    """Zero-length marker element, used as a named reference point in the beamline."""

    type: str = Field(default='Marker', description="Element type")
    length: float = Field(default=0.0, description="Marker length (always 0)")

    @field_validator('length')
    @classmethod
    def validate_length(cls, v):
        if v != 0.0:
            raise ValueError("Length of a Marker element must be 0.")
        return v
