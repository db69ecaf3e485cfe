from .element import Element
from pydantic import Field, field_validator


class Kicker(Element):
    """Kicker element with Pydantic validation.

    An orbit corrector providing a horizontal and/or vertical deflection,
    exposed through the read-write channels ``HKICK`` and ``VKICK``.
    """
    type: str = Field(default='Kicker', description="Element type")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        """Validate element type is correct."""
        if v != 'Kicker':
            raise ValueError("Type of a Kicker element must be 'Kicker'.")
        return v

    @property
    def hkick(self) -> float:
        return self.get_float("KickerP", "hkick")

    @property
    def vkick(self) -> float:
        return self.get_float("KickerP", "vkick")

    def writable_channels(self):
        return {'HKICK': ("KickerP", "hkick"), 'VKICK': ("KickerP", "vkick")}
