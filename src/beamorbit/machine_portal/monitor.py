from .element import Element
from pydantic import Field, PrivateAttr, field_validator
import math


class Monitor(Element):
    """Monitor element with Pydantic validation.

    A beam position monitor (BPM). Tracking engines call ``record`` with the
    bunch centroid each time a bunch passes; the last reading is exposed on
    the read-only channels ``X`` and ``Y`` (NaN until the first pass).
    """
    type: str = Field(default='Monitor', description="Element type")
    length: float = Field(default=0.0, ge=0.0, description="Monitor length (usually small)")

    _reading: tuple[float, float] = PrivateAttr(default=(math.nan, math.nan))

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        """Validate element type is correct."""
        if v != 'Monitor':
            raise ValueError("Type of a Monitor element must be 'Monitor'.")
        return v

    def record(self, x: float, y: float):
        """Store the centroid of the bunch that just passed."""
        self._reading = (float(x), float(y))

    def clear_reading(self):
        self._reading = (math.nan, math.nan)

    @property
    def reading(self) -> tuple[float, float]:
        return self._reading

    def readable_channels(self):
        return {'X': lambda: self._reading[0], 'Y': lambda: self._reading[1]}
