# Implementation of the quadrupole element for the beamorbit machine portal.
from beamorbit.machine_portal.element import Element
from pydantic import Field, field_validator
import warnings


class Quadrupole(Element):
    """Quadrupole element with Pydantic validation.

    A quadrupole magnet provides focusing/defocusing forces in one transverse
    direction and opposite forces in the perpendicular direction. The normalized
    gradient ``kn1`` lives in the ``MagneticMultipoleP`` group; positive values
    focus horizontally.
    """
    type: str = Field(default='Quadrupole', description="Element type")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        """Validate element type is correct."""
        if v != 'Quadrupole':
            raise ValueError("Type of a quadrupole element must be 'Quadrupole'.")
        return v

    @property
    def k1(self) -> float:
        return self.get_float("MagneticMultipoleP", "kn1")

    def writable_channels(self):
        return {'K1': ("MagneticMultipoleP", "kn1")}

    def _check_element_specific_consistency(self) -> bool:
        """Quadrupole-specific consistency checks.

        A quadrupole may exist without parameters while the lattice is being
        built; a strength that cannot be read as a number is inconsistent.
        """
        kn1 = self.get_parameter("MagneticMultipoleP", "kn1")
        if kn1 is None:
            return True

        try:
            kn1_val = float(kn1)
        except (ValueError, TypeError):
            return False

        if kn1_val != 0.0 and self.length == 0.0:
            warnings.warn(f"Quadrupole '{self.name}' has zero length; it will be tracked as a thin lens")
        return True
