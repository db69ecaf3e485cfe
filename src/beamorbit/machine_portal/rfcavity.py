from .element import Element
from pydantic import Field, field_validator


class RFCavity(Element):
    """RF cavity element with Pydantic validation.

    Treated as a thin energy kick at the element centre; the RF parameters
    live in the ``RFP`` group.
    """
    type: str = Field(default='RFCavity', description="Element type")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        if v != 'RFCavity':
            raise ValueError("Type of an RFCavity element must be 'RFCavity'.")
        return v

    def writable_channels(self):
        return {'VOLTAGE': ("RFP", "voltage"), 'PHASE': ("RFP", "phase")}

    def _check_element_specific_consistency(self) -> bool:
        voltage = self.get_parameter("RFP", "voltage")
        freq = self.get_parameter("RFP", "freq")
        # A powered cavity needs a frequency
        if voltage and not freq:
            return False
        return True
