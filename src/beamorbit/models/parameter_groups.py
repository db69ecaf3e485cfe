"""
Specialized Pydantic models for accelerator physics parameter groups.

This module provides validated parameter group models that back the generic
``ParameterGroup`` dictionary with type-safe, physics-aware validation.
"""

from pydantic import Field, field_validator
from typing import Optional, List
from .base import PhysicsBaseModel
from .validators import (
    validate_magnetic_strength, validate_rf_frequency, validate_bending_angle,
    validate_matrix_size
)


class MagneticMultipoleP(PhysicsBaseModel):
    """
    Magnetic multipole parameters with physics validation.

    Strengths are normalized to the reference momentum (1/m^(n+1)).
    """

    # Normal multipole components
    kn0: Optional[float] = Field(None, description="Dipole component (1/m)")
    kn1: Optional[float] = Field(None, description="Quadrupole component (1/m²)")
    kn2: Optional[float] = Field(None, description="Sextupole component (1/m³)")

    # Skew multipole components
    ks0: Optional[float] = Field(None, description="Skew dipole component (1/m)")
    ks1: Optional[float] = Field(None, description="Skew quadrupole component (1/m²)")
    ks2: Optional[float] = Field(None, description="Skew sextupole component (1/m³)")

    tilt: Optional[float] = Field(None, description="Element rotation angle (radians)")

    @field_validator('kn1', 'ks1')
    @classmethod
    def validate_quadrupole_strength(cls, v):
        """Validate quadrupole strength is within reasonable limits."""
        return validate_magnetic_strength(v, max_strength=1000.0)

    @field_validator('kn2', 'ks2')
    @classmethod
    def validate_sextupole_strength(cls, v):
        """Validate sextupole strength is within reasonable limits."""
        return validate_magnetic_strength(v, max_strength=10000.0)


class BendP(PhysicsBaseModel):
    """Sector bend parameters."""

    angle: Optional[float] = Field(None, description="Bending angle (radians)")
    tilt: Optional[float] = Field(0.0, description="Element rotation angle (radians)")

    @field_validator('angle')
    @classmethod
    def validate_angle(cls, v):
        return validate_bending_angle(v)


class RFP(PhysicsBaseModel):
    """
    RF cavity parameters.

    The energy gain of a particle arriving with path-length offset ``ct`` is
    ``voltage * sin(phase - 2π freq ct / c)``.
    """

    voltage: Optional[float] = Field(None, ge=0, description="RF voltage (V)")
    freq: Optional[float] = Field(None, gt=0, description="RF frequency (Hz)")
    phase: Optional[float] = Field(0.0, description="RF phase (radians)")

    @field_validator('freq')
    @classmethod
    def validate_frequency(cls, v):
        return validate_rf_frequency(v)


class KickerP(PhysicsBaseModel):
    """Kicker (orbit corrector) parameters."""

    hkick: Optional[float] = Field(0.0, description="Horizontal kick angle (radians)")
    vkick: Optional[float] = Field(0.0, description="Vertical kick angle (radians)")

    @field_validator('hkick', 'vkick')
    @classmethod
    def validate_kick_angle(cls, v):
        """Validate kick angle is reasonable."""
        if v is not None and abs(v) > 0.1:  # 0.1 rad ≈ 5.7 degrees
            raise ValueError(f"Kick angle {v} rad seems unreasonably large (>0.1 rad)")
        return v


class TaylorP(PhysicsBaseModel):
    """
    First-order Taylor map parameters.

    ``r`` holds the 6x6 transfer matrix flattened row-major, ``c`` the
    zeroth-order offset vector.
    """

    r: Optional[List[float]] = Field(None, description="Flattened 6x6 transfer matrix")
    c: Optional[List[float]] = Field(None, description="Constant offset vector (6 entries)")

    @field_validator('r')
    @classmethod
    def validate_matrix(cls, v):
        return validate_matrix_size(v, 36, "Transfer matrix 'r'")

    @field_validator('c')
    @classmethod
    def validate_offset(cls, v):
        return validate_matrix_size(v, 6, "Offset vector 'c'")


class MarkerP(PhysicsBaseModel):
    """Marker element parameters (typically empty)."""
    pass


class MonitorP(PhysicsBaseModel):
    """Monitor element parameters."""

    resolution: Optional[float] = Field(0.0, ge=0, description="Reading resolution (m)")


class MetaP(PhysicsBaseModel):
    """Metadata parameters for documentation and tracking."""

    comment: Optional[str] = Field("", description="User comment")
    author: Optional[str] = Field("", description="Author name")
    date: Optional[str] = Field("", description="Creation/modification date")

    @field_validator('comment', 'author')
    @classmethod
    def validate_string_length(cls, v):
        """Validate string fields have reasonable length."""
        if v is not None and len(v) > 1000:
            raise ValueError(f"String field too long (>{1000} characters)")
        return v


# Parameter group type mapping for factory creation
PARAMETER_GROUP_MODELS = {
    'MagneticMultipoleP': MagneticMultipoleP,
    'BendP': BendP,
    'RFP': RFP,
    'KickerP': KickerP,
    'TaylorP': TaylorP,
    'MarkerP': MarkerP,
    'MonitorP': MonitorP,
    'MetaP': MetaP,
}


def create_parameter_group_model(group_type: str, **kwargs) -> PhysicsBaseModel:
    """
    Factory function to create the appropriate parameter group model.

    Args:
        group_type: Parameter group type string (e.g., 'MagneticMultipoleP')
        **kwargs: Parameter values for the group

    Returns:
        Specialized parameter group model instance

    Raises:
        ValueError: If group_type is not recognized
    """
    model_class = PARAMETER_GROUP_MODELS.get(group_type)
    if model_class is None:
        raise ValueError(f"Unknown parameter group type: {group_type}")

    return model_class(**kwargs)
