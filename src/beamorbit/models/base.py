"""
Base Pydantic models for the beamorbit framework.

This module provides foundational Pydantic model classes with physics-specific
configurations and utilities for type validation and serialization.
"""

from pydantic import BaseModel, ConfigDict
from typing import Dict, Any
import numpy as np


class PhysicsBaseModel(BaseModel):
    """
    Base Pydantic model for all physics-related data structures in beamorbit.

    This model provides:
    - Strict validation with assignment checking
    - Rejection of unknown fields
    - Numpy-aware conversion to plain YAML-compatible dictionaries

    Example:
        >>> class BeamParameters(PhysicsBaseModel):
        ...     momentum: float = Field(gt=0, description="Reference momentum in GeV/c")
        ...     particles: int = Field(gt=0, description="Number of particles")

        >>> params = BeamParameters(momentum=5.0, particles=1000)
        >>> params.momentum
        5.0
    """

    model_config = ConfigDict(
        # Validation settings
        validate_assignment=True,        # Validate on attribute assignment
        extra="forbid",                  # Reject unknown fields for safety
        use_enum_values=True,            # Use enum values in serialization

        # Type handling
        arbitrary_types_allowed=True,    # Allow numpy arrays and custom types
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """
        Create instance from a plain dictionary.

        Args:
            data: Dictionary with model field values

        Returns:
            Instance of the model
        """
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to a plain dictionary.

        Returns:
            Dictionary representation of the model
        """
        return self.model_dump()

    def to_yaml_dict(self) -> Dict[str, Any]:
        """
        Convert to YAML-compatible dictionary.

        All numpy scalars and arrays are converted to builtin Python types so
        the result can be passed straight to ``yaml.safe_dump``.

        Returns:
            Dictionary suitable for YAML serialization
        """
        data = self.model_dump()

        def convert_numpy_types(obj):
            if isinstance(obj, np.ndarray):
                return obj.tolist()
            elif isinstance(obj, (np.float64, np.float32)):
                return float(obj)
            elif isinstance(obj, (np.int64, np.int32)):
                return int(obj)
            elif isinstance(obj, dict):
                return {k: convert_numpy_types(v) for k, v in obj.items()}
            elif isinstance(obj, (list, tuple)):
                return [convert_numpy_types(item) for item in obj]
            return obj

        return convert_numpy_types(data)
