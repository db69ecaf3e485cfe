# define class ParameterGroup for elements.
# Each parameter group has a name, a group type, and a mapping of parameter name to value
# (string, number or list of numbers). The allowed names per group type live in parameters.yaml.

from pydantic import Field, field_validator, model_validator
from typing import Dict, List, Union, Optional
from ..models.base import PhysicsBaseModel
from ..models.parameter_groups import PARAMETER_GROUP_MODELS, create_parameter_group_model
import os
import warnings
import yaml

ParameterValue = Union[str, float, int, List[float], List[int]]


def _load_allowed_parameters_from_yaml():
    """Load the allowed parameters for each parameter group type from parameters.yaml."""
    yaml_path = os.path.join(os.path.dirname(__file__), 'parameters.yaml')
    if not os.path.exists(yaml_path):
        raise FileNotFoundError(f"parameters.yaml not found at {yaml_path}")
    with open(yaml_path, 'r') as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("parameters.yaml is malformed: root should be a mapping")
    return data

try:
    parameter_group_allowed_parameters = _load_allowed_parameters_from_yaml()
except Exception as e:
    raise RuntimeError(f"Failed to load allowed parameters from parameters.yaml: {e}")


class ParameterGroup(PhysicsBaseModel):
    """
    Pydantic model for accelerator element parameter groups.

    Parameter names are checked against parameters.yaml, and groups with a
    specialized model in ``PARAMETER_GROUP_MODELS`` get their values
    validated (and normalized) by that model.
    """

    name: str = Field(..., min_length=1, description="Parameter group name")
    type: str = Field(..., min_length=1, description="Parameter group type")
    parameters: Dict[str, ParameterValue] = Field(
        default_factory=dict,
        description="Parameter name-value pairs"
    )

    @field_validator('type')
    @classmethod
    def validate_parameter_type(cls, v):
        """Validate parameter group type against allowed types."""
        if v not in parameter_group_allowed_parameters:
            warnings.warn(f"Unknown parameter group type: {v}. Consider adding to parameters.yaml")
        return v

    @field_validator('parameters')
    @classmethod
    def validate_parameter_names(cls, v, info):
        """Validate parameter names against group type specifications."""
        if info.data and 'type' in info.data:
            group_type = info.data['type']
            allowed_params = parameter_group_allowed_parameters.get(group_type) or {}
            if allowed_params:
                for param_name in v.keys():
                    if param_name not in allowed_params:
                        raise ValueError(
                            f"Parameter '{param_name}' not allowed in group type '{group_type}'. "
                            f"Allowed parameters: {list(allowed_params.keys())}"
                        )
        return v

    @model_validator(mode='after')
    def validate_specialized_parameters(self):
        """Apply specialized validation for known parameter group types."""
        if self.type in PARAMETER_GROUP_MODELS and self.parameters:
            specialized_model = create_parameter_group_model(self.type, **self.parameters)
            self.parameters.update(specialized_model.model_dump(exclude_unset=True))
        return self

    def validate_parameter(self, name: str) -> bool:
        """Validate if a parameter is allowed for this parameter group type."""
        allowed_params = parameter_group_allowed_parameters.get(self.type) or {}
        if not allowed_params:
            return True

        if name not in allowed_params:
            raise ValueError(f"Parameter '{name}' is not allowed for parameter group type '{self.type}'. "
                             f"Allowed parameters: {list(allowed_params.keys())}")
        return True

    def get_allowed_parameters(self) -> List[str]:
        """Get the list of allowed parameters for this parameter group type."""
        allowed_params = parameter_group_allowed_parameters.get(self.type) or {}
        return list(allowed_params.keys())

    def add_parameter(self, name: str, value: ParameterValue):
        """Add (or overwrite) a parameter in the group with validation."""
        self.validate_parameter(name)
        previous = self.parameters.get(name)
        self.parameters[name] = value

        if self.type in PARAMETER_GROUP_MODELS:
            try:
                create_parameter_group_model(self.type, **self.parameters)
            except Exception as e:
                # Restore the group to its previous state before reporting
                if previous is None:
                    del self.parameters[name]
                else:
                    self.parameters[name] = previous
                raise ValueError(f"Parameter '{name}' with value '{value}' failed validation: {e}") from e

    def get_parameter(self, name: str, default: Optional[ParameterValue] = None) -> Optional[ParameterValue]:
        """Get a parameter value by name."""
        return self.parameters.get(name, default)

    def remove_parameter(self, name: str):
        """Remove a parameter from the group."""
        if name in self.parameters:
            del self.parameters[name]

    def __str__(self):
        return f"ParameterGroup(name={self.name}, type={self.type}, parameters={self.parameters})"

    def __repr__(self):
        return self.__str__()

    def to_yaml_dict(self) -> dict:
        """Convert the parameter group to a flat ``{parameter_name: value}`` mapping."""
        return dict(self.parameters)
