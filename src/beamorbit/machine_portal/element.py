# define elements of accelerator
# its parameters should be in a ParameterGroup object.
# The only exceptions are the name, type and the length of the element.
# Currently the type contains:
## Bend : Sector dipole, Allowed parameter groups: 'BendP', 'MagneticMultipoleP', 'MetaP'
## Drift : Drift space element, Allowed parameter groups: 'MetaP'
## Kicker : Orbit corrector, Allowed parameter groups: 'KickerP', 'MetaP'
## Marker : Marker element, Allowed parameter groups: 'MarkerP', 'MetaP'
## Monitor : Beam position monitor, Allowed parameter groups: 'MonitorP', 'MetaP'
## Quadrupole : Quadrupole element, Allowed parameter groups: 'MagneticMultipoleP', 'MetaP'
## RFCavity : RF cavity element, Allowed parameter groups: 'RFP', 'MetaP'
## TaylorMap : First-order map element, Allowed parameter groups: 'TaylorP', 'MetaP'

from .parameter_group import ParameterGroup, ParameterValue
from ..models.base import PhysicsBaseModel
from ..models.validators import validate_element_name
from pydantic import Field, field_validator
from typing import Dict, List, Optional
import os
import yaml


def _load_allowed_groups_from_yaml():
    yaml_path = os.path.join(os.path.dirname(__file__), 'elements.yaml')
    if not os.path.exists(yaml_path):
        raise FileNotFoundError(f"elements.yaml not found at {yaml_path}")
    with open(yaml_path, 'r') as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("elements.yaml is malformed: root should be a mapping")
    all_groups = set(data.get('All', {}).get('group', []))
    allowed = {}
    for elem_type, v in data.items():
        if elem_type == 'All':
            continue
        groups = set(v.get('group', [])) | all_groups
        allowed[elem_type] = list(groups)
    return allowed

try:
    element_type_allowed_groups = _load_allowed_groups_from_yaml()
except Exception as e:
    raise RuntimeError(f"Failed to load allowed parameter groups from elements.yaml: {e}")


class Element(PhysicsBaseModel):
    """Base class for accelerator elements."""

    name: str = Field(..., min_length=1, description="Element name")
    type: str = Field(..., min_length=1, description="Element type")
    length: float = Field(default=0.0, ge=0.0, description="Element length in meters")
    inherit: Optional[str] = Field(default=None, description="Prototype element name")
    parameters: List[ParameterGroup] = Field(default_factory=list, description="Parameter groups")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return validate_element_name(v)

    def check_parameter_group(self, group_type: str, allowed_groups: list[str]) -> bool:
        """Check if the parameter group type is allowed for the element type."""
        if group_type not in allowed_groups:
            raise ValueError(f"Parameter group '{group_type}' is not allowed for element type '{self.type}'.")
        return True

    def add_parameter_group(self, group: ParameterGroup):
        """Add a parameter group to the element."""
        if not isinstance(group, ParameterGroup):
            raise TypeError("Parameter group must be an instance of ParameterGroup.")
        self.check_parameter_group(group.type, element_type_allowed_groups.get(self.type, []))
        self.parameters.append(group)

    def get_parameter_group(self, group_type: str) -> ParameterGroup | None:
        """Get a parameter group by type."""
        for group in self.parameters:
            if group.type == group_type:
                return group
        return None

    # add a parameter to a specific group; the group is created when it does not exist yet
    def add_parameter(self, group_type: str, parameter_name: str, value: ParameterValue):
        """Add a parameter to a specific group."""
        group = self.get_parameter_group(group_type)
        if group is None:
            group = ParameterGroup(name=group_type, type=group_type)
            self.add_parameter_group(group)
        group.add_parameter(parameter_name, value)

    def get_parameter(self, group_type: str, parameter_name: str, default: ParameterValue | None = None):
        """Get a parameter value by group type and parameter name."""
        group = self.get_parameter_group(group_type)
        if group is not None:
            return group.get_parameter(parameter_name, default)
        return default

    def get_float(self, group_type: str, parameter_name: str, default: float = 0.0) -> float:
        """Get a numeric parameter, falling back to ``default`` when unset."""
        value = self.get_parameter(group_type, parameter_name)
        return default if value is None else float(value)

    def remove_parameter(self, group_type: str, name: str):
        """Remove a parameter from a specific group."""
        group = self.get_parameter_group(group_type)
        if group is not None:
            group.remove_parameter(name)

    # Channel keys exposed by this element type. Read-only keys map to a getter,
    # read-write keys map to a (parameter_group, parameter_name) pair.
    def readable_channels(self) -> Dict[str, object]:
        return {}

    def writable_channels(self) -> Dict[str, tuple[str, str]]:
        return {}

    def channel_id(self, key: str) -> str:
        """Channel identifier of the form ``<type>.<name>.<key>``."""
        return f"{self.type}.{self.name}.{key}"

    def __str__(self):
        return f"Element(name={self.name}, type={self.type}, length={self.length}, parameters={self.parameters})"

    def __repr__(self):
        return self.__str__()

    # Convert element to yaml dictionary format.
    def to_yaml_dict(self) -> dict:
        """Convert the element to a dictionary in the format:
        element_type:
              name: element_name
              length: number
              parameter_group_1:
                      parameter_name: parameter_value
        """
        element_dict = {'name': self.name, 'length': self.length}
        if self.inherit is not None:
            element_dict['inherit'] = self.inherit

        for group in self.parameters:
            element_dict[group.type] = group.to_yaml_dict()

        return {self.type: element_dict}

    def check_consistency(self):
        """Check the element is internally consistent.

        Every parameter group must be allowed for the element type; subclasses
        add their own checks in ``_check_element_specific_consistency``.
        """
        allowed = element_type_allowed_groups.get(self.type, [])
        for group in self.parameters:
            self.check_parameter_group(group.type, allowed)
        if self._check_element_specific_consistency() is False:
            raise ValueError(f"Element '{self.name}' of type '{self.type}' is not consistent.")

    def _check_element_specific_consistency(self):
        return True
