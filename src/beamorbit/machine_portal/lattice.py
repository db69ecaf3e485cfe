# Create a lattice class to represent a lattice structure in the machine portal.
# Lattice consists of a set of branches, each branch is a list of element names.
# One branch is marked as the root branch; expanding it gives the ordered beamline
# that tracking engines run through, addressed by 0-based element index.

from beamorbit.machine_portal.element import Element
from beamorbit.machine_portal.parameter_group import ParameterGroup
from beamorbit.machine_portal.drift import Drift
from beamorbit.machine_portal.bend import Bend
from beamorbit.machine_portal.quadrupole import Quadrupole
from beamorbit.machine_portal.marker import Marker
from beamorbit.machine_portal.kicker import Kicker
from beamorbit.machine_portal.monitor import Monitor
from beamorbit.machine_portal.rfcavity import RFCavity
from beamorbit.machine_portal.taylor_map import TaylorMap
from beamorbit.machine_portal.channels import ROChannel, RWChannel, find_ro_channels, find_rw_channels
from beamorbit.machine_portal.segment import Segment
from beamorbit.models.validators import validate_lattice_branch_type
from beamorbit.simulators.types import InvalidSegment
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Iterator
import copy


ELEMENT_CLASSES = {
    'Drift': Drift,
    'Bend': Bend,
    'Quadrupole': Quadrupole,
    'Kicker': Kicker,
    'Monitor': Monitor,
    'Marker': Marker,
    'RFCavity': RFCavity,
    'TaylorMap': TaylorMap,
}


def create_element_by_type(element_type: str, name: str, length: float = 0.0, inherit: str | None = None) -> Element:
    """Factory function to create the correct element type based on element_type string."""
    element_class = ELEMENT_CLASSES.get(element_type)
    if element_class is None:
        return Element(name=name, type=element_type, length=length, inherit=inherit)
    if element_class is Marker:
        return Marker(name=name, inherit=inherit)
    return element_class(name=name, length=length, inherit=inherit)


@dataclass
class Beamline:
    """Ordered sub-sequence of the expanded lattice.

    ``first_index`` and ``last_index`` are the positions of the first and last
    element in the full beamline, so element ``i`` of this object sits at
    index ``first_index + i`` of the lattice. A full turn that starts part way
    round a ring wraps: ``period`` is then the ring length and element ``i``
    sits at ``(first_index + i) % period``.
    """
    first_index: int
    last_index: int
    elements: list[Element] = field(default_factory=list)
    period: int = 0

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[Element]:
        return iter(self.elements)

    def __getitem__(self, i: int) -> Element:
        return self.elements[i]

    @property
    def segment(self) -> Segment:
        if self.wraps:
            raise InvalidSegment(f"Turn starting at element {self.first_index} is not a contiguous segment")
        return Segment(self.first_index, self.last_index)

    def get_total_length(self) -> float:
        return sum(element.length for element in self.elements)

    @property
    def wraps(self) -> bool:
        return self.period > 0 and self.last_index < self.first_index

    def indexed(self) -> Iterator[tuple[int, Element]]:
        """Iterate ``(lattice_index, element)`` pairs."""
        for i, element in enumerate(self.elements):
            index = self.first_index + i
            yield (index % self.period if self.period else index), element


@dataclass
class Lattice:
    """Class representing a lattice structure in the machine portal.
    A lattice consists of multiple branches, each branch has its own name and contains a list of element names.
    One branch is marked as the root branch, and a pool of element definitions is shared by all branches."""
    name: str
    branches: dict[str, list[str]] = field(default_factory=dict)  # branch name -> element names in that branch
    root_branch_name: str = ""
    elements: dict[str, Element] = field(default_factory=dict)  # Pool of element definitions
    element_occurrences: dict[str, int] = field(default_factory=dict)  # occurrence count per prototype name
    branch_specs: dict[str, str] = field(default_factory=dict)  # 'ring' or 'linac' per branch

    def __post_init__(self):
        if not self.name:
            raise ValueError("Lattice must have a name.")
        if not isinstance(self.branches, dict):
            raise TypeError("Branches must be a dictionary with branch names as keys and lists of elements as values.")
        if self.root_branch_name and self.root_branch_name not in self.branches:
            raise ValueError(f"Root branch '{self.root_branch_name}' must be present in the branches.")

    def add_element(self, element: Element, check_consistency: bool = True):
        """Add an element definition to the lattice.

        Args:
            element: The element to add to the lattice.
            check_consistency: Whether to validate element consistency before adding.

        Raises:
            TypeError: If element is not an Element instance.
            ValueError: If element name already exists or consistency check fails.
        """
        if not isinstance(element, Element):
            raise TypeError("Element must be an instance of Element.")
        if element.name in self.elements:
            raise ValueError(f"Element '{element.name}' already exists in the lattice.")

        if check_consistency:
            try:
                element.check_consistency()
            except Exception as e:
                raise ValueError(f"Element '{element.name}' failed consistency check: {e}") from e

        self.elements[element.name] = element

    def get_element(self, name: str) -> Element:
        """Get an element definition by name."""
        if name not in self.elements:
            raise ValueError(f"Element '{name}' not found.")
        return self.elements[name]

    def add_branch(self, branch_name: str, elements: list[Element] | list[str] | None = None, branch_type: str = "linac"):
        """Add a new branch to the lattice.
        Accepts either a list of Element objects or a list of element names; each
        entry is placed in the branch as a fresh occurrence (see add_element_to_branch).
        """
        if not branch_name:
            raise ValueError("Branch name cannot be empty.")
        if elements is None:
            elements = []
        if not isinstance(elements, list):
            raise TypeError("Elements must be a list of Element objects or element names.")
        if branch_name in self.branches:
            raise ValueError(f"Branch '{branch_name}' already exists in the lattice.")
        validate_lattice_branch_type(branch_type)

        self.branches[branch_name] = []
        self.branch_specs[branch_name] = branch_type

        for item in elements:
            if isinstance(item, Element):
                if item.name not in self.elements:
                    self.add_element(item)
                self.add_element_to_branch(branch_name, item.name)
            elif isinstance(item, str):
                if item not in self.elements:
                    raise ValueError(f"Element '{item}' not found in the element pool.")
                self.add_element_to_branch(branch_name, item)
            else:
                raise TypeError(f"Invalid element type: {type(item)}. Must be Element object or string.")

        if not self.root_branch_name:
            self.root_branch_name = branch_name

    def add_element_to_branch(self, branch_name: str, element_name: str, **overrides):
        """Add an element to a branch by referencing its name in the element pool.
        Creates a copy with automatic naming: existing_name_{#of appearance}, so every
        position in the beamline owns its own element (and its own monitor readings).
        Optional parameter overrides can be provided as {group_type: {name: value}}."""
        if branch_name not in self.branches:
            raise ValueError(f"Branch '{branch_name}' does not exist.")
        if element_name not in self.elements:
            raise ValueError(f"Element '{element_name}' not found in the element pool.")

        count = self.element_occurrences.get(element_name, 0) + 1
        self.element_occurrences[element_name] = count

        original = self.get_element(element_name)
        new_element = create_element_by_type(
            element_type=original.type,
            name=f"{element_name}_{count}",
            length=original.length,
            inherit=element_name
        )

        for group in original.parameters:
            new_element.add_parameter_group(copy.deepcopy(group))

        for param_group, params in overrides.items():
            for param_name, param_value in params.items():
                new_element.add_parameter(param_group, param_name, param_value)

        self.elements[new_element.name] = new_element
        self.branches[branch_name].append(new_element.name)
        return new_element

    def set_root_branch(self, branch_name: str):
        """Set the root branch of the lattice."""
        if branch_name not in self.branches:
            raise ValueError(f"Branch '{branch_name}' does not exist in the lattice.")
        self.root_branch_name = branch_name

    def _resolve_branch(self, branch_name: str | None) -> str:
        if branch_name is None:
            if not self.root_branch_name:
                raise ValueError("No root branch set and no branch specified.")
            branch_name = self.root_branch_name
        if branch_name not in self.branches:
            raise ValueError(f"Branch '{branch_name}' does not exist in the lattice.")
        return branch_name

    def get_total_path_length(self, branch_name: str | None = None) -> float:
        """Total path length of a branch (root branch by default), in meters."""
        branch_name = self._resolve_branch(branch_name)
        return sum(self.elements[name].length for name in self.branches[branch_name])

    def set_branch_type(self, branch_name: str, branch_type: str):
        """Set the type specification for a branch ('ring' or 'linac')."""
        if branch_name not in self.branches:
            raise ValueError(f"Branch '{branch_name}' does not exist in the lattice.")
        self.branch_specs[branch_name] = validate_lattice_branch_type(branch_type)

    def get_branch_type(self, branch_name: str) -> str:
        if branch_name not in self.branches:
            raise ValueError(f"Branch '{branch_name}' does not exist in the lattice.")
        return self.branch_specs.get(branch_name, 'linac')

    def is_ring(self) -> bool:
        return self.get_branch_type(self._resolve_branch(None)) == 'ring'

    def expand_lattice(self) -> list[Element]:
        """Expand the root branch into the ordered list of beamline elements."""
        branch_name = self._resolve_branch(None)
        return [self.elements[name] for name in self.branches[branch_name]]

    def __len__(self) -> int:
        if not self.root_branch_name:
            return 0
        return len(self.branches[self.root_branch_name])

    # Beamline model interface

    def get_beamline(self, first: int | None = None, last: int | None = None) -> Beamline:
        """Return the beamline ``[first, last]`` (inclusive); the whole beamline by default.

        Raises:
            InvalidSegment: If the lattice is empty or the range is inverted or
                outside the beamline.
        """
        expanded = self.expand_lattice() if self.root_branch_name else []
        if not expanded:
            raise InvalidSegment(f"Lattice '{self.name}' has an empty beamline")

        first = 0 if first is None else first
        last = len(expanded) - 1 if last is None else last
        if first < 0 or last >= len(expanded) or first > last:
            raise InvalidSegment(
                f"Range [{first}, {last}] is not a valid segment of a {len(expanded)}-element beamline"
            )
        return Beamline(first_index=first, last_index=last, elements=expanded[first:last + 1])

    def get_ring(self, start: int = 0) -> Beamline:
        """Return one full turn of the beamline that starts and ends at element ``start``.

        Raises:
            InvalidSegment: If the lattice is empty or ``start`` is outside the beamline.
        """
        expanded = self.expand_lattice() if self.root_branch_name else []
        if not expanded:
            raise InvalidSegment(f"Lattice '{self.name}' has an empty beamline")
        n = len(expanded)
        if not 0 <= start < n:
            raise InvalidSegment(f"Ring start {start} is outside a {n}-element beamline")
        return Beamline(first_index=start, last_index=(start - 1) % n,
                        elements=expanded[start:] + expanded[:start], period=n)

    def get_beamline_range(self) -> Segment:
        beamline = self.get_beamline()
        return beamline.segment

    def extract_typed_elements(self, element_type: str) -> list[Element]:
        """All beamline elements of ``element_type``.

        The order follows the element pool, not the beamline; callers that need
        beamline order sort with ``get_element_indexes``.
        """
        in_beamline = set(self.branches.get(self.root_branch_name, []))
        return [element for name, element in self.elements.items()
                if element.type == element_type and name in in_beamline]

    def get_element_indexes(self, element_name: str) -> list[int]:
        """Beamline indexes at which the named element occurs."""
        branch = self.branches[self._resolve_branch(None)]
        return [i for i, name in enumerate(branch) if name == element_name]

    def get_indexes(self, pattern: str) -> list[int]:
        """Beamline indexes of elements whose ``<type>.<name>`` matches the glob ``pattern``."""
        return [i for i, element in enumerate(self.expand_lattice())
                if fnmatchcase(f"{element.type}.{element.name}", pattern)]

    def get_ro_channels(self, beamline: Beamline, pattern: str) -> list[ROChannel]:
        return find_ro_channels(beamline, pattern)

    def get_rw_channels(self, beamline: Beamline, pattern: str) -> list[RWChannel]:
        return find_rw_channels(beamline, pattern)

    def to_yaml_dict(self) -> dict:
        """Convert the lattice to YAML format.
        Structure: prototype elements first, then branches with inline element details."""
        result: dict = {
            'name': self.name,
            'root_branch': self.root_branch_name,
            'branch_types': dict(self.branch_specs),
        }

        prototype_elements = [element.to_yaml_dict() for element in self.elements.values()
                              if element.inherit is None]
        if prototype_elements:
            result['elements'] = prototype_elements

        for branch_name, element_names in self.branches.items():
            result[branch_name] = [self.elements[name].to_yaml_dict() for name in element_names]

        return result

    @staticmethod
    def _element_from_yaml(element_data: dict) -> Element:
        if not isinstance(element_data, dict) or len(element_data) != 1:
            raise ValueError(f"Malformed element entry: {element_data!r}")
        element_type, element_info = next(iter(element_data.items()))
        element = create_element_by_type(
            element_type=element_type,
            name=element_info.get('name', ''),
            length=element_info.get('length', 0.0),
            inherit=element_info.get('inherit'),
        )
        for group_type, param_data in element_info.items():
            if group_type in ('name', 'length', 'inherit'):
                continue
            group = ParameterGroup(name=group_type, type=group_type, parameters=dict(param_data or {}))
            element.add_parameter_group(group)
        return element

    @classmethod
    def from_yaml_dict(cls, data: dict) -> 'Lattice':
        """Create a Lattice from a YAML dictionary produced by ``to_yaml_dict``."""
        lattice = cls(name=data.get('name', ''), root_branch_name="")
        branch_types = data.get('branch_types', {})

        for element_data in data.get('elements', []):
            lattice.add_element(cls._element_from_yaml(element_data))

        for key, value in data.items():
            if key in ('name', 'root_branch', 'branch_types', 'elements'):
                continue
            branch_type = validate_lattice_branch_type(branch_types.get(key, 'linac'))
            lattice.branches[key] = []
            lattice.branch_specs[key] = branch_type
            for element_data in value or []:
                element = cls._element_from_yaml(element_data)
                lattice.add_element(element, check_consistency=False)
                lattice.branches[key].append(element.name)
                if element.inherit is not None:
                    lattice.element_occurrences[element.inherit] = lattice.element_occurrences.get(element.inherit, 0) + 1

        root_branch = data.get('root_branch', '')
        if root_branch:
            lattice.set_root_branch(root_branch)
        elif lattice.branches:
            lattice.root_branch_name = next(iter(lattice.branches))

        return lattice
