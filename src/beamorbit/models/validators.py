"""
Custom validators for physics-specific constraints in beamorbit.

This module provides specialized validation functions for accelerator physics
parameters, ensuring physical correctness and reasonable value ranges.
"""

from typing import Optional, List
import math


def validate_magnetic_strength(value: Optional[float], max_strength: float = 1000.0) -> Optional[float]:
    """
    Validate magnetic field strength parameters.

    Args:
        value: Magnetic strength value (can be None)
        max_strength: Maximum allowed strength

    Returns:
        Validated value

    Raises:
        ValueError: If strength exceeds reasonable limits
    """
    if value is not None and abs(value) > max_strength:
        raise ValueError(f"Magnetic strength {value} exceeds reasonable limit (±{max_strength})")
    return value


def validate_rf_frequency(frequency: Optional[float]) -> Optional[float]:
    """
    Validate RF frequency is in reasonable range for accelerators.

    Args:
        frequency: RF frequency in Hz

    Returns:
        Validated frequency

    Raises:
        ValueError: If frequency is outside reasonable range
    """
    if frequency is not None and not (1e6 <= frequency <= 1e12):  # 1 MHz to 1 THz
        raise ValueError(f"RF frequency {frequency} Hz outside reasonable range (1 MHz - 1 THz)")
    return frequency


def validate_bending_angle(angle: Optional[float]) -> Optional[float]:
    """
    Validate bending magnet angle.

    Args:
        angle: Bending angle in radians

    Returns:
        Validated angle

    Raises:
        ValueError: If angle seems unreasonably large
    """
    if angle is not None and abs(angle) > 4 * math.pi:  # More than 4π radians (2 full circles)
        raise ValueError(f"Bending angle {angle} rad seems unreasonably large (>{4*math.pi:.2f} rad)")
    return angle


def validate_matrix_size(values: Optional[List[float]], size: int, label: str) -> Optional[List[float]]:
    """
    Validate a flattened matrix or vector has the expected number of entries.

    Args:
        values: Flattened values (row-major for matrices)
        size: Required number of entries
        label: Name used in the error message

    Returns:
        Validated values
    """
    if values is not None and len(values) != size:
        raise ValueError(f"{label} must have exactly {size} entries, got {len(values)}")
    return values


def validate_element_name(name: str) -> str:
    """
    Validate element name follows naming conventions.

    Element names are used to build channel identifiers of the form
    ``<type>.<name>.<key>``, so dots and whitespace are not allowed.
    """
    if not name:
        raise ValueError("Element name cannot be empty")
    if not name.replace('_', '').replace('-', '').isalnum():
        raise ValueError(
            f"Element name '{name}' must contain only alphanumeric characters, underscores, and hyphens"
        )
    return name


def validate_lattice_branch_type(branch_type: str) -> str:
    """Validate branch topology is either 'ring' or 'linac'."""
    if branch_type not in ('ring', 'linac'):
        raise ValueError("Branch type must be either 'ring' or 'linac'.")
    return branch_type
