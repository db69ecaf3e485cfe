"""
beamorbit Pydantic Models Package

This package contains Pydantic models for validation and type safety
of element parameter groups and run settings.
"""

from .base import PhysicsBaseModel
from .parameter_groups import (
    MagneticMultipoleP, BendP, RFP, KickerP, TaylorP, MarkerP, MonitorP, MetaP,
    PARAMETER_GROUP_MODELS, create_parameter_group_model
)

__all__ = [
    'PhysicsBaseModel',
    'MagneticMultipoleP',
    'BendP',
    'RFP',
    'KickerP',
    'TaylorP',
    'MarkerP',
    'MonitorP',
    'MetaP',
    'PARAMETER_GROUP_MODELS',
    'create_parameter_group_model'
]
