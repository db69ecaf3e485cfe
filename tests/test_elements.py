"""
Test suite for beamorbit elements, parameter groups and the physics base models.
"""

import math

import numpy as np
import pytest
from pydantic import ValidationError

from beamorbit.machine_portal.element import Element
from beamorbit.machine_portal.drift import Drift
from beamorbit.machine_portal.bend import Bend
from beamorbit.machine_portal.quadrupole import Quadrupole
from beamorbit.machine_portal.kicker import Kicker
from beamorbit.machine_portal.monitor import Monitor
from beamorbit.machine_portal.marker import Marker
from beamorbit.machine_portal.rfcavity import RFCavity
from beamorbit.machine_portal.taylor_map import TaylorMap
from beamorbit.machine_portal.parameter_group import ParameterGroup
from beamorbit.models.base import PhysicsBaseModel
from beamorbit.models.parameter_groups import KickerP, create_parameter_group_model


class TestElement:
    """Test the Element base class."""

    def test_basic_element_creation(self):
        element = Element(name="test_element", type="Drift", length=1.0)
        assert element.name == "test_element"
        assert element.type == "Drift"
        assert element.length == 1.0
        assert element.inherit is None
        assert element.parameters == []

    def test_element_validation_errors(self):
        """Names, types and lengths are validated on construction."""
        with pytest.raises(ValidationError):
            Element(name="", type="Drift", length=1.0)
        with pytest.raises(ValidationError):
            Element(name="test", type="", length=1.0)
        with pytest.raises(ValidationError):
            Element(name="test", type="Drift", length=-1.0)
        # Dots would break channel identifiers
        with pytest.raises(ValidationError):
            Element(name="BPM.1", type="Monitor")

    def test_parameter_group_allowed_for_type(self):
        element = Element(name="test", type="Drift", length=1.0)
        element.add_parameter("MetaP", "comment", "straight section")
        assert element.get_parameter("MetaP", "comment") == "straight section"

        with pytest.raises(ValueError, match="not allowed"):
            element.add_parameter_group(ParameterGroup(name="BendP", type="BendP"))

    def test_get_float_defaults(self):
        element = Quadrupole(name="Q1", length=0.5)
        assert element.get_float("MagneticMultipoleP", "kn1") == 0.0
        assert element.get_float("MagneticMultipoleP", "kn1", default=2.0) == 2.0
        element.add_parameter("MagneticMultipoleP", "kn1", 1.5)
        assert element.get_float("MagneticMultipoleP", "kn1") == 1.5

    def test_remove_parameter(self):
        element = Kicker(name="COR")
        element.add_parameter("KickerP", "hkick", 1e-4)
        element.remove_parameter("KickerP", "hkick")
        assert element.get_parameter("KickerP", "hkick") is None

    def test_to_yaml_dict(self):
        element = Quadrupole(name="QF", length=0.5, inherit="Q")
        element.add_parameter("MagneticMultipoleP", "kn1", 0.8)
        assert element.to_yaml_dict() == {
            "Quadrupole": {
                "name": "QF",
                "length": 0.5,
                "inherit": "Q",
                "MagneticMultipoleP": {"kn1": 0.8},
            }
        }

    def test_channel_id(self):
        assert Monitor(name="BPM_3").channel_id("X") == "Monitor.BPM_3.X"


class TestElementTypes:
    """Type-specific validation and accessors."""

    def test_length_constraints(self):
        with pytest.raises(ValidationError):
            Drift(name="D", length=0.0)
        with pytest.raises(ValidationError):
            Bend(name="B", length=0.0)
        with pytest.raises(ValidationError):
            Marker(name="M", length=1.0)
        assert Marker(name="M").length == 0.0

    def test_type_is_fixed(self):
        with pytest.raises(ValidationError):
            Quadrupole(name="Q", type="Drift")
        with pytest.raises(ValidationError):
            Monitor(name="BPM", type="Marker")

    def test_quadrupole_strength_and_channels(self):
        quad = Quadrupole(name="QF", length=0.5)
        quad.add_parameter("MagneticMultipoleP", "kn1", 0.7)
        assert quad.k1 == 0.7
        assert quad.writable_channels() == {"K1": ("MagneticMultipoleP", "kn1")}

    def test_thin_quadrupole_warns(self):
        quad = Quadrupole(name="QT", length=0.0)
        quad.add_parameter("MagneticMultipoleP", "kn1", 0.2)
        with pytest.warns(UserWarning, match="thin lens"):
            quad.check_consistency()

    def test_bend_curvature(self):
        bend = Bend(name="B", length=2.0)
        bend.add_parameter("BendP", "angle", 0.1)
        assert bend.angle == 0.1
        assert bend.curvature == pytest.approx(0.05)

    def test_kicker_kicks(self):
        kicker = Kicker(name="COR", length=0.2)
        kicker.add_parameter("KickerP", "hkick", 2e-4)
        assert kicker.hkick == 2e-4
        assert kicker.vkick == 0.0
        assert set(kicker.writable_channels()) == {"HKICK", "VKICK"}

    def test_monitor_reading(self):
        monitor = Monitor(name="BPM")
        assert all(math.isnan(v) for v in monitor.reading)
        monitor.record(1e-3, -2e-3)
        assert monitor.reading == (1e-3, -2e-3)
        channels = monitor.readable_channels()
        assert channels["X"]() == 1e-3
        assert channels["Y"]() == -2e-3
        monitor.clear_reading()
        assert math.isnan(monitor.reading[0])

    def test_rf_cavity_needs_frequency(self):
        cavity = RFCavity(name="RF", length=0.5)
        cavity.add_parameter("RFP", "voltage", 1e6)
        with pytest.raises(ValueError, match="not consistent"):
            cavity.check_consistency()
        cavity.add_parameter("RFP", "freq", 5e8)
        cavity.check_consistency()

    def test_taylor_map_defaults_and_storage(self):
        element = TaylorMap(name="M")
        np.testing.assert_array_equal(element.matrix, np.identity(6))
        np.testing.assert_array_equal(element.offset, np.zeros(6))

        matrix = np.arange(36, dtype=float).reshape(6, 6) / 100.0
        element.set_map(matrix, [1e-3, 0, 0, 0, 0, 0])
        np.testing.assert_array_equal(element.matrix, matrix)
        assert element.offset[0] == 1e-3

        with pytest.raises(ValueError, match="6x6"):
            element.set_map(np.identity(4))


class TestParameterGroup:
    """Parameter names and values are validated against parameters.yaml and the group models."""

    def test_unknown_parameter_rejected(self):
        group = ParameterGroup(name="KickerP", type="KickerP")
        with pytest.raises(ValueError, match="not allowed"):
            group.add_parameter("kick", 1e-4)

    def test_invalid_value_restores_previous(self):
        group = ParameterGroup(name="KickerP", type="KickerP")
        group.add_parameter("hkick", 1e-3)
        with pytest.raises(ValueError, match="failed validation"):
            group.add_parameter("hkick", 0.5)
        assert group.get_parameter("hkick") == 1e-3

    def test_invalid_value_on_construction(self):
        with pytest.raises(ValueError):
            ParameterGroup(name="TaylorP", type="TaylorP", parameters={"c": [0.0, 1.0]})

    def test_unknown_group_type_warns(self):
        with pytest.warns(UserWarning, match="Unknown parameter group type"):
            ParameterGroup(name="Custom", type="CustomP")

    def test_to_yaml_dict_is_flat(self):
        group = ParameterGroup(name="RFP", type="RFP")
        group.add_parameter("voltage", 2e6)
        group.add_parameter("freq", 5e8)
        assert group.to_yaml_dict() == {"voltage": 2e6, "freq": 5e8}

    def test_allowed_parameters(self):
        group = ParameterGroup(name="KickerP", type="KickerP")
        assert group.get_allowed_parameters() == ["hkick", "vkick"]


class TestPhysicsModels:
    """The specialised group models and the shared base model."""

    def test_group_model_factory(self):
        model = create_parameter_group_model("KickerP", hkick=1e-4)
        assert isinstance(model, KickerP)
        assert model.hkick == 1e-4
        with pytest.raises(ValueError, match="Unknown parameter group type"):
            create_parameter_group_model("NotAGroup")

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            KickerP(hkick=0.0, strength=1.0)

    def test_assignment_is_validated(self):
        model = KickerP()
        with pytest.raises(ValidationError):
            model.vkick = 1.0

    def test_yaml_dict_converts_numpy(self):
        class Sample(PhysicsBaseModel):
            values: np.ndarray
            scale: float

        sample = Sample(values=np.array([1.0, 2.0]), scale=np.float64(0.5))
        data = sample.to_yaml_dict()
        assert data == {"values": [1.0, 2.0], "scale": 0.5}
        assert isinstance(data["values"], list)

    def test_from_dict_round_trip(self):
        model = KickerP.from_dict({"hkick": 1e-3, "vkick": -1e-3})
        assert KickerP.from_dict(model.to_dict()) == model
