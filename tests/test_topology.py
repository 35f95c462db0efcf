"""Tests for mechanism/topology.py and mechanism/builders.py."""

import xml.etree.ElementTree as ET

import pytest

from mechanism.builders import DoublePendulumParams, double_pendulum, double_pendulum_urdf
from mechanism.topology import STANDARD_GRAVITY, Mechanism
from mechanism.urdf import default_urdf_path, parse_urdf


@pytest.fixture(scope="module")
def pendulum():
    return double_pendulum()


class TestMechanism:
    """Queries on a jaxsim-backed mechanism."""

    def test_counts(self, pendulum):
        assert pendulum.num_positions == 2
        assert pendulum.num_velocities == 2
        assert pendulum.joint_names == ("shoulder", "elbow")

    def test_root_is_fixed_base(self, pendulum):
        assert pendulum.root == "pivot"
        assert not pendulum.model.floating_base()

    def test_links(self, pendulum):
        assert set(pendulum.link_names) == {"pivot", "upper_bob", "lower_bob"}

    def test_joint_index(self, pendulum):
        assert pendulum.joint_index("shoulder") == 0
        assert pendulum.joint_index("elbow") == 1

    def test_unknown_lookup(self, pendulum):
        with pytest.raises(KeyError):
            pendulum.joint_index("nope")
        with pytest.raises(KeyError):
            pendulum.link_index("nope")

    def test_default_gravity(self):
        assert parse_urdf(default_urdf_path()).gravity == STANDARD_GRAVITY

    def test_negative_gravity_rejected(self, pendulum):
        with pytest.raises(ValueError, match="non-negative"):
            Mechanism(pendulum.model, gravity=-9.81)

    def test_hashable_and_equal(self):
        a = double_pendulum(DoublePendulumParams(m1=2.0))
        b = double_pendulum(DoublePendulumParams(m1=2.0))
        assert a == b
        assert hash(a) == hash(b)
        assert a != double_pendulum(DoublePendulumParams(g=1.62))


class TestDoublePendulumBuilder:
    """Programmatic two-link pendulum."""

    def test_gravity_from_params(self):
        mech = double_pendulum(DoublePendulumParams(g=1.62))
        assert mech.gravity == 1.62

    def test_masses(self):
        mech = double_pendulum(DoublePendulumParams(m1=1.5, m2=0.5))
        # Point masses plus the nominal mass given to the fixed pivot
        assert mech.total_mass == pytest.approx(3.0)

    def test_document(self):
        robot = ET.fromstring(double_pendulum_urdf(DoublePendulumParams(l1=2.0)))
        elbow = [j for j in robot.findall("joint") if j.get("name") == "elbow"][0]
        assert elbow.find("origin").get("xyz") == "0 0 -2.0"
        assert elbow.find("axis").get("xyz") == "0 -1 0"

    def test_rejects_non_positive_length(self):
        with pytest.raises(ValueError):
            double_pendulum(DoublePendulumParams(l2=0.0))
