"""Programmatic construction of the two-link pendulum."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass

from mechanism.topology import Mechanism
from mechanism.urdf import parse_urdf

# Both joints rotate about -y, so positive angles move the bobs toward +x
SWING_AXIS = "0 -1 0"


@dataclass(frozen=True)
class DoublePendulumParams:
    """Physical parameters of a point-mass double pendulum."""

    m1: float = 1.0
    m2: float = 1.0
    l1: float = 1.0
    l2: float = 1.0
    g: float = 9.81


def double_pendulum_urdf(params: DoublePendulumParams | None = None) -> str:
    """URDF document for two point masses on massless rods in the x-z plane.

    Link frames sit at the joints; each bob hangs at (0, 0, -l) in its
    link frame when its joint angle is zero.
    """
    if params is None:
        params = DoublePendulumParams()
    if params.l1 <= 0.0 or params.l2 <= 0.0:
        raise ValueError(f"Rod lengths must be positive, got l1={params.l1}, l2={params.l2}")

    robot = ET.Element("robot", name="double_pendulum")
    ET.SubElement(robot, "link", name="pivot")
    _point_mass(robot, "upper_bob", params.m1, params.l1)
    _point_mass(robot, "lower_bob", params.m2, params.l2)
    _swing_joint(robot, "shoulder", "pivot", "upper_bob", offset=0.0)
    _swing_joint(robot, "elbow", "upper_bob", "lower_bob", offset=params.l1)
    return ET.tostring(robot, encoding="unicode")


def double_pendulum(params: DoublePendulumParams | None = None) -> Mechanism:
    """Two-link pendulum with relative joint angles.

    q[0] is the upper rod's angle from straight down, q[1] the lower
    rod's angle from the upper rod.
    """
    if params is None:
        params = DoublePendulumParams()
    return parse_urdf(double_pendulum_urdf(params), gravity=params.g)


def _point_mass(robot: ET.Element, name: str, mass: float, length: float) -> None:
    link = ET.SubElement(robot, "link", name=name)
    inertial = ET.SubElement(link, "inertial")
    ET.SubElement(inertial, "origin", xyz=f"0 0 {-length!r}", rpy="0 0 0")
    ET.SubElement(inertial, "mass", value=repr(float(mass)))
    ET.SubElement(
        inertial, "inertia",
        ixx="0", ixy="0", ixz="0", iyy="0", iyz="0", izz="0",
    )


def _swing_joint(robot: ET.Element, name: str, parent: str, child: str, offset: float) -> None:
    joint = ET.SubElement(robot, "joint", name=name, type="continuous")
    ET.SubElement(joint, "parent", link=parent)
    ET.SubElement(joint, "child", link=child)
    ET.SubElement(joint, "origin", xyz=f"0 0 {-offset!r}", rpy="0 0 0")
    ET.SubElement(joint, "axis", xyz=SWING_AXIS)
