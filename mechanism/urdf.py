"""URDF loading: document -> Mechanism.

The document is checked and anchored here, then handed to jaxsim, which
builds the kinematic tree and the inertial parameters. Anchoring welds
the root link to a 'world' link with a fixed joint, so the mechanism has
a fixed base. <dynamics> damping is never applied: forward dynamics are
passive and non-dissipative.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

import jaxsim.api as js

from mechanism.topology import STANDARD_GRAVITY, Mechanism

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent / "data"

WORLD_LINK = "world"

# URDF joint types the mechanisms here may use
JOINT_TYPES = ("revolute", "continuous", "prismatic", "fixed")


def default_urdf_path() -> Path:
    """Path of the bundled two-link pendulum description."""
    return _DATA_DIR / "doublependulum.urdf"


def parse_urdf(source, gravity=STANDARD_GRAVITY) -> Mechanism:
    """Build a Mechanism from a URDF file path or an XML string.

    Args:
        source: Path to a URDF file, or the URDF document itself.
        gravity: Gravitational acceleration along -z, as a positive number.

    Raises:
        FileNotFoundError: *source* is a path that does not exist.
        ValueError: The document is not valid XML or not a valid tree.
    """
    robot = _load_root(source)
    if robot.tag != "robot":
        raise ValueError(f"URDF root element must be <robot>, got <{robot.tag}>")

    name = robot.get("name", "robot")
    links = [_required(link, "name", "link") for link in robot.findall("link")]
    duplicates = sorted({link for link in links if links.count(link) > 1})
    if duplicates:
        raise ValueError(f"Duplicate link names in URDF '{name}': {duplicates}")
    for link in robot.findall("link"):
        _check_inertial(link)
    parent_of = {}
    for joint in robot.findall("joint"):
        parent, child = _check_joint(joint, links)
        if child in parent_of:
            raise ValueError(f"Link '{child}' has more than one parent joint")
        parent_of[child] = parent

    roots = [link for link in links if link not in parent_of]
    if len(roots) != 1:
        raise ValueError(
            f"URDF '{name}' must have exactly one root link, found {roots}"
        )
    _require_connected(roots[0], parent_of)
    if roots[0] != WORLD_LINK:
        _anchor(robot, roots[0])

    model = js.model.JaxSimModel.build_from_model_description(
        model_description=ET.tostring(robot, encoding="unicode"),
        model_name=name,
        is_urdf=True,
        gravity=gravity,
    )
    mechanism = Mechanism(model=model, gravity=gravity)
    logger.debug(
        "Parsed URDF '%s': %d links, %d joints, %d velocities",
        name, len(mechanism.link_names), len(mechanism.joint_names),
        mechanism.num_velocities,
    )
    return mechanism


def _load_root(source) -> ET.Element:
    text = source if isinstance(source, str) else None
    if text is None or not text.lstrip().startswith("<"):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"URDF file not found: {path}")
        text = path.read_text()
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValueError(f"Malformed URDF: {exc}") from exc


def _anchor(robot: ET.Element, root: str) -> None:
    """Weld *root* to a new world link.

    A root without an <inertial> gets a nominal one; it never moves, so
    its inertia does not enter the dynamics.
    """
    for link in robot.findall("link"):
        if link.get("name") == root and link.find("inertial") is None:
            inertial = ET.SubElement(link, "inertial")
            ET.SubElement(inertial, "mass", value="1")
            ET.SubElement(
                inertial, "inertia",
                ixx="1", ixy="0", ixz="0", iyy="1", iyz="0", izz="1",
            )
    ET.SubElement(robot, "link", name=WORLD_LINK)
    joint = ET.SubElement(robot, "joint", name=f"{WORLD_LINK}_to_{root}", type="fixed")
    ET.SubElement(joint, "parent", link=WORLD_LINK)
    ET.SubElement(joint, "child", link=root)


def _check_inertial(link: ET.Element) -> None:
    inertial = link.find("inertial")
    if inertial is None:
        return
    name = link.get("name")
    mass_el = inertial.find("mass")
    if mass_el is None:
        raise ValueError(f"Link '{name}' has <inertial> without <mass>")
    mass = _float(mass_el, "value", f"link '{name}' mass")
    if mass < 0.0:
        raise ValueError(f"Link '{name}' has negative mass {mass}")
    origin = inertial.find("origin")
    if origin is not None:
        _triple(origin.get("xyz"))
        _triple(origin.get("rpy"))


def _require_connected(root: str, parent_of: dict[str, str]) -> None:
    reached = {root}
    frontier = [root]
    while frontier:
        parent = frontier.pop()
        for child, p in parent_of.items():
            if p == parent and child not in reached:
                reached.add(child)
                frontier.append(child)
    # Every non-root link has one parent, so unreached links form a cycle
    cycle = sorted(set(parent_of) - reached)
    if cycle:
        raise ValueError(f"Links form a cycle: {cycle}")


def _check_joint(joint: ET.Element, links: list[str]) -> tuple[str, str]:
    """Validate one <joint> and return its (parent, child) link names."""
    name = _required(joint, "name", "joint")
    kind = _required(joint, "type", f"joint '{name}'")
    if kind not in JOINT_TYPES:
        raise ValueError(
            f"Joint '{name}' has unknown kind '{kind}'; expected one of {list(JOINT_TYPES)}"
        )
    parent = joint.find("parent")
    child = joint.find("child")
    if parent is None or child is None:
        raise ValueError(f"Joint '{name}' needs both <parent> and <child>")
    ends = (
        _required(parent, "link", f"joint '{name}' parent"),
        _required(child, "link", f"joint '{name}' child"),
    )
    for end in ends:
        if end not in links:
            raise ValueError(f"Joint '{name}' references unknown link '{end}'")

    origin = joint.find("origin")
    if origin is not None:
        _triple(origin.get("xyz"))
        _triple(origin.get("rpy"))
    axis = joint.find("axis")
    if axis is not None and kind != "fixed":
        if not any(_triple(axis.get("xyz"))):
            raise ValueError(f"Joint '{name}' has a zero-length axis")
    return ends


def _triple(text: str | None) -> tuple[float, float, float]:
    if text is None:
        return (0.0, 0.0, 0.0)
    parts = text.split()
    if len(parts) != 3:
        raise ValueError(f"Expected three numbers, got '{text}'")
    return tuple(float(p) for p in parts)


def _required(element: ET.Element, attr: str, what: str) -> str:
    value = element.get(attr)
    if value is None:
        raise ValueError(f"Missing '{attr}' attribute on {what}")
    return value


def _float(element: ET.Element, attr: str, what: str) -> float:
    try:
        return float(_required(element, attr, what))
    except ValueError as exc:
        raise ValueError(f"Invalid number for {what}: {exc}") from exc
