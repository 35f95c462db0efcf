"""Mechanism: an immutable rigid-body tree backed by a jaxsim model.

The kinematic and dynamic algorithms live in jaxsim; a Mechanism pins
down the pieces the rest of the package relies on: a fixed base, the
joint ordering of q and v, and the gravity magnitude used for potential
energy. Mechanisms are hashable, so they can key compiled functions and
be shared by every state built on them.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax
import jaxsim.api as js
import jaxsim.math

jax.config.update("jax_enable_x64", True)

STANDARD_GRAVITY = float(jaxsim.math.STANDARD_GRAVITY)


@dataclass(frozen=True)
class Mechanism:
    """A fixed-base jaxsim model plus the gravity it was built with.

    Attributes:
        model: The jaxsim model; read-only from this package's point of view.
        gravity: Gravitational acceleration along -z (m/s^2, positive).
    """

    model: js.model.JaxSimModel
    gravity: float = STANDARD_GRAVITY

    def __post_init__(self):
        if self.model.floating_base():
            raise ValueError(
                f"Mechanism '{self.model.name()}' has a floating base; "
                f"attach its root link to 'world' with a fixed joint"
            )
        if not self.gravity >= 0.0:
            raise ValueError(f"Gravity must be a non-negative magnitude, got {self.gravity}")
        object.__setattr__(self, "gravity", float(self.gravity))

    @property
    def name(self) -> str:
        return self.model.name()

    @property
    def root(self) -> str:
        """The base link, welded to the world."""
        return self.model.base_link()

    @property
    def num_positions(self) -> int:
        return self.model.dofs()

    @property
    def num_velocities(self) -> int:
        return self.model.dofs()

    @property
    def joint_names(self) -> tuple[str, ...]:
        """Names of the moving joints, in q/v order."""
        return tuple(self.model.joint_names())

    @property
    def link_names(self) -> tuple[str, ...]:
        return tuple(self.model.link_names())

    @property
    def total_mass(self) -> float:
        return float(js.model.total_mass(self.model))

    def joint_index(self, name: str) -> int:
        """Index of joint *name* in the configuration and velocity vectors."""
        try:
            return self.joint_names.index(name)
        except ValueError:
            raise KeyError(f"No joint named '{name}' in mechanism '{self.name}'") from None

    def link_index(self, name: str) -> int:
        try:
            return self.link_names.index(name)
        except ValueError:
            raise KeyError(f"No link named '{name}' in mechanism '{self.name}'") from None
