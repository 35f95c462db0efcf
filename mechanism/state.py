"""Mutable mechanism state, parameterized by numeric element type.

A state holds the configuration q and velocity v of one mechanism for
one element type: a plain float type such as np.float64, or a JAX
tracer type (the dual numbers that carry partial derivatives during
forward-mode differentiation). The jaxsim data for (q, v) is built on
first use and rebuilt only after a setter runs.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import jaxsim.api as js
import numpy as np
from jaxsim.api.common import VelRepr

from mechanism.topology import Mechanism


def is_dual_type(element_type) -> bool:
    """True for JAX tracer classes, which play the role of dual numbers."""
    return isinstance(element_type, type) and issubclass(element_type, jax.core.Tracer)


def normalize_element_type(element_type):
    """Canonical element type used to key states.

    float, np.float64 and np.dtype("float64") all map to np.float64;
    tracer classes map to themselves.

    Raises:
        TypeError: The type is neither a floating-point type nor a tracer.
    """
    if is_dual_type(element_type):
        return element_type
    try:
        dtype = np.dtype(element_type)
    except TypeError as exc:
        raise TypeError(f"Unsupported state element type {element_type!r}") from exc
    if not np.issubdtype(dtype, np.floating):
        raise TypeError(
            f"State element type must be floating point or a dual number, "
            f"got {dtype}"
        )
    return dtype.type


def element_type(x):
    """Element type of an array-like, in the form states are keyed by."""
    if isinstance(x, jax.core.Tracer):
        return type(x)
    dtype = getattr(x, "dtype", None)
    if dtype is None:
        dtype = np.asarray(x).dtype
    return np.dtype(dtype).type


@jax.jit
def model_data(model: js.model.JaxSimModel, q, v) -> js.data.JaxSimModelData:
    """jaxsim data of a fixed-base model at joint positions q and velocities v.

    Velocities are in the inertial-fixed representation, so every derived
    6D quantity is expressed in the world frame about the world origin.
    """
    return js.data.JaxSimModelData.build(
        model=model,
        joint_positions=q,
        joint_velocities=v,
        velocity_representation=VelRepr.Inertial,
    )


class MechanismState:
    """Configuration, velocity and jaxsim data of a mechanism.

    Plain states own numpy buffers that setters overwrite in place.
    Dual states cannot hold tracers in numpy buffers, so setters rebind
    the stored JAX arrays instead; release() drops them again once an
    evaluation is over.

    Args:
        mechanism: The (immutable) mechanism this state describes.
        element_type: Numeric element type; see normalize_element_type().
    """

    def __init__(self, mechanism: Mechanism, element_type=np.float64):
        self._mechanism = mechanism
        self._element_type = normalize_element_type(element_type)
        self._dual = is_dual_type(self._element_type)
        nq, nv = mechanism.num_positions, mechanism.num_velocities
        if self._dual:
            self._q = jnp.zeros(nq)
            self._v = jnp.zeros(nv)
        else:
            self._q = np.zeros(nq, dtype=self._element_type)
            self._v = np.zeros(nv, dtype=self._element_type)
        self._data: js.data.JaxSimModelData | None = None

    def __repr__(self) -> str:
        return (
            f"MechanismState({self._mechanism.name!r}, "
            f"element_type={self._element_type.__name__})"
        )

    @property
    def mechanism(self) -> Mechanism:
        return self._mechanism

    @property
    def element_type(self):
        return self._element_type

    @property
    def is_dual(self) -> bool:
        return self._dual

    @property
    def q(self):
        """Configuration vector (read-only; use set_configuration)."""
        return self._readonly(self._q)

    @property
    def v(self):
        """Velocity vector (read-only; use set_velocity)."""
        return self._readonly(self._v)

    @property
    def data(self) -> js.data.JaxSimModelData:
        if self._data is None:
            self._data = model_data(self._mechanism.model, jnp.array(self._q), jnp.array(self._v))
        return self._data

    def set_configuration(self, q) -> None:
        self._q = self._write(self._q, q, "configuration")
        self._data = None

    def set_velocity(self, v) -> None:
        self._v = self._write(self._v, v, "velocity")
        self._data = None

    def zero_velocity(self) -> None:
        self.set_velocity(np.zeros(self._mechanism.num_velocities))

    def zero(self) -> None:
        self.set_configuration(np.zeros(self._mechanism.num_positions))
        self.zero_velocity()

    def release(self) -> None:
        """Forget the dual numbers of the last evaluation.

        A dual state goes back to concrete zeros so no tracer outlives
        the transformation that created it. Plain states keep their
        contents.
        """
        if self._dual:
            self.zero()

    def randomize(self, rng: np.random.Generator | None = None) -> None:
        """Configuration and velocity drawn uniformly from [0, 1)."""
        if rng is None:
            rng = np.random.default_rng()
        self.set_configuration(rng.random(self._mechanism.num_positions))
        self.set_velocity(rng.random(self._mechanism.num_velocities))

    def _write(self, buffer, values, what):
        if self._dual:
            values = jnp.asarray(values)
        else:
            values = np.asarray(values, dtype=self._element_type)
        if values.shape != buffer.shape:
            raise ValueError(
                f"Expected {what} of shape {buffer.shape} for mechanism "
                f"'{self._mechanism.name}', got {values.shape}"
            )
        if self._dual:
            return values
        buffer[...] = values
        return buffer

    def _readonly(self, buffer):
        if self._dual:
            return buffer
        view = buffer.view()
        view.flags.writeable = False
        return view
