"""Derived physical quantities of a MechanismState, computed by jaxsim.

All quantities are expressed in the world frame. Momentum is jaxsim's
6-vector [linear momentum; angular momentum about the world origin].
Functions work for any state element type: on a dual state they return
JAX tracers carrying partial derivatives.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import jaxsim.api as js
import numpy as np
from jaxsim.api.common import VelRepr

from mechanism.state import MechanismState, model_data
from mechanism.topology import Mechanism


def body_transforms(state: MechanismState) -> dict:
    """link name -> 4x4 homogeneous link-to-world transform."""
    transforms = js.model.forward_kinematics(state.mechanism.model, state.data)
    return dict(zip(state.mechanism.link_names, transforms))


def transform_to_root(state: MechanismState, body_name: str):
    """4x4 transform from *body_name*'s frame to the world frame."""
    index = state.mechanism.link_index(body_name)
    return js.model.forward_kinematics(state.mechanism.model, state.data)[index]


def center_of_mass(state: MechanismState):
    """World-frame center of mass of every link, the fixed root included."""
    return js.com.com_position(state.mechanism.model, state.data)


def momentum_matrix(state: MechanismState):
    """(6, nv) momentum map A(q), with momentum = A(q) @ v.

    The joint columns of jaxsim's momentum Jacobian; the base columns
    multiply the base velocity, which is zero for a fixed base.
    """
    jac = js.model.total_momentum_jacobian(
        state.mechanism.model, state.data, output_vel_repr=VelRepr.Inertial,
    )
    return jac[:, 6:]


def momentum(state: MechanismState):
    return js.model.total_momentum(state.mechanism.model, state.data)


def kinetic_energy(state: MechanismState):
    return js.model.kinetic_energy(state.mechanism.model, state.data)


def gravitational_potential_energy(state: MechanismState):
    """m g z_com, zero when the center of mass is at world height zero."""
    mechanism = state.mechanism
    com = js.com.com_position(mechanism.model, state.data)
    return js.model.total_mass(mechanism.model) * mechanism.gravity * com[2]


def total_energy(state: MechanismState):
    return kinetic_energy(state) + gravitational_potential_energy(state)


def mass_matrix(state: MechanismState):
    """(nv, nv) joint-space mass matrix M(q)."""
    return js.model.free_floating_mass_matrix(state.mechanism.model, state.data)[6:, 6:]


def dynamics(state: MechanismState, torques=None):
    """Joint accelerations under gravity and the given joint torques."""
    return joint_accelerations(state.mechanism, state.q, state.v, torques)


def joint_accelerations(mechanism: Mechanism, q, v, torques=None):
    """Forward dynamics at (q, v) without touching any state.

    Without *torques* the mechanism evolves passively, so total energy
    is conserved.
    """
    if torques is None:
        torques = np.zeros(mechanism.num_velocities)
    elif np.shape(torques) != (mechanism.num_velocities,):
        raise ValueError(
            f"Expected torques of shape ({mechanism.num_velocities},), "
            f"got {np.shape(torques)}"
        )
    return _accelerations(mechanism.model, jnp.array(q), jnp.array(v), jnp.asarray(torques))


@jax.jit
def _accelerations(model, q, v, torques):
    data = model_data(model, q, v)
    _, joint_acc = js.model.forward_dynamics(model, data, joint_forces=torques)
    return joint_acc
