"""Forward-mode Jacobians and gradients.

jacobian() allocates a fresh result. jacobian_into() writes into a
caller-provided buffer and takes a JacobianConfig, which holds the
compiled forward-mode Jacobian so repeated calls skip retracing.
"""

from __future__ import annotations

import logging

import jax
import jax.numpy as jnp
import numpy as np

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)


def jacobian(f, x) -> np.ndarray:
    """Jacobian of f at x, shape f(x).shape + x.shape."""
    return np.asarray(jax.jacfwd(f)(jnp.asarray(x)))


def gradient(f, x) -> np.ndarray:
    """Forward-mode gradient of a scalar-valued f at x."""
    x = jnp.asarray(x)
    grad = np.asarray(jax.jacfwd(f)(x))
    if grad.shape != x.shape:
        raise ValueError(
            f"gradient() needs a scalar function; f returned shape "
            f"{grad.shape[:grad.ndim - x.ndim]}"
        )
    return grad


class JacobianConfig:
    """Reusable scratch for jacobian_into().

    The function is compiled on the first call. Anything f reads from its
    closure is frozen into the compiled code at that point, so build a new
    config when those captured values change.

    Args:
        f: Function to differentiate.
        x: Example input; fixes the input shape.
    """

    def __init__(self, f, x):
        self.f = f
        self.input_shape = np.shape(x)
        self.output_shape: tuple | None = None
        self._jacobian = jax.jit(jax.jacfwd(f))

    def __call__(self, x):
        if np.shape(x) != self.input_shape:
            raise ValueError(
                f"JacobianConfig was built for input shape {self.input_shape}, "
                f"got {np.shape(x)}"
            )
        if self.output_shape is None:
            logger.debug("Compiling Jacobian for input shape %s", self.input_shape)
        jac = self._jacobian(jnp.asarray(x))
        self.output_shape = jac.shape[:jac.ndim - len(self.input_shape)]
        return jac


def jacobian_into(out: np.ndarray, f, x, config: JacobianConfig | None = None) -> np.ndarray:
    """Write the Jacobian of f at x into *out* and return *out*.

    Raises:
        ValueError: *config* belongs to another function, or the shapes of
            x or *out* do not match the function.
    """
    if config is None:
        config = JacobianConfig(f, x)
    elif config.f is not f:
        raise ValueError("JacobianConfig was built for a different function")
    jac = config(x)
    if out.shape != jac.shape:
        raise ValueError(
            f"Output buffer has shape {out.shape}, Jacobian has shape {jac.shape}"
        )
    out[...] = np.asarray(jac)
    return out
