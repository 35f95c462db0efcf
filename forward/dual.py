"""Dual numbers: values paired with partial derivatives.

JAX does not expose a dual-number scalar type; during forward-mode
differentiation its tracers carry the (value, tangent) pair internally.
Dual is the user-facing side of that pair: seed inputs with partials,
push them through any jax-traceable function with evaluate(), and read
value() and partials() off the result.
"""

from __future__ import annotations

from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np

jax.config.update("jax_enable_x64", True)


class Dual(NamedTuple):
    """An array of dual numbers.

    Attributes:
        value: Primal values, shape S.
        partials: Partial derivatives, shape S + (n,) for n partials.
    """

    value: np.ndarray
    partials: np.ndarray

    @property
    def num_partials(self) -> int:
        return self.partials.shape[-1]


def dual(x, partials) -> Dual:
    """Seed *x* with *partials*.

    *partials* may have the same shape as *x* (one partial per element)
    or that shape plus a trailing axis of length n.
    """
    x = np.asarray(x, dtype=np.float64)
    p = np.asarray(partials, dtype=np.float64)
    if p.shape == x.shape:
        p = p[..., np.newaxis]
    if p.shape[:-1] != x.shape:
        raise ValueError(
            f"Partials of shape {p.shape} do not match value of shape {x.shape}"
        )
    return Dual(x, p)


def value(d: Dual) -> np.ndarray:
    return d.value


def partials(d: Dual) -> np.ndarray:
    return d.partials


def evaluate(f, *args: Dual) -> Dual:
    """Evaluate f at dual arguments.

    The result's partials are the directional derivatives of f along each
    seeded direction: J_f(values) @ partials, one column per partial.
    """
    if not args:
        raise ValueError("evaluate() needs at least one Dual argument")
    counts = {a.num_partials for a in args}
    if len(counts) != 1:
        raise ValueError(f"Dual arguments carry different numbers of partials: {sorted(counts)}")

    primals = tuple(jnp.asarray(a.value) for a in args)
    out, push_forward = jax.linearize(f, *primals)
    tangents = jax.vmap(push_forward, in_axes=-1, out_axes=-1)(
        *(jnp.asarray(a.partials) for a in args)
    )
    return Dual(np.asarray(out), np.asarray(tangents))
