"""
Shared test fixtures for paramfuncs.

Provides:
- ``lv_block`` / ``lv_params``: the Lotka–Volterra predator–prey system with
  two symbolic parameters (``a``, ``b``) and two inlined constants
  (``c``, ``d``).
- ``lotka_volterra``: the compiled model.  Its Hessian is identically zero,
  so the inverse Hessian is expected to fail (with a ``RuntimeWarning``).
- ``cubic``: a small model whose Hessian slice is diagonal and invertible,
  so every default artifact exists.
"""

import numpy as np
import pytest

from paramfuncs import ode_def


LV_BLOCK = """
dx = a*x - b*x*y
dy = -c*y + d*x*y
"""

LV_PARAMS = ("a=>1.5", "b=>1", "c=3", "d=1")

CUBIC_BLOCK = """
dx = a*x**2*y
dy = x*y**3
"""


def lv_rhs(x, y, a=1.5, b=1.0, c=3.0, d=1.0):
    """Reference right-hand side of Lotka–Volterra."""
    return np.array([a * x - b * x * y, -c * y + d * x * y])


def lv_jacobian(x, y, a=1.5, b=1.0, c=3.0, d=1.0):
    """Analytic Jacobian of Lotka–Volterra."""
    return np.array([[a - b * y, -b * x], [d * y, -c + d * x]])


@pytest.fixture
def lv_block():
    return LV_BLOCK


@pytest.fixture
def lv_params():
    return LV_PARAMS


@pytest.fixture
def lotka_volterra():
    """Compiled Lotka–Volterra model with default build options."""
    with pytest.warns(RuntimeWarning, match="Inverse Hessian"):
        return ode_def("LotkaVolterra", LV_BLOCK, *LV_PARAMS)


@pytest.fixture
def cubic():
    """Model with Jacobian [[2axy, ax²], [y³, 3xy²]], a = 0.5."""
    return ode_def("Cubic", CUBIC_BLOCK, "a=>0.5")


@pytest.fixture
def reference():
    """Reference functions for Lotka–Volterra."""
    return {"rhs": lv_rhs, "jac": lv_jacobian}
