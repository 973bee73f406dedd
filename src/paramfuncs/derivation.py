r"""
derivation.py
=============
Symbolic differentiation engine.

Given the per-state component functions of a model as SymPy expressions,
computes the derived artifacts consumed by stiff and Rosenbrock-type
integrators:

.. math::
    J_{ij} = \frac{\partial f_i}{\partial x_j}, \qquad
    H_{ij} = \frac{\partial J_{ij}}{\partial x_j}, \qquad
    W^{-1} = (M - \gamma J)^{-1}, \qquad
    W_t^{-1} = (M/\gamma - J)^{-1}

together with the time gradient, the parameter Jacobian and their inverses
and exponentials.  Every artifact is computed inside its own failure
boundary: a stage SymPy cannot complete yields an absent
:class:`SymbolicArtifact` carrying a diagnostic, and only the stages that
depend on it are skipped.

.. note::
   The Hessian is stored as one N×N slice, ``H[i, j] = ∂²f_i/∂x_j²``, not
   as the full third-order tensor.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Optional

import sympy as sp
from sympy.matrices.exceptions import MatrixError
from sympy.polys.polyerrors import BasePolynomialError

from paramfuncs.errors import DimensionMismatch, SymbolicFailure

#: Exceptions meaning "SymPy cannot do this", caught by stage boundaries.
#: Singular matrices raise NonInvertibleMatrixError, a MatrixError.
CAS_FAILURES = (
    SymbolicFailure,
    MatrixError,
    BasePolynomialError,
    NotImplementedError,
)

LABELS = {
    "tgrad": "Time gradient",
    "jac": "Jacobian",
    "expjac": "Exponential Jacobian",
    "invjac": "Inverse Jacobian",
    "invW": "Inverse Rosenbrock-W",
    "invW_t": "Inverse Rosenbrock-W transformed",
    "hes": "Hessian",
    "invhes": "Inverse Hessian",
    "paramjac": "Parameter Jacobian",
}


@dataclass(frozen=True)
class SymbolicArtifact:
    """A matrix or vector of SymPy expressions, or the reason it is missing.

    Attributes
    ----------
    name : str
        Artifact key (``'jac'``, ``'invW'``, ``'deriv_a'`` …).
    matrix : sympy.ImmutableMatrix or None
        Vectors are stored as N×1 columns.
    exists : bool
    message : str
        Diagnostic for absent artifacts.
    vector : bool
        Whether the artifact is written as ``out[i]`` rather than
        ``out[i, j]``.
    """

    name: str
    matrix: Optional[Any] = None
    exists: bool = False
    message: str = ""
    vector: bool = False

    @classmethod
    def absent(cls, name, message, vector=False):
        return cls(name, None, False, message, vector)

    @property
    def shape(self):
        return None if self.matrix is None else self.matrix.shape

    def failed(self, message):
        """Copy of this artifact downgraded to absent."""
        return SymbolicArtifact.absent(self.name, message, self.vector)


def compute_jacobian(expressions, symbols):
    r"""Jacobian :math:`J_{ij} = \partial F_i / \partial x_j` of *expressions*.

    Parameters
    ----------
    expressions : list of sympy.Expr
    symbols : list of sympy.Symbol

    Returns
    -------
    sympy.Matrix
        Shape ``(len(expressions), len(symbols))``.
    """
    return sp.Matrix([
        [sp.diff(expr, var) for var in symbols]
        for expr in expressions
    ])


def resolve_derivative_references(components, derivative_symbols):
    """Replace each derivative symbol by the component it stands for.

    A right-hand side may read the derivative of another state (``dy = dx - y``).
    Differentiating such a component is only correct once ``dx`` has been
    replaced by its own right-hand side, repeatedly, until no derivative
    symbol is left.

    Parameters
    ----------
    components : list of sympy.Expr
    derivative_symbols : list of sympy.Symbol
        ``derivative_symbols[i]`` stands for ``components[i]``.

    Raises
    ------
    SymbolicFailure
        If the references form a cycle.
    """
    substitutions = dict(zip(derivative_symbols, components))
    pending = set(substitutions)
    resolved = list(components)
    for _ in range(len(resolved) + 1):
        remaining = set().union(*(f.free_symbols & pending for f in resolved))
        if not remaining:
            return resolved
        resolved = [f.xreplace(substitutions) for f in resolved]
    raise SymbolicFailure(
        f"derivative references form a cycle through "
        f"{sorted(str(s) for s in remaining)}"
    )


def as_mass_matrix(mass_matrix, n):
    """Validate a constant mass matrix; ``None`` means the identity."""
    if mass_matrix is None:
        return sp.eye(n)
    try:
        matrix = sp.Matrix(mass_matrix)
    except (TypeError, ValueError) as err:
        raise DimensionMismatch(f"Mass matrix is not a matrix: {err}") from err
    if matrix.shape != (n, n):
        raise DimensionMismatch(
            f"Mass matrix has shape {matrix.shape}, expected {(n, n)}"
        )
    return matrix


class DifferentiationEngine:
    """Drives SymPy through the derivation stages of one model.

    Parameters
    ----------
    components : list of sympy.Expr
        Right-hand side of each state equation, in state order.
    state_symbols : list of sympy.Symbol
    param_symbols : list of sympy.Symbol
    time_symbol : sympy.Symbol
    gamma_symbol : sympy.Symbol
        Free placeholder for the Rosenbrock-W step factor.
    mass_matrix : sympy.Matrix, optional
        Defaults to the identity.
    log : callable, optional
        ``log(message, depth)`` tracing hook.
    """

    def __init__(self, components, state_symbols, param_symbols, time_symbol,
                 gamma_symbol, mass_matrix=None, log=None):
        self.components = list(components)
        self.state_symbols = list(state_symbols)
        self.param_symbols = list(param_symbols)
        self.time_symbol = time_symbol
        self.gamma = gamma_symbol
        n = len(self.state_symbols)
        self.mass_matrix = sp.eye(n) if mass_matrix is None else mass_matrix
        self.log = log or (lambda message, depth=0: None)

    # ------------------------------------------------------------------
    # Failure boundary
    # ------------------------------------------------------------------

    def attempt(self, name, compute, requires=(), vector=False):
        """Run one stage and wrap its result as a :class:`SymbolicArtifact`.

        Absent prerequisites skip the stage silently; CAS failures are
        reported with a ``RuntimeWarning`` and recorded on the artifact.
        Any other exception propagates.
        """
        for dep in requires:
            if not dep.exists:
                self.log(f"-> {name}: skipped, requires '{dep.name}'", 1)
                return SymbolicArtifact.absent(
                    name, f"{LABELS.get(name, name)} requires '{dep.name}', "
                          f"which does not exist", vector,
                )
        self.log(f"-> {name}: computing", 1)
        try:
            matrix = sp.ImmutableMatrix(compute())
        except CAS_FAILURES as err:
            return self.downgrade(SymbolicArtifact.absent(name, "", vector), err)
        self.log(f"-> {name}: ok, shape {matrix.shape}", 1)
        return SymbolicArtifact(name, matrix, True, "", vector)

    def downgrade(self, artifact, err):
        """Mark *artifact* absent because of *err* and emit the diagnostic."""
        message = f"{LABELS.get(artifact.name, artifact.name)} could not be built: {err}"
        warnings.warn(message, RuntimeWarning, stacklevel=3)
        self.log(f"(!) {message}", 1)
        return artifact.failed(message)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def jacobian(self):
        return compute_jacobian(self.components, self.state_symbols)

    def time_gradient(self):
        return sp.Matrix([sp.diff(f, self.time_symbol) for f in self.components])

    def inverse_jacobian(self, jac):
        return jac.matrix.inv()

    def exponential_jacobian(self, jac):
        return (self.gamma * jac.matrix).exp()

    def rosenbrock_w(self, jac):
        return (self.mass_matrix - self.gamma * jac.matrix).inv()

    def rosenbrock_w_t(self, jac):
        return (self.mass_matrix / self.gamma - jac.matrix).inv()

    def hessian(self, jac):
        J = jac.matrix
        n = len(self.state_symbols)
        return sp.Matrix(J.rows, n, lambda i, j: sp.diff(J[i, j], self.state_symbols[j]))

    def inverse_hessian(self, hes):
        return hes.matrix.inv()

    def parameter_jacobian(self):
        return sp.Matrix(
            len(self.components), len(self.param_symbols),
            lambda i, j: sp.diff(self.components[i], self.param_symbols[j]),
        )

    def parameter_derivatives(self, paramjac, param_names):
        """Split the parameter Jacobian into one N-vector per parameter."""
        derivs = {}
        for j, name in enumerate(param_names):
            key = f"deriv_{name}"
            if paramjac.exists:
                derivs[name] = SymbolicArtifact(key, paramjac.matrix[:, j], True, "", True)
            else:
                derivs[name] = SymbolicArtifact.absent(key, paramjac.message, True)
        return derivs

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def derive(self, options):
        """Run every stage enabled in *options*.

        Returns
        -------
        dict
            Artifact name → :class:`SymbolicArtifact` for each of
            :data:`LABELS`.
        """
        artifacts = {}

        def stage(enabled, name, compute, requires=(), vector=False):
            if not enabled:
                artifacts[name] = SymbolicArtifact.absent(
                    name, f"{LABELS[name]} was not requested", vector,
                )
                return
            deps = [artifacts[r] for r in requires]
            artifacts[name] = self.attempt(name, lambda: compute(*deps), deps, vector)

        stage(options.build_tgrad, "tgrad", self.time_gradient, vector=True)
        stage(options.build_jac, "jac", self.jacobian)
        stage(options.build_expjac, "expjac", self.exponential_jacobian, ["jac"])
        stage(options.build_invjac, "invjac", self.inverse_jacobian, ["jac"])
        stage(options.build_invW, "invW", self.rosenbrock_w, ["jac"])
        stage(options.build_invW_t, "invW_t", self.rosenbrock_w_t, ["jac"])
        stage(options.build_hes, "hes", self.hessian, ["jac"])
        stage(options.build_invhes, "invhes", self.inverse_hessian, ["hes"])
        stage(options.build_dpfuncs, "paramjac", self.parameter_jacobian)
        return artifacts
