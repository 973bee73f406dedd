"""
paramfuncs — Parameterized ODE functions with symbolic derivatives.

Compile a system of explicit first-order equations into a fast in-place
right-hand side plus every derived artifact SymPy can produce (Jacobian,
inverses, Hessian, time gradient, parameter Jacobian, Rosenbrock-W
inverses).  Artifacts that cannot be derived are simply absent and can be
checked with the ``has_*`` predicates.

Quick start::

    from paramfuncs import ode_def

    lv = ode_def("LotkaVolterra", '''
        dx = a*x - b*x*y
        dy = -c*y + d*x*y
    ''', "a=>1.5", "b=>1", "c=3", "d=1")

    du = np.zeros(2)
    lv(0.0, [1.0, 1.0], du)
    if lv.has_jac:
        J = np.zeros((2, 2))
        lv.call("jac", 0.0, [1.0, 1.0], J)

"""

from paramfuncs.compiler import (
    ModelCompiler,
    ode_def,
    ode_def_opts,
    fem_def,
    recompile,
)
from paramfuncs.config import BuildOptions
from paramfuncs.derivation import SymbolicArtifact, compute_jacobian
from paramfuncs.equations import EquationSpec, ParamDecl, parse_equations
from paramfuncs.errors import (
    ParamFuncsError,
    ParseError,
    UnknownSymbolError,
    UnknownRoleError,
    SymbolicFailure,
    DimensionMismatch,
    InvocationError,
)
from paramfuncs.model import Mode, ModelBundle, ParamTag, ParamDerivTag

__version__ = "0.1.0"

__all__ = [
    "ModelCompiler",
    "ode_def",
    "ode_def_opts",
    "fem_def",
    "recompile",
    "BuildOptions",
    "SymbolicArtifact",
    "compute_jacobian",
    "EquationSpec",
    "ParamDecl",
    "parse_equations",
    "ParamFuncsError",
    "ParseError",
    "UnknownSymbolError",
    "UnknownRoleError",
    "SymbolicFailure",
    "DimensionMismatch",
    "InvocationError",
    "Mode",
    "ModelBundle",
    "ParamTag",
    "ParamDerivTag",
]
