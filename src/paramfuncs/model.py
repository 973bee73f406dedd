"""
model.py
========
The compiled model: parameter fields, retained definitions, and the
tagged call surface over all generated procedures.

Every mode is resolved by a single lookup in an explicit table keyed by
:class:`Mode`, :class:`ParamTag` or :class:`ParamDerivTag`:

==================  ==========================================  =====================
Tag                 Arguments                                   Result written
==================  ==========================================  =====================
``default``         ``(t, u, du)``                              right-hand side
``with_params``     ``(t, u, params, du)``                      rhs with a param vector
``tgrad``           ``(t, u, grad)``                            ∂f/∂t
``jac``             ``(t, u, J)``                               Jacobian
``expjac``          ``(t, u, gamma, J)``                        exp(γJ)
``invjac``          ``(t, u, J)``                               J⁻¹
``invW``            ``(t, u, gamma, J)``                        (M − γJ)⁻¹
``invW_t``          ``(t, u, gamma, J)``                        (M/γ − J)⁻¹
``hes``             ``(t, u, J)``                               Hessian slice
``invhes``          ``(t, u, J)``                               inverse Hessian
``paramjac``        ``(t, u, params, J)``                       ∂f/∂p
``ParamTag(a)``     ``(t, u, a, du)``                           rhs with ``a`` given
``ParamDerivTag(a)``  ``(t, u, a, du)``                         ∂f/∂a
==================  ==========================================  =====================

Modes whose artifact does not exist are installed as stubs raising
:class:`~paramfuncs.errors.InvocationError`.
"""

from __future__ import annotations

import ast
import enum
from collections import ChainMap
from dataclasses import dataclass

from paramfuncs.derivation import LABELS
from paramfuncs.errors import DimensionMismatch, InvocationError


class Mode(str, enum.Enum):
    DEFAULT = "default"
    WITH_PARAMS = "with_params"
    TGRAD = "tgrad"
    JAC = "jac"
    EXPJAC = "expjac"
    INVJAC = "invjac"
    INVW = "invW"
    INVW_T = "invW_t"
    HES = "hes"
    INVHES = "invhes"
    PARAMJAC = "paramjac"


@dataclass(frozen=True)
class ParamTag:
    """Right-hand side with parameter *name* passed explicitly."""

    name: str


@dataclass(frozen=True)
class ParamDerivTag:
    """Derivative of the right-hand side with respect to parameter *name*."""

    name: str


#: Modes taking ``(t, u, out)``.
FIELD_MODES = (Mode.TGRAD, Mode.JAC, Mode.INVJAC, Mode.HES, Mode.INVHES)
#: Modes taking ``(t, u, gamma, out)``.
GAMMA_MODES = (Mode.EXPJAC, Mode.INVW, Mode.INVW_T)

EXISTENCE_KEYS = tuple(m.value for m in FIELD_MODES + GAMMA_MODES) + ("paramjac", "paramderiv")


def normalize_tag(tag):
    """Coerce strings to :class:`Mode`; unknown tags are an InvocationError."""
    if isinstance(tag, (ParamTag, ParamDerivTag, Mode)):
        return tag
    try:
        return Mode(tag)
    except ValueError:
        raise InvocationError(f"Unknown mode {tag!r}") from None


def _params_from_vector(names, values):
    if len(values) != len(names):
        raise DimensionMismatch(
            f"Expected {len(names)} parameter values {list(names)}, got {len(values)}"
        )
    return dict(zip(names, values))


def _stub(model_name, label, message):
    def stub(*args):
        raise InvocationError(
            f"{label} does not exist for model '{model_name}'"
            + (f": {message}" if message else "")
        )
    stub.exists = False
    return stub


def _flag(key):
    return property(
        lambda self: self.exists[key],
        doc=f"Whether the '{key}' artifact was built.",
    )


class ModelBundle:
    """A compiled parameterized model.

    Attributes
    ----------
    name : str
    params : dict
        Current value of each symbolic parameter.  Also reachable as
        ``model['a']`` and ``model.a``; mutations take effect on the next
        call.
    spec : EquationSpec
        The retained definition, including the original tree.
    funcs : list of sympy.Expr
        Component functions in algebra form, one per state.
    syms : list of str
        State names in index order.
    artifacts : dict
        Artifact name → :class:`~paramfuncs.derivation.SymbolicArtifact`.
    bodies : dict
        Tag → generated statement trees.
    exists : dict
        Artifact name → existence flag.
    """

    def __init__(self, name, params, spec, funcs, syms, artifacts, bodies,
                 table, exists, options=None, mass_matrix=None, kind="ode"):
        # Bypass __setattr__: a parameter may share a name with an attribute.
        self.__dict__.update(
            name=name, params=params, spec=spec, funcs=funcs, syms=syms,
            artifacts=artifacts, bodies=bodies, exists=exists, options=options,
            mass_matrix=mass_matrix, kind=kind, _table=table,
        )

    # ------------------------------------------------------------------
    # Call surface
    # ------------------------------------------------------------------

    def __call__(self, *args):
        return self._table[Mode.DEFAULT](*args)

    def call(self, tag, *args):
        """Invoke the procedure registered under *tag*."""
        key = normalize_tag(tag)
        func = self._table.get(key)
        if func is None:
            raise InvocationError(f"Model '{self.name}' has no mode {tag!r}")
        return func(*args)

    def has(self, tag):
        """Whether calling *tag* runs a real procedure rather than a stub."""
        key = normalize_tag(tag)
        func = self._table.get(key)
        return func is not None and getattr(func, "exists", True)

    has_tgrad = _flag("tgrad")
    has_jac = _flag("jac")
    has_expjac = _flag("expjac")
    has_invjac = _flag("invjac")
    has_invW = _flag("invW")
    has_invW_t = _flag("invW_t")
    has_hes = _flag("hes")
    has_invhes = _flag("invhes")
    has_paramjac = _flag("paramjac")
    has_paramderiv = _flag("paramderiv")

    # ------------------------------------------------------------------
    # Parameter fields
    # ------------------------------------------------------------------

    @property
    def param_names(self):
        return list(self.params)

    @property
    def param_values(self):
        return list(self.params.values())

    def __getitem__(self, name):
        return self.params[name]

    def __setitem__(self, name, value):
        if name not in self.params:
            raise KeyError(f"Model '{self.name}' has no parameter '{name}'")
        self.params[name] = value

    def __getattr__(self, name):
        params = self.__dict__.get("params")
        if params is not None and name in params:
            return params[name]
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name, value):
        params = self.__dict__.get("params")
        if params is not None and name in params and name not in self.__dict__:
            params[name] = value
        else:
            super().__setattr__(name, value)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def source(self, tag=Mode.DEFAULT):
        """Readable rendering of the generated body behind *tag*."""
        key = normalize_tag(tag)
        if key not in self.bodies:
            raise InvocationError(f"Model '{self.name}' has no generated code for {tag!r}")
        return ast.unparse(ast.Module(body=self.bodies[key], type_ignores=[]))

    def __repr__(self):
        built = [k for k in EXISTENCE_KEYS if self.exists.get(k)]
        return (
            f"ModelBundle({self.name!r}, states={self.syms}, "
            f"params={self.params}, built={built})"
        )


# ======================================================================
# Assembly
# ======================================================================

def assemble(name, spec, table, funcs, artifacts, procedures, bodies,
             options=None, mass_matrix=None):
    """Install every mode of an ODE model.

    Parameters
    ----------
    name : str
    spec : EquationSpec
    table : SymbolTable
    funcs : list of sympy.Expr
    artifacts : dict
        Artifact name → SymbolicArtifact, including ``deriv_<p>`` entries.
    procedures : dict
        Tag → compiled ``proc(t, u, out, p, gamma)``, only for artifacts
        that were successfully built (plus ``Mode.DEFAULT``).
    bodies : dict
        Tag → statement trees of each procedure.
    """
    params = dict(table.parameters)
    names = list(params)
    dispatch = {}
    exists = {}

    rhs = procedures[Mode.DEFAULT]
    dispatch[Mode.DEFAULT] = lambda t, u, du: rhs(t, u, du, params, None)
    dispatch[Mode.WITH_PARAMS] = (
        lambda t, u, values, du: rhs(t, u, du, _params_from_vector(names, values), None)
    )
    for pname in names:
        dispatch[ParamTag(pname)] = _override(rhs, params, pname)

    def missing(tag, label):
        artifact = artifacts.get(tag.value if isinstance(tag, Mode) else f"deriv_{tag.name}")
        return _stub(name, label, artifact.message if artifact is not None else "")

    for mode in FIELD_MODES:
        proc = procedures.get(mode)
        exists[mode.value] = proc is not None
        dispatch[mode] = _fields(proc, params) if proc else missing(mode, LABELS[mode.value])

    for mode in GAMMA_MODES:
        proc = procedures.get(mode)
        exists[mode.value] = proc is not None
        dispatch[mode] = _gamma(proc, params) if proc else missing(mode, LABELS[mode.value])

    proc = procedures.get(Mode.PARAMJAC)
    exists["paramjac"] = proc is not None
    dispatch[Mode.PARAMJAC] = (
        _vector(proc, names) if proc else missing(Mode.PARAMJAC, LABELS["paramjac"])
    )

    derivs = {pname: procedures.get(ParamDerivTag(pname)) for pname in names}
    exists["paramderiv"] = bool(names) and all(p is not None for p in derivs.values())
    for pname, proc in derivs.items():
        tag = ParamDerivTag(pname)
        dispatch[tag] = (
            _override(proc, params, pname) if proc
            else missing(tag, f"Derivative with respect to '{pname}'")
        )

    return ModelBundle(
        name=name,
        params=params,
        spec=spec,
        funcs=funcs,
        syms=list(table.states),
        artifacts=artifacts,
        bodies=bodies,
        table=dispatch,
        exists=exists,
        options=options,
        mass_matrix=mass_matrix,
    )


def assemble_fem(name, spec, table, residual, bodies):
    """Install the single residual mode of a finite-element model."""
    params = dict(table.parameters)
    dispatch = {Mode.DEFAULT: lambda *args: residual(*args, params)}
    for mode in Mode:
        if mode is not Mode.DEFAULT:
            dispatch[mode] = _stub(name, mode.value, "finite-element models only "
                                                     "provide the residual")
    return ModelBundle(
        name=name,
        params=params,
        spec=spec,
        funcs=[],
        syms=list(table.states),
        artifacts={},
        bodies=bodies,
        table=dispatch,
        exists={key: False for key in EXISTENCE_KEYS},
        kind="fem",
    )


def _fields(proc, params):
    return lambda t, u, out: proc(t, u, out, params, None)


def _gamma(proc, params):
    return lambda t, u, gamma, out: proc(t, u, out, params, gamma)


def _vector(proc, names):
    return lambda t, u, values, out: proc(t, u, out, _params_from_vector(names, values), None)


def _override(proc, params, pname):
    return lambda t, u, value, out: proc(t, u, out, ChainMap({pname: value}, params), None)
