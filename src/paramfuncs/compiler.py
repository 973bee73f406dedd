"""
compiler.py
===========
Compiles an :class:`~paramfuncs.equations.EquationSpec` into a
:class:`~paramfuncs.model.ModelBundle`.

The pipeline only ever flows downstream:

1. **Classification** — every identifier gets one role
   (:func:`~paramfuncs.symbols.classify`).
2. **Rewriting** — one traversal per equation yields the numeric tree
   (compiled into the right-hand side) and the algebra tree.
3. **Derivation** — SymPy computes each requested artifact behind its own
   failure boundary (:class:`~paramfuncs.derivation.DifferentiationEngine`).
4. **Synthesis** — derived artifacts become in-place numeric procedures.
5. **Assembly** — procedures, stubs and existence flags are installed on
   the bundle.

Key entry points
----------------
- ``ode_def()``       — compile with keyword build options
- ``ode_def_opts()``  — compile with an explicit options mapping
- ``fem_def()``       — compile a finite-element residual
- ``recompile()``     — rebuild a bundle from its retained definition
"""

import ast
import itertools
import warnings
from dataclasses import replace

import sympy as sp

from paramfuncs.config import BuildOptions
from paramfuncs.conversion import numeric_namespace, to_sympy
from paramfuncs.derivation import (
    LABELS,
    DifferentiationEngine,
    SymbolicArtifact,
    as_mass_matrix,
    resolve_derivative_references,
)
from paramfuncs.equations import DERIVATIVE_PREFIX, parse_equations
from paramfuncs.errors import ParseError, SymbolicFailure
from paramfuncs.model import (
    FIELD_MODES,
    GAMMA_MODES,
    Mode,
    ParamDerivTag,
    ParamTag,
    assemble,
    assemble_fem,
)
from paramfuncs.rewriter import (
    DERIV_ARG,
    GAMMA_ARG,
    PARAM_ARG,
    STATE_ARG,
    RewriteContext,
    free_names,
    rewrite,
    rewrite_pair,
    scoped_name,
)
from paramfuncs.symbols import classify
from paramfuncs.synthesis import assignment, build_procedure, synthesize

#: Name of the output argument of each generated procedure.
OUTPUTS = {
    Mode.TGRAD: "grad",
    Mode.JAC: "J",
    Mode.EXPJAC: "J",
    Mode.INVJAC: "J",
    Mode.INVW: "J",
    Mode.INVW_T: "J",
    Mode.HES: "J",
    Mode.INVHES: "J",
    Mode.PARAMJAC: "J",
}

RESERVED_NAMES = {STATE_ARG, DERIV_ARG, PARAM_ARG, GAMMA_ARG} | set(OUTPUTS.values())

# Distinguishes the algebra symbols of models compiled under the same name.
_COMPILATIONS = itertools.count(1)


class ModelCompiler:
    """Compile one model definition.

    Parameters
    ----------
    spec : EquationSpec
        The parsed definition.
    options : BuildOptions, optional
        Which derived artifacts to attempt.  Defaults to ``BuildOptions()``.
    mass_matrix : array_like, optional
        Constant N×N mass matrix for the Rosenbrock-W inverses
        (identity if omitted).
    functions : dict, optional
        Extra numeric callables usable in the equations.  They are not
        known to SymPy, so models using them get no derived artifacts.
    verbose : bool, optional
        If True, prints a trace of every compilation stage.
    """

    def __init__(self, spec, options=None, mass_matrix=None, functions=None, verbose=False):
        if spec.scope is None:
            spec = replace(spec, scope=f"{spec.name}_{next(_COMPILATIONS)}")
        self.spec = spec
        self.options = options or BuildOptions()
        self.mass_matrix = mass_matrix
        self.functions = dict(functions or {})
        self.verbose = verbose
        self.scope = spec.scope
        self.table = classify(spec)

        reserved = {spec.independent_var} & RESERVED_NAMES
        if reserved:
            raise ParseError(
                f"Model '{spec.name}': independent variable cannot be named "
                f"{sorted(reserved)[0]!r}"
            )
        if GAMMA_ARG in self.table.roles:
            raise ParseError(f"Model '{spec.name}': '{GAMMA_ARG}' is a reserved name")

    def log(self, message, depth=0):
        """Print an indented trace message when ``verbose=True``."""
        if self.verbose:
            indent = "  " * depth
            print(f"[paramfuncs] {indent}{message}")

    def namespace(self):
        namespace = numeric_namespace()
        namespace.update(self.functions)
        return namespace

    def procedure_args(self, output):
        return (self.table.independent, STATE_ARG, output, PARAM_ARG, GAMMA_ARG)

    def check_references(self, position, lhs, rhs, final):
        """Derivative references may only read components already final.

        *final* maps each state to the position of its last equation.
        """
        for ref in sorted(free_names(rhs, calls=False)):
            if self.table.role(ref) is not None:
                continue
            target = self.table.derivative_target(ref)
            if target is not None and final[target] >= position:
                raise ParseError(
                    f"Model '{self.spec.name}': '{lhs}' reads '{ref}' before "
                    f"its last equation; reorder the equations"
                )

    def compile(self):
        if self.spec.signature is not None:
            return self.compile_fem()
        return self.compile_ode()

    # ------------------------------------------------------------------
    # ODE models
    # ------------------------------------------------------------------

    def compile_ode(self):
        name = self.spec.name
        table = self.table
        self.log(f"Compiling model '{name}'")
        self.log(f"States: {table.states}", 1)
        self.log(f"Parameters: {list(table.parameters)}", 1)
        self.log(f"Inlined: {list(table.inlined)}", 1)

        # Rewriting: numeric and algebra trees from the same pass
        numeric = RewriteContext.numeric(table)
        algebraic = RewriteContext.algebraic(table, self.scope)
        rhs_body = []
        algebra_trees = {}
        final = {lhs[len(DERIVATIVE_PREFIX):]: position
                 for position, (lhs, _) in enumerate(self.spec.equations)}
        for position, (lhs, rhs) in enumerate(self.spec.equations):
            self.check_references(position, lhs, rhs, final)
            index = table.state_index[lhs[len(DERIVATIVE_PREFIX):]]
            numeric_tree, algebra_tree = rewrite_pair(rhs, numeric, algebraic)
            rhs_body.append(assignment(DERIV_ARG, (index,), numeric_tree))
            algebra_trees[index] = algebra_tree

        namespace = self.namespace()
        procedures = {
            Mode.DEFAULT: build_procedure(
                f"{name}_rhs", rhs_body, self.procedure_args(DERIV_ARG), namespace,
            )
        }
        bodies = {Mode.DEFAULT: rhs_body, Mode.WITH_PARAMS: rhs_body}
        bodies.update({ParamTag(p): rhs_body for p in table.parameters})
        self.log("-> right-hand side compiled", 1)

        mass_matrix = None
        if self.options.build_invW or self.options.build_invW_t:
            mass_matrix = as_mass_matrix(self.mass_matrix, table.num_states)

        funcs, artifacts, engine = self.derive(algebra_trees, mass_matrix)

        # Synthesis
        context = RewriteContext.synthesis(table, self.scope)
        for mode in FIELD_MODES + GAMMA_MODES + (Mode.PARAMJAC,):
            artifact = artifacts[mode.value]
            if not artifact.exists:
                continue
            try:
                body = synthesize(artifact, context, OUTPUTS[mode])
            except SymbolicFailure as err:
                artifacts[mode.value] = engine.downgrade(artifact, err)
                continue
            procedures[mode] = build_procedure(
                f"{name}_{mode.value}", body, self.procedure_args(OUTPUTS[mode]), namespace,
            )
            bodies[mode] = body
            self.log(f"-> synthesized '{name}_{mode.value}'", 1)

        for pname in table.parameters:
            key = f"deriv_{pname}"
            artifact = artifacts[key]
            if not artifact.exists:
                continue
            try:
                body = synthesize(artifact, context, DERIV_ARG)
            except SymbolicFailure as err:
                artifacts[key] = engine.downgrade(artifact, err)
                continue
            tag = ParamDerivTag(pname)
            procedures[tag] = build_procedure(
                f"{name}_{key}", body, self.procedure_args(DERIV_ARG), namespace,
            )
            bodies[tag] = body
            self.log(f"-> synthesized '{name}_{key}'", 1)

        return assemble(
            name, self.spec, table, funcs, artifacts, procedures, bodies,
            options=self.options, mass_matrix=self.mass_matrix,
        )

    def derive(self, algebra_trees, mass_matrix):
        """Convert the algebra trees and run the enabled derivation stages.

        Returns
        -------
        funcs : list of sympy.Expr
        artifacts : dict
        engine : DifferentiationEngine or None
        """
        table = self.table
        names = list(table.parameters)

        def all_absent(message):
            absent = {key: SymbolicArtifact.absent(key, message) for key in LABELS}
            absent["tgrad"] = SymbolicArtifact.absent("tgrad", message, vector=True)
            absent.update({
                f"deriv_{p}": SymbolicArtifact.absent(f"deriv_{p}", message, vector=True)
                for p in names
            })
            return absent

        if not any(self.options.as_dict().values()):
            self.log("No derived artifacts requested", 1)
            return [], all_absent("was not requested"), None

        symbols = {}
        for role_name in (
            list(table.states)
            + names
            + [f"{DERIVATIVE_PREFIX}{s}" for s in table.states]
            + [table.independent, GAMMA_ARG]
        ):
            key = scoped_name(role_name, self.scope)
            symbols[key] = sp.Symbol(key, real=True)

        try:
            funcs = [to_sympy(algebra_trees[i], symbols) for i in range(table.num_states)]
            funcs = resolve_derivative_references(funcs, [
                symbols[scoped_name(f"{DERIVATIVE_PREFIX}{s}", self.scope)]
                for s in table.states
            ])
        except SymbolicFailure as err:
            message = f"Symbolic calculations could not start: {err}"
            warnings.warn(message, RuntimeWarning, stacklevel=3)
            self.log(f"(!) {message}", 1)
            return [], all_absent(message), None

        self.log("Symbolic stages:", 1)
        engine = DifferentiationEngine(
            funcs,
            state_symbols=[symbols[scoped_name(s, self.scope)] for s in table.states],
            param_symbols=[symbols[scoped_name(p, self.scope)] for p in names],
            time_symbol=symbols[scoped_name(table.independent, self.scope)],
            gamma_symbol=symbols[scoped_name(GAMMA_ARG, self.scope)],
            mass_matrix=mass_matrix,
            log=lambda message, depth=0: self.log(message, depth + 1),
        )
        artifacts = engine.derive(self.options)
        for pname, artifact in engine.parameter_derivatives(artifacts["paramjac"], names).items():
            artifacts[f"deriv_{pname}"] = artifact
        return funcs, artifacts, engine

    # ------------------------------------------------------------------
    # Finite-element residuals
    # ------------------------------------------------------------------

    def compile_fem(self):
        name = self.spec.name
        table = self.table
        signature = self.spec.signature
        if PARAM_ARG in signature:
            raise ParseError(f"Model '{name}': '{PARAM_ARG}' cannot appear in the signature")
        self.log(f"Compiling finite-element model '{name}{signature}'")
        self.log(f"States: {table.states}", 1)

        context = RewriteContext.fem(table)
        components = {}
        for lhs, rhs in self.spec.equations:
            components[table.state_index[lhs[len(DERIVATIVE_PREFIX):]]] = rewrite(rhs, context)
        exprs = [components[i] for i in range(table.num_states)]
        if len(exprs) == 1:
            value = exprs[0]
        else:
            value = ast.Call(
                func=ast.Name(id="column_stack", ctx=ast.Load()),
                args=[ast.List(elts=exprs, ctx=ast.Load())],
                keywords=[],
            )
        body = [ast.Return(value=value)]
        residual = build_procedure(
            f"{name}_residual", body, signature + (PARAM_ARG,), self.namespace(),
        )
        self.log("-> residual compiled", 1)
        return assemble_fem(name, self.spec, table, residual, {Mode.DEFAULT: body})


# ======================================================================
# Module-level convenience functions
# ======================================================================

def ode_def_opts(name, options, block, *params, mass_matrix=None, independent_var="t",
                 functions=None, verbose=False):
    """Compile an ODE model with an explicit set of build options.

    Parameters
    ----------
    name : str
        Model name.  Each compilation scopes its algebra symbols with the
        name and a counter, so no two models share symbols.
    options : BuildOptions or dict
        E.g. ``{'build_jac': True, 'build_invjac': False, ...}``; keys left
        out keep their defaults.
    block : str
        The equations, e.g. ``"dx = a*x - b*x*y\\ndy = -c*y + d*x*y"``.
    *params : str or ParamDecl
        ``"a=>1.5"`` declares a symbolic parameter, ``"c=3"`` an inlined
        constant.
    mass_matrix : array_like, optional
    independent_var : str, optional
    functions : dict, optional
    verbose : bool, optional

    Returns
    -------
    ModelBundle

    Raises
    ------
    ParseError, UnknownSymbolError
        If the right-hand side cannot be compiled.
    DimensionMismatch
        If a Rosenbrock-W stage is enabled and the mass matrix is not N×N.
    """
    if not isinstance(options, BuildOptions):
        options = BuildOptions.from_mapping(options)
    spec = parse_equations(name, block, *params, independent_var=independent_var)
    compiler = ModelCompiler(spec, options, mass_matrix=mass_matrix,
                             functions=functions, verbose=verbose)
    return compiler.compile()


def ode_def(name, block, *params, mass_matrix=None, independent_var="t",
            functions=None, verbose=False, **options):
    """Compile an ODE model; build options are given as keywords.

    Examples
    --------
    >>> lv = ode_def("LotkaVolterra", '''
    ...     dx = a*x - b*x*y
    ...     dy = -c*y + d*x*y
    ... ''', "a=>1.5", "b=>1", "c=3", "d=1")
    >>> du = np.zeros(2)
    >>> lv(0.0, [1.0, 1.0], du)
    >>> du
    array([ 0.5, -2. ])
    """
    return ode_def_opts(
        name, BuildOptions.from_mapping(options), block, *params,
        mass_matrix=mass_matrix, independent_var=independent_var,
        functions=functions, verbose=verbose,
    )


def fem_def(signature, name, block, *params, functions=None, verbose=False):
    """Compile a finite-element residual ``name(*signature)``.

    States become columns ``u[:, i]`` and the spatial coordinates ``x, y, z``
    columns of the first argument ``x``.  Several components are returned
    column-stacked.
    """
    spec = parse_equations(name, block, *params, signature=signature)
    return ModelCompiler(spec, functions=functions, verbose=verbose).compile()


def recompile(bundle, functions=None, verbose=False):
    """Rebuild *bundle* from its retained definition.

    The equation block is regenerated from the retained tree and parsed
    again, so the generated bodies of the result are identical to those of
    *bundle*.
    """
    spec = bundle.spec
    reparsed = parse_equations(
        spec.name, spec.source, *(str(p) for p in spec.parameters),
        independent_var=spec.independent_var, signature=spec.signature,
    )
    reparsed = replace(reparsed, scope=spec.scope)
    compiler = ModelCompiler(reparsed, bundle.options, mass_matrix=bundle.mass_matrix,
                             functions=functions, verbose=verbose)
    return compiler.compile()
