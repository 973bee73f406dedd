"""
End-to-end tests for compiled models (paramfuncs.compiler and
paramfuncs.model).

The Lotka–Volterra model from conftest.py is checked against its analytic
right-hand side, Jacobian and Rosenbrock-W inverses.
"""

import warnings

import numpy as np
import pytest

from paramfuncs import (
    BuildOptions,
    DimensionMismatch,
    InvocationError,
    Mode,
    ModelCompiler,
    ParamDerivTag,
    ParamTag,
    ParseError,
    UnknownSymbolError,
    fem_def,
    ode_def,
    ode_def_opts,
    parse_equations,
    recompile,
)
from paramfuncs.synthesis import dump_body

#: Points away from the singular line x + 2y = 3 of the LV Jacobian.
POINTS = [(2.0, 3.0), (0.5, 2.0), (4.0, -1.0)]


def _no_runtime_warnings(func, *args, **kwargs):
    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        return func(*args, **kwargs)


def _random_states(count=8, seed=20240517):
    """Seeded LV states, kept clear of x + 2y = 3 and of zero pivots."""
    rng = np.random.default_rng(seed)
    states = []
    while len(states) < count:
        x, y = rng.uniform(-4.0, 4.0, size=2)
        if abs(x + 2 * y - 3) < 0.5 or abs(1.5 - y) < 0.5 or abs(x - 3) < 0.5:
            continue
        states.append((x, y))
    return states


def _finite_difference_jacobian(model, u, h=1e-6):
    n = len(u)
    fp, fm = np.zeros(n), np.zeros(n)
    columns = []
    for j in range(n):
        step = np.zeros(n)
        step[j] = h
        model(0.0, u + step, fp)
        model(0.0, u - step, fm)
        columns.append((fp - fm) / (2 * h))
    return np.column_stack(columns)


# ======================================================================
# 1. Right-hand side
# ======================================================================

class TestRightHandSide:

    def test_lotka_volterra_values(self, lotka_volterra):
        """The right-hand side writes the derivative in place."""
        du = np.zeros(2)
        lotka_volterra(0.0, [1.0, 1.0], du)
        np.testing.assert_allclose(du, [0.5, -2.0])

    def test_matches_reference(self, lotka_volterra, reference):
        """The right-hand side agrees with the hand-written one."""
        du = np.zeros(2)
        for x, y in POINTS:
            lotka_volterra(0.0, np.array([x, y]), du)
            np.testing.assert_allclose(du, reference["rhs"](x, y))

    def test_returns_nothing(self, lotka_volterra):
        """Calling a model returns None."""
        assert lotka_volterra(0.0, [1.0, 1.0], np.zeros(2)) is None

    def test_parameter_mutation(self, lotka_volterra):
        """Parameters set by attribute or by key are read on the next call."""
        du = np.zeros(2)
        lotka_volterra.a = 2.0
        lotka_volterra(0.0, [1.0, 1.0], du)
        assert du[0] == pytest.approx(1.0)
        lotka_volterra["b"] = 0.0
        lotka_volterra(0.0, [1.0, 1.0], du)
        assert du[0] == pytest.approx(2.0)

    def test_parameter_fields(self, lotka_volterra):
        """Only bound parameters become fields, in declaration order."""
        assert lotka_volterra.param_names == ["a", "b"]
        assert lotka_volterra.param_values == [1.5, 1]
        assert lotka_volterra.a == 1.5
        with pytest.raises(KeyError):
            lotka_volterra["c"] = 1.0

    def test_inlines_absent_from_code(self, lotka_volterra):
        """Inlined constants are spliced into the generated code."""
        source = lotka_volterra.source()
        assert "p['c']" not in source
        assert "p['d']" not in source
        assert "3 * u[1]" in source

    def test_with_params(self, lotka_volterra):
        """Explicit parameter values override the fields for one call."""
        du = np.zeros(2)
        lotka_volterra.call("with_params", 0.0, [1.0, 1.0], [2.0, 1.0], du)
        np.testing.assert_allclose(du, [1.0, -2.0])
        assert lotka_volterra.a == 1.5

    def test_with_params_wrong_length(self, lotka_volterra):
        """A parameter vector of the wrong length is rejected."""
        with pytest.raises(DimensionMismatch):
            lotka_volterra.call(Mode.WITH_PARAMS, 0.0, [1.0, 1.0], [2.0], np.zeros(2))

    def test_param_tag(self, lotka_volterra):
        """A parameter tag overrides a single parameter for one call."""
        du = np.zeros(2)
        lotka_volterra.call(ParamTag("a"), 0.0, [1.0, 1.0], 2.0, du)
        np.testing.assert_allclose(du, [1.0, -2.0])
        assert lotka_volterra.a == 1.5

    def test_redeclared_state_last_wins(self):
        """A state assigned twice keeps its index and the last equation."""
        model = _no_runtime_warnings(
            ode_def, "Redeclared", "dx = 1\ndy = -y\ndx = -2*x", build_hes=False,
        )
        du = np.zeros(2)
        model(0.0, [3.0, 1.0], du)
        np.testing.assert_allclose(du, [-6.0, -1.0])
        assert model.syms == ["x", "y"]

    def test_derivative_reference(self):
        """An equation may read a derivative already written."""
        model = ode_def("Chain", "dx = -a*x\ndy = dx - y", "a=>2", build_hes=False)
        du = np.zeros(2)
        model(0.0, [1.0, 1.0], du)
        np.testing.assert_allclose(du, [-2.0, -3.0])

    def test_forward_derivative_reference(self):
        """Reading a derivative before its equation is rejected."""
        with pytest.raises(ParseError, match="'dx' before its last equation"):
            ode_def("Ahead", "dy = dx - y\ndx = -x")

    def test_custom_independent_var(self):
        """The independent variable may be renamed."""
        model = ode_def("Forced", "dx = -x + s", independent_var="s", build_hes=False)
        du = np.zeros(1)
        model(2.0, [1.0], du)
        assert du[0] == pytest.approx(1.0)
        grad = np.zeros(1)
        model.call("tgrad", 2.0, [1.0], grad)
        assert grad[0] == pytest.approx(1.0)


# ======================================================================
# 2. Derived artifacts
# ======================================================================

class TestDerivedArtifacts:

    def test_existence(self, lotka_volterra):
        """Default options build everything but expjac; invhes fails."""
        assert lotka_volterra.has_jac
        assert lotka_volterra.has_tgrad
        assert lotka_volterra.has_invjac
        assert lotka_volterra.has_invW and lotka_volterra.has_invW_t
        assert lotka_volterra.has_hes
        assert not lotka_volterra.has_invhes
        assert not lotka_volterra.has_expjac
        assert lotka_volterra.has_paramjac and lotka_volterra.has_paramderiv

    def test_jacobian_analytic(self, lotka_volterra, reference):
        """The Jacobian matches the analytic one."""
        J = np.zeros((2, 2))
        for x, y in POINTS + _random_states():
            lotka_volterra.call("jac", 0.0, [x, y], J)
            np.testing.assert_allclose(J, reference["jac"](x, y))

    def test_jacobian_finite_differences(self, lotka_volterra):
        """The Jacobian matches central differences of the right-hand side."""
        J = np.zeros((2, 2))
        for x, y in POINTS:
            u = np.array([x, y])
            lotka_volterra.call("jac", 0.0, u, J)
            np.testing.assert_allclose(J, _finite_difference_jacobian(lotka_volterra, u),
                                       atol=1e-6)

    def test_inverse_jacobian(self, lotka_volterra):
        """invjac times jac is the identity at random nonsingular states."""
        J, Jinv = np.zeros((2, 2)), np.zeros((2, 2))
        for x, y in _random_states():
            lotka_volterra.call("jac", 0.0, [x, y], J)
            lotka_volterra.call("invjac", 0.0, [x, y], Jinv)
            np.testing.assert_allclose(Jinv @ J, np.eye(2), atol=1e-9)

    def test_time_gradient(self, lotka_volterra):
        """An autonomous model has a zero time gradient."""
        grad = np.full(2, np.nan)
        lotka_volterra.call("tgrad", 0.0, [1.0, 1.0], grad)
        np.testing.assert_allclose(grad, [0.0, 0.0])

    def test_hessian_of_bilinear_model_is_zero(self, lotka_volterra):
        """Every entry of the LV Hessian slice is written as zero."""
        H = np.full((2, 2), np.nan)
        lotka_volterra.call("hes", 0.0, [1.0, 2.0], H)
        np.testing.assert_allclose(H, np.zeros((2, 2)))

    def test_param_derivative(self, lotka_volterra):
        """A parameter-derivative tag writes one column of paramjac."""
        du = np.full(2, np.nan)
        lotka_volterra.call(ParamDerivTag("a"), 0.0, [2.0, 3.0], 1.5, du)
        np.testing.assert_allclose(du, [2.0, 0.0])

    def test_paramjac(self, lotka_volterra):
        """The parameter Jacobian has one column per bound parameter."""
        J = np.zeros((2, 2))
        lotka_volterra.call("paramjac", 0.0, [2.0, 3.0], [1.5, 1.0], J)
        np.testing.assert_allclose(J, [[2.0, -6.0], [0.0, 0.0]])

    @pytest.mark.parametrize("gamma", [0.1, 0.5, 2.0])
    def test_rosenbrock_w(self, lotka_volterra, reference, gamma):
        """invW and invW_t match numpy inverses of the W matrices."""
        W = np.zeros((2, 2))
        for x, y in POINTS:
            J = reference["jac"](x, y)
            lotka_volterra.call("invW", 0.0, [x, y], gamma, W)
            np.testing.assert_allclose(W, np.linalg.inv(np.eye(2) - gamma * J))
            lotka_volterra.call("invW_t", 0.0, [x, y], gamma, W)
            np.testing.assert_allclose(W, np.linalg.inv(np.eye(2) / gamma - J))

    def test_rosenbrock_w_mass_matrix(self, lv_block, lv_params, reference):
        """A mass matrix replaces the identity in invW."""
        M = np.diag([2.0, 1.0])
        with pytest.warns(RuntimeWarning):
            model = ode_def("LVMass", lv_block, *lv_params, mass_matrix=M)
        W = np.zeros((2, 2))
        x, y, gamma = 2.0, 3.0, 0.25
        model.call("invW", 0.0, [x, y], gamma, W)
        np.testing.assert_allclose(W, np.linalg.inv(M - gamma * reference["jac"](x, y)))

    def test_hessian_slice(self, cubic):
        """The Hessian slice and its inverse of the cubic model."""
        H, Hinv = np.zeros((2, 2)), np.zeros((2, 2))
        cubic.call("hes", 0.0, [2.0, 3.0], H)
        np.testing.assert_allclose(H, [[3.0, 0.0], [0.0, 36.0]])
        cubic.call("invhes", 0.0, [2.0, 3.0], Hinv)
        np.testing.assert_allclose(Hinv, [[1 / 3, 0.0], [0.0, 1 / 36]])

    def test_cubic_builds_everything(self, cubic):
        """Every default artifact of the cubic model exists."""
        assert all(cubic.exists[k] for k in cubic.exists if k != "expjac")

    def test_exponential_jacobian(self):
        """expjac of a diagonal model is the elementwise exponential."""
        model = ode_def("Decay", "dx = -a*x\ndy = -b*y", "a=>1", "b=>2",
                        build_expjac=True, build_hes=False)
        assert model.has_expjac
        E = np.zeros((2, 2))
        model.call("expjac", 0.0, [1.0, 1.0], 0.5, E)
        np.testing.assert_allclose(E, np.diag([np.exp(-0.5), np.exp(-1.0)]))

    def test_derivative_reference_jacobian(self):
        """A derivative reference is differentiated through its component."""
        model = _no_runtime_warnings(
            ode_def, "Chain", "dx = -a*x\ndy = dx - y", "a=>2", build_hes=False,
        )
        J = np.zeros((2, 2))
        model.call("jac", 0.0, [1.0, 1.0], J)
        np.testing.assert_allclose(J, [[-2.0, 0.0], [-2.0, -1.0]])
        for u in ([1.0, 1.0], [0.3, -2.0]):
            u = np.array(u)
            model.call("jac", 0.0, u, J)
            np.testing.assert_allclose(J, _finite_difference_jacobian(model, u), atol=1e-6)

    def test_derivative_reference_parameter_derivative(self):
        """d/da of 'dy = dx - y' carries the derivative of dx."""
        model = _no_runtime_warnings(
            ode_def, "Chain", "dx = -a*x\ndy = dx - y", "a=>2", build_hes=False,
        )
        du = np.full(2, np.nan)
        model.call(ParamDerivTag("a"), 0.0, [1.0, 1.0], 2.0, du)
        np.testing.assert_allclose(du, [-1.0, -1.0])
        Jinv, J = np.zeros((2, 2)), np.zeros((2, 2))
        model.call("jac", 0.0, [1.0, 1.0], J)
        model.call("invjac", 0.0, [1.0, 1.0], Jinv)
        np.testing.assert_allclose(Jinv @ J, np.eye(2), atol=1e-12)

    def test_reference_to_redeclared_state(self):
        """A reference must follow the last equation of its state."""
        with pytest.raises(ParseError, match="'dx' before its last equation"):
            ode_def("Loop", "dx = 1\ndy = dx\ndx = dy")
        with pytest.raises(ParseError, match="'dx' before its last equation"):
            ode_def("Stale", "dx = 1\ndy = dx\ndx = 2*x")

    def test_funcs_are_scoped(self, lotka_volterra):
        """Algebra symbols carry the model name and a compilation suffix."""
        scope = lotka_volterra.spec.scope
        assert scope.startswith("LotkaVolterra_")
        names = {str(s) for s in lotka_volterra.funcs[0].free_symbols}
        assert names == {f"{n}_{scope}" for n in ("a", "b", "x", "y")}

    def test_same_name_never_shares_symbols(self, lotka_volterra, lv_block, lv_params):
        """Two models compiled under one name get disjoint symbols."""
        with pytest.warns(RuntimeWarning):
            twin = ode_def("LotkaVolterra", lv_block, *lv_params)
        assert twin.spec.scope != lotka_volterra.spec.scope
        names = {str(s) for s in lotka_volterra.funcs[0].free_symbols}
        twin_names = {str(s) for s in twin.funcs[0].free_symbols}
        assert names.isdisjoint(twin_names)


# ======================================================================
# 3. Absent artifacts and stubs
# ======================================================================

class TestStubs:

    def test_disabled_jacobian(self, lv_block, lv_params):
        """Disabling jac removes its dependents but not tgrad or paramjac."""
        model = _no_runtime_warnings(ode_def, "NoJac", lv_block, *lv_params, build_jac=False)
        assert not model.has_jac
        assert not model.has_invjac
        assert not model.has_invW and not model.has_invW_t
        assert not model.has_hes and not model.has_invhes
        assert model.has_tgrad and model.has_paramjac
        du = np.zeros(2)
        model(0.0, [1.0, 1.0], du)
        np.testing.assert_allclose(du, [0.5, -2.0])

    def test_stub_raises(self, lv_block, lv_params):
        """Calling an absent mode raises InvocationError."""
        model = _no_runtime_warnings(ode_def, "NoJac", lv_block, *lv_params, build_jac=False)
        with pytest.raises(InvocationError, match="Jacobian does not exist"):
            model.call("jac", 0.0, [1.0, 1.0], np.zeros((2, 2)))
        with pytest.raises(NotImplementedError):
            model.call("invW", 0.0, [1.0, 1.0], 0.1, np.zeros((2, 2)))

    def test_failed_stage_stub_carries_message(self, lotka_volterra):
        """The stub of a failed stage reports why it failed."""
        with pytest.raises(InvocationError, match="could not be built"):
            lotka_volterra.call("invhes", 0.0, [1.0, 1.0], np.zeros((2, 2)))

    def test_has(self, lotka_volterra):
        """has() accepts names, modes and tags."""
        assert lotka_volterra.has("jac")
        assert lotka_volterra.has(Mode.DEFAULT)
        assert lotka_volterra.has(ParamTag("a"))
        assert not lotka_volterra.has("invhes")
        assert not lotka_volterra.has(ParamTag("zz"))

    def test_unknown_mode(self, lotka_volterra):
        """Unknown modes and tags raise InvocationError."""
        with pytest.raises(InvocationError, match="Unknown mode"):
            lotka_volterra.call("jacobian", 0.0, [1.0, 1.0], np.zeros((2, 2)))
        with pytest.raises(InvocationError, match="no mode"):
            lotka_volterra.call(ParamTag("zz"), 0.0, [1.0, 1.0], 1.0, np.zeros(2))

    def test_bare(self, lv_block, lv_params):
        """Bare options still give the right-hand side modes."""
        model = _no_runtime_warnings(
            ode_def_opts, "Bare", BuildOptions.bare(), lv_block, *lv_params,
        )
        assert not any(model.exists.values())
        assert model.funcs == []
        du = np.zeros(2)
        model.call(ParamTag("b"), 0.0, [1.0, 1.0], 0.0, du)
        np.testing.assert_allclose(du, [1.5, -2.0])

    def test_options_mapping(self, lv_block, lv_params):
        """A mapping of options keeps the defaults it does not name."""
        model = _no_runtime_warnings(
            ode_def_opts, "Mapped", {"build_hes": False, "build_invW": False},
            lv_block, *lv_params,
        )
        assert model.has_jac and not model.has_hes and not model.has_invW
        assert model.has_invW_t

    def test_derivative_reference_in_derived_artifact(self):
        """A product with a derivative reference still has a Jacobian."""
        model = _no_runtime_warnings(
            ode_def, "Coupled", "dx = -x\ndy = dx*y", build_hes=False,
        )
        assert model.has_jac and model.has_invjac
        du = np.zeros(2)
        model(0.0, [2.0, 3.0], du)
        np.testing.assert_allclose(du, [-2.0, -6.0])
        J = np.zeros((2, 2))
        model.call("jac", 0.0, [2.0, 3.0], J)
        np.testing.assert_allclose(J, [[-1.0, 0.0], [-3.0, -2.0]])

    def test_user_function_disables_symbolics(self):
        """Functions unknown to SymPy give a numeric-only model."""
        with pytest.warns(RuntimeWarning, match="could not start"):
            model = ode_def("Squash", "dx = -k*squash(x)", "k=>2",
                            functions={"squash": np.tanh})
        assert not model.has_jac and not model.has_tgrad and not model.has_paramderiv
        du = np.zeros(1)
        model(0.0, [0.5], du)
        assert du[0] == pytest.approx(-2 * np.tanh(0.5))


# ======================================================================
# 4. Fatal errors
# ======================================================================

class TestFatalErrors:

    def test_unknown_identifier(self):
        """An unclassified name fails the compilation."""
        with pytest.raises(UnknownSymbolError, match="'q'"):
            ode_def("Bad", "dx = -q*x")

    def test_unknown_option(self):
        """A misspelled build option is rejected."""
        with pytest.raises(ValueError, match="build_jacobian"):
            ode_def("Bad", "dx = -x", build_jacobian=False)

    def test_mass_matrix_shape(self, lv_block, lv_params):
        """A mass matrix of the wrong shape is rejected."""
        with pytest.raises(DimensionMismatch):
            ode_def("Bad", lv_block, *lv_params, mass_matrix=np.eye(3))

    def test_mass_matrix_ignored_without_w(self, lv_block, lv_params):
        """The mass matrix is only checked when a W inverse is requested."""
        model = _no_runtime_warnings(
            ode_def, "Ok", lv_block, *lv_params, mass_matrix=np.eye(3),
            build_invW=False, build_invW_t=False, build_hes=False,
        )
        assert not model.has_invW

    def test_role_conflict(self):
        """A name cannot be both state and parameter."""
        with pytest.raises(ParseError):
            ode_def("Bad", "dx = -x", "x=>1")

    def test_reserved_independent_var(self):
        """The independent variable cannot shadow a procedure argument."""
        with pytest.raises(ParseError, match="independent variable"):
            ode_def("Bad", "dx = -x", independent_var="u")

    def test_inline_cycle(self):
        """Self-referring inlines fail the compilation."""
        with pytest.raises(ParseError):
            ode_def("Bad", "dx = -k*x", "k=2*m", "m=k")


# ======================================================================
# 5. Recompilation, introspection, tracing
# ======================================================================

class TestRecompile:

    def test_identical_bodies(self, lotka_volterra):
        """Recompiling generates the same bodies."""
        with pytest.warns(RuntimeWarning):
            again = recompile(lotka_volterra)
        assert set(again.bodies) == set(lotka_volterra.bodies)
        for tag, body in lotka_volterra.bodies.items():
            assert dump_body(again.bodies[tag]) == dump_body(body), tag

    def test_same_exists(self, lotka_volterra):
        """Recompiling gives the same flags and parameters."""
        with pytest.warns(RuntimeWarning):
            again = recompile(lotka_volterra)
        assert again.exists == lotka_volterra.exists
        assert again.params == lotka_volterra.params

    def test_scope_retained(self, lotka_volterra):
        """Recompiling reuses the algebra symbols of the original."""
        with pytest.warns(RuntimeWarning):
            again = recompile(lotka_volterra)
        assert again.spec.scope == lotka_volterra.spec.scope
        assert again.funcs == lotka_volterra.funcs

    def test_options_retained(self, lv_block, lv_params):
        """Recompiling keeps the original build options."""
        model = _no_runtime_warnings(ode_def, "NoJac", lv_block, *lv_params, build_jac=False)
        again = _no_runtime_warnings(recompile, model)
        assert not again.has_jac

    def test_spec_retained(self, lotka_volterra):
        """The bundle keeps its parsed definition."""
        assert lotka_volterra.spec.name == "LotkaVolterra"
        assert "dx = a * x - b * x * y" in lotka_volterra.spec.source

    def test_source(self, lotka_volterra):
        """source() shows the generated procedure of a mode."""
        source = lotka_volterra.source("jac")
        assert "J[0, 0] =" in source
        assert "J[1, 1] =" in source

    def test_source_of_missing_mode(self, lotka_volterra):
        """An absent mode has no source."""
        with pytest.raises(InvocationError):
            lotka_volterra.source("invhes")

    def test_repr(self, lotka_volterra):
        """The repr names the model and its modes."""
        text = repr(lotka_volterra)
        assert "LotkaVolterra" in text
        assert "'jac'" in text


class TestVerbose:

    def test_trace(self, capsys):
        """verbose=True prints every stage."""
        ode_def("Decay", "dx = -a*x", "a=>0.5", build_hes=False, verbose=True)
        out = capsys.readouterr().out
        assert "[paramfuncs] Compiling model 'Decay'" in out
        assert "-> jac: ok" in out
        assert "-> synthesized 'Decay_jac'" in out

    def test_silent_by_default(self, capsys):
        """Nothing is printed without verbose."""
        ode_def("Decay", "dx = -a*x", "a=>0.5", build_hes=False)
        assert capsys.readouterr().out == ""

    def test_compiler_directly(self, capsys):
        """ModelCompiler can be driven with a parsed definition."""
        spec = parse_equations("Decay", "dx = -a*x", "a=>0.5")
        model = ModelCompiler(spec, BuildOptions.bare(), verbose=True).compile()
        assert "No derived artifacts requested" in capsys.readouterr().out
        du = np.zeros(1)
        model(0.0, [2.0], du)
        assert du[0] == pytest.approx(-1.0)


# ======================================================================
# 6. Finite-element residuals
# ======================================================================

class TestFiniteElement:

    def test_single_component(self):
        """A one-component residual reads coordinates from x columns."""
        model = fem_def(("x", "t", "u"), "Reaction", "du = -k*u + sin(x)*y", "k=>2")
        x = np.array([[0.0, 1.0], [np.pi / 2, 2.0]])
        u = np.array([[1.0], [2.0]])
        np.testing.assert_allclose(model(x, 0.0, u), [-2.0, -2.0])

    def test_several_components_stacked(self):
        """Several components are returned column-stacked."""
        model = fem_def(("x", "t", "u"), "System", "du = -u + v\ndv = x*u")
        x = np.array([[1.0, 0.0], [3.0, 0.0]])
        u = np.array([[1.0, 2.0], [4.0, 1.0]])
        result = model(x, 0.0, u)
        assert result.shape == (2, 2)
        np.testing.assert_allclose(result, [[1.0, 1.0], [-3.0, 12.0]])

    def test_parameter_mutation(self):
        """Residual parameters are mutable fields."""
        model = fem_def(("x", "t", "u"), "Reaction", "du = -k*u", "k=>2")
        model.k = 3.0
        np.testing.assert_allclose(model(np.zeros((1, 1)), 0.0, np.ones((1, 1))), [-3.0])

    def test_only_residual(self):
        """A residual has no derived artifacts."""
        model = fem_def(("x", "t", "u"), "Reaction", "du = -u")
        assert model.kind == "fem"
        assert not any(model.exists.values())
        with pytest.raises(InvocationError):
            model.call("jac", np.zeros((1, 1)), 0.0, np.ones((1, 1)))

    def test_reserved_parameter_argument(self):
        """The parameter argument cannot appear in a residual signature."""
        with pytest.raises(ParseError):
            fem_def(("x", "p", "u"), "Bad", "du = -u")
