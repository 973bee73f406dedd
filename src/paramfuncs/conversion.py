"""
conversion.py
=============
Bridges between Python expression trees (:mod:`ast`) and SymPy.

The rewriter produces an algebra-ready tree whose leaves are scoped symbol
names; :func:`to_sympy` turns it into a SymPy expression for
differentiation.  :func:`from_sympy` walks a derived SymPy expression back
into the same tree form so that the rewriter's synthesis context can map
its leaves onto state, parameter and output containers again.
"""

from __future__ import annotations

import ast
import functools

import numpy as np
import sympy as sp

from paramfuncs.errors import SymbolicFailure

#: Primitive name → (SymPy callable, numeric callable).
KNOWN_FUNCTIONS = {
    "exp": (sp.exp, np.exp),
    "log": (sp.log, np.log),
    "sqrt": (sp.sqrt, np.sqrt),
    "sin": (sp.sin, np.sin),
    "cos": (sp.cos, np.cos),
    "tan": (sp.tan, np.tan),
    "asin": (sp.asin, np.arcsin),
    "acos": (sp.acos, np.arccos),
    "atan": (sp.atan, np.arctan),
    "atan2": (sp.atan2, np.arctan2),
    "sinh": (sp.sinh, np.sinh),
    "cosh": (sp.cosh, np.cosh),
    "tanh": (sp.tanh, np.tanh),
    "abs": (sp.Abs, np.abs),
    "sign": (sp.sign, np.sign),
    "min": (sp.Min, np.minimum),
    "max": (sp.Max, np.maximum),
}

#: Primitive constant name → (SymPy value, numeric value).
KNOWN_CONSTANTS = {
    "pi": (sp.pi, np.pi),
    "e": (sp.E, np.e),
}

# SymPy function class → primitive name, for the way back.
_SYMPY_NAMES = {funcs[0]: name for name, funcs in KNOWN_FUNCTIONS.items() if name != "sqrt"}

_RELATIONALS = {
    sp.StrictLessThan: ast.Lt,
    sp.LessThan: ast.LtE,
    sp.StrictGreaterThan: ast.Gt,
    sp.GreaterThan: ast.GtE,
    sp.Equality: ast.Eq,
    sp.Unequality: ast.NotEq,
}

_SYMPY_BINOPS = {
    ast.Add: lambda a, b: a + b,
    ast.Sub: lambda a, b: a - b,
    ast.Mult: lambda a, b: a * b,
    ast.Div: lambda a, b: a / b,
    ast.Pow: lambda a, b: a ** b,
    ast.Mod: sp.Mod,
}


def numeric_namespace():
    """Names visible to generated procedures besides their arguments."""
    namespace = {name: funcs[1] for name, funcs in KNOWN_FUNCTIONS.items()}
    namespace.update({name: values[1] for name, values in KNOWN_CONSTANTS.items()})
    namespace["nan"] = np.nan
    namespace["column_stack"] = np.column_stack
    return namespace


# ----------------------------------------------------------------------
# ast -> SymPy
# ----------------------------------------------------------------------

def to_sympy(node, symbols):
    """Convert an algebra-form tree into a SymPy expression.

    Parameters
    ----------
    node : ast.expr
        Tree produced by the rewriter's algebraic context.
    symbols : dict
        Scoped symbol name → ``sympy.Symbol``.

    Raises
    ------
    SymbolicFailure
        For names, functions or constructs SymPy cannot represent.
    """
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool):
            raise SymbolicFailure(f"Boolean literal {node.value!r} in expression")
        if isinstance(node.value, int):
            return sp.Integer(node.value)
        if isinstance(node.value, float):
            return sp.Float(node.value)
        if isinstance(node.value, complex):
            return sp.Float(node.value.real) + sp.Float(node.value.imag) * sp.I
        raise SymbolicFailure(f"Unsupported literal {node.value!r}")

    if isinstance(node, ast.Name):
        if node.id in symbols:
            return symbols[node.id]
        if node.id in KNOWN_CONSTANTS:
            return KNOWN_CONSTANTS[node.id][0]
        raise SymbolicFailure(f"Name '{node.id}' has no symbolic meaning")

    if isinstance(node, ast.BinOp):
        op = _SYMPY_BINOPS.get(type(node.op))
        if op is None:
            raise SymbolicFailure(f"Unsupported operator {type(node.op).__name__}")
        return op(to_sympy(node.left, symbols), to_sympy(node.right, symbols))

    if isinstance(node, ast.UnaryOp):
        operand = to_sympy(node.operand, symbols)
        if isinstance(node.op, ast.USub):
            return -operand
        if isinstance(node.op, ast.UAdd):
            return operand
        raise SymbolicFailure(f"Unsupported unary operator {type(node.op).__name__}")

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
        if node.func.id not in KNOWN_FUNCTIONS:
            raise SymbolicFailure(
                f"Function '{node.func.id}' is not differentiable by SymPy"
            )
        args = [to_sympy(a, symbols) for a in node.args]
        try:
            return KNOWN_FUNCTIONS[node.func.id][0](*args)
        except TypeError as err:
            raise SymbolicFailure(
                f"Function '{node.func.id}' called with {len(args)} argument(s): {err}"
            ) from err

    raise SymbolicFailure(f"Unsupported expression node {type(node).__name__}")


# ----------------------------------------------------------------------
# SymPy -> ast
# ----------------------------------------------------------------------

def _call(name, *args):
    return ast.Call(func=ast.Name(id=name, ctx=ast.Load()), args=list(args), keywords=[])


def _binop(left, op, right):
    return ast.BinOp(left=left, op=op, right=right)


def _product(factors):
    nodes = [from_sympy(f) for f in factors]
    if not nodes:
        return ast.Constant(value=1)
    return functools.reduce(lambda a, b: _binop(a, ast.Mult(), b), nodes)


def _from_add(expr):
    node = None
    for term in expr.args:
        coeff, _ = term.as_coeff_Mul()
        negative = coeff.is_negative
        part = from_sympy(-term if negative else term)
        if node is None:
            node = ast.UnaryOp(op=ast.USub(), operand=part) if negative else part
        else:
            node = _binop(node, ast.Sub() if negative else ast.Add(), part)
    return node


def _from_mul(expr):
    coeff, factors = expr.as_coeff_mul()
    numerator, denominator = [], []
    for f in factors:
        if f.is_Pow and f.exp.is_Number and f.exp.is_negative:
            denominator.append(f.base ** -f.exp)
        else:
            numerator.append(f)

    negative = coeff.is_negative
    if negative:
        coeff = -coeff
    if coeff != 1:
        numerator.insert(0, coeff)

    node = _product(numerator)
    if denominator:
        node = _binop(node, ast.Div(), _product(denominator))
    if negative:
        node = ast.UnaryOp(op=ast.USub(), operand=node)
    return node


def _from_pow(expr):
    base, exp = expr.args
    if exp == sp.Rational(1, 2):
        return _call("sqrt", from_sympy(base))
    if exp.is_Number and exp.is_negative:
        return _binop(ast.Constant(value=1), ast.Div(), from_sympy(base ** -exp))
    return _binop(from_sympy(base), ast.Pow(), from_sympy(exp))


def _from_piecewise(expr):
    node = ast.Name(id="nan", ctx=ast.Load())
    for value, cond in reversed(expr.args):
        if cond == sp.true:
            node = from_sympy(value)
        else:
            node = ast.IfExp(test=from_sympy(cond), body=from_sympy(value), orelse=node)
    return node


def from_sympy(expr):
    """Convert a SymPy expression into a Python expression tree.

    Symbols become bare names carrying the symbol's (scoped) name; the caller
    is expected to run the result through the rewriter's synthesis context.

    Raises
    ------
    SymbolicFailure
        If *expr* contains constructs with no numeric counterpart
        (unevaluated derivatives, infinities, special functions).
    """
    if expr.is_Symbol:
        return ast.Name(id=expr.name, ctx=ast.Load())
    if expr is sp.pi:
        return ast.Name(id="pi", ctx=ast.Load())
    if expr is sp.E:
        return ast.Name(id="e", ctx=ast.Load())
    if expr is sp.I:
        return ast.Constant(value=1j)
    if expr in (sp.nan, sp.oo, -sp.oo, sp.zoo):
        raise SymbolicFailure(f"Non-finite value {expr} in derived expression")
    if expr.is_Integer:
        return ast.Constant(value=int(expr))
    if expr.is_Rational:
        return _binop(ast.Constant(value=int(expr.p)), ast.Div(), ast.Constant(value=int(expr.q)))
    if expr.is_Float:
        return ast.Constant(value=float(expr))
    if expr is sp.true or expr is sp.false:
        return ast.Constant(value=bool(expr))
    if expr.is_Add:
        return _from_add(expr)
    if expr.is_Mul:
        return _from_mul(expr)
    if expr.is_Pow:
        return _from_pow(expr)
    if isinstance(expr, sp.Piecewise):
        return _from_piecewise(expr)
    if type(expr) in _RELATIONALS:
        return ast.Compare(
            left=from_sympy(expr.lhs),
            ops=[_RELATIONALS[type(expr)]()],
            comparators=[from_sympy(expr.rhs)],
        )
    if isinstance(expr, (sp.And, sp.Or)):
        op = ast.And() if isinstance(expr, sp.And) else ast.Or()
        return ast.BoolOp(op=op, values=[from_sympy(a) for a in expr.args])
    if expr.func in (sp.Min, sp.Max):
        name = _SYMPY_NAMES[expr.func]
        return functools.reduce(lambda a, b: _call(name, a, b), [from_sympy(a) for a in expr.args])

    name = _SYMPY_NAMES.get(expr.func)
    if name is None:
        raise SymbolicFailure(f"No numeric counterpart for {type(expr).__name__}")
    return _call(name, *[from_sympy(a) for a in expr.args])
