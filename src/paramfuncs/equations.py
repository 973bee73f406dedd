"""
equations.py
============
Parsing of equation blocks and parameter declarations into an immutable
:class:`EquationSpec`.

An equation block holds one explicit first-order equation per line, written
as a Python assignment whose target is the derivative of a state variable::

    dx = a*x - b*x*y
    dy = -c*y + d*x*y

Parameters are declared separately, either as *bindings* (``"a=>1.5"``),
which become mutable fields of the compiled model, or as *inlines*
(``"c=3"``), which are substituted into the equations at compile time and
never appear in the generated code.
"""

from __future__ import annotations

import ast
import textwrap
from dataclasses import dataclass, field
from typing import Optional

from paramfuncs.errors import ParseError

#: Prefix marking the left-hand side of an equation as a derivative.
DERIVATIVE_PREFIX = "d"

_ALLOWED_BINOPS = (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Pow, ast.Mod)
_ALLOWED_UNARYOPS = (ast.UAdd, ast.USub)


@dataclass(frozen=True)
class ParamDecl:
    """A single parameter declaration.

    Parameters
    ----------
    name : str
        Identifier of the parameter.
    value : ast.expr
        The declared value.  For bindings this must be a literal, for
        inlines any expression is accepted and spliced verbatim.
    inline : bool
        ``True`` for ``name = value`` declarations.
    """

    name: str
    value: ast.expr = field(compare=False)
    inline: bool = False

    @classmethod
    def binding(cls, name, default):
        return cls(name, ast.Constant(value=default), inline=False)

    @classmethod
    def inlined(cls, name, value):
        return cls(name, ast.Constant(value=value), inline=True)

    @property
    def default(self):
        """Python value of the declaration (bindings only)."""
        try:
            return ast.literal_eval(self.value)
        except ValueError as err:
            raise ParseError(
                f"Default of parameter '{self.name}' must be a literal, "
                f"got '{ast.unparse(self.value)}'"
            ) from err

    def __str__(self):
        op = "=" if self.inline else "=>"
        return f"{self.name}{op}{ast.unparse(self.value)}"


@dataclass(frozen=True)
class EquationSpec:
    """Raw, parsed model definition.

    Attributes
    ----------
    name : str
        Model name.
    equations : tuple of (str, ast.expr)
        ``(lhs, rhs)`` pairs in declaration order.  ``lhs`` keeps the
        derivative prefix (``'dx'``).
    parameters : tuple of ParamDecl
    independent_var : str
    signature : tuple of str or None
        Call signature of a finite-element residual; ``None`` for ODEs.
    tree : ast.Module
        The original parsed block, retained for introspection.
    scope : str or None
        Suffix of the algebra symbols of this model.  Assigned once per
        compilation and retained, so that recompiling reuses it.
    """

    name: str
    equations: tuple
    parameters: tuple = ()
    independent_var: str = "t"
    signature: Optional[tuple] = None
    tree: Optional[ast.Module] = field(default=None, compare=False, repr=False)
    scope: Optional[str] = field(default=None, compare=False)

    @property
    def source(self):
        """The equation block regenerated from the retained tree."""
        return ast.unparse(self.tree)

    @property
    def bindings(self):
        return tuple(p for p in self.parameters if not p.inline)

    @property
    def inlines(self):
        return tuple(p for p in self.parameters if p.inline)


def parse_param(decl):
    """Parse a ``"name=>value"`` or ``"name=value"`` declaration.

    ``=>`` is checked first so that ``a=>1`` is never read as an inline.
    """
    if isinstance(decl, ParamDecl):
        return decl
    if not isinstance(decl, str):
        raise ParseError(f"Cannot interpret parameter declaration {decl!r}")

    if "=>" in decl:
        name, _, value = decl.partition("=>")
        inline = False
    elif "=" in decl:
        name, _, value = decl.partition("=")
        inline = True
    else:
        raise ParseError(
            f"Parameter declaration '{decl}' needs 'name=>value' or 'name=value'"
        )

    name = name.strip()
    if not name.isidentifier():
        raise ParseError(f"Invalid parameter name '{name}' in '{decl}'")
    try:
        value_tree = _CaretPower().visit(ast.parse(value.strip(), mode="eval")).body
    except SyntaxError as err:
        raise ParseError(f"Invalid value in parameter declaration '{decl}'") from err

    param = ParamDecl(name, value_tree, inline=inline)
    if not inline:
        param.default  # validates the literal
    return param


class _CaretPower(ast.NodeTransformer):
    """Read ``^`` as exponentiation, as in the usual mathematical notation."""

    def visit_BinOp(self, node):
        self.generic_visit(node)
        if isinstance(node.op, ast.BitXor):
            node.op = ast.Pow()
        return node


def _check_expression(node, lhs):
    """Reject anything that is not plain arithmetic over names and numbers."""
    for child in ast.walk(node):
        if isinstance(child, ast.BinOp):
            if not isinstance(child.op, _ALLOWED_BINOPS):
                raise ParseError(
                    f"In '{lhs}': unsupported operator {type(child.op).__name__}"
                )
        elif isinstance(child, ast.UnaryOp):
            if not isinstance(child.op, _ALLOWED_UNARYOPS):
                raise ParseError(
                    f"In '{lhs}': unsupported operator {type(child.op).__name__}"
                )
        elif isinstance(child, ast.Call):
            if not isinstance(child.func, ast.Name) or child.keywords:
                raise ParseError(
                    f"In '{lhs}': only plain calls like 'exp(x)' are supported"
                )
        elif isinstance(child, ast.Constant):
            if isinstance(child.value, bool) or not isinstance(
                child.value, (int, float, complex)
            ):
                raise ParseError(f"In '{lhs}': unsupported literal {child.value!r}")
        elif not isinstance(
            child, (ast.Name, ast.Load, ast.operator, ast.unaryop)
        ):
            raise ParseError(
                f"In '{lhs}': unsupported construct {type(child).__name__}"
            )


def parse_equations(name, block, *params, independent_var="t", signature=None):
    """Parse an equation block into an :class:`EquationSpec`.

    Parameters
    ----------
    name : str
        Model name.
    block : str
        Equations, one assignment per line (``;`` also separates them).
    *params : str or ParamDecl
        Parameter declarations.
    independent_var : str, optional
        Name of the independent variable (default ``'t'``).
    signature : sequence of str, optional
        Argument names of a finite-element residual.

    Raises
    ------
    ParseError
        If the block or any declaration is malformed.
    """
    if not name or not str(name).isidentifier():
        raise ParseError(f"Invalid model name {name!r}")
    if not independent_var.isidentifier():
        raise ParseError(f"Invalid independent variable name {independent_var!r}")

    text = textwrap.dedent(block).strip()
    if not text:
        raise ParseError(f"Model '{name}' has an empty equation block")
    try:
        tree = _CaretPower().visit(ast.parse(text, mode="exec"))
    except SyntaxError as err:
        raise ParseError(f"Model '{name}': {err.msg} (line {err.lineno})") from err

    equations = []
    for stmt in tree.body:
        if (
            not isinstance(stmt, ast.Assign)
            or len(stmt.targets) != 1
            or not isinstance(stmt.targets[0], ast.Name)
        ):
            raise ParseError(
                f"Model '{name}': '{ast.unparse(stmt)}' is not an equation "
                f"of the form 'dx = ...'"
            )
        lhs = stmt.targets[0].id
        if len(lhs) <= len(DERIVATIVE_PREFIX) or not lhs.startswith(DERIVATIVE_PREFIX):
            raise ParseError(
                f"Model '{name}': left-hand side '{lhs}' must be "
                f"'{DERIVATIVE_PREFIX}<state>'"
            )
        _check_expression(stmt.value, lhs)
        equations.append((lhs, stmt.value))

    parameters = tuple(parse_param(p) for p in params)
    seen = set()
    for p in parameters:
        if p.name in seen:
            raise ParseError(f"Model '{name}': parameter '{p.name}' declared twice")
        seen.add(p.name)
    for p in parameters:
        if p.inline:
            _check_expression(p.value, p.name)

    if signature is not None:
        signature = tuple(signature)
        for arg in signature:
            if not isinstance(arg, str) or not arg.isidentifier():
                raise ParseError(f"Model '{name}': invalid signature argument {arg!r}")

    return EquationSpec(
        name=str(name),
        equations=tuple(equations),
        parameters=parameters,
        independent_var=independent_var,
        signature=signature,
        tree=tree,
    )
