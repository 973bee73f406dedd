"""
rewriter.py
===========
Role-driven rewriting of expression trees.

Every leaf name of an equation is replaced according to the role the
:class:`~paramfuncs.symbols.SymbolTable` assigned to it.  The same source
tree is rewritten for several *targets*, each described by a
:class:`RewriteContext`:

- **numeric** — states become ``u[i]``, parameters ``p['a']`` and
  derivative references ``du[i]``; the result is compiled into a procedure.
- **algebraic** — states, parameters, the independent variable and
  derivative references become opaque symbol names scoped by the model,
  ready for :func:`~paramfuncs.conversion.to_sympy`.
- **synthesis** — the inverse of *algebraic*: scoped symbol names found in
  a derived expression are mapped back onto the numeric containers.
- **fem** — states become columns ``u[:, i]`` and spatial coordinates
  ``x, y, z`` become ``x[:, 0..2]``.

Inlined constants are spliced verbatim in every target.
"""

from __future__ import annotations

import ast
import copy

from paramfuncs.equations import DERIVATIVE_PREFIX
from paramfuncs.errors import ParseError
from paramfuncs.symbols import Role

#: Argument names of generated procedures.
STATE_ARG = "u"
DERIV_ARG = "du"
PARAM_ARG = "p"
GAMMA_ARG = "internal_gamma"

#: Spatial coordinates of finite-element residuals.
FEM_COORDINATES = {"x": 0, "y": 1, "z": 2}


def scoped_name(name, scope):
    """Name of the algebra symbol standing for *name* in model *scope*."""
    return f"{name}_{scope}"


def _load(name):
    return ast.Name(id=name, ctx=ast.Load())


def _index(container, *keys):
    key = keys[0] if len(keys) == 1 else ast.Tuple(elts=list(keys), ctx=ast.Load())
    return ast.Subscript(value=_load(container), slice=key, ctx=ast.Load())


def state_access(i):
    return _index(STATE_ARG, ast.Constant(value=i))


def column_access(container, i):
    return _index(container, ast.Slice(), ast.Constant(value=i))


def param_access(name):
    return _index(PARAM_ARG, ast.Constant(value=name))


def deriv_access(i):
    return _index(DERIV_ARG, ast.Constant(value=i))


class RewriteContext:
    """Substitution tables for one rewriting target.

    Lookup follows a fixed priority: states, inlined constants, parameters,
    derivative references, then any remaining named leaves (independent
    variable, step-size placeholder).  Names found in no table pass through
    unchanged.
    """

    def __init__(self, target, states=None, inlined=None, parameters=None,
                 derivatives=None, others=None):
        self.target = target
        self.states = dict(states or {})
        self.inlined = dict(inlined or {})
        self.parameters = dict(parameters or {})
        self.derivatives = dict(derivatives or {})
        self.others = dict(others or {})

    def lookup(self, name):
        """Return ``(replacement, spliced)`` for *name*, or ``(None, False)``."""
        if name in self.states:
            return self.states[name], False
        if name in self.inlined:
            return self.inlined[name], True
        if name in self.parameters:
            return self.parameters[name], False
        if name in self.derivatives:
            return self.derivatives[name], False
        if name in self.others:
            return self.others[name], False
        return None, False

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    @classmethod
    def numeric(cls, table):
        return cls(
            "numeric",
            states={s: state_access(i) for s, i in table.state_index.items()},
            inlined=table.inlined,
            parameters={p: param_access(p) for p in table.parameters},
            derivatives={_derivative_name(s): deriv_access(i)
                         for s, i in table.state_index.items()},
        )

    @classmethod
    def algebraic(cls, table, scope):
        return cls(
            "algebraic",
            states={s: _load(scoped_name(s, scope)) for s in table.states},
            inlined=table.inlined,
            parameters={p: _load(scoped_name(p, scope)) for p in table.parameters},
            derivatives={_derivative_name(s): _load(scoped_name(_derivative_name(s), scope))
                         for s in table.states},
            others={table.independent: _load(scoped_name(table.independent, scope))},
        )

    @classmethod
    def synthesis(cls, table, scope):
        return cls(
            "synthesis",
            states={scoped_name(s, scope): state_access(i)
                    for s, i in table.state_index.items()},
            parameters={scoped_name(p, scope): param_access(p) for p in table.parameters},
            derivatives={scoped_name(_derivative_name(s), scope): deriv_access(i)
                         for s, i in table.state_index.items()},
            others={
                scoped_name(table.independent, scope): _load(table.independent),
                scoped_name(GAMMA_ARG, scope): _load(GAMMA_ARG),
            },
        )

    @classmethod
    def fem(cls, table):
        others = {c: column_access("x", i)
                  for c, i in FEM_COORDINATES.items()
                  if table.role(c) is None}
        return cls(
            "fem",
            states={s: column_access(STATE_ARG, i) for s, i in table.state_index.items()},
            inlined=table.inlined,
            parameters={p: param_access(p) for p in table.parameters},
            others=others,
        )


def _derivative_name(state):
    return f"{DERIVATIVE_PREFIX}{state}"


# ----------------------------------------------------------------------
# Traversal
# ----------------------------------------------------------------------

def _resolve_leaf(node, context, active):
    if not isinstance(node.ctx, ast.Load):
        return copy.copy(node)
    replacement, spliced = context.lookup(node.id)
    if replacement is None:
        return ast.Name(id=node.id, ctx=ast.Load())
    if spliced:
        if node.id in active:
            raise ParseError(f"Inlined constant '{node.id}' refers to itself")
        return _walk(replacement, (context,), active | {node.id})[0]
    return copy.deepcopy(replacement)


def _walk(node, contexts, active):
    """Rebuild *node* once per context in a single pass over the tree."""
    if isinstance(node, ast.Name):
        return tuple(_resolve_leaf(node, ctx, active) for ctx in contexts)

    if isinstance(node, ast.Call):
        rebuilt = []
        args = [_walk(a, contexts, active) for a in node.args]
        for k in range(len(contexts)):
            rebuilt.append(ast.Call(
                func=copy.deepcopy(node.func),
                args=[a[k] for a in args],
                keywords=[],
            ))
        return tuple(rebuilt)

    rebuilt = [type(node)() for _ in contexts]
    for field, value in ast.iter_fields(node):
        if isinstance(value, ast.AST):
            parts = _walk(value, contexts, active)
            for target, part in zip(rebuilt, parts):
                setattr(target, field, part)
        elif isinstance(value, list):
            items = [
                _walk(item, contexts, active) if isinstance(item, ast.AST)
                else (item,) * len(contexts)
                for item in value
            ]
            for k, target in enumerate(rebuilt):
                setattr(target, field, [item[k] for item in items])
        else:
            for target in rebuilt:
                setattr(target, field, value)
    return tuple(rebuilt)


def rewrite(tree, context):
    """Rewrite *tree* for a single target.  *tree* is left untouched."""
    return _walk(tree, (context,), frozenset())[0]


def rewrite_pair(tree, numeric, algebraic):
    """Rewrite *tree* for the numeric and algebraic targets in one traversal.

    Both results have the same shape and differ only at rewritten leaves.
    """
    return _walk(tree, (numeric, algebraic), frozenset())


def free_names(tree, calls=True):
    """All names read by *tree*; called function names only if *calls*."""
    names = {n.id for n in ast.walk(tree) if isinstance(n, ast.Name)}
    if not calls:
        names -= {n.func.id for n in ast.walk(tree)
                  if isinstance(n, ast.Call) and isinstance(n.func, ast.Name)}
    return names


def leaked_names(tree, table):
    """Inlined or parameter names still present in a rewritten numeric tree."""
    return {
        name for name in free_names(tree, calls=False)
        if table.role(name) in (Role.INLINED, Role.PARAMETER)
    }
