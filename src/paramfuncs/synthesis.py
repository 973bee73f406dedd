"""
synthesis.py
============
Turns derived SymPy artifacts back into numeric procedures.

Each scalar entry of a :class:`~paramfuncs.derivation.SymbolicArtifact` is
walked back into an expression tree, its scoped algebra symbols are
rewritten onto the numeric containers, and the entries become a flat run
of in-place assignments::

    J[0, 0] = p['a'] - p['b'] * u[1]
    J[0, 1] = -(p['b'] * u[0])
    ...

Procedures are compiled straight from the statement trees; no source text
is generated.
"""

from __future__ import annotations

import ast

from paramfuncs.conversion import from_sympy
from paramfuncs.errors import SymbolicFailure, UnknownSymbolError
from paramfuncs.rewriter import DERIV_ARG, free_names, rewrite


def _store(container, *indices):
    keys = [ast.Constant(value=i) for i in indices]
    key = keys[0] if len(keys) == 1 else ast.Tuple(elts=keys, ctx=ast.Load())
    return ast.Subscript(
        value=ast.Name(id=container, ctx=ast.Load()), slice=key, ctx=ast.Store(),
    )


def assignment(output, indices, value):
    """``output[indices] = value`` as a statement tree."""
    return ast.Assign(targets=[_store(output, *indices)], value=value)


def synthesize(artifact, context, output):
    """Statement trees writing *artifact* into the container *output*.

    Parameters
    ----------
    artifact : SymbolicArtifact
        Must exist.
    context : RewriteContext
        The synthesis context of the model.
    output : str
        Name of the output argument.

    Returns
    -------
    list of ast.stmt

    Raises
    ------
    SymbolicFailure
        If an entry has no numeric counterpart, or still refers to the
        derivative of a state (only the right-hand side may do that).
    """
    matrix = artifact.matrix
    body = []
    for i in range(matrix.rows):
        for j in range(matrix.cols):
            value = rewrite(from_sympy(matrix[i, j]), context)
            if DERIV_ARG in free_names(value, calls=False):
                raise SymbolicFailure(
                    f"entry {(i, j)} depends on a state derivative"
                )
            indices = (i,) if artifact.vector else (i, j)
            body.append(assignment(output, indices, value))
    return body


def _function_def(name, args, body):
    fields = dict(
        name=name,
        args=ast.arguments(
            posonlyargs=[], args=[ast.arg(arg=a) for a in args], vararg=None,
            kwonlyargs=[], kw_defaults=[], kwarg=None, defaults=[],
        ),
        body=list(body) or [ast.Pass()],
        decorator_list=[],
        returns=None,
    )
    if "type_params" in ast.FunctionDef._fields:
        fields["type_params"] = []
    return ast.FunctionDef(**fields)


def build_procedure(name, body, args, namespace):
    """Compile statement trees into a function ``name(*args)``.

    Parameters
    ----------
    name : str
        Function name (also used in tracebacks).
    body : list of ast.stmt
    args : sequence of str
    namespace : dict
        Globals of the generated function: numeric primitives and any
        user-supplied callables.

    Raises
    ------
    UnknownSymbolError
        If the body reads a name that is neither an argument nor in
        *namespace*.
    """
    read = set()
    for stmt in body:
        read |= free_names(stmt)
    unknown = read - set(args) - set(namespace)
    if unknown:
        raise UnknownSymbolError(
            f"Unknown identifier(s) {sorted(unknown)} in '{name}'; "
            f"declare them as parameters or supply them as functions"
        )

    module = ast.Module(body=[_function_def(name, args, body)], type_ignores=[])
    ast.fix_missing_locations(module)
    code = compile(module, filename=f"<paramfuncs:{name}>", mode="exec")
    scope = dict(namespace)
    exec(code, scope)
    return scope[name]


def dump_body(body):
    """Canonical dump of a statement list, for comparing generated code."""
    return "\n".join(ast.dump(stmt) for stmt in body)
