"""Exceptions raised while compiling or invoking a parameterized model."""

from __future__ import annotations


class ParamFuncsError(Exception):
    """Base class for paramfuncs errors."""


class ParseError(ParamFuncsError):
    """Raised when an equation block or parameter declaration is malformed."""


class UnknownSymbolError(ParamFuncsError):
    """Raised when an identifier resolves to no role and no numeric primitive."""


UnknownRoleError = UnknownSymbolError


class SymbolicFailure(ParamFuncsError):
    """Raised when the algebra backend cannot produce an artifact.

    Only ever caught by the per-stage boundary in
    :mod:`paramfuncs.derivation`, which turns it into an absent artifact.
    """


class DimensionMismatch(ParamFuncsError, ValueError):
    """Raised when a mass matrix or parameter vector has the wrong shape."""


class InvocationError(ParamFuncsError, NotImplementedError):
    """Raised when a model mode is called whose artifact does not exist."""


__all__ = [
    "ParamFuncsError",
    "ParseError",
    "UnknownSymbolError",
    "UnknownRoleError",
    "SymbolicFailure",
    "DimensionMismatch",
    "InvocationError",
]
