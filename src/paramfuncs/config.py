"""Build options selecting which derived artifacts are attempted."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace


@dataclass(frozen=True)
class BuildOptions:
    """Independent toggles, one per derivation stage.

    A disabled stage is never attempted and its existence flag is always
    false.  Stages that need the Jacobian (``expjac``, ``invjac``, ``invW``,
    ``invW_t``, ``hes``) and the inverse Hessian (which needs ``hes``) are
    skipped when what they depend on was not built.

    The exponential Jacobian is off by default: SymPy only manages it for
    small or structurally simple matrices.
    """

    build_tgrad: bool = True
    build_jac: bool = True
    build_expjac: bool = False
    build_invjac: bool = True
    build_invW: bool = True
    build_invW_t: bool = True
    build_hes: bool = True
    build_invhes: bool = True
    build_dpfuncs: bool = True

    @classmethod
    def bare(cls):
        """Only the right-hand side and per-parameter functions."""
        return cls(**{f.name: False for f in fields(cls)})

    @classmethod
    def without_inverses(cls):
        """Everything except the symbolic matrix inverses."""
        return cls(build_invjac=False, build_invW=False, build_invW_t=False,
                   build_invhes=False)

    @classmethod
    def from_mapping(cls, options):
        """Build from a dict such as ``{'build_jac': False}``.

        Unknown keys raise ``ValueError`` rather than being ignored.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(
                f"Unknown build option(s): {sorted(unknown)}; "
                f"expected some of {sorted(known)}"
            )
        return cls(**{k: bool(v) for k, v in options.items()})

    def with_options(self, **changes):
        return replace(self, **changes)

    def as_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}
