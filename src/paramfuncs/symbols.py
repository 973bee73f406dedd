"""Symbol classification: assigns every identifier of a model exactly one role."""

from __future__ import annotations

import enum
from collections import OrderedDict

from paramfuncs.equations import DERIVATIVE_PREFIX
from paramfuncs.errors import ParseError


class Role(enum.Enum):
    STATE = "state"
    PARAMETER = "parameter"
    INLINED = "inlined"
    INDEPENDENT = "independent"


class SymbolTable:
    """Mapping from identifier to role, built once per model.

    Attributes
    ----------
    states : list of str
        State names; position is the state index.
    parameters : OrderedDict
        Symbolic parameter name → default value.
    inlined : OrderedDict
        Inlined constant name → value tree.
    independent : str
        Name of the independent variable.
    """

    def __init__(self, states, parameters, inlined, independent):
        self.states = list(states)
        self.parameters = OrderedDict(parameters)
        self.inlined = OrderedDict(inlined)
        self.independent = independent
        self.state_index = {s: i for i, s in enumerate(self.states)}

        self.roles = {}
        self._claim(independent, Role.INDEPENDENT)
        for s in self.states:
            self._claim(s, Role.STATE)
        for p in self.parameters:
            self._claim(p, Role.PARAMETER)
        for p in self.inlined:
            self._claim(p, Role.INLINED)

    def _claim(self, name, role):
        if name in self.roles:
            raise ParseError(
                f"'{name}' cannot be both {self.roles[name].value} and {role.value}"
            )
        self.roles[name] = role

    def role(self, name):
        """Role of *name*, or ``None`` for identifiers outside the model."""
        return self.roles.get(name)

    def derivative_target(self, name):
        """State named by a derivative reference such as ``'dx'``, or ``None``."""
        if len(name) > len(DERIVATIVE_PREFIX) and name.startswith(DERIVATIVE_PREFIX):
            target = name[len(DERIVATIVE_PREFIX):]
            if target in self.state_index:
                return target
        return None

    @property
    def num_states(self):
        return len(self.states)

    @property
    def num_params(self):
        return len(self.parameters)

    def __repr__(self):
        return (
            f"SymbolTable(states={self.states}, parameters={list(self.parameters)}, "
            f"inlined={list(self.inlined)}, independent={self.independent!r})"
        )


def build_state_index(spec):
    """Ordered state names from the derivative targets of *spec*.

    First appearance defines the index; re-declaring a state does not create
    a second entry.
    """
    states = OrderedDict()
    for lhs, _ in spec.equations:
        states.setdefault(lhs[len(DERIVATIVE_PREFIX):], len(states))
    return list(states)


def classify(spec):
    """Build the :class:`SymbolTable` for an :class:`EquationSpec`."""
    states = build_state_index(spec)
    parameters = OrderedDict((p.name, p.default) for p in spec.bindings)
    inlined = OrderedDict((p.name, p.value) for p in spec.inlines)
    return SymbolTable(states, parameters, inlined, spec.independent_var)
