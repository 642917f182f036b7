"""
Runtime environment for variable bindings
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from ..core.values import Value, from_python, some
from ..errors.exceptions import UnboundNameError, ImmutableFieldError


@dataclass
class Binding:
    """A bound value; mutable for 'var', constant for 'let'.

    A binding declared with an Optional type (T?) promotes plain values
    assigned to it to present Optionals.
    """
    value: Value
    mutable: bool = False
    optional: bool = False


def _promote(value: Value, optional: bool) -> Value:
    if optional and not value.is_optional:
        return some(value)
    return value


@dataclass
class Environment:
    """Flat scope of bindings"""
    bindings: Dict[str, Binding] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, object]]) -> 'Environment':
        """Build an environment of constants from plain values or Values"""
        env = cls()
        for name, value in (values or {}).items():
            env.define(name, from_python(value))
        return env

    def define(self, name: str, value: Value, mutable: bool = False, optional: bool = False):
        """Bind (or rebind) a name"""
        self.bindings[name] = Binding(_promote(value, optional), mutable, optional)

    def lookup(self, name: str) -> Optional[Binding]:
        """Look up a binding, None when unbound"""
        return self.bindings.get(name)

    def get(self, name: str) -> Value:
        binding = self.bindings.get(name)
        if binding is None:
            raise UnboundNameError(name)
        return binding.value

    def assign(self, name: str, value: Value):
        """Reassign a 'var' binding"""
        binding = self.bindings.get(name)
        if binding is None:
            raise UnboundNameError(name)
        if not binding.mutable:
            raise ImmutableFieldError(name)
        binding.value = _promote(value, binding.optional)

    def __contains__(self, name: str) -> bool:
        return name in self.bindings
