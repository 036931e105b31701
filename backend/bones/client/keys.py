"""
Bones Client — Query Keys and Invalidation Rules
=================================================

What:  Canonical cache keys and the declarative "which mutation makes which
       keys stale" relation.
Why:   Scattered invalidate() calls at every mutation site drift apart over
       time. Declaring the relation once, next to the key definitions, lets
       the cache apply it mechanically after every successful write.

Key Canonicalization:
    QueryKey.of("users.get", id="42") and a key built from the same
    parameters in a different order compare and hash equal, because params
    are stored sorted by name. Parameter values must be hashable.

Matching:
    A KeyPattern matches a key when the operation is equal and every
    parameter the pattern names has the same value in the key. A pattern
    with no parameters matches every key of its operation.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class QueryKey:
    """Operation name plus normalized parameters."""

    operation: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, operation: str, **params: Any) -> "QueryKey":
        return cls(operation, tuple(sorted(params.items())))

    def param(self, name: str, default: Any = None) -> Any:
        for key, value in self.params:
            if key == name:
                return value
        return default

    def __str__(self) -> str:
        if not self.params:
            return self.operation
        args = ", ".join(f"{name}={value!r}" for name, value in self.params)
        return f"{self.operation}({args})"


@dataclass(frozen=True)
class KeyPattern:
    """A set of keys: one operation, optionally narrowed by parameter values."""

    operation: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, operation: str, **params: Any) -> "KeyPattern":
        return cls(operation, tuple(sorted(params.items())))

    def matches(self, key: QueryKey) -> bool:
        if key.operation != self.operation:
            return False
        return all(key.param(name, _MISSING) == value for name, value in self.params)


_MISSING = object()


@dataclass(frozen=True)
class Affects:
    """
    One declared effect of a mutation.

    `bind` maps a key parameter to the payload field that supplies its
    value: Affects.of("users.get", id="id") turns a delete payload
    {"id": "42"} into KeyPattern("users.get", id="42").
    """

    operation: str
    bind: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def of(cls, operation: str, **bind: str) -> "Affects":
        return cls(operation, tuple(sorted(bind.items())))

    def resolve(self, payload: Mapping[str, Any]) -> KeyPattern:
        params = {}
        for param, field in self.bind:
            if field not in payload:
                raise ValueError(
                    f"Payload has no '{field}' field needed to resolve {self.operation}.{param}"
                )
            params[param] = payload[field]
        return KeyPattern.of(self.operation, **params)


class InvalidationRules:
    """
    Mutation name → keys it makes stale.

    Built once; a mutation with no declared rule affects nothing.
    """

    def __init__(self, rules: Mapping[str, Iterable[Affects]]):
        self._rules: Dict[str, Tuple[Affects, ...]] = {
            mutation: tuple(effects) for mutation, effects in rules.items()
        }

    def patterns_for(
        self, mutation: str, payload: Optional[Mapping[str, Any]] = None
    ) -> List[KeyPattern]:
        payload = payload or {}
        return [effect.resolve(payload) for effect in self._rules.get(mutation, ())]

    def __contains__(self, mutation: str) -> bool:
        return mutation in self._rules
