"""
Point catalog - entry, exit and sanitization point patterns

A point is a method signature pattern. An invocation matches a pattern when
the qualified type and method name agree, the number of arguments equals the
number of pattern parameters and every argument's static type matches the
pattern type at the same position ("Object" matches anything). Exit points
additionally carry one ParameterRule per formal parameter.

Catalogs are immutable once loaded and handed to the engine explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, TypeVar

from .models import VulnerabilityClass
from .signatures import call_site_signature, same_type, types_match
from .syntax import CallExpression, Expression, NodeKind, reduces_to_literal


@dataclass(frozen=True)
class ParameterRule:
    """Expression categories accepted as safe for one sink parameter"""
    accepted: FrozenSet[int] = frozenset()
    ignore: bool = False

    @classmethod
    def ignored(cls) -> ParameterRule:
        return cls(ignore=True)

    @classmethod
    def literal_only(cls) -> ParameterRule:
        return cls(accepted=frozenset({int(NodeKind.LITERAL)}))

    @property
    def accepts_literals(self) -> bool:
        return int(NodeKind.LITERAL) in self.accepted

    def accepts(self, expression: Expression) -> bool:
        """Check whether an expression is safe for this parameter as written"""
        if self.ignore:
            return True
        if int(expression.kind) in self.accepted:
            return True
        return self.accepts_literals and reduces_to_literal(expression)

    def __str__(self) -> str:
        if self.ignore:
            return "ignore"
        names = []
        for value in sorted(self.accepted):
            try:
                names.append(NodeKind(value).name)
            except ValueError:
                names.append(str(value))
        return "[" + ", ".join(names) + "]"


@dataclass(frozen=True)
class PointPattern:
    """Signature pattern shared by all point families"""
    qualified_name: str
    method_name: str
    parameter_types: Tuple[str, ...] = ()

    def matches(self, call: CallExpression) -> bool:
        site = call_site_signature(call)
        if site.name != self.method_name or site.arity != len(self.parameter_types):
            return False
        # An unresolvable receiver type does not rule the pattern out
        if site.declaring_type is not None and not same_type(self.qualified_name, site.declaring_type):
            return False
        return all(
            types_match(expected, actual)
            for expected, actual in zip(self.parameter_types, site.argument_types)
        )

    def __str__(self) -> str:
        return f"{self.qualified_name}.{self.method_name}"


@dataclass(frozen=True)
class EntryPoint(PointPattern):
    """Taint source"""


@dataclass(frozen=True)
class SanitizationPoint(PointPattern):
    """Call whose result is considered clean"""


@dataclass(frozen=True)
class ExitPoint(PointPattern):
    """Sink; one rule per formal parameter"""
    rules: Tuple[ParameterRule, ...] = ()

    def __post_init__(self):
        if len(self.rules) != len(self.parameter_types):
            raise ValueError(
                f"Exit point {self} declares {len(self.parameter_types)} parameters "
                f"but {len(self.rules)} rules"
            )


P = TypeVar('P', bound=PointPattern)


def _first_match(patterns: Iterable[P], call: CallExpression) -> Optional[P]:
    for pattern in patterns:
        if pattern.matches(call):
            return pattern
    return None


@dataclass(frozen=True)
class PointCatalog:
    """All patterns relevant to one vulnerability class"""
    vulnerability: VulnerabilityClass
    entry_points: Tuple[EntryPoint, ...] = ()
    exit_points: Tuple[ExitPoint, ...] = ()
    sanitization_points: Tuple[SanitizationPoint, ...] = ()

    def match_entry_point(self, call: CallExpression) -> Optional[EntryPoint]:
        return _first_match(self.entry_points, call)

    def match_exit_point(self, call: CallExpression) -> Optional[ExitPoint]:
        return _first_match(self.exit_points, call)

    def match_sanitization_point(self, call: CallExpression) -> Optional[SanitizationPoint]:
        return _first_match(self.sanitization_points, call)

    @property
    def stats(self) -> Dict[str, int]:
        return {
            'entry_points': len(self.entry_points),
            'exit_points': len(self.exit_points),
            'sanitization_points': len(self.sanitization_points),
        }
