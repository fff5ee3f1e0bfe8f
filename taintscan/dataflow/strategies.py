"""
Pluggable decisions of the taint engine

The engine asks two questions it does not answer itself:

- SanitizationMatcher: does this call clean its result?
- AnnotationChecker: has the user marked this expression as trusted?

Both are injected through a VerificationStrategy.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Protocol, Set

from ..points import PointCatalog
from ..syntax import CallExpression, Expression

logger = logging.getLogger(__name__)


class SanitizationMatcher(Protocol):
    def is_sanitization_point(self, call: CallExpression) -> bool:
        ...


class AnnotationChecker(Protocol):
    def has_annotation_at_position(self, expression: Expression) -> bool:
        ...


class CatalogSanitizationMatcher:
    """Sanitizers are the catalog's sanitization points"""

    def __init__(self, catalog: PointCatalog):
        self.catalog = catalog

    def is_sanitization_point(self, call: CallExpression) -> bool:
        return self.catalog.match_sanitization_point(call) is not None


class NoAnnotations:
    """Annotation checker for runs without trusted-code markers"""

    def has_annotation_at_position(self, expression: Expression) -> bool:
        return False


class AnnotationIndex:
    """Trusted-code markers, recorded per source unit and line.

    The call graph builder replaces a unit's lines whenever the unit is
    re-parsed, so markers follow the same remove-then-add lifecycle as the
    call graph entry.
    """

    def __init__(self):
        self._lines: Dict[str, Set[int]] = defaultdict(set)

    def replace_unit(self, unit: str, lines: Iterable[int]) -> None:
        self._lines.pop(unit, None)
        lines = set(lines)
        if lines:
            self._lines[unit] = lines
            logger.debug(f"{len(lines)} trusted line(s) in {unit}")

    def remove_unit(self, unit: str) -> None:
        self._lines.pop(unit, None)

    def add(self, unit: str, line: int) -> None:
        self._lines[unit].add(line)

    def has_annotation_at_position(self, expression: Expression) -> bool:
        position = expression.position
        return position.line in self._lines.get(position.unit, ())

    def __len__(self) -> int:
        return sum(len(lines) for lines in self._lines.values())


@dataclass(frozen=True)
class VerificationStrategy:
    sanitization_matcher: SanitizationMatcher
    annotation_checker: AnnotationChecker

    @classmethod
    def for_catalog(cls, catalog: PointCatalog,
                    annotations: Optional[AnnotationChecker] = None) -> VerificationStrategy:
        """Default strategy: catalog sanitizers plus the given markers"""
        return cls(
            sanitization_matcher=CatalogSanitizationMatcher(catalog),
            annotation_checker=annotations if annotations is not None else NoAnnotations(),
        )
