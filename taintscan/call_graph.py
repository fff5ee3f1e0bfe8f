"""
Call Graph - method declarations, invocations and variable bindings per source unit

The graph is keyed by source unit. Each unit maps its method declarations to
the invocations found in their bodies; a second table maps variable bindings
to their initializer expressions. Declarations are identified structurally
(declaring type, name, parameter types), so a re-parsed file resolves to the
same logical methods.

A reverse index (method name, arity) -> call sites is maintained alongside,
and is updated whenever a unit is added or removed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .dataflow.strategies import AnnotationIndex
from .java_parser import JavaSourceParser
from .signatures import CallSiteSignature, call_site_signature, signature_matches
from .syntax import (
    CallExpression, Expression, MethodDeclaration, MethodSignature,
    QualifiedName, SimpleName, SourceUnit, VariableBinding,
)

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ('.java',)


@dataclass
class MethodEntry:
    """A declared method and the invocations in its body"""
    declaration: MethodDeclaration
    invocations: List[CallExpression] = field(default_factory=list)


@dataclass(frozen=True)
class CallSite:
    """One invocation, seen from the callee side"""
    unit: str
    caller: MethodDeclaration
    expression: CallExpression
    signature: CallSiteSignature


CallKey = Tuple[str, int]


class CallGraph:
    """
    Corpus-wide index of methods, invocations and bindings.

    Mutation happens per unit with a remove-then-add sequence; lookups never
    modify the graph.
    """

    def __init__(self):
        self.units: Dict[str, Dict[MethodSignature, MethodEntry]] = {}
        self._bindings: Dict[VariableBinding, Expression] = {}
        self._unit_bindings: Dict[str, Set[VariableBinding]] = defaultdict(set)
        self._call_index: Dict[CallKey, List[CallSite]] = defaultdict(list)
        self._unit_call_keys: Dict[str, Set[CallKey]] = defaultdict(set)

    # -- mutation -------------------------------------------------------------

    def add_unit(self, unit: str) -> None:
        """Start a fresh entry for ``unit``, discarding any previous one"""
        if unit in self.units:
            self.remove_unit(unit)
        self.units[unit] = {}

    def remove_unit(self, unit: str) -> bool:
        """Drop every method, invocation and binding of ``unit``"""
        if unit not in self.units:
            return False

        del self.units[unit]
        for binding in self._unit_bindings.pop(unit, ()):
            self._bindings.pop(binding, None)
        for key in self._unit_call_keys.pop(unit, ()):
            remaining = [site for site in self._call_index[key] if site.unit != unit]
            if remaining:
                self._call_index[key] = remaining
            else:
                del self._call_index[key]

        logger.debug(f"Removed {unit} from call graph")
        return True

    def contains(self, unit: str) -> bool:
        return unit in self.units

    def add_method(self, unit: str, declaration: MethodDeclaration) -> MethodEntry:
        methods = self.units.setdefault(unit, {})
        entry = methods.get(declaration.signature)
        if entry is None:
            entry = MethodEntry(declaration)
            methods[declaration.signature] = entry
        return entry

    def add_invocation(self, unit: str, caller: MethodDeclaration, expression: CallExpression) -> None:
        """Record that ``caller`` contains the call ``expression``"""
        entry = self.add_method(unit, caller)
        entry.invocations.append(expression)

        signature = call_site_signature(expression)
        key = (signature.name, signature.arity)
        self._call_index[key].append(CallSite(unit, caller, expression, signature))
        self._unit_call_keys[unit].add(key)

    def add_binding(self, unit: str, binding: VariableBinding, initializer: Expression) -> None:
        self._bindings[binding] = initializer
        self._unit_bindings[unit].add(binding)

    def replace_unit(self, source: SourceUnit) -> None:
        """Atomically replace the entry of a parsed unit"""
        unit = source.path
        self.add_unit(unit)
        for declaration in source.methods:
            self.add_method(unit, declaration)
            for expression in source.invocations.get(declaration.signature, ()):
                self.add_invocation(unit, declaration, expression)
        for binding, initializer in source.bindings.items():
            self.add_binding(unit, binding, initializer)

    # -- lookups --------------------------------------------------------------

    def resolve_declaration(self, unit: Optional[str], expression: CallExpression) -> Optional[MethodDeclaration]:
        """Find the declaration an invocation calls.

        The invoking unit is searched first, then every other unit. None
        means no source is available for the callee. A call whose receiver
        type is unknown is never resolved: a same-named method elsewhere in
        the project is not evidence that it is the callee.
        """
        call_site = call_site_signature(expression)
        if call_site.declaring_type is None:
            logger.debug(f"Receiver type of {expression.text} unknown, not resolving")
            return None

        if unit in self.units:
            declaration = self._find_in_unit(unit, call_site)
            if declaration is not None:
                return declaration

        for other in self.units:
            if other == unit:
                continue
            declaration = self._find_in_unit(other, call_site)
            if declaration is not None:
                return declaration
        return None

    def _find_in_unit(self, unit: str, call_site: CallSiteSignature) -> Optional[MethodDeclaration]:
        for signature, entry in self.units[unit].items():
            if signature_matches(signature, call_site):
                return entry.declaration
        return None

    def invokers_of(self, target: Union[MethodSignature, MethodDeclaration]) -> List[Tuple[MethodDeclaration, CallExpression]]:
        """Every (caller, call expression) whose callee is ``target``"""
        signature = target.signature if isinstance(target, MethodDeclaration) else target
        return [
            (site.caller, site.expression)
            for site in self._call_index.get((signature.name, signature.arity), ())
            if signature_matches(signature, site.signature)
        ]

    def binding_of(self, name: Expression) -> Optional[Expression]:
        """Initializer of the variable a name refers to"""
        if isinstance(name, QualifiedName):
            name = name.name
        if not isinstance(name, SimpleName) or name.binding is None:
            return None
        return self._bindings.get(name.binding)

    def methods(self, unit: str) -> List[MethodDeclaration]:
        return [entry.declaration for entry in self.units.get(unit, {}).values()]

    def invocations(self, unit: str, signature: MethodSignature) -> List[CallExpression]:
        entry = self.units.get(unit, {}).get(signature)
        return list(entry.invocations) if entry else []

    @property
    def unit_paths(self) -> List[str]:
        return list(self.units)

    def stats(self) -> Dict[str, int]:
        """Get call graph statistics"""
        return {
            'total_units': len(self.units),
            'total_methods': sum(len(methods) for methods in self.units.values()),
            'total_invocations': sum(len(sites) for sites in self._call_index.values()),
            'total_bindings': len(self._bindings),
        }


class CallGraphBuilder:
    """Parses source files and keeps a call graph up to date with them"""

    def __init__(self, call_graph: Optional[CallGraph] = None,
                 annotations: Optional[AnnotationIndex] = None,
                 extensions: Optional[Iterable[str]] = None,
                 parser: Optional[JavaSourceParser] = None):
        self.call_graph = call_graph if call_graph is not None else CallGraph()
        self.annotations = annotations if annotations is not None else AnnotationIndex()
        self.extensions = {e.lower() for e in (extensions or DEFAULT_EXTENSIONS)}
        self.parser = parser or JavaSourceParser()
        self.errors: List[str] = []

    def is_to_perform_detection(self, file_path: Union[str, Path]) -> bool:
        """Only files with a configured extension enter the call graph"""
        return Path(file_path).suffix.lower() in self.extensions

    def build_from_files(self, files: Iterable[Path], content_cache: Optional[Dict[str, str]] = None,
                         cancellation=None) -> List[str]:
        """Parse ``files`` into the call graph, returning the units updated"""
        content_cache = content_cache if content_cache is not None else {}
        updated = []

        for file_path in files:
            if cancellation is not None and cancellation.is_cancelled:
                logger.info("Call graph construction cancelled")
                break
            if not self.is_to_perform_detection(file_path):
                continue

            key = str(file_path)
            content = content_cache.get(key)
            if content is None:
                try:
                    content = Path(file_path).read_text(encoding='utf-8', errors='ignore')
                    content_cache[key] = content
                except OSError as e:
                    logger.warning(f"Failed to read {file_path}: {e}")
                    self.errors.append(f"Failed to read {file_path}: {e}")
                    continue

            if self.update_unit(key, content) is not None:
                updated.append(key)

        logger.info(f"Call graph: {self.call_graph.stats()}")
        return updated

    def update_unit(self, path: str, content: str) -> Optional[SourceUnit]:
        """Re-parse one unit and replace its call graph entry"""
        try:
            source = self.parser.parse(path, content)
        except Exception as e:
            logger.error(f"Failed to parse {path}: {e}")
            self.errors.append(f"Failed to parse {path}: {e}")
            self.remove_unit(path)
            return None

        self.call_graph.replace_unit(source)
        self.annotations.replace_unit(path, source.trusted_lines)
        return source

    def remove_unit(self, path: str) -> bool:
        self.annotations.remove_unit(path)
        return self.call_graph.remove_unit(path)
