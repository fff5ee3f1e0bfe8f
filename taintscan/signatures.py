"""
Static types and structural signature matching.

Both the call graph (invocation -> declaration, declaration -> invokers) and
the point catalog (invocation -> entry/exit/sanitization pattern) compare
an invocation against a signature with the predicates in this module, so a
declaration parsed twice, or parsed in another unit, still matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .syntax import (
    Assignment, CastExpression, ConditionalExpression, Expression,
    InfixExpression, InstanceCreation, Literal, MethodInvocation,
    MethodSignature, NodeKind, ParenthesizedExpression, PrefixExpression,
    QualifiedName, SimpleName, ArrayInitializer, CallExpression,
)

OBJECT_TYPE = "java.lang.Object"
STRING_TYPE = "java.lang.String"
NULL_TYPE = "null"

# Pattern types that accept any argument
OBJECT_TYPES = frozenset({"Object", OBJECT_TYPE})

PRIMITIVE_TYPES = frozenset({
    "boolean", "byte", "char", "short", "int", "long", "float", "double", "void",
})

# Simple names resolvable without an import
JAVA_LANG_TYPES = frozenset({
    "Boolean", "Byte", "Character", "Class", "ClassLoader", "Double", "Enum",
    "Exception", "Float", "Integer", "Iterable", "Long", "Math", "Number",
    "Object", "Process", "ProcessBuilder", "Runnable", "Runtime",
    "RuntimeException", "Short", "StrictMath", "String", "StringBuffer",
    "StringBuilder", "System", "Thread", "Throwable", "Void",
})

_COMPARISON_OPERATORS = frozenset({
    "==", "!=", "<", ">", "<=", ">=", "&&", "||", "instanceof",
})

_ANNOTATION_RE = re.compile(r'@[\w.]+(\([^)]*\))?\s*')
_TYPE_ARGUMENTS_RE = re.compile(r'<[^<>]*>')
_WHITESPACE_RE = re.compile(r'\s+')


def erase_type(type_text: str) -> str:
    """Strip annotations, type arguments and whitespace from a type"""
    text = _ANNOTATION_RE.sub('', type_text)
    previous = None
    while previous != text:
        previous = text
        text = _TYPE_ARGUMENTS_RE.sub('', text)
    text = text.replace('...', '[]')
    return _WHITESPACE_RE.sub('', text)


def simple_type_name(type_name: str) -> str:
    return type_name.rsplit('.', 1)[-1]


def same_type(first: str, second: str) -> bool:
    """Compare two type names, qualified or not"""
    if first == second:
        return True
    if '.' in first and '.' in second:
        return False
    # One side could not be qualified (wildcard import, same package)
    return simple_type_name(first) == simple_type_name(second)


def types_match(expected: str, actual: Optional[str]) -> bool:
    """Check an argument's static type against a declared/pattern type"""
    if expected in OBJECT_TYPES:
        return True
    if actual is None:
        return True
    if actual == NULL_TYPE:
        return expected not in PRIMITIVE_TYPES
    return same_type(expected, actual)


def _number_type(text: str) -> str:
    literal = text.lower().replace('_', '')
    if literal.startswith(('0x', '0b')):
        return 'long' if literal.endswith('l') else 'int'
    if literal.endswith('l'):
        return 'long'
    if literal.endswith('f'):
        return 'float'
    if literal.endswith('d') or '.' in literal or 'e' in literal:
        return 'double'
    return 'int'


def static_type(expression: Optional[Expression]) -> Optional[str]:
    """Best-effort static type of an expression, None when unknown"""
    if expression is None:
        return None

    if isinstance(expression, Literal):
        literal_types = {
            NodeKind.STRING_LITERAL: STRING_TYPE,
            NodeKind.CHARACTER_LITERAL: 'char',
            NodeKind.BOOLEAN_LITERAL: 'boolean',
            NodeKind.NULL_LITERAL: NULL_TYPE,
        }
        if expression.literal_kind == NodeKind.NUMBER_LITERAL:
            return _number_type(expression.text)
        return literal_types.get(expression.literal_kind)

    if isinstance(expression, SimpleName):
        return expression.binding.declared_type if expression.binding else None
    if isinstance(expression, QualifiedName):
        return static_type(expression.name)
    if isinstance(expression, ParenthesizedExpression):
        return static_type(expression.expression)
    if isinstance(expression, CastExpression):
        return expression.type_name or None
    if isinstance(expression, InstanceCreation):
        return expression.type_name or None
    if isinstance(expression, ArrayInitializer):
        return expression.type_name
    if isinstance(expression, MethodInvocation):
        return expression.return_type
    if isinstance(expression, Assignment):
        return static_type(expression.left)
    if isinstance(expression, ConditionalExpression):
        return static_type(expression.then_expression) or static_type(expression.else_expression)

    if isinstance(expression, PrefixExpression):
        if expression.operator == '!':
            return 'boolean'
        return static_type(expression.operand)

    if isinstance(expression, InfixExpression):
        if expression.operator in _COMPARISON_OPERATORS:
            return 'boolean'
        operand_types = [static_type(o) for o in expression.operands()]
        if expression.operator == '+' and STRING_TYPE in operand_types:
            return STRING_TYPE
        return next((t for t in operand_types if t is not None), None)

    return None


@dataclass(frozen=True)
class CallSiteSignature:
    """What an invocation tells us about its callee"""
    declaring_type: Optional[str]
    name: str
    argument_types: Tuple[Optional[str], ...] = ()

    @property
    def arity(self) -> int:
        return len(self.argument_types)


def call_site_signature(call: CallExpression) -> CallSiteSignature:
    return CallSiteSignature(
        declaring_type=call.declaring_type,
        name=call.method_name,
        argument_types=tuple(static_type(a) for a in call.arguments),
    )


def signature_matches(signature: MethodSignature, call_site: CallSiteSignature) -> bool:
    """Structural equality between a declaration and an invocation"""
    if signature.name != call_site.name or signature.arity != call_site.arity:
        return False
    if call_site.declaring_type is not None and not same_type(
            signature.declaring_type, call_site.declaring_type):
        return False
    return all(
        types_match(expected, actual)
        for expected, actual in zip(signature.parameter_types, call_site.argument_types)
    )
