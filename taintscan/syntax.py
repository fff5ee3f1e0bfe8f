"""
Syntax model for taint analysis.

The Java front end lowers tree-sitter parse trees into the small, closed set
of node classes defined here. The taint engine dispatches on these classes,
and catalog rule sets refer to expression categories through ``NodeKind``.

Structure:
    - NodeKind: expression/statement categories (JDT-compatible numbering)
    - Position / MethodSignature / VariableBinding: value objects
    - Expression classes: Literal, InfixExpression, ..., UnsupportedExpression
    - Statement classes: Block, ReturnStatement, IfStatement, ...
    - MethodDeclaration / SourceUnit: per-file lowering result
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import ClassVar, Dict, Iterator, List, Optional, Set, Tuple, Union


class NodeKind(IntEnum):
    """Node categories.

    The numbers follow the Eclipse JDT ``ASTNode`` type constants so that
    rule sets written against the original knowledge base keep their
    meaning. ``LITERAL`` is reserved: in a rule set it accepts any expression
    that statically reduces to a literal.
    """
    UNSUPPORTED = 0
    LITERAL = 1
    ARRAY_INITIALIZER = 4
    ASSIGNMENT = 7
    BLOCK = 8
    BOOLEAN_LITERAL = 9
    CAST_EXPRESSION = 11
    CHARACTER_LITERAL = 13
    CLASS_INSTANCE_CREATION = 14
    CONDITIONAL_EXPRESSION = 16
    DO_STATEMENT = 19
    EXPRESSION_STATEMENT = 21
    FOR_STATEMENT = 24
    IF_STATEMENT = 25
    INFIX_EXPRESSION = 27
    METHOD_INVOCATION = 32
    NULL_LITERAL = 33
    NUMBER_LITERAL = 34
    PARENTHESIZED_EXPRESSION = 36
    PREFIX_EXPRESSION = 38
    QUALIFIED_NAME = 40
    RETURN_STATEMENT = 41
    SIMPLE_NAME = 42
    STRING_LITERAL = 45
    SWITCH_STATEMENT = 50
    TRY_STATEMENT = 54
    VARIABLE_DECLARATION_STATEMENT = 60
    WHILE_STATEMENT = 61
    ENHANCED_FOR_STATEMENT = 70


LITERAL_KINDS = frozenset({
    NodeKind.BOOLEAN_LITERAL,
    NodeKind.CHARACTER_LITERAL,
    NodeKind.NULL_LITERAL,
    NodeKind.NUMBER_LITERAL,
    NodeKind.STRING_LITERAL,
})


class BindingKind(Enum):
    FIELD = "field"
    LOCAL = "local"
    PARAMETER = "parameter"


@dataclass(frozen=True)
class Position:
    """Location of a node inside a source unit"""
    unit: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        return f"{self.unit}:{self.line}"


@dataclass(frozen=True)
class MethodSignature:
    """Structural identity of a method: declaring type, name, parameter types"""
    declaring_type: str
    name: str
    parameter_types: Tuple[str, ...] = ()

    @property
    def arity(self) -> int:
        return len(self.parameter_types)

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_type}.{self.name}"

    def __str__(self) -> str:
        return f"{self.qualified_name}({', '.join(self.parameter_types)})"


@dataclass(frozen=True)
class VariableBinding:
    """Declaration a simple name refers to.

    Bindings are value objects: re-parsing an unchanged unit yields equal
    bindings, so they can key the call graph's initializer table.
    """
    unit: str
    name: str
    kind: BindingKind
    declared_type: Optional[str] = None
    owner: Optional[MethodSignature] = None
    declaring_type: Optional[str] = None
    index: int = -1
    line: int = 0
    column: int = 0


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Expression:
    """Base class of all expression nodes"""
    text: str
    position: Position

    KIND: ClassVar[NodeKind] = NodeKind.UNSUPPORTED

    @property
    def kind(self) -> NodeKind:
        return self.KIND

    def operands(self) -> List[Expression]:
        """Direct sub-expressions a value can flow out of"""
        return []

    def __str__(self) -> str:
        return self.text


@dataclass(eq=False)
class Literal(Expression):
    literal_kind: NodeKind = NodeKind.STRING_LITERAL

    @property
    def kind(self) -> NodeKind:
        return self.literal_kind


@dataclass(eq=False)
class InfixExpression(Expression):
    operator: str = "+"
    left: Optional[Expression] = None
    right: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.INFIX_EXPRESSION

    def operands(self) -> List[Expression]:
        return [e for e in (self.left, self.right) if e is not None]


@dataclass(eq=False)
class PrefixExpression(Expression):
    operator: str = ""
    operand: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.PREFIX_EXPRESSION

    def operands(self) -> List[Expression]:
        return [self.operand] if self.operand is not None else []


@dataclass(eq=False)
class ConditionalExpression(Expression):
    condition: Optional[Expression] = None
    then_expression: Optional[Expression] = None
    else_expression: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.CONDITIONAL_EXPRESSION

    def operands(self) -> List[Expression]:
        # The condition only selects a branch; its value never flows out.
        return [e for e in (self.then_expression, self.else_expression) if e is not None]


@dataclass(eq=False)
class Assignment(Expression):
    operator: str = "="
    left: Optional[Expression] = None
    right: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.ASSIGNMENT

    def operands(self) -> List[Expression]:
        return [e for e in (self.left, self.right) if e is not None]


@dataclass(eq=False)
class CastExpression(Expression):
    type_name: str = ""
    expression: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.CAST_EXPRESSION

    def operands(self) -> List[Expression]:
        return [self.expression] if self.expression is not None else []


@dataclass(eq=False)
class InstanceCreation(Expression):
    """``new T(args)``, also a call site of T's constructor"""
    type_name: str = ""
    arguments: List[Expression] = field(default_factory=list)

    KIND: ClassVar[NodeKind] = NodeKind.CLASS_INSTANCE_CREATION

    @property
    def method_name(self) -> str:
        return self.type_name.rsplit(".", 1)[-1]

    @property
    def declaring_type(self) -> Optional[str]:
        return self.type_name or None

    def operands(self) -> List[Expression]:
        return list(self.arguments)


@dataclass(eq=False)
class ArrayInitializer(Expression):
    elements: List[Expression] = field(default_factory=list)
    type_name: Optional[str] = None

    KIND: ClassVar[NodeKind] = NodeKind.ARRAY_INITIALIZER

    def operands(self) -> List[Expression]:
        return list(self.elements)


@dataclass(eq=False)
class ParenthesizedExpression(Expression):
    expression: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.PARENTHESIZED_EXPRESSION

    def operands(self) -> List[Expression]:
        return [self.expression] if self.expression is not None else []


@dataclass(eq=False)
class SimpleName(Expression):
    identifier: str = ""
    binding: Optional[VariableBinding] = None

    KIND: ClassVar[NodeKind] = NodeKind.SIMPLE_NAME


@dataclass(eq=False)
class QualifiedName(Expression):
    """``qualifier.name``: a field reached through an object or type"""
    qualifier: Optional[Expression] = None
    name: Optional[SimpleName] = None

    KIND: ClassVar[NodeKind] = NodeKind.QUALIFIED_NAME


@dataclass(eq=False)
class MethodInvocation(Expression):
    name: str = ""
    receiver: Optional[Expression] = None
    arguments: List[Expression] = field(default_factory=list)
    receiver_type: Optional[str] = None
    return_type: Optional[str] = None

    KIND: ClassVar[NodeKind] = NodeKind.METHOD_INVOCATION

    @property
    def method_name(self) -> str:
        return self.name

    @property
    def declaring_type(self) -> Optional[str]:
        return self.receiver_type


@dataclass(eq=False)
class UnsupportedExpression(Expression):
    """Any construct the engine has no rule for (this, lambdas, array access...)"""
    node_type: str = ""


EXPRESSION_TYPES = (
    Literal,
    InfixExpression,
    PrefixExpression,
    ConditionalExpression,
    Assignment,
    CastExpression,
    InstanceCreation,
    ArrayInitializer,
    ParenthesizedExpression,
    SimpleName,
    QualifiedName,
    MethodInvocation,
    UnsupportedExpression,
)

CallExpression = Union[MethodInvocation, InstanceCreation]
CALL_TYPES = (MethodInvocation, InstanceCreation)


def reduces_to_literal(expression: Optional[Expression]) -> bool:
    """Check whether an expression is a compile-time literal value"""
    if isinstance(expression, Literal):
        return True
    if isinstance(expression, (ParenthesizedExpression, CastExpression)):
        return reduces_to_literal(expression.expression)
    if isinstance(expression, PrefixExpression):
        return reduces_to_literal(expression.operand)
    if isinstance(expression, InfixExpression):
        operands = expression.operands()
        return bool(operands) and all(reduces_to_literal(o) for o in operands)
    return False


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Statement:
    """Base class of all statement nodes"""
    position: Position

    KIND: ClassVar[NodeKind] = NodeKind.UNSUPPORTED

    @property
    def kind(self) -> NodeKind:
        return self.KIND


@dataclass(eq=False)
class Block(Statement):
    statements: List[Statement] = field(default_factory=list)

    KIND: ClassVar[NodeKind] = NodeKind.BLOCK


@dataclass(eq=False)
class ReturnStatement(Statement):
    expression: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.RETURN_STATEMENT


@dataclass(eq=False)
class IfStatement(Statement):
    condition: Optional[Expression] = None
    then_statement: Optional[Statement] = None
    else_statement: Optional[Statement] = None

    KIND: ClassVar[NodeKind] = NodeKind.IF_STATEMENT


@dataclass(eq=False)
class LoopStatement(Statement):
    """while / do / for / enhanced-for; ``loop_kind`` tells them apart"""
    loop_kind: NodeKind = NodeKind.WHILE_STATEMENT
    body: Optional[Statement] = None

    @property
    def kind(self) -> NodeKind:
        return self.loop_kind


@dataclass(eq=False)
class TryStatement(Statement):
    body: Optional[Block] = None
    catch_blocks: List[Block] = field(default_factory=list)
    finally_block: Optional[Block] = None

    KIND: ClassVar[NodeKind] = NodeKind.TRY_STATEMENT


@dataclass(eq=False)
class SwitchStatement(Statement):
    statements: List[Statement] = field(default_factory=list)

    KIND: ClassVar[NodeKind] = NodeKind.SWITCH_STATEMENT


@dataclass(eq=False)
class ExpressionStatement(Statement):
    expression: Optional[Expression] = None

    KIND: ClassVar[NodeKind] = NodeKind.EXPRESSION_STATEMENT


@dataclass(eq=False)
class VariableDeclaration(Statement):
    declared_type: Optional[str] = None
    fragments: List[Tuple[SimpleName, Optional[Expression]]] = field(default_factory=list)

    KIND: ClassVar[NodeKind] = NodeKind.VARIABLE_DECLARATION_STATEMENT


@dataclass(eq=False)
class OtherStatement(Statement):
    node_type: str = ""


def iter_return_expressions(statement: Optional[Statement]) -> Iterator[Expression]:
    """Yield the expression of every return statement reachable in a body"""
    if statement is None:
        return
    if isinstance(statement, ReturnStatement):
        if statement.expression is not None:
            yield statement.expression
    elif isinstance(statement, (Block, SwitchStatement)):
        for child in statement.statements:
            yield from iter_return_expressions(child)
    elif isinstance(statement, IfStatement):
        yield from iter_return_expressions(statement.then_statement)
        yield from iter_return_expressions(statement.else_statement)
    elif isinstance(statement, LoopStatement):
        yield from iter_return_expressions(statement.body)
    elif isinstance(statement, TryStatement):
        yield from iter_return_expressions(statement.body)
        for catch_block in statement.catch_blocks:
            yield from iter_return_expressions(catch_block)
        yield from iter_return_expressions(statement.finally_block)


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class MethodDeclaration:
    """A method or constructor declared in a source unit"""
    signature: MethodSignature
    position: Position
    parameter_names: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    body: Optional[Block] = None
    is_constructor: bool = False

    @property
    def name(self) -> str:
        return self.signature.name

    @property
    def declaring_type(self) -> str:
        return self.signature.declaring_type

    @property
    def unit(self) -> str:
        return self.position.unit

    def return_expressions(self) -> List[Expression]:
        return list(iter_return_expressions(self.body))

    def __str__(self) -> str:
        return str(self.signature)


@dataclass
class SourceUnit:
    """Everything the call graph needs from one parsed file"""
    path: str
    package: str = ""
    imports: Dict[str, str] = field(default_factory=dict)
    methods: List[MethodDeclaration] = field(default_factory=list)
    invocations: Dict[MethodSignature, List[CallExpression]] = field(default_factory=dict)
    bindings: Dict[VariableBinding, Expression] = field(default_factory=dict)
    trusted_lines: Set[int] = field(default_factory=set)
    has_errors: bool = False

    @property
    def invocation_count(self) -> int:
        return sum(len(calls) for calls in self.invocations.values())
