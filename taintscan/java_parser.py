"""
Java front end - lowers tree-sitter parse trees into the syntax model

For every Java file the parser produces a SourceUnit holding:
    - method and constructor declarations with their structural signatures
    - the invocations (method calls and object creations) of each method
    - variable bindings to their initializer expressions
    - the lines marked as trusted by a suppression comment

Names are resolved with lexical scopes (fields, parameters, locals); simple
type names are qualified through single-type imports, the unit's own type
declarations and java.lang.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Set, Tuple

import tree_sitter_java
from tree_sitter import Language, Node, Parser

from .signatures import JAVA_LANG_TYPES, PRIMITIVE_TYPES, erase_type, static_type
from .syntax import (
    ArrayInitializer, Assignment, BindingKind, Block, CallExpression,
    CastExpression, ConditionalExpression, Expression, ExpressionStatement,
    IfStatement, InfixExpression, InstanceCreation, Literal, LoopStatement,
    MethodDeclaration, MethodInvocation, MethodSignature, NodeKind,
    OtherStatement, ParenthesizedExpression, Position, PrefixExpression,
    QualifiedName, ReturnStatement, SimpleName, SourceUnit, Statement,
    SwitchStatement, TryStatement, UnsupportedExpression, VariableBinding,
    VariableDeclaration,
)

logger = logging.getLogger(__name__)

DEFAULT_TRUSTED_DIRECTIVE = "taintscan:trusted"

TYPE_DECLARATIONS = {
    'class_declaration', 'interface_declaration', 'enum_declaration',
    'record_declaration', 'annotation_type_declaration',
}

COMMENT_TYPES = {'line_comment', 'block_comment', 'comment'}

LITERAL_NODE_KINDS = {
    'string_literal': NodeKind.STRING_LITERAL,
    'text_block': NodeKind.STRING_LITERAL,
    'character_literal': NodeKind.CHARACTER_LITERAL,
    'decimal_integer_literal': NodeKind.NUMBER_LITERAL,
    'hex_integer_literal': NodeKind.NUMBER_LITERAL,
    'octal_integer_literal': NodeKind.NUMBER_LITERAL,
    'binary_integer_literal': NodeKind.NUMBER_LITERAL,
    'decimal_floating_point_literal': NodeKind.NUMBER_LITERAL,
    'hex_floating_point_literal': NodeKind.NUMBER_LITERAL,
    'true': NodeKind.BOOLEAN_LITERAL,
    'false': NodeKind.BOOLEAN_LITERAL,
    'null_literal': NodeKind.NULL_LITERAL,
}

LOOP_KINDS = {
    'while_statement': NodeKind.WHILE_STATEMENT,
    'do_statement': NodeKind.DO_STATEMENT,
    'for_statement': NodeKind.FOR_STATEMENT,
    'enhanced_for_statement': NodeKind.ENHANCED_FOR_STATEMENT,
}

# Nodes whose content belongs to another declaration or is only a type
_OPAQUE_NODES = {
    'class_body', 'type_identifier', 'scoped_type_identifier', 'generic_type',
    'array_type', 'integral_type', 'floating_point_type', 'boolean_type',
    'void_type', 'type_arguments', 'dimensions', 'modifiers',
}

_QUALIFIED_TYPE_RE = re.compile(r'(?:[a-z_]\w*\.)+[A-Z]\w*')


def find_trusted_lines(code: str, directive: str = DEFAULT_TRUSTED_DIRECTIVE) -> Set[int]:
    """Find lines covered by a trusted-code comment.

    A trailing comment (``foo(x); // taintscan:trusted``) covers its own
    line; a comment alone on a line covers the next line.
    """
    pattern = re.compile(r'(?://|/\*)\s*' + re.escape(directive) + r'(?![\w-])')
    lines = set()
    for number, line in enumerate(code.splitlines(), 1):
        match = pattern.search(line)
        if not match:
            continue
        if line[:match.start()].strip():
            lines.add(number)
        else:
            lines.add(number + 1)
    return lines


class JavaSourceParser:
    """Parses Java source into SourceUnit objects using tree-sitter"""

    def __init__(self, trusted_directive: str = DEFAULT_TRUSTED_DIRECTIVE):
        self.language = Language(tree_sitter_java.language())
        self.parser = Parser(self.language)
        self.trusted_directive = trusted_directive

    def parse(self, path: str, code: str) -> SourceUnit:
        """Parse one file. Syntax errors are logged; the recovered tree is used."""
        code_bytes = bytes(code, 'utf-8')
        tree = self.parser.parse(code_bytes)
        root = tree.root_node

        if root.has_error:
            logger.warning(f"Syntax errors in {path}, analysing recovered tree")

        unit = _UnitLowering(path, code_bytes).lower(root)
        unit.trusted_lines = find_trusted_lines(code, self.trusted_directive)
        unit.has_errors = root.has_error
        logger.debug(
            f"Parsed {path}: {len(unit.methods)} methods, "
            f"{unit.invocation_count} invocations, {len(unit.bindings)} bindings"
        )
        return unit


class _UnitLowering:
    """Lowering state for one file"""

    def __init__(self, path: str, code: bytes):
        self.path = path
        self.code = code
        self.unit = SourceUnit(path=path)

        # Type declarations: simple name -> qualified name
        self.local_types: Dict[str, str] = {}
        self.superclasses: Dict[str, str] = {}
        # (declaring type, method name, arity) -> declared return type text
        self.method_headers: Dict[Tuple[str, str, int], str] = {}
        # declaring type -> field name -> binding
        self.fields: Dict[str, Dict[str, VariableBinding]] = {}

        self.class_stack: List[str] = []
        self.scopes: List[Dict[str, VariableBinding]] = []
        self.current_method: Optional[MethodSignature] = None
        self.current_calls: Optional[List[CallExpression]] = None
        self._initialized: Set[VariableBinding] = set()

    # -- helpers ------------------------------------------------------------

    def _text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.code[node.start_byte:node.end_byte].decode('utf-8', errors='replace')

    def _position(self, node: Node) -> Position:
        row, column = node.start_point
        return Position(self.path, row + 1, column + 1)

    def _named(self, node: Node) -> List[Node]:
        return [c for c in node.named_children if c.type not in COMMENT_TYPES]

    def _first_named(self, node: Node) -> Optional[Node]:
        children = self._named(node)
        return children[0] if children else None

    @property
    def current_class(self) -> Optional[str]:
        return self.class_stack[-1] if self.class_stack else None

    def resolve_type(self, type_text: Optional[str]) -> Optional[str]:
        """Qualify a type name as far as the unit allows"""
        if not type_text:
            return None
        erased = erase_type(type_text)
        dims_at = erased.find('[')
        base, dims = (erased, '') if dims_at < 0 else (erased[:dims_at], erased[dims_at:])
        if not base or base in PRIMITIVE_TYPES:
            return erased
        if base == 'var':
            return None

        head, _, rest = base.partition('.')
        if head in self.unit.imports:
            qualified = self.unit.imports[head]
        elif head in self.local_types:
            qualified = self.local_types[head]
        elif head in JAVA_LANG_TYPES and not rest:
            qualified = f"java.lang.{head}"
        else:
            return base + dims
        return (f"{qualified}.{rest}" if rest else qualified) + dims

    def _lookup(self, name: str) -> Optional[VariableBinding]:
        for scope in reversed(self.scopes):
            binding = scope.get(name)
            if binding is not None:
                return binding
        return None

    def _declare(self, name: str, kind: BindingKind, declared_type: Optional[str],
                 node: Node, index: int = -1) -> VariableBinding:
        position = self._position(node)
        binding = VariableBinding(
            unit=self.path,
            name=name,
            kind=kind,
            declared_type=declared_type,
            owner=self.current_method,
            declaring_type=self.current_class,
            index=index,
            line=position.line,
            column=position.column,
        )
        self.scopes[-1][name] = binding
        return binding

    def _bind(self, binding: VariableBinding, value: Optional[Expression]) -> None:
        if value is not None:
            self.unit.bindings[binding] = value
            self._initialized.add(binding)

    # -- declarations ---------------------------------------------------------

    def lower(self, root: Node) -> SourceUnit:
        for child in self._named(root):
            if child.type == 'package_declaration':
                name = next((c for c in self._named(child)
                             if c.type in ('identifier', 'scoped_identifier')), None)
                self.unit.package = self._text(name)
            elif child.type == 'import_declaration':
                self._lower_import(child)

        # First pass: type names and method headers of the whole unit
        for child in self._named(root):
            if child.type in TYPE_DECLARATIONS:
                self._collect_types(child, None)

        # Second pass: members and bodies
        for child in self._named(root):
            if child.type in TYPE_DECLARATIONS:
                self._lower_type(child)

        return self.unit

    def _lower_import(self, node: Node) -> None:
        is_static = any(c.type == 'static' for c in node.children)
        is_wildcard = any(c.type == 'asterisk' for c in node.children)
        name = next((c for c in self._named(node)
                     if c.type in ('identifier', 'scoped_identifier')), None)
        if name is None or is_static or is_wildcard:
            return
        qualified = self._text(name)
        self.unit.imports[qualified.rsplit('.', 1)[-1]] = qualified

    def _type_members(self, node: Node) -> List[Node]:
        body = node.child_by_field_name('body')
        if body is None:
            return []
        members = []
        for child in self._named(body):
            if child.type == 'enum_body_declarations':
                members.extend(self._named(child))
            else:
                members.append(child)
        return members

    def _collect_types(self, node: Node, outer: Optional[str]) -> None:
        name = self._text(node.child_by_field_name('name'))
        if outer:
            qualified = f"{outer}.{name}"
        elif self.unit.package:
            qualified = f"{self.unit.package}.{name}"
        else:
            qualified = name
        self.local_types.setdefault(name, qualified)

        superclass = node.child_by_field_name('superclass')
        if superclass is not None:
            self.superclasses[qualified] = self._text(self._first_named(superclass))

        for member in self._type_members(node):
            if member.type in TYPE_DECLARATIONS:
                self._collect_types(member, qualified)
            elif member.type == 'method_declaration':
                parameters = member.child_by_field_name('parameters')
                arity = len([p for p in self._named(parameters)
                             if p.type in ('formal_parameter', 'spread_parameter')])
                key = (qualified, self._text(member.child_by_field_name('name')), arity)
                self.method_headers[key] = self._text(member.child_by_field_name('type'))

    def _lower_type(self, node: Node) -> None:
        name = self._text(node.child_by_field_name('name'))
        outer = self.current_class
        if outer:
            qualified = f"{outer}.{name}"
        else:
            qualified = self.local_types.get(name, name)

        self.class_stack.append(qualified)
        field_scope: Dict[str, VariableBinding] = {}
        self.fields[qualified] = field_scope
        self.scopes.append(field_scope)
        saved_method, saved_calls = self.current_method, self.current_calls
        self.current_method, self.current_calls = None, None

        members = self._type_members(node)

        # Fields are visible to every initializer and method of the type
        pending_initializers = []
        for member in members:
            if member.type in ('field_declaration', 'constant_declaration'):
                declared_type = self.resolve_type(self._text(member.child_by_field_name('type')))
                for declarator in member.children_by_field_name('declarator'):
                    name_node = declarator.child_by_field_name('name')
                    binding = self._declare(self._text(name_node), BindingKind.FIELD,
                                            declared_type, name_node)
                    value = declarator.child_by_field_name('value')
                    if value is not None:
                        pending_initializers.append((binding, value))
            elif member.type == 'enum_constant':
                name_node = member.child_by_field_name('name')
                self._declare(self._text(name_node), BindingKind.FIELD, qualified, name_node)

        for binding, value in pending_initializers:
            self._bind(binding, self._lower_expression(value))

        for member in members:
            if member.type == 'method_declaration':
                self._lower_method(member, qualified, is_constructor=False)
            elif member.type in ('constructor_declaration', 'compact_constructor_declaration'):
                self._lower_method(member, qualified, is_constructor=True)
            elif member.type in TYPE_DECLARATIONS:
                self._lower_type(member)

        self.current_method, self.current_calls = saved_method, saved_calls
        self.scopes.pop()
        self.class_stack.pop()

    def _lower_method(self, node: Node, declaring_type: str, is_constructor: bool) -> None:
        name_node = node.child_by_field_name('name')
        parameters = []
        parameters_node = node.child_by_field_name('parameters')
        for parameter in self._named(parameters_node) if parameters_node is not None else []:
            if parameter.type == 'formal_parameter':
                type_text = self._text(parameter.child_by_field_name('type'))
                dimensions = parameter.child_by_field_name('dimensions')
                if dimensions is not None:
                    type_text += self._text(dimensions)
                parameters.append((parameter.child_by_field_name('name'), self.resolve_type(type_text)))
            elif parameter.type == 'spread_parameter':
                type_node = next((c for c in self._named(parameter)
                                  if c.type not in ('modifiers', 'variable_declarator')), None)
                declarator = next((c for c in self._named(parameter)
                                   if c.type == 'variable_declarator'), None)
                name = declarator.child_by_field_name('name') if declarator is not None else None
                parameters.append((name, self.resolve_type(self._text(type_node) + '[]')))

        signature = MethodSignature(
            declaring_type=declaring_type,
            name=self._text(name_node),
            parameter_types=tuple(t or '' for _, t in parameters),
        )

        saved_method, saved_calls = self.current_method, self.current_calls
        self.current_method = signature
        self.current_calls = []
        self.scopes.append({})
        for index, (parameter_name, parameter_type) in enumerate(parameters):
            if parameter_name is not None:
                self._declare(self._text(parameter_name), BindingKind.PARAMETER,
                              parameter_type, parameter_name, index=index)

        body_node = node.child_by_field_name('body')
        body = self._lower_block(body_node) if body_node is not None else None

        declaration = MethodDeclaration(
            signature=signature,
            position=self._position(name_node if name_node is not None else node),
            parameter_names=[self._text(n) for n, _ in parameters if n is not None],
            return_type=None if is_constructor else self.resolve_type(
                self._text(node.child_by_field_name('type'))),
            body=body,
            is_constructor=is_constructor,
        )
        self.unit.methods.append(declaration)
        self.unit.invocations.setdefault(signature, []).extend(self.current_calls)

        self.scopes.pop()
        self.current_method, self.current_calls = saved_method, saved_calls

    # -- statements -----------------------------------------------------------

    def _lower_block(self, node: Node) -> Block:
        self.scopes.append({})
        statements = []
        for child in self._named(node):
            statement = self._lower_statement(child)
            if statement is not None:
                statements.append(statement)
        self.scopes.pop()
        return Block(self._position(node), statements)

    def _lower_statement(self, node: Optional[Node]) -> Optional[Statement]:
        if node is None or node.type in COMMENT_TYPES:
            return None
        node_type = node.type
        position = self._position(node)

        if node_type in ('block', 'constructor_body'):
            return self._lower_block(node)

        if node_type == 'expression_statement':
            return ExpressionStatement(position, self._lower_expression(self._first_named(node)))

        if node_type == 'local_variable_declaration':
            return self._lower_local_declaration(node)

        if node_type == 'return_statement':
            value = self._first_named(node)
            return ReturnStatement(position, self._lower_expression(value) if value is not None else None)

        if node_type == 'if_statement':
            return IfStatement(
                position,
                condition=self._lower_expression(node.child_by_field_name('condition')),
                then_statement=self._lower_statement(node.child_by_field_name('consequence')),
                else_statement=self._lower_statement(node.child_by_field_name('alternative')),
            )

        if node_type in LOOP_KINDS:
            return self._lower_loop(node, LOOP_KINDS[node_type])

        if node_type in ('try_statement', 'try_with_resources_statement'):
            return self._lower_try(node)

        if node_type in ('switch_expression', 'switch_statement'):
            return self._lower_switch(node)

        if node_type == 'synchronized_statement':
            lock = self._first_named(node)
            if lock is not None and lock.type == 'parenthesized_expression':
                self._lower_expression(lock)
            body = node.child_by_field_name('body')
            return self._lower_block(body) if body is not None else None

        if node_type == 'labeled_statement':
            return self._lower_statement(self._named(node)[-1])

        if node_type in TYPE_DECLARATIONS or node_type == 'local_class_declaration':
            return OtherStatement(position, node_type)

        # throw, yield, assert, explicit constructor calls, ...
        for child in self._named(node):
            if child.type not in _OPAQUE_NODES and child.type != 'identifier':
                self._lower_expression(child)
        return OtherStatement(position, node_type)

    def _lower_local_declaration(self, node: Node) -> VariableDeclaration:
        declared_type = self.resolve_type(self._text(node.child_by_field_name('type')))
        fragments = []
        for declarator in node.children_by_field_name('declarator'):
            name_node = declarator.child_by_field_name('name')
            value_node = declarator.child_by_field_name('value')
            value = self._lower_expression(value_node) if value_node is not None else None
            variable_type = declared_type if declared_type is not None else static_type(value)
            binding = self._declare(self._text(name_node), BindingKind.LOCAL, variable_type, name_node)
            self._bind(binding, value)
            fragments.append((
                SimpleName(self._text(name_node), self._position(name_node),
                           identifier=self._text(name_node), binding=binding),
                value,
            ))
        return VariableDeclaration(self._position(node), declared_type, fragments)

    def _lower_loop(self, node: Node, loop_kind: NodeKind) -> LoopStatement:
        self.scopes.append({})
        if loop_kind == NodeKind.ENHANCED_FOR_STATEMENT:
            # Each element of the iterated value flows into the loop variable
            value = self._lower_expression(node.child_by_field_name('value'))
            name_node = node.child_by_field_name('name')
            if name_node is not None:
                declared_type = self.resolve_type(self._text(node.child_by_field_name('type')))
                binding = self._declare(self._text(name_node), BindingKind.LOCAL, declared_type, name_node)
                self._bind(binding, value)
        elif loop_kind == NodeKind.FOR_STATEMENT:
            for init in node.children_by_field_name('init'):
                if init.type == 'local_variable_declaration':
                    self._lower_local_declaration(init)
                else:
                    self._lower_expression(init)
            self._lower_expression(node.child_by_field_name('condition'))
            for update in node.children_by_field_name('update'):
                self._lower_expression(update)
        else:
            self._lower_expression(node.child_by_field_name('condition'))

        body = self._lower_statement(node.child_by_field_name('body'))
        self.scopes.pop()
        return LoopStatement(self._position(node), loop_kind=loop_kind, body=body)

    def _lower_try(self, node: Node) -> TryStatement:
        self.scopes.append({})
        resources = node.child_by_field_name('resources')
        for resource in self._named(resources) if resources is not None else []:
            name_node = resource.child_by_field_name('name')
            value_node = resource.child_by_field_name('value')
            if name_node is None:
                self._lower_expression(resource)
                continue
            value = self._lower_expression(value_node) if value_node is not None else None
            declared_type = self.resolve_type(self._text(resource.child_by_field_name('type')))
            binding = self._declare(self._text(name_node), BindingKind.LOCAL, declared_type, name_node)
            self._bind(binding, value)

        body_node = node.child_by_field_name('body')
        body = self._lower_block(body_node) if body_node is not None else None
        self.scopes.pop()

        catch_blocks = []
        finally_block = None
        for child in self._named(node):
            if child.type == 'catch_clause':
                self.scopes.append({})
                parameter = next((c for c in self._named(child) if c.type == 'catch_formal_parameter'), None)
                if parameter is not None:
                    name_node = parameter.child_by_field_name('name')
                    if name_node is not None:
                        catch_type = next((c for c in self._named(parameter) if c.type == 'catch_type'), None)
                        self._declare(self._text(name_node), BindingKind.LOCAL,
                                      self.resolve_type(self._text(catch_type).split('|')[0]), name_node)
                catch_body = child.child_by_field_name('body')
                if catch_body is not None:
                    catch_blocks.append(self._lower_block(catch_body))
                self.scopes.pop()
            elif child.type == 'finally_clause':
                block = next((c for c in self._named(child) if c.type == 'block'), None)
                if block is not None:
                    finally_block = self._lower_block(block)

        return TryStatement(self._position(node), body=body,
                            catch_blocks=catch_blocks, finally_block=finally_block)

    def _lower_switch(self, node: Node) -> SwitchStatement:
        self._lower_expression(node.child_by_field_name('condition'))
        statements = []
        body = node.child_by_field_name('body')
        self.scopes.append({})
        for group in self._named(body) if body is not None else []:
            for child in self._named(group):
                if child.type == 'switch_label':
                    continue
                if group.type == 'switch_rule' and child.type not in (
                        'expression_statement', 'throw_statement', 'block'):
                    self._lower_expression(child)
                    continue
                statement = self._lower_statement(child)
                if statement is not None:
                    statements.append(statement)
        self.scopes.pop()
        return SwitchStatement(self._position(node), statements)

    # -- expressions ----------------------------------------------------------

    def _lower_expression(self, node: Optional[Node]) -> Optional[Expression]:
        if node is None:
            return None
        node_type = node.type
        text = self._text(node)
        position = self._position(node)

        if node_type in LITERAL_NODE_KINDS:
            return Literal(text, position, literal_kind=LITERAL_NODE_KINDS[node_type])

        if node_type == 'identifier':
            return SimpleName(text, position, identifier=text, binding=self._lookup(text))

        if node_type == 'parenthesized_expression':
            return ParenthesizedExpression(text, position,
                                           expression=self._lower_expression(self._first_named(node)))

        if node_type == 'binary_expression':
            return InfixExpression(
                text, position,
                operator=self._text(node.child_by_field_name('operator')),
                left=self._lower_expression(node.child_by_field_name('left')),
                right=self._lower_expression(node.child_by_field_name('right')),
            )

        if node_type == 'unary_expression':
            return PrefixExpression(
                text, position,
                operator=self._text(node.child_by_field_name('operator')),
                operand=self._lower_expression(node.child_by_field_name('operand')),
            )

        if node_type == 'update_expression':
            operator = '++' if '++' in text else '--'
            return PrefixExpression(text, position, operator=operator,
                                    operand=self._lower_expression(self._first_named(node)))

        if node_type == 'ternary_expression':
            return ConditionalExpression(
                text, position,
                condition=self._lower_expression(node.child_by_field_name('condition')),
                then_expression=self._lower_expression(node.child_by_field_name('consequence')),
                else_expression=self._lower_expression(node.child_by_field_name('alternative')),
            )

        if node_type == 'assignment_expression':
            operator = self._text(node.child_by_field_name('operator'))
            left = self._lower_expression(node.child_by_field_name('left'))
            right = self._lower_expression(node.child_by_field_name('right'))
            self._record_assignment(operator, left, right)
            return Assignment(text, position, operator=operator, left=left, right=right)

        if node_type == 'cast_expression':
            return CastExpression(
                text, position,
                type_name=self.resolve_type(self._text(node.child_by_field_name('type'))) or '',
                expression=self._lower_expression(node.child_by_field_name('value')),
            )

        if node_type == 'object_creation_expression':
            return self._lower_object_creation(node, text, position)

        if node_type == 'array_creation_expression':
            element_type = self.resolve_type(self._text(node.child_by_field_name('type')))
            value = node.child_by_field_name('value')
            if value is not None:
                elements = [self._lower_expression(c) for c in self._named(value)]
            else:
                for dimension in node.children_by_field_name('dimensions'):
                    self._lower_expression(dimension)
                elements = []
            return ArrayInitializer(text, position, elements=[e for e in elements if e is not None],
                                    type_name=f"{element_type}[]" if element_type else None)

        if node_type == 'array_initializer':
            elements = [self._lower_expression(c) for c in self._named(node)]
            return ArrayInitializer(text, position, elements=[e for e in elements if e is not None])

        if node_type == 'field_access':
            return self._lower_field_access(node, text, position)

        if node_type == 'method_invocation':
            return self._lower_invocation(node, text, position)

        if node_type == 'lambda_expression':
            self._lower_lambda(node)
            return UnsupportedExpression(text, position, node_type=node_type)

        # Anything else: keep collecting calls and assignments underneath
        if node_type not in _OPAQUE_NODES:
            for child in self._named(node):
                self._lower_expression(child)
        return UnsupportedExpression(text, position, node_type=node_type)

    def _lower_arguments(self, node: Optional[Node]) -> List[Expression]:
        if node is None:
            return []
        arguments = [self._lower_expression(c) for c in self._named(node)]
        return [a for a in arguments if a is not None]

    def _register_call(self, call: CallExpression) -> None:
        if self.current_calls is not None:
            self.current_calls.append(call)

    def _lower_object_creation(self, node: Node, text: str, position: Position) -> InstanceCreation:
        outer = self._first_named(node)
        if outer is not None and outer.type not in _OPAQUE_NODES and outer != node.child_by_field_name('type'):
            if outer.type not in ('argument_list', 'type_arguments'):
                self._lower_expression(outer)
        creation = InstanceCreation(
            text, position,
            type_name=self.resolve_type(self._text(node.child_by_field_name('type'))) or '',
            arguments=self._lower_arguments(node.child_by_field_name('arguments')),
        )
        self._register_call(creation)
        return creation

    def _lower_field_access(self, node: Node, text: str, position: Position) -> QualifiedName:
        object_node = node.child_by_field_name('object')
        field_node = node.child_by_field_name('field')
        field_name = self._text(field_node)

        owner_type = None
        if object_node is not None and object_node.type in ('this', 'super'):
            owner_type = self.current_class
            qualifier = UnsupportedExpression(self._text(object_node), self._position(object_node),
                                              node_type=object_node.type)
        else:
            qualifier = self._lower_expression(object_node)
            owner_type = self._receiver_type(object_node, qualifier)

        binding = self.fields.get(owner_type, {}).get(field_name) if owner_type else None
        name = SimpleName(field_name, self._position(field_node) if field_node is not None else position,
                          identifier=field_name, binding=binding)
        return QualifiedName(text, position, qualifier=qualifier, name=name)

    def _receiver_type(self, node: Optional[Node], receiver: Optional[Expression]) -> Optional[str]:
        """Static type of a call receiver or field owner"""
        if node is None:
            return self.current_class
        if isinstance(receiver, SimpleName):
            if receiver.binding is not None:
                return receiver.binding.declared_type
            if receiver.identifier[:1].isupper():
                # Static member access through a type name
                return self.resolve_type(receiver.identifier)
            return None
        if node.type in ('field_access', 'scoped_identifier') and _QUALIFIED_TYPE_RE.fullmatch(self._text(node)):
            if isinstance(receiver, QualifiedName) and receiver.name is not None and receiver.name.binding is None:
                return self._text(node)
        return static_type(receiver)

    def _lower_invocation(self, node: Node, text: str, position: Position) -> MethodInvocation:
        name = self._text(node.child_by_field_name('name'))
        object_node = node.child_by_field_name('object')

        receiver = None
        if object_node is None or object_node.type == 'this':
            receiver_type = self.current_class
        elif object_node.type == 'super':
            receiver_type = self.resolve_type(self.superclasses.get(self.current_class or '', ''))
        else:
            receiver = self._lower_expression(object_node)
            receiver_type = self._receiver_type(object_node, receiver)

        arguments = self._lower_arguments(node.child_by_field_name('arguments'))
        return_type = None
        if receiver_type is not None:
            header = self.method_headers.get((receiver_type, name, len(arguments)))
            if header:
                return_type = self.resolve_type(header)

        invocation = MethodInvocation(
            text, position,
            name=name,
            receiver=receiver,
            arguments=arguments,
            receiver_type=receiver_type,
            return_type=return_type,
        )
        self._register_call(invocation)
        return invocation

    def _lower_lambda(self, node: Node) -> None:
        """Collect calls in a lambda body on behalf of the enclosing method"""
        self.scopes.append({})
        parameters = node.child_by_field_name('parameters')
        if parameters is not None:
            if parameters.type == 'identifier':
                names = [parameters]
            else:
                names = []
                for child in self._named(parameters):
                    if child.type == 'identifier':
                        names.append(child)
                    elif child.child_by_field_name('name') is not None:
                        names.append(child.child_by_field_name('name'))
            for name_node in names:
                self._declare(self._text(name_node), BindingKind.LOCAL, None, name_node)

        body = node.child_by_field_name('body')
        if body is not None:
            if body.type == 'block':
                self._lower_block(body)
            else:
                self._lower_expression(body)
        self.scopes.pop()

    def _record_assignment(self, operator: str, left: Optional[Expression],
                           right: Optional[Expression]) -> None:
        """``x = value`` binds variables that were declared without a value"""
        if operator != '=' or right is None:
            return
        target = left.name if isinstance(left, QualifiedName) else left
        if not isinstance(target, SimpleName) or target.binding is None:
            return
        binding = target.binding
        if binding.kind is BindingKind.PARAMETER or binding in self._initialized:
            return
        # The last assignment in source order wins
        self.unit.bindings[binding] = right
