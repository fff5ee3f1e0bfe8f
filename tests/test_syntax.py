"""Tests for taintscan.syntax"""

from taintscan.syntax import (
    Block, CastExpression, IfStatement, InfixExpression, LoopStatement,
    MethodSignature, NodeKind, ParenthesizedExpression, PrefixExpression,
    ReturnStatement, SwitchStatement, TryStatement, iter_return_expressions,
    reduces_to_literal,
)


class TestNodeKinds:
    def test_literal_kind_comes_from_literal(self, ir):
        assert ir.string("a").kind is NodeKind.STRING_LITERAL
        assert ir.number(1).kind is NodeKind.NUMBER_LITERAL

    def test_expression_kinds(self, ir):
        assert ir.name("x").kind is NodeKind.SIMPLE_NAME
        assert ir.get_parameter().kind is NodeKind.METHOD_INVOCATION
        assert ir.new("java.io.File").kind is NodeKind.CLASS_INSTANCE_CREATION

    def test_loop_kind(self, ir):
        loop = LoopStatement(ir.position(), loop_kind=NodeKind.ENHANCED_FOR_STATEMENT)
        assert loop.kind is NodeKind.ENHANCED_FOR_STATEMENT

    def test_signature_text(self):
        signature = MethodSignature("com.example.Service", "run", ("java.lang.String", "int"))
        assert signature.arity == 2
        assert signature.qualified_name == "com.example.Service.run"
        assert str(signature) == "com.example.Service.run(java.lang.String, int)"


class TestReducesToLiteral:
    def test_plain_literal(self, ir):
        assert reduces_to_literal(ir.string("a"))

    def test_literal_concatenation(self, ir):
        assert reduces_to_literal(ir.concat(ir.string("a"), ir.number(1)))

    def test_wrapped_literals(self, ir):
        negated = PrefixExpression("-1", ir.position(), operator="-", operand=ir.number(1))
        grouped = ParenthesizedExpression("(-1)", ir.position(), expression=negated)
        cast = CastExpression("(long) (-1)", ir.position(), type_name="long", expression=grouped)
        assert reduces_to_literal(cast)

    def test_names_and_calls_are_not_literal(self, ir):
        assert not reduces_to_literal(ir.name("x"))
        assert not reduces_to_literal(ir.concat(ir.string("a"), ir.name("x")))
        assert not reduces_to_literal(ir.get_parameter())
        assert not reduces_to_literal(None)

    def test_empty_infix_is_not_literal(self, ir):
        assert not reduces_to_literal(InfixExpression("", ir.position()))


class TestReturnExpressions:
    def test_nested_statements(self, ir):
        values = [ir.string(str(i)) for i in range(5)]
        returns = [ReturnStatement(v.position, v) for v in values]
        body = Block(ir.position(), [
            IfStatement(ir.position(), condition=ir.name("c"),
                        then_statement=returns[0], else_statement=Block(ir.position(), [returns[1]])),
            LoopStatement(ir.position(), body=returns[2]),
            TryStatement(ir.position(), body=Block(ir.position(), [returns[3]]),
                         catch_blocks=[Block(ir.position(), [])],
                         finally_block=Block(ir.position(), [returns[4]])),
            SwitchStatement(ir.position(), [ReturnStatement(ir.position(), None)]),
        ])

        assert list(iter_return_expressions(body)) == values

    def test_declaration_return_expressions(self, ir):
        signature = MethodSignature("com.example.Service", "pick", ())
        first, second = ir.string("a"), ir.get_parameter()
        declaration = ir.method(signature, first, second)
        assert declaration.return_expressions() == [first, second]
        assert declaration.unit == ir.unit
        assert str(declaration) == "com.example.Service.pick()"
