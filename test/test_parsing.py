"""
Syntactic parser tests
Tests program structure, special forms and error-node recovery
"""

import random

import pytest
from datum import datumize_recover, into_tokens
from error_handling import CUSTOM, UNCLOSED, UNEXPECTED, ParseError, TokenizeError
from parsing import Parser, SyntacticParser, create_debug_parser, create_parser
from lexing import tokenize
from syntax import Primitive, Real, Span
from syntax_tree import (
  Assignment, Conditional, Definition, ErrorExpression, Identifier, PrimitiveExpression,
  Procedure, ProcedureCall, child_nodes, find_nodes_by_type, has_errors,
  pretty_print_program, walk,
)


def ident(name):
  return Identifier(name, None)


def prim(primitive):
  return PrimitiveExpression(primitive, None)


class TestProgramStructure:
  """Test definitions and expressions at top level"""

  def test_definition_then_expression(self, parser):
    program = parser.parse("(define x 42) x")
    assert program.defs == [Definition(ident("x"), prim(Primitive.integer(42)), None)]
    assert program.exprs == []
    assert program.last_expr == prim(Primitive.ident("x"))

  def test_expression_order(self, parser):
    program = parser.parse("1 2 3")
    assert program.exprs == [prim(Primitive.integer(1)), prim(Primitive.integer(2))]
    assert program.last_expr == prim(Primitive.integer(3))

  def test_procedure_definition_shorthand(self, parser):
    program = parser.parse("(define (add a b) (+ a b)) (add 1 2)")
    definition = program.defs[0]
    assert definition.name == ident("add")
    procedure = definition.value
    assert isinstance(procedure, Procedure)
    assert procedure.args == [ident("a"), ident("b")]
    assert not procedure.variadic
    assert procedure.body.last_expr == ProcedureCall(
      prim(Primitive.ident("+")), [prim(Primitive.ident("a")), prim(Primitive.ident("b"))], None
    )
    assert procedure.span == definition.span == Span(0, 26)

  def test_program_spans(self, parser):
    program = parser.parse("(define x 1)\n(f x)")
    assert program.defs[0].span == Span(0, 12)
    assert program.last_expr.span == Span(13, 18)


class TestSpecialForms:
  """Test each special form"""

  def test_lambda_with_formals(self, parser):
    procedure = parser.parse("(lambda (x y) (define z x) z)").last_expr
    assert procedure.args == [ident("x"), ident("y")]
    assert procedure.body.defs[0].name == ident("z")
    assert procedure.body.last_expr == prim(Primitive.ident("z"))

  def test_variadic_lambda(self, parser):
    procedure = parser.parse("(lambda args args)").last_expr
    assert procedure.variadic
    assert procedure.args == [ident("args")]

  def test_lambda_without_arguments(self, parser):
    procedure = parser.parse("(lambda () 1 2)").last_expr
    assert procedure.args == []
    assert procedure.body.exprs == [prim(Primitive.integer(1))]

  def test_conditional(self, parser):
    conditional = parser.parse("(if #t 1 2)").last_expr
    assert conditional == Conditional(
      prim(Primitive.boolean(True)), prim(Primitive.integer(1)), prim(Primitive.integer(2)), None
    )

  def test_conditional_without_alternative(self, parser):
    conditional = parser.parse("(if (f) 1)").last_expr
    assert isinstance(conditional, Conditional)
    assert conditional.alter is None

  def test_assignment(self, parser):
    assignment = parser.parse("(set! counter (+ counter 1))").last_expr
    assert isinstance(assignment, Assignment)
    assert assignment.target == ident("counter")
    assert isinstance(assignment.value, ProcedureCall)

  def test_call_with_compound_operator(self, parser):
    call = parser.parse("((lambda (x) x) 5)").last_expr
    assert isinstance(call.operator, Procedure)
    assert call.args == [prim(Primitive.integer(5))]

  def test_call_without_arguments(self, parser):
    call = parser.parse("(newline)").last_expr
    assert call == ProcedureCall(prim(Primitive.ident("newline")), [], None)

  def test_begin_is_expanded(self, parser):
    call = parser.parse("(begin (define x 1) x)").last_expr
    assert isinstance(call, ProcedureCall)
    assert call.args == []
    procedure = call.operator
    assert isinstance(procedure, Procedure)
    assert procedure.body.defs[0].name == ident("x")
    assert procedure.body.last_expr == prim(Primitive.ident("x"))

  def test_reals_keep_their_digits(self, parser):
    primitive = parser.parse("2.50").last_expr.primitive
    assert primitive.value == Real(250, 2)
    assert str(primitive) == "2.50"
    assert float(primitive.value) == 2.5


class TestErrorRecovery:
  """Test diagnostics and ErrorExpression placement"""

  def test_empty_conditional(self, parser):
    program, error = parser.parse_recover("(if)")
    assert isinstance(program.last_expr, ErrorExpression)
    assert program.last_expr.span == Span(0, 4)
    assert len(error.diagnostics) == 1
    diagnostic = error.diagnostics[0]
    assert diagnostic.reason == UNEXPECTED
    assert diagnostic.found.is_close()
    assert diagnostic.expected == ("<expression>",)
    assert diagnostic.label == "conditional"
    assert diagnostic.span == Span(3, 4)

  def test_strict_parse_raises(self, parser):
    with pytest.raises(ParseError):
      parser.parse("(if)")

  def test_tokenize_error_short_circuits(self, parser):
    with pytest.raises(TokenizeError):
      parser.parse("(f [x])")
    program, error = parser.parse_recover("(f [x])")
    assert program is None
    assert isinstance(error, TokenizeError)

  def test_unclosed_definition(self, parser):
    source = "(define x (+ 1 2)"
    program, error = parser.parse_recover(source)
    assert isinstance(program.last_expr, ErrorExpression)
    assert program.defs == []
    assert len(error.diagnostics) == 1
    diagnostic = error.diagnostics[0]
    assert diagnostic.reason == UNCLOSED
    assert diagnostic.delimiter_span == Span(0, 1)
    assert diagnostic.span == Span(len(source), len(source))
    assert diagnostic.label == "definition"

  def test_recovery_continues_after_error(self, parser):
    program, error = parser.parse_recover("(if) (set!) (f 1)")
    assert len(error.diagnostics) == 2
    assert [d.label for d in error.diagnostics] == ["conditional", "assignment"]
    assert all(isinstance(e, ErrorExpression) for e in program.exprs)
    assert isinstance(program.last_expr, ProcedureCall)

  def test_dotted_call_before_definition(self, parser):
    """An error node does not end the definition prefix of a body"""
    program, error = parser.parse_recover("(+ 1 . 2) (define y 3)")
    assert [d.name for d in program.defs] == [ident("y")]
    assert program.exprs == []
    assert isinstance(program.last_expr, ErrorExpression)
    assert program.last_expr.span == Span(0, 9)

    diagnostic = error.diagnostics[0]
    assert len(error.diagnostics) == 1
    assert diagnostic.found.is_keyword(".")
    assert diagnostic.expected == (")", "<expression>")
    assert diagnostic.label == "procedure call"

  def test_error_inside_call_argument(self, parser):
    program, error = parser.parse_recover("(f (if) 2)")
    call = program.last_expr
    assert isinstance(call, ProcedureCall)
    assert isinstance(call.args[0], ErrorExpression)
    assert call.args[1] == prim(Primitive.integer(2))
    assert len(error.diagnostics) == 1

  def test_definition_after_expression(self, parser):
    program, error = parser.parse_recover("(f 1) (define x 2)")
    assert program.defs == []
    assert isinstance(program.exprs[0], ProcedureCall)
    assert isinstance(program.last_expr, ErrorExpression)
    diagnostic = error.diagnostics[0]
    assert diagnostic.reason == CUSTOM
    assert diagnostic.message == "Definitions must come before every expression of a body"

  def test_definition_in_expression_position(self, parser):
    program, error = parser.parse_recover("(f (define x 1))")
    assert isinstance(program.last_expr.args[0], ErrorExpression)
    diagnostic = error.diagnostics[0]
    assert diagnostic.reason == CUSTOM
    assert diagnostic.message == "Definitions are only allowed at the beginning of a body"
    assert diagnostic.label == "definition"
    assert diagnostic.span == Span(4, 10)

  def test_duplicate_parameters(self, parser):
    program, error = parser.parse_recover("(lambda (x y x) x)")
    assert isinstance(program.last_expr, ErrorExpression)
    diagnostic = error.diagnostics[0]
    assert diagnostic.message == "Duplicate parameter x"
    assert diagnostic.label == "lambda"
    assert diagnostic.span == Span(13, 14)

  def test_lambda_without_body(self, parser):
    _, error = parser.parse_recover("(lambda (x))")
    diagnostic = error.diagnostics[0]
    assert diagnostic.expected == ("<definition>", "<expression>")
    assert diagnostic.label == "lambda"

  @pytest.mark.parametrize("source,expected,label", [
    ("(lambda 5 x)", ("(", "<identifier>"), "lambda"),
    ("(set! 5 x)", ("<identifier>",), "assignment"),
    ("(define)", ("(", "<identifier>"), "definition"),
    ("(if 1 2 3 4)", (")",), "conditional"),
  ])
  def test_malformed_forms(self, parser, source, expected, label):
    _, error = parser.parse_recover(source)
    assert len(error.diagnostics) == 1
    assert error.diagnostics[0].expected == expected
    assert error.diagnostics[0].label == label

  def test_empty_program(self, parser):
    program, error = parser.parse_recover("")
    assert isinstance(program.last_expr, ErrorExpression)
    diagnostic = error.diagnostics[0]
    assert diagnostic.found is None
    assert diagnostic.expected == ("<definition>", "<expression>")
    assert "Unexpected end of input, expected <definition>, <expression>" in str(error)

  def test_definitions_only(self, parser):
    program, error = parser.parse_recover("(define x 1)")
    assert len(program.defs) == 1
    assert isinstance(program.last_expr, ErrorExpression)
    assert error is not None

  def test_stray_close_at_top_level(self, parser):
    program, error = parser.parse_recover("1 )")
    assert program.last_expr == prim(Primitive.integer(1))
    assert len(error.diagnostics) == 1
    assert error.diagnostics[0].expected == ("<definition>", "<expression>", "end of input")

  def test_nesting_limit(self):
    parser = Parser(max_depth=3)
    _, error = parser.parse_recover("((((x))))")
    assert [d.message for d in error.diagnostics] == ["Nesting deeper than 3 levels"]

  def test_deep_begin_nest_is_accepted(self, parser):
    """Brackets added by begin expansion do not count towards the limit"""
    source = "(begin " * 60 + "x" + ")" * 60
    program, error = parser.parse_recover(source)
    assert error is None
    assert len(find_nodes_by_type(program, Procedure)) == 60

  def test_begin_nest_at_the_limit(self, parser):
    source = "(begin " * 100 + "x" + ")" * 100
    _, error = parser.parse_recover(source)
    assert error is None

  def test_nesting_limit_counts_written_brackets(self):
    parser = Parser(max_depth=3)
    _, error = parser.parse_recover("(begin (begin (begin x)))")
    assert error is None

    _, error = parser.parse_recover("(begin (begin (begin (begin x))))")
    assert [d.message for d in error.diagnostics] == ["Nesting deeper than 3 levels"]
    assert error.diagnostics[0].span == Span(21, 22)

  def test_unclosed_reports_outermost_bracket(self, parser):
    program, error = parser.parse_recover("((a")
    assert len(error.diagnostics) == 1
    assert error.diagnostics[0].reason == UNCLOSED
    assert error.diagnostics[0].delimiter_span == Span(0, 1)
    assert program.last_expr.span == Span(0, 3)

  def test_unclosed_nested_definition(self, parser):
    _, error = parser.parse_recover("(define (f x) (g (h x)")
    assert len(error.diagnostics) == 1
    assert error.diagnostics[0].delimiter_span == Span(0, 1)
    assert error.diagnostics[0].label == "definition"

  def test_strict_unclosed_reports_once(self, parser):
    with pytest.raises(ParseError) as excinfo:
      parser.parse("((a")
    assert [d.delimiter_span for d in excinfo.value.diagnostics] == [Span(0, 1)]

  def test_deep_nesting_is_reported(self, parser):
    source = "(" * 500 + "f" + ")" * 500
    program, error = parser.parse_recover(source)
    assert program is not None
    assert any(d.message == "Nesting deeper than 100 levels" for d in error.diagnostics)

  @pytest.mark.parametrize("source", [
    ")", "(", "((", "))(", "(define", "(lambda", "(lambda (", "(if (if (if",
    "(define (f . x) x)", ". . .", "(set! x)", "define lambda if", "(() ())",
  ])
  def test_every_input_yields_a_program(self, parser, source):
    program, error = parser.parse_recover(source)
    assert program is not None
    assert error is not None


class TestPipelineProperties:
  """Test properties that hold for any input"""

  SOURCES = [
    "(define (f x) (if x 1 2)) (f #t)",
    "(begin (define y 2.50) (set! y 3) y)",
    "(lambda) (if 1) (f . x)",
    "(define z (g 1)",
  ]

  @pytest.mark.parametrize("source", SOURCES)
  def test_flattened_data_parse_the_same(self, parser, source):
    tokens = tokenize(source)
    data, _ = datumize_recover(tokens, source)
    direct, _ = parser.parse_tokens_recover(tokens, source)
    flattened, _ = parser.parse_tokens_recover(into_tokens(data), source)
    assert flattened == direct

  @pytest.mark.parametrize("seed", range(25))
  def test_random_input_never_raises(self, parser, seed):
    rng = random.Random(seed)
    alphabet = ["(", ")", " ", "\n", "x", "1", "2.5", ".", "#t", "[", ";", "define ",
                "lambda ", "if ", "set! ", "begin "]
    source = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 40)))
    program, error = parser.parse_recover(source)
    if error is None:
      assert program is not None
    elif isinstance(error, TokenizeError):
      assert program is None
    else:
      assert program is not None
      assert error.diagnostics


class TestTreeHelpers:
  """Test traversal and printing"""

  SOURCE = """
(define (fact n) (if (= n 0) 1 (* n (fact (- n 1)))))
(define counter 0)
(set! counter (+ counter 1))
(begin (display counter) (fact 5))
((lambda xs xs) 1 2.5 #f)
"""

  def test_child_spans_nest(self, parser):
    program = parser.parse(self.SOURCE)
    for node in walk(program):
      assert 0 <= node.span.start <= node.span.end <= len(self.SOURCE)
      for child in child_nodes(node):
        assert node.span.contains(child.span)

  def test_find_nodes(self, parser):
    program = parser.parse(self.SOURCE)
    assert len(find_nodes_by_type(program, Conditional)) == 1
    assert len(find_nodes_by_type(program, Assignment)) == 1
    assert not has_errors(program)

  def test_has_errors(self, parser):
    program, _ = parser.parse_recover("(if) 1")
    assert has_errors(program)

  def test_pretty_print(self, parser):
    program = parser.parse(self.SOURCE)
    text = pretty_print_program(program, self.SOURCE)
    assert text.startswith("ProcedureBody\n")
    assert "Definition" in text
    assert "Procedure(variadic)" in text
    assert "Primitive(REAL 2.5)" in text


class TestParserConstruction:
  """Test parser entry points"""

  def test_factories(self, capsys):
    assert not create_parser().debug
    parser = create_debug_parser()
    parser.parse("(f 1)")
    captured = capsys.readouterr()
    assert "[lexer]" in captured.out
    assert "[parser]" in captured.out

  def test_parse_tokens(self, parser):
    source = "(begin 1)"
    program = parser.parse_tokens(tokenize(source), source)
    assert isinstance(program.last_expr, ProcedureCall)

  def test_syntactic_parser_sees_no_expansion(self):
    source = "(begin 1)"
    program = SyntacticParser(tokenize(source), source).parse_program()
    call = program.last_expr
    assert call.operator == prim(Primitive.ident("begin"))
