"""
Scheme syntactic parser
Recursive-descent parser over the (expanded) token stream with error-node
recovery, plus the Parser front door combining lexer, expander and parser
"""

from typing import Callable, List, Optional, Sequence, Tuple
import sys

from error_handling import (
    UNEXPECTED, END_OF_INPUT, Diagnostic, ParseError, SchemeError,
    custom, unclosed, unexpected,
)
from lexing import tokenize, tokenize_recover
from syntax import CLOSE_PAREN, OPEN_PAREN, PRIMITIVE, Token
from syntax_tree import (
    Assignment, Conditional, Definition, ErrorExpression, Expression, Identifier,
    PrimitiveExpression, Procedure, ProcedureBody, ProcedureCall, Program,
)
from transformer import Transformer, builtin_transformers, expand, expand_recover
from utilities import DEFAULT_MAX_DEPTH, TokenCursor


# Syntactic categories reported in expected-sets
EXPRESSION = "<expression>"
IDENTIFIER = "<identifier>"
DEFINITION = "<definition>"

# Python frames used by one counted nesting level, including an uncounted
# lambda form synthesized inside it
FRAMES_PER_LEVEL = 12


class _Failure(Exception):
    """Internal signal: the current form cannot be parsed"""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic)


class SyntacticParser:
    """Single-use parser over one token stream

    Every parenthesised form is parsed inside a recovery boundary: a failure
    anywhere in the form is recorded, the form is skipped up to its matching
    close bracket and replaced by an ErrorExpression.
    """

    def __init__(self, tokens: Sequence[Token], source: str, source_path: str = "<input>",
                 max_depth: int = DEFAULT_MAX_DEPTH):
        self.cursor = TokenCursor(tokens, source, source_path)
        self.source = source
        self.max_depth = max_depth
        self.depth = 0
        # One entry per open form: whether it counts towards max_depth
        self.open_forms: List[bool] = []
        self.diagnostics: List[Diagnostic] = []

    def parse_program(self) -> Program:
        # Expansion can put an uncounted form inside every counted one
        limit = sys.getrecursionlimit()
        sys.setrecursionlimit(limit + self.max_depth * FRAMES_PER_LEVEL)
        try:
            return self._parse_body(None)
        finally:
            sys.setrecursionlimit(limit)

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _fail(self, expected: Sequence[str], label: Optional[str] = None):
        raise _Failure(unexpected(self.cursor.span_here(), self.cursor.peek(), expected, label))

    def _at_close(self) -> bool:
        token = self.cursor.peek()
        return token is not None and token.is_close()

    def _is_form(self, keyword: str) -> bool:
        token = self.cursor.peek()
        head = self.cursor.peek(1)
        return (token is not None and token.is_open()
                and head is not None and head.is_keyword(keyword))

    def _expect_close(self, also: Sequence[str] = ()) -> Token:
        if self._at_close():
            return self.cursor.advance()
        self._fail((CLOSE_PAREN,) + tuple(also))

    def _expect_identifier(self, also: Sequence[str] = ()) -> Identifier:
        token = self.cursor.peek()
        if token is not None and token.is_identifier():
            self.cursor.advance()
            return Identifier(token.value.value, token.span)
        self._fail((IDENTIFIER,) + tuple(also))

    def _identifier_list(self) -> List[Identifier]:
        """Identifiers up to and including the closing bracket of a formals list"""
        identifiers = []
        while not self._at_close():
            identifiers.append(self._expect_identifier((CLOSE_PAREN,)))
        self.cursor.advance()

        seen = set()
        for identifier in identifiers:
            if identifier.name in seen:
                raise _Failure(custom(identifier.span, f"Duplicate parameter {identifier.name}"))
            seen.add(identifier.name)
        return identifiers

    # ------------------------------------------------------------------
    # Recovery boundary
    # ------------------------------------------------------------------

    def _form(self, label: str, parse_inner: Callable[[Token], object]):
        """Parse a parenthesised form, degrading it to an ErrorExpression on failure

        Only brackets written in the source count towards the nesting limit.
        A bracket synthesized by a transformer directly inside a counted form
        is free, so expanded code nests as deep as the code that was written.
        """
        start = self.cursor.pos
        open_token = self.cursor.peek()
        counted = (self._written_in_source(open_token)
                   or not self.open_forms or not self.open_forms[-1])

        if counted and self.depth >= self.max_depth:
            span = self.cursor.skip_form(start)
            self.diagnostics.append(
                custom(open_token.span, f"Nesting deeper than {self.max_depth} levels", label)
            )
            return ErrorExpression(span)

        if counted:
            self.depth += 1
        self.open_forms.append(counted)
        try:
            return parse_inner(self.cursor.advance())
        except _Failure as failure:
            if self._reached_end(failure.diagnostic) and len(self.open_forms) > 1:
                # The outermost unclosed form reports it
                raise
            self._record(failure.diagnostic, open_token, label)
            return ErrorExpression(self.cursor.skip_form(start))
        finally:
            self.open_forms.pop()
            if counted:
                self.depth -= 1

    def _written_in_source(self, open_token: Token) -> bool:
        return open_token.span.text(self.source) == OPEN_PAREN

    @staticmethod
    def _reached_end(diagnostic: Diagnostic) -> bool:
        return diagnostic.reason == UNEXPECTED and diagnostic.found is None

    def _record(self, diagnostic: Diagnostic, open_token: Token, label: str):
        if self._reached_end(diagnostic):
            # Ran out of input before the form was closed
            diagnostic = unclosed(diagnostic.span, OPEN_PAREN, open_token.span)
        self.diagnostics.append(diagnostic.with_label(label))

    # ------------------------------------------------------------------
    # Bodies and definitions
    # ------------------------------------------------------------------

    def _parse_body(self, open_token: Optional[Token]) -> ProcedureBody:
        """definitions* expressions+, either at top level or up to a close bracket"""
        inside = open_token is not None
        defs: List[Definition] = []
        exprs: List[Expression] = []
        seen_expression = False

        while True:
            token = self.cursor.peek()
            if token is None:
                break
            if token.is_close():
                if inside:
                    break
                self.diagnostics.append(
                    unexpected(token.span, token, (DEFINITION, EXPRESSION, END_OF_INPUT))
                )
                self.cursor.advance()
                continue

            if self._is_form("define"):
                node = self._form("definition", self._definition)
                if isinstance(node, ErrorExpression):
                    exprs.append(node)
                elif seen_expression:
                    self.diagnostics.append(
                        custom(node.span, "Definitions must come before every expression of a body",
                               "definition")
                    )
                    exprs.append(ErrorExpression(node.span))
                else:
                    defs.append(node)
                continue

            if inside:
                expr = self._parse_expression((CLOSE_PAREN,) if exprs else ())
            else:
                expr = self._parse_toplevel_expression()
            exprs.append(expr)
            if not isinstance(expr, ErrorExpression):
                seen_expression = True

        if not exprs:
            if inside:
                self._fail((DEFINITION, EXPRESSION))
            self.diagnostics.append(
                unexpected(self.cursor.eoi, None, (DEFINITION, EXPRESSION))
            )
            return ProcedureBody(defs, [], ErrorExpression(self.cursor.eoi))

        return ProcedureBody(defs, exprs[:-1], exprs[-1])

    def _parse_toplevel_expression(self) -> Expression:
        """Top-level expressions have no enclosing form, so stray tokens are skipped one by one"""
        try:
            return self._parse_expression()
        except _Failure as failure:
            self.diagnostics.append(failure.diagnostic)
            return ErrorExpression(self.cursor.skip_form(self.cursor.pos))

    def _definition(self, open_token: Token) -> Definition:
        """(define name expr) or (define (name arg*) body)"""
        self.cursor.advance()
        token = self.cursor.peek()

        if token is not None and token.is_identifier():
            name = self._expect_identifier()
            value = self._parse_expression()
            close = self._expect_close()
            return Definition(name, value, open_token.span.join(close.span))

        if token is not None and token.is_open():
            self.cursor.advance()
            name = self._expect_identifier()
            args = self._identifier_list()
            body = self._parse_body(open_token)
            close = self._expect_close()
            span = open_token.span.join(close.span)
            return Definition(name, Procedure(args, body, span), span)

        self._fail((OPEN_PAREN, IDENTIFIER))

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expression(self, also: Sequence[str] = ()) -> Expression:
        token = self.cursor.peek()
        if token is not None and token.type == PRIMITIVE:
            self.cursor.advance()
            return PrimitiveExpression(token.value, token.span)
        if token is not None and token.is_open():
            return self._parse_compound()
        self._fail((EXPRESSION,) + tuple(also))

    def _parse_compound(self) -> Expression:
        """Dispatch on the head of a parenthesised expression, first match wins"""
        if self._is_form("if"):
            return self._form("conditional", self._conditional)
        if self._is_form("lambda"):
            return self._form("lambda", self._lambda)
        if self._is_form("set!"):
            return self._form("assignment", self._assignment)
        if self._is_form("define"):
            return self._form("definition", self._misplaced_definition)
        return self._form("procedure call", self._call)

    def _conditional(self, open_token: Token) -> Conditional:
        """(if test conseq [alter])"""
        self.cursor.advance()
        test = self._parse_expression()
        conseq = self._parse_expression()
        alter = None
        if not self._at_close():
            alter = self._parse_expression((CLOSE_PAREN,))
        close = self._expect_close()
        return Conditional(test, conseq, alter, open_token.span.join(close.span))

    def _lambda(self, open_token: Token) -> Procedure:
        """(lambda (arg*) body) or (lambda args body)"""
        self.cursor.advance()
        token = self.cursor.peek()
        if token is not None and token.is_identifier():
            args = [self._expect_identifier()]
            variadic = True
        elif token is not None and token.is_open():
            self.cursor.advance()
            args = self._identifier_list()
            variadic = False
        else:
            self._fail((OPEN_PAREN, IDENTIFIER))

        body = self._parse_body(open_token)
        close = self._expect_close()
        return Procedure(args, body, open_token.span.join(close.span), variadic)

    def _assignment(self, open_token: Token) -> Assignment:
        """(set! name expr)"""
        self.cursor.advance()
        target = self._expect_identifier()
        value = self._parse_expression()
        close = self._expect_close()
        return Assignment(target, value, open_token.span.join(close.span))

    def _call(self, open_token: Token) -> ProcedureCall:
        """(operator arg*)"""
        operator = self._parse_expression()
        args = []
        while not self._at_close():
            args.append(self._parse_expression((CLOSE_PAREN,)))
        close = self._expect_close()
        return ProcedureCall(operator, args, open_token.span.join(close.span))

    def _misplaced_definition(self, open_token: Token):
        keyword = self.cursor.peek()
        raise _Failure(custom(keyword.span, "Definitions are only allowed at the beginning of a body"))


class Parser:
    """Scheme parser combining tokenizer, expander and syntactic parser

    The transformer registry belongs to the parser instance and grows when an
    expansion registers new transformers.
    """

    def __init__(self, transformers: Optional[Sequence[Transformer]] = None,
                 debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH):
        self.debug = debug
        self.max_depth = max_depth
        if transformers is None:
            self.transformers: List[Transformer] = builtin_transformers()
        else:
            self.transformers = list(transformers)

    def register(self, transformer: Transformer):
        self.transformers.append(transformer)

    def parse(self, source: str, source_path: str = "<input>") -> Program:
        """Parse source text, raising TokenizeError or ParseError"""
        tokens = tokenize(source, source_path, self.debug)
        return self.parse_tokens(tokens, source, source_path)

    def parse_tokens(self, tokens: Sequence[Token], source: str,
                     source_path: str = "<input>") -> Program:
        """Expand and parse a pre-lexed token stream, raising ParseError"""
        expanded, registered = expand(self.transformers, tokens, source, source_path,
                                      self.max_depth, self.debug)
        self._learn(registered)
        program, diagnostics = self._parse_expanded(expanded, source, source_path)
        if diagnostics:
            raise ParseError(diagnostics, source, source_path)
        return program

    def parse_recover(self, source: str,
                      source_path: str = "<input>") -> Tuple[Optional[Program], Optional[SchemeError]]:
        """Parse source text, returning the recovered program and any error

        A tokenize error short-circuits: no program is returned.
        """
        tokens, error = tokenize_recover(source, source_path, self.debug)
        if error is not None:
            return None, error
        return self.parse_tokens_recover(tokens, source, source_path)

    def parse_tokens_recover(self, tokens: Sequence[Token], source: str,
                             source_path: str = "<input>") -> Tuple[Program, Optional[ParseError]]:
        expanded, registered, datum_error = expand_recover(
            self.transformers, tokens, source, source_path, self.max_depth, self.debug
        )
        self._learn(registered)
        program, diagnostics = self._parse_expanded(expanded, source, source_path)
        # The syntactic parser sees the same brackets as the datum reader and
        # reports them itself; datum diagnostics only fill a silent gap
        if not diagnostics and datum_error is not None:
            diagnostics = datum_error.diagnostics
        if diagnostics:
            return program, ParseError(diagnostics, source, source_path)
        return program, None

    def _learn(self, registered: List[Transformer]):
        if registered and self.debug:
            names = ", ".join(type(transformer).__name__ for transformer in registered)
            print(f"[parser] registered transformers: {names}")
        self.transformers.extend(registered)

    def _parse_expanded(self, tokens: Sequence[Token], source: str,
                        source_path: str) -> Tuple[Program, List[Diagnostic]]:
        parser = SyntacticParser(tokens, source, source_path, self.max_depth)
        program = parser.parse_program()
        if self.debug:
            print(f"[parser] {source_path}: {len(program.defs)} definitions, "
                  f"{len(program.exprs) + 1} expressions, {len(parser.diagnostics)} errors")
        return program, parser.diagnostics


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> Parser:
    """Create a Scheme parser with the built-in transformers"""
    return Parser(debug=debug)


def create_debug_parser() -> Parser:
    """Create a Scheme parser with debug enabled"""
    return Parser(debug=True)
