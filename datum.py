"""
Scheme datum reader
Groups a flat token stream into a bracket tree independent of keyword
semantics, and flattens the tree back into tokens
"""

from typing import Any, Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from error_handling import Diagnostic, ParseError, custom, unclosed, unexpected
from syntax import (
    CLOSE_PAREN, IDENT, KEYWORD, OPEN_PAREN, PRIMITIVE, Primitive, Span, Token,
)
from utilities import DEFAULT_MAX_DEPTH, TokenCursor


LIST = "LIST"
ERROR = "ERROR"

DATUM_EXPECTED = ("<keyword>", "<primitive>", OPEN_PAREN)


@dataclass(frozen=True)
class Datum:
    """Bracket-tree node

    KEYWORD and PRIMITIVE wrap a single token, LIST holds child data and
    ERROR keeps the raw tokens it replaced.
    """
    type: str
    value: Any
    span: Span = field(compare=False)

    def __str__(self) -> str:
        if self.type == ERROR:
            return "<error>"
        if self.type == LIST:
            return "( ... )"
        return str(self.value)

    @classmethod
    def keyword(cls, word: str, span: Span) -> 'Datum':
        return cls(KEYWORD, word, span)

    @classmethod
    def primitive(cls, primitive: Primitive, span: Span) -> 'Datum':
        return cls(PRIMITIVE, primitive, span)

    @classmethod
    def from_list(cls, children: List['Datum'], span: Span) -> 'Datum':
        return cls(LIST, list(children), span)

    @classmethod
    def error(cls, tokens: Sequence[Token], span: Span) -> 'Datum':
        return cls(ERROR, tuple(tokens), span)

    def is_list(self) -> bool:
        return self.type == LIST

    def head_is_identifier(self, name: str) -> bool:
        """True for a list whose first element is the identifier name"""
        if self.type != LIST or not self.value:
            return False
        head = self.value[0]
        return (head.type == PRIMITIVE and head.value.type == IDENT
                and head.value.value == name)


class DatumReader:
    """Recursive reader over a token cursor, recovering from bracket errors"""

    def __init__(self, tokens: Sequence[Token], source: str, source_path: str,
                 max_depth: int = DEFAULT_MAX_DEPTH):
        self.cursor = TokenCursor(tokens, source, source_path)
        self.max_depth = max_depth
        self.depth = 0
        self.diagnostics: List[Diagnostic] = []

    def read_all(self) -> List[Datum]:
        data = []
        while not self.cursor.at_end():
            token = self.cursor.peek()
            if token.is_close():
                # Stray close bracket at top level
                self.diagnostics.append(
                    unexpected(token.span, token, DATUM_EXPECTED + ("end of input",))
                )
                self.cursor.advance()
                data.append(Datum.error([token], token.span))
                continue
            data.append(self.read_datum())
        return data

    def read_datum(self) -> Datum:
        token = self.cursor.peek()
        if token.is_open():
            return self.read_list()
        self.cursor.advance()
        if token.type == KEYWORD:
            return Datum.keyword(token.value, token.span)
        return Datum.primitive(token.value, token.span)

    def read_list(self) -> Datum:
        start = self.cursor.pos
        open_token = self.cursor.advance()

        if self.depth >= self.max_depth:
            self.cursor.pos = start
            span = self.cursor.skip_form(start)
            self.diagnostics.append(
                custom(open_token.span, f"Nesting deeper than {self.max_depth} levels", "( ... )")
            )
            return Datum.error(self.cursor.tokens[start:self.cursor.pos], span)

        self.depth += 1
        try:
            children = []
            while True:
                token = self.cursor.peek()
                if token is None:
                    # Every enclosing list runs out too; the outermost one reports it
                    if self.depth == 1:
                        self.diagnostics.append(
                            unclosed(self.cursor.eoi, OPEN_PAREN, open_token.span, label="( ... )")
                        )
                    span = Span(open_token.span.start, self.cursor.tokens[-1].span.end,
                                open_token.span.filename)
                    return Datum.error(self.cursor.tokens[start:], span)
                if token.is_close():
                    close_token = self.cursor.advance()
                    return Datum.from_list(children, open_token.span.join(close_token.span))
                children.append(self.read_datum())
        finally:
            self.depth -= 1


def datumize_recover(tokens: Sequence[Token], source: str, source_path: str = "<input>",
                     max_depth: int = DEFAULT_MAX_DEPTH) -> Tuple[List[Datum], Optional[ParseError]]:
    """Read every datum, returning ERROR data and a ParseError for malformed regions"""
    reader = DatumReader(tokens, source, source_path, max_depth)
    data = reader.read_all()
    if reader.diagnostics:
        return data, ParseError(reader.diagnostics, source, source_path)
    return data, None


def datumize(tokens: Sequence[Token], source: str, source_path: str = "<input>",
             max_depth: int = DEFAULT_MAX_DEPTH) -> List[Datum]:
    """Read every datum, raising ParseError on unbalanced brackets"""
    data, error = datumize_recover(tokens, source, source_path, max_depth)
    if error is not None:
        raise error
    return data


def _datum_tokens(datum: Datum) -> Iterator[Token]:
    if datum.type == LIST:
        span = datum.span
        yield Token.keyword(OPEN_PAREN, Span(span.start, span.start + 1, span.filename))
        for child in datum.value:
            yield from _datum_tokens(child)
        yield Token.keyword(CLOSE_PAREN, Span(span.end - 1, span.end, span.filename))
    elif datum.type == ERROR:
        yield from datum.value
    elif datum.type == KEYWORD:
        yield Token.keyword(datum.value, datum.span)
    else:
        yield Token.primitive(datum.value, datum.span)


def into_tokens(data: Sequence[Datum]) -> List[Token]:
    """Flatten data back into the token stream they were read from"""
    tokens: List[Token] = []
    for datum in data:
        tokens.extend(_datum_tokens(datum))
    return tokens


def walk_datum(datum: Datum) -> Iterator[Datum]:
    """Yield datum and every nested datum, parents first"""
    yield datum
    if datum.type == LIST:
        for child in datum.value:
            yield from walk_datum(child)
