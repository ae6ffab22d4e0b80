"""
Scheme lexer
Converts source text into spanned tokens using pyparsing elements for the
lexical grammar; comments and whitespace separate tokens
"""

from typing import List, Optional, Tuple
import re

from pyparsing import Keyword, Literal, Regex

from error_handling import Diagnostic, TokenizeError, unexpected
from syntax import (
    CLOSE_PAREN, DOT, EXTENDED_IDENTIFIER_CHARS, OPEN_PAREN, REAL, WORD_KEYWORDS,
    Primitive, Real, Span, Token,
)


IDENTIFIER_CHARS = (
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    + EXTENDED_IDENTIFIER_CHARS
)
IDENTIFIER_CLASS = "[A-Za-z0-9" + re.escape(EXTENDED_IDENTIFIER_CHARS) + "]"

# Numbers and booleans must end at an identifier boundary, so that 1+ or #tx
# are not split into two tokens
BOUNDARY = f"(?!{IDENTIFIER_CLASS})"

COMMENT = "COMMENT"


class SchemeTokenizer:
    """Scheme tokenizer built from an ordered choice of pyparsing elements"""

    def __init__(self, filename: str = "<input>", debug: bool = False):
        self.filename = filename
        self.debug = debug
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup the lexical grammar, one alternative per token form"""

        comment = Regex(r";[^\n]*").set_parse_action(lambda t: COMMENT)

        punctuation = (Literal(OPEN_PAREN) | Literal(CLOSE_PAREN)).set_parse_action(
            lambda t: ("KEYWORD", t[0])
        )

        word_keyword = Keyword(WORD_KEYWORDS[0], ident_chars=IDENTIFIER_CHARS)
        for word in WORD_KEYWORDS[1:]:
            word_keyword = word_keyword | Keyword(word, ident_chars=IDENTIFIER_CHARS)
        word_keyword.set_parse_action(lambda t: ("KEYWORD", t[0]))

        boolean = Regex(r"#[tf]" + BOUNDARY).set_parse_action(
            lambda t: ("PRIMITIVE", Primitive.boolean(t[0] == "#t"))
        )

        real = Regex(r"[+-]?[0-9]+\.[0-9]+" + BOUNDARY).set_parse_action(
            lambda t: ("PRIMITIVE", Primitive(REAL, Real.from_text(t[0])))
        )

        integer = Regex(r"[+-]?[0-9]+" + BOUNDARY).set_parse_action(
            lambda t: ("PRIMITIVE", Primitive.integer(int(t[0])))
        )

        dot = Literal(DOT).set_parse_action(lambda t: ("KEYWORD", DOT))

        identifier = Regex(IDENTIFIER_CLASS + "+").set_parse_action(
            lambda t: ("PRIMITIVE", Primitive.ident(t[0]))
        )

        # Order matters: keywords and booleans before identifiers, numbers
        # before identifiers, reals before integers and the dot
        self.lexeme = (
            comment |
            punctuation |
            word_keyword |
            boolean |
            real |
            integer |
            dot |
            identifier
        )
        self.lexeme.leave_whitespace()
        self.lexeme.parse_with_tabs()

    def tokenize(self, text: str) -> Tuple[List[Token], List[Diagnostic]]:
        """Tokenize text, collecting one diagnostic per unexpected character"""
        tokens: List[Token] = []
        diagnostics: List[Diagnostic] = []
        position = 0

        for results, start, end in self.lexeme.scan_string(text):
            self._check_gap(text, position, start, diagnostics)
            position = end

            result = results[0]
            if result == COMMENT:
                continue
            kind, value = result
            span = Span(start, end, self.filename)
            if kind == "KEYWORD":
                tokens.append(Token.keyword(value, span))
            else:
                tokens.append(Token.primitive(value, span))

        self._check_gap(text, position, len(text), diagnostics)

        if self.debug:
            print(f"[lexer] {self.filename}: {len(tokens)} tokens, {len(diagnostics)} errors")

        return tokens, diagnostics

    def _check_gap(self, text: str, start: int, end: int, diagnostics: List[Diagnostic]):
        """Anything between two lexemes must be whitespace"""
        for offset in range(start, end):
            char = text[offset]
            if not char.isspace():
                diagnostics.append(unexpected(Span(offset, offset + 1, self.filename), char))


def tokenize_recover(source: str, source_path: str = "<input>",
                     debug: bool = False) -> Tuple[List[Token], Optional[TokenizeError]]:
    """Tokenize source, returning the recovered tokens and any lexical error"""
    tokens, diagnostics = SchemeTokenizer(source_path, debug).tokenize(source)
    if diagnostics:
        return tokens, TokenizeError(diagnostics, source, source_path)
    return tokens, None


def tokenize(source: str, source_path: str = "<input>", debug: bool = False) -> List[Token]:
    """Tokenize source, raising TokenizeError on the first pass with errors"""
    tokens, error = tokenize_recover(source, source_path, debug)
    if error is not None:
        raise error
    return tokens
