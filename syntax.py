"""
Scheme front-end lexical data types
Spans, primitives and tokens shared by every stage of the pipeline
"""

from typing import Any, Optional
from dataclasses import dataclass, field
from fractions import Fraction


# Token types
KEYWORD = "KEYWORD"
PRIMITIVE = "PRIMITIVE"

# Primitive types
INTEGER = "INTEGER"
BOOL = "BOOL"
REAL = "REAL"
IDENT = "IDENT"

OPEN_PAREN = "("
CLOSE_PAREN = ")"
DOT = "."

# Reserved words that are lexed as keywords rather than identifiers
WORD_KEYWORDS = ("define", "lambda", "if", "set!")
KEYWORDS = (OPEN_PAREN, CLOSE_PAREN, DOT) + WORD_KEYWORDS

EXTENDED_IDENTIFIER_CHARS = "!$%&*+-/:<=>?@^_~"


@dataclass(frozen=True)
class Span:
    """Half-open character range [start, end) into a named source text"""
    start: int
    end: int
    filename: str = "<input>"

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Span start {self.start} is after end {self.end}")

    def __len__(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.filename}:{self.start}..{self.end}"

    def contains(self, other: 'Span') -> bool:
        return self.start <= other.start and other.end <= self.end

    def join(self, other: 'Span') -> 'Span':
        """Smallest span covering both spans"""
        return Span(min(self.start, other.start), max(self.end, other.end), self.filename)

    def text(self, source: str) -> str:
        return source[self.start:self.end]


@dataclass(frozen=True)
class Real:
    """Decimal fixed-point number: numerator / 10 ** digits

    The digit count is the number of fractional digits written in the source,
    so trailing and leading zeros of the fraction survive display. negative
    records a written minus sign, which a zero numerator cannot carry.
    """
    numerator: int
    digits: int
    negative: bool = field(default=False, compare=False)

    def denominator(self) -> int:
        return 10 ** self.digits

    def to_fraction(self) -> Fraction:
        return Fraction(self.numerator, self.denominator())

    def __float__(self) -> float:
        if self.negative and self.numerator == 0:
            return -0.0
        return float(self.to_fraction())

    def __str__(self) -> str:
        sign = "-" if self.numerator < 0 or self.negative else ""
        whole, frac = divmod(abs(self.numerator), self.denominator())
        if self.digits == 0:
            return f"{sign}{whole}."
        return f"{sign}{whole}.{frac:0{self.digits}d}"

    @classmethod
    def from_text(cls, text: str) -> 'Real':
        """Build a Real from its source spelling, e.g. '-2.25'"""
        negative = text.startswith("-")
        unsigned = text.lstrip("+-")
        whole, _, frac = unsigned.partition(".")
        numerator = int(whole) * 10 ** len(frac) + (int(frac) if frac else 0)
        return cls(-numerator if negative else numerator, len(frac), negative)


@dataclass(frozen=True)
class Primitive:
    """Self-describing literal or identifier"""
    type: str
    value: Any

    def __str__(self) -> str:
        if self.type == BOOL:
            return "#t" if self.value else "#f"
        return str(self.value)

    @classmethod
    def integer(cls, value: int) -> 'Primitive':
        return cls(INTEGER, value)

    @classmethod
    def boolean(cls, value: bool) -> 'Primitive':
        return cls(BOOL, value)

    @classmethod
    def real(cls, numerator: int, digits: int) -> 'Primitive':
        return cls(REAL, Real(numerator, digits))

    @classmethod
    def ident(cls, name: str) -> 'Primitive':
        return cls(IDENT, name)


@dataclass(frozen=True)
class Token:
    """Scheme token with source information

    The span does not take part in equality, so token streams compare by
    content only.
    """
    type: str
    value: Any
    span: Span = field(compare=False)

    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def keyword(cls, word: str, span: Span) -> 'Token':
        return cls(KEYWORD, word, span)

    @classmethod
    def primitive(cls, primitive: Primitive, span: Span) -> 'Token':
        return cls(PRIMITIVE, primitive, span)

    def is_keyword(self, word: Optional[str] = None) -> bool:
        return self.type == KEYWORD and (word is None or self.value == word)

    def is_open(self) -> bool:
        return self.is_keyword(OPEN_PAREN)

    def is_close(self) -> bool:
        return self.is_keyword(CLOSE_PAREN)

    def is_identifier(self) -> bool:
        return self.type == PRIMITIVE and self.value.type == IDENT
