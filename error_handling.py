"""
Structured diagnostics for the Scheme front-end
Failures are collected as immutable Diagnostic records and rendered to text
only when an error is displayed
"""

from typing import Any, Iterable, List, Optional, Tuple
from dataclasses import dataclass, replace

from syntax import Span


UNEXPECTED = "UNEXPECTED"
UNCLOSED = "UNCLOSED"
CUSTOM = "CUSTOM"

END_OF_INPUT = "end of input"

# ANSI colours used when an error is displayed with colour enabled
RED = "\033[31m"
YELLOW = "\033[33m"
BOLD = "\033[1m"
RESET = "\033[0m"


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class Diagnostic:
    """One structured failure anchored at a primary span

    found is the offending token or character, or None at end of input.
    expected holds the sorted, de-duplicated alternatives that would have
    been accepted; label names the construct being parsed.
    """
    reason: str
    span: Span
    found: Any = None
    expected: Tuple[str, ...] = ()
    label: Optional[str] = None
    message: Optional[str] = None
    delimiter: Optional[str] = None
    delimiter_span: Optional[Span] = None

    def with_label(self, label: str) -> 'Diagnostic':
        """Attach the enclosing construct's label unless one is already set"""
        if self.label is not None:
            return self
        return replace(self, label=label)


def normalize_expected(expected: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(set(expected)))


def unexpected(span: Span, found: Any, expected: Iterable[str] = (),
               label: Optional[str] = None) -> Diagnostic:
    """Create an unexpected token/char (or end of input) diagnostic"""
    return Diagnostic(UNEXPECTED, span, found, normalize_expected(expected), label)


def unclosed(span: Span, delimiter: str, delimiter_span: Span, found: Any = None,
             label: Optional[str] = None) -> Diagnostic:
    """Create an unclosed delimiter diagnostic

    span is the point where the closing delimiter was expected.
    """
    return Diagnostic(UNCLOSED, span, found, (), label,
                      delimiter=delimiter, delimiter_span=delimiter_span)


def custom(span: Span, message: str, label: Optional[str] = None) -> Diagnostic:
    return Diagnostic(CUSTOM, span, None, (), label, message=message)


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def offset_to_location(source: str, offset: int) -> Tuple[int, int]:
    """Convert a character offset to a 1-based (line, column) pair"""
    offset = max(0, min(offset, len(source)))
    line = source.count("\n", 0, offset) + 1
    line_start = source.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def paint(text: str, color: str, colorful: bool) -> str:
    return f"{color}{text}{RESET}" if colorful else text


def describe_found(found: Any, item: str) -> str:
    if found is None:
        return "end of file"
    return f"{item} {found}"


def headline(diagnostic: Diagnostic, item: str, colorful: bool = False) -> str:
    """Format the one-line summary of a diagnostic"""
    parsing = f", parsing {diagnostic.label}" if diagnostic.label else ""

    if diagnostic.reason == UNEXPECTED:
        if diagnostic.found is None:
            message = "Unexpected end of input"
        else:
            message = f"Unexpected {item} in input"
        if diagnostic.expected:
            message += f", expected {', '.join(diagnostic.expected)}"
        elif item != "char":
            message += ", expected something else"
        return message + parsing

    if diagnostic.reason == UNCLOSED:
        return f"Unclosed delimiter {paint(diagnostic.delimiter, YELLOW, colorful)}{parsing}"

    return f"{diagnostic.message}{parsing}"


def diagnostic_labels(diagnostic: Diagnostic, item: str,
                      colorful: bool = False) -> List[Tuple[Span, str, str]]:
    """Return (span, message, colour) labels, primary label last for unclosed delimiters"""
    if diagnostic.reason == UNEXPECTED:
        found = describe_found(diagnostic.found, item)
        return [(diagnostic.span, f"Unexpected {paint(found, RED, colorful)}", RED)]

    if diagnostic.reason == UNCLOSED:
        found = "end of file" if diagnostic.found is None else str(diagnostic.found)
        delimiter = paint(diagnostic.delimiter, YELLOW, colorful)
        return [
            (diagnostic.delimiter_span, f"Unclosed delimiter {delimiter}", YELLOW),
            (diagnostic.span, f"Must be closed before this {paint(found, RED, colorful)}", RED),
        ]

    return [(diagnostic.span, paint(diagnostic.message, RED, colorful), RED)]


def render_label(source: str, span: Span, message: str, color: str,
                 colorful: bool = False) -> List[str]:
    """Render one source line with a caret underline and label message"""
    line_num, col_num = offset_to_location(source, span.start)
    lines = source.split("\n")
    text = lines[line_num - 1] if line_num <= len(lines) else ""

    # Underline stops at the end of the first line of a multi-line span
    visible_end = min(span.end, span.start + max(0, len(text) - col_num + 1))
    width = max(1, visible_end - span.start)

    gutter = f"{line_num:4d} | "
    padding = " " * (len(gutter) - 2) + "| "
    underline = paint("^" * width, color, colorful)
    return [
        f"{gutter}{text}",
        f"{padding}{' ' * (col_num - 1)}{underline} {message}",
    ]


def format_diagnostic(diagnostic: Diagnostic, source: str, source_path: str,
                      item: str = "token", colorful: bool = False) -> str:
    """Format a diagnostic as a report block anchored at its primary span"""
    line_num, col_num = offset_to_location(source, diagnostic.span.start)
    title = paint("Error", RED + BOLD, colorful)
    parts = [
        f"{title}: {headline(diagnostic, item, colorful)}",
        f"  --> {source_path}:{line_num}:{col_num}",
    ]

    labels = sorted(diagnostic_labels(diagnostic, item, colorful),
                    key=lambda label: label[0].start)
    for span, message, color in labels:
        parts.extend(render_label(source, span, message, color, colorful))

    return "\n".join(parts) + "\n"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class SchemeError(Exception):
    """Tokenize-or-parse failure carrying every collected diagnostic"""

    item = "token"

    def __init__(self, diagnostics: List[Diagnostic], source: str,
                 source_path: str = "<input>", colorful: bool = False):
        self.diagnostics = list(diagnostics)
        self.source = source
        self.source_path = source_path
        self.colorful = colorful
        summary = headline(self.diagnostics[0], self.item) if self.diagnostics else "no diagnostics"
        super().__init__(summary)

    def __str__(self) -> str:
        return "".join(
            format_diagnostic(diagnostic, self.source, self.source_path,
                              self.item, self.colorful)
            for diagnostic in self.diagnostics
        )

    def with_color(self, colorful: bool) -> 'SchemeError':
        """Return a copy that renders with or without colour, default: without"""
        return type(self)(self.diagnostics, self.source, self.source_path, colorful)


class TokenizeError(SchemeError):
    """Lexical failure: unexpected characters in the source text"""
    item = "char"


class ParseError(SchemeError):
    """Datum-reading or syntactic failure over the token stream"""
    item = "token"
